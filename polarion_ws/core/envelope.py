"""
SOAP 1.1 envelope codec.

Encodes operation calls into envelopes and decodes response envelopes into
plain Python values (dicts, lists, strings), which the typed layer then
turns into dataclasses.
"""

import xml.etree.ElementTree as ET
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from polarion_ws.core.errors import CodecError

SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
SESSION_NS = "http://ws.polarion.com/session"
NEXT_ACTOR = "http://schemas.xmlsoap.org/soap/actor/next"

ET.register_namespace("soapenv", SOAP_ENV_NS)
ET.register_namespace("xsi", XSI_NS)
ET.register_namespace("ses", SESSION_NS)


def qname(namespace: str, tag: str) -> str:
    """Clark-notation name, as ElementTree uses it."""
    return f"{{{namespace}}}{tag}"


def local_name(tag: str) -> str:
    """Strip the namespace from an ElementTree tag."""
    return tag.rsplit("}", 1)[-1]


class HeaderElement(Protocol):
    """Something that can render itself as a SOAP header block."""

    def to_element(self) -> ET.Element: ...


@dataclass(frozen=True)
class Fault:
    """A decoded SOAP fault."""

    code: str
    message: str
    detail: Any = None


@dataclass(frozen=True)
class Envelope:
    """A decoded response envelope."""

    header: ET.Element | None
    body: ET.Element

    @property
    def payload(self) -> ET.Element | None:
        """First element inside the body (the operation response or a fault)."""
        for child in self.body:
            return child
        return None

    def fault(self) -> Fault | None:
        """Return the body's SOAP fault, if it carries one."""
        payload = self.payload
        if payload is None or payload.tag != qname(SOAP_ENV_NS, "Fault"):
            return None
        # faultcode/faultstring are unqualified in SOAP 1.1
        code = _child_text(payload, "faultcode") or ""
        message = _child_text(payload, "faultstring") or "Unknown SOAP fault"
        detail_el = _find_local(payload, "detail")
        detail = element_to_value(detail_el) if detail_el is not None else None
        return Fault(code=code, message=message, detail=detail)


# =============================================================================
# Encoding
# =============================================================================


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _append_param(parent: ET.Element, tag: str, value: Any) -> None:
    """Append one parameter. None is omitted, sequences repeat the element."""
    if value is None:
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _append_param(parent, tag, item)
        return
    child = ET.SubElement(parent, tag)
    if isinstance(value, Mapping):
        for key, item in value.items():
            _append_param(child, qname(local_namespace(tag), key), item)
    else:
        child.text = _format_scalar(value)


def local_namespace(tag: str) -> str:
    """Namespace part of a Clark-notation tag (empty when unqualified)."""
    if tag.startswith("{"):
        return tag[1:].split("}", 1)[0]
    return ""


def build_envelope(
    namespace: str,
    operation: str,
    params: Mapping[str, Any] | None = None,
    headers: Iterable[HeaderElement] = (),
) -> bytes:
    """
    Serialize one operation call into a SOAP envelope.

    Args:
        namespace: Namespace of the operation element and its parameters
        operation: Operation name, e.g. getWorkItemById
        params: Parameter values in wire order; None values are omitted
        headers: Header blocks to place in soapenv:Header

    Returns:
        UTF-8 encoded envelope

    Raises:
        CodecError: If a value cannot be serialized

    """
    envelope = ET.Element(qname(SOAP_ENV_NS, "Envelope"))
    header_el = ET.SubElement(envelope, qname(SOAP_ENV_NS, "Header"))
    for header in headers:
        header_el.append(header.to_element())

    body_el = ET.SubElement(envelope, qname(SOAP_ENV_NS, "Body"))
    op_el = ET.SubElement(body_el, qname(namespace, operation))
    for key, value in (params or {}).items():
        _append_param(op_el, qname(namespace, key), value)

    try:
        return ET.tostring(envelope, encoding="utf-8", xml_declaration=True)
    except (TypeError, ValueError) as e:
        raise CodecError(f"Failed to encode {operation} envelope: {e}", operation=operation) from e


# =============================================================================
# Decoding
# =============================================================================


def parse_envelope(data: bytes, operation: str | None = None) -> Envelope:
    """
    Parse a response body into an Envelope.

    Raises:
        CodecError: On malformed XML or a document that is not a SOAP envelope

    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise CodecError(f"Invalid XML response: {e}", operation=operation) from e

    if root.tag != qname(SOAP_ENV_NS, "Envelope"):
        raise CodecError(f"Expected SOAP Envelope, got <{local_name(root.tag)}>", operation=operation)

    body = root.find(qname(SOAP_ENV_NS, "Body"))
    if body is None:
        raise CodecError("SOAP Envelope has no Body", operation=operation)

    return Envelope(header=root.find(qname(SOAP_ENV_NS, "Header")), body=body)


def _is_nil(element: ET.Element) -> bool:
    return element.get(qname(XSI_NS, "nil"), "").lower() in ("true", "1")


def _find_local(element: ET.Element, name: str) -> ET.Element | None:
    for child in element:
        if local_name(child.tag) == name:
            return child
    return None


def _child_text(element: ET.Element, name: str) -> str | None:
    child = _find_local(element, name)
    if child is None:
        return None
    return (child.text or "").strip()


def element_to_value(element: ET.Element) -> Any:
    """
    Convert an element tree into plain Python values.

    - xsi:nil elements become None
    - leaf elements without attributes become their text
    - everything else becomes a dict keyed by local name; attributes are
      merged in, repeated children collapse into a list, and leaf text on an
      attributed element is kept under "value"
    """
    if _is_nil(element):
        return None

    attrs = {local_name(k): v for k, v in element.attrib.items() if local_namespace(k) != XSI_NS}
    children = list(element)

    if not children:
        text = element.text or ""
        if not attrs:
            return text
        if text.strip():
            attrs["value"] = text
        return attrs

    result: dict[str, Any] = dict(attrs)
    repeated: set[str] = set()
    for child in children:
        key = local_name(child.tag)
        value = element_to_value(child)
        if key in repeated:
            result[key].append(value)
        elif key in result and key not in attrs:
            result[key] = [result[key], value]
            repeated.add(key)
        else:
            result[key] = value
    return result


def return_values(envelope: Envelope, operation: str) -> list[Any] | None:
    """
    Decoded `<operation>Return` values of a response envelope.

    Returns:
        List of decoded values (empty when the response element has no
        return children), or None when the body holds no
        `<operation>Response` element at all

    """
    payload = envelope.payload
    if payload is None or local_name(payload.tag) != f"{operation}Response":
        return None
    return_tag = f"{operation}Return"
    return [element_to_value(child) for child in payload if local_name(child.tag) == return_tag]
