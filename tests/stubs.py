"""Canned SOAP envelopes and a recording stub transport for unit tests."""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from polarion_ws.core.envelope import SESSION_NS, SOAP_ENV_NS
from polarion_ws.core.errors import TransportError
from polarion_ws.core.transport import HttpResponse

BASE_URL = "https://example.test"
SESSION_ID = "abc-123-session"

IMPL_NS = {
    "session": "http://ws.polarion.com/SessionWebService-impl",
    "tracker": "http://ws.polarion.com/TrackerWebService-impl",
    "test": "http://ws.polarion.com/TestManagementWebService-impl",
}


# =============================================================================
# Envelope Builders
# =============================================================================


def soap_envelope(body: str, header: str | None = "") -> bytes:
    """Wrap body XML (and optional header XML) in a SOAP envelope."""
    header_xml = "" if header is None else f"<soapenv:Header>{header}</soapenv:Header>"
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<soapenv:Envelope xmlns:soapenv="{SOAP_ENV_NS}" '
        'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">'
        f"{header_xml}<soapenv:Body>{body}</soapenv:Body></soapenv:Envelope>"
    ).encode("utf-8")


def login_response(session_id: str = SESSION_ID) -> bytes:
    header = (
        f'<ns1:sessionID soapenv:actor="http://schemas.xmlsoap.org/soap/actor/next" '
        f'soapenv:mustUnderstand="0" xmlns:ns1="{SESSION_NS}">{session_id}</ns1:sessionID>'
    )
    body = f'<logInWithTokenResponse xmlns="{IMPL_NS["session"]}"/>'
    return soap_envelope(body, header)


def operation_response(service: str, operation: str, *returns: str) -> bytes:
    """Build a `<operation>Response` envelope with the given inner return XML fragments."""
    ns = IMPL_NS[service]
    inner = "".join(f"<{operation}Return>{r}</{operation}Return>" for r in returns)
    return soap_envelope(f'<{operation}Response xmlns="{ns}">{inner}</{operation}Response>')


def fault_response(message: str, code: str = "soapenv:Server") -> bytes:
    return soap_envelope(
        f"<soapenv:Fault><faultcode>{code}</faultcode><faultstring>{message}</faultstring></soapenv:Fault>"
    )


# =============================================================================
# Stub Transport
# =============================================================================


@dataclass
class RecordedRequest:
    """One POST seen by the stub transport."""

    url: str
    body: bytes
    headers: dict[str, str]
    timeout: float

    @property
    def xml(self) -> ET.Element:
        return ET.fromstring(self.body)

    @property
    def action(self) -> str:
        return self.headers.get("SOAPAction", "")

    def session_headers(self) -> list[ET.Element]:
        header = self.xml.find(f"{{{SOAP_ENV_NS}}}Header")
        if header is None:
            return []
        return header.findall(f"{{{SESSION_NS}}}sessionID")

    def operation_element(self) -> ET.Element:
        body = self.xml.find(f"{{{SOAP_ENV_NS}}}Body")
        return list(body)[0]

    def params(self) -> dict[str, list[str]]:
        """Parameter values by local name, in order."""
        result: dict[str, list[str]] = {}
        for child in self.operation_element():
            result.setdefault(child.tag.rsplit("}", 1)[-1], []).append(child.text or "")
        return result


@dataclass
class StubTransport:
    """Replays canned responses in order and records every request."""

    responses: list[HttpResponse | Exception] = field(default_factory=list)
    requests: list[RecordedRequest] = field(default_factory=list)
    closed: bool = False

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def queue(self, body: bytes, status: int = 200) -> "StubTransport":
        self.responses.append(HttpResponse(status=status, body=body))
        return self

    def queue_error(self, error: Exception) -> "StubTransport":
        self.responses.append(error)
        return self

    def post(self, url: str, body: bytes, headers: dict[str, str], timeout: float) -> HttpResponse:
        self.requests.append(RecordedRequest(url=url, body=body, headers=dict(headers), timeout=timeout))
        if not self.responses:
            raise TransportError("stub transport has no queued response", details={"url": url})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


