"""
Login handshake and the session header it produces.

The login call is built and parsed by hand rather than through SoapClient:
the session id it returns arrives in the response *header*, and there is
no session to attach yet.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass

from polarion_ws.core.envelope import (
    NEXT_ACTOR,
    SESSION_NS,
    SOAP_ENV_NS,
    build_envelope,
    parse_envelope,
    qname,
)
from polarion_ws.core.errors import AuthError, CodecError, TransportError
from polarion_ws.core.transport import Transport

logger = logging.getLogger(__name__)

LOGIN_OPERATION = "logInWithToken"
LOGIN_MECHANISM = "AccessToken"
SESSION_SERVICE_NS = "http://ws.polarion.com/SessionWebService-impl"


@dataclass(frozen=True)
class SessionHeader:
    """
    SOAP header block carrying the session id.

    One instance is created per login and shared by every service client.
    """

    session_id: str
    actor: str = NEXT_ACTOR
    must_understand: str = "0"

    def to_element(self) -> ET.Element:
        element = ET.Element(
            qname(SESSION_NS, "sessionID"),
            {
                qname(SOAP_ENV_NS, "actor"): self.actor,
                qname(SOAP_ENV_NS, "mustUnderstand"): self.must_understand,
            },
        )
        element.text = self.session_id
        return element


def login_with_token(
    transport: Transport,
    session_endpoint: str,
    username: str,
    token: str,
    timeout: float,
) -> str:
    """
    Log in with a personal access token and return the session id.

    Args:
        transport: Transport used for the POST
        session_endpoint: SessionWebService endpoint URL
        username: Polarion user
        token: Personal access token
        timeout: Request timeout in seconds

    Returns:
        Non-empty session id

    Raises:
        AuthError: With `step` set to the stage that failed

    """
    try:
        payload = build_envelope(
            SESSION_SERVICE_NS,
            LOGIN_OPERATION,
            {"mechanism": LOGIN_MECHANISM, "username": username, "token": token},
        )
    except CodecError as e:
        raise AuthError(f"Failed to encode login request: {e}", step="encode") from e

    headers = {
        "Content-Type": "text/xml; charset=utf-8",
        "SOAPAction": f"urn:{LOGIN_OPERATION}",
    }

    logger.debug("POST %s (%s)", session_endpoint, LOGIN_OPERATION)
    try:
        response = transport.post(session_endpoint, payload, headers, timeout)
    except TransportError as e:
        raise AuthError(f"Failed to make login request: {e}", step="transport", details=e.details) from e

    if response.status != 200:
        raise AuthError(
            f"Failed to make login request: response status {response.status}",
            step="status",
            status=response.status,
        )

    try:
        envelope = parse_envelope(response.body, LOGIN_OPERATION)
    except CodecError as e:
        raise AuthError(f"Failed to decode login response: {e}", step="decode") from e

    if envelope.header is None:
        raise AuthError("Login response envelope has no header", step="session_header")

    session_el = envelope.header.find(qname(SESSION_NS, "sessionID"))
    session_id = (session_el.text or "").strip() if session_el is not None else ""
    if not session_id:
        raise AuthError("Login response header carries no session id", step="session_header")

    logger.info("Logged in to Polarion as %s", username)
    return session_id
