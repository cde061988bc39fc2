"""
HTTP transport shared by the login handshake and every service client.

A thin layer over urllib: one opener with an explicit TLS context, and a
POST method that hands back status and body instead of raising on non-2xx.
"""

import http.client
import logging
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Protocol

from polarion_ws.core.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpResponse:
    """Status code and raw body of a completed HTTP exchange."""

    status: int
    body: bytes


class Transport(Protocol):
    """Anything that can POST a body and return an HttpResponse."""

    def post(
        self,
        url: str,
        body: bytes,
        headers: dict[str, str],
        timeout: float,
    ) -> HttpResponse: ...

    def close(self) -> None: ...


def build_ssl_context(verify_tls: bool = True, ca_file: str | None = None) -> ssl.SSLContext:
    """
    Build the TLS context for HTTPS requests.

    Args:
        verify_tls: Validate the server certificate and hostname
        ca_file: Optional CA bundle to trust instead of the system store

    Returns:
        Configured SSLContext

    """
    context = ssl.create_default_context(cafile=ca_file)
    if not verify_tls:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class HttpTransport:
    """
    urllib-based transport.

    Certificate verification is on unless `verify_tls=False` is passed.
    """

    def __init__(self, verify_tls: bool = True, ca_file: str | None = None):
        if not verify_tls:
            logger.warning("TLS certificate verification is disabled")
        self.verify_tls = verify_tls
        self._opener = urllib.request.build_opener(
            urllib.request.HTTPSHandler(context=build_ssl_context(verify_tls, ca_file))
        )

    def post(
        self,
        url: str,
        body: bytes,
        headers: dict[str, str],
        timeout: float,
    ) -> HttpResponse:
        """
        POST a body and return the response.

        Non-2xx statuses come back as an HttpResponse; only failures to
        complete the exchange raise.

        Raises:
            TransportError: On connection, TLS, protocol or timeout errors

        """
        try:
            req = urllib.request.Request(url, data=body, headers=headers, method="POST")
        except ValueError as e:
            raise TransportError(f"Invalid URL: {e}", details={"url": url}) from e

        try:
            with self._opener.open(req, timeout=timeout) as response:
                return HttpResponse(status=response.status, body=response.read())

        except urllib.error.HTTPError as e:
            try:
                error_body = e.read()
            except OSError:
                error_body = b""
            return HttpResponse(status=e.code, body=error_body)

        except urllib.error.URLError as e:
            raise TransportError(f"Connection error: {e.reason}", details={"url": url}) from e

        except TimeoutError as e:
            raise TransportError(f"Request timed out after {timeout} seconds", details={"url": url}) from e

        except http.client.HTTPException as e:
            raise TransportError(f"HTTP protocol error: {e!r}", details={"url": url}) from e

        except OSError as e:
            raise TransportError(f"Failed to read response: {e}", details={"url": url}) from e

    def close(self) -> None:
        """Release the opener's handlers."""
        self._opener.close()
