"""
Core SOAP client for the Polarion web services.

Handles endpoint derivation, header attachment, request/response and
error mapping for one remote service.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from polarion_ws.core.envelope import HeaderElement, build_envelope, parse_envelope, return_values
from polarion_ws.core.errors import CodecError, MissingDataError, RemoteOperationError, TransportError
from polarion_ws.core.transport import Transport

logger = logging.getLogger(__name__)

# Configuration
DEFAULT_TIMEOUT = 10
SERVICES_PATH = "polarion/ws/services"


@dataclass(frozen=True)
class Service:
    """A remote web service and the namespace of its operations."""

    name: str
    namespace: str


SESSION_SERVICE = Service("SessionWebService", "http://ws.polarion.com/SessionWebService-impl")
TRACKER_SERVICE = Service("TrackerWebService", "http://ws.polarion.com/TrackerWebService-impl")
TEST_SERVICE = Service("TestManagementWebService", "http://ws.polarion.com/TestManagementWebService-impl")


def service_endpoint(base_url: str, service: Service) -> str:
    """Build the endpoint URL of a service under a Polarion base URL."""
    return f"{base_url.rstrip('/')}/{SERVICES_PATH}/{service.name}?wsdl"


class SoapClient:
    """
    Client bound to one service endpoint.

    Every call carries the configured headers. The header objects are held
    by reference, so clients built from the same login share one session
    header instance.
    """

    def __init__(
        self,
        service: Service,
        endpoint: str,
        transport: Transport,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Iterable[HeaderElement] = (),
    ):
        self.service = service
        self.endpoint = endpoint
        self.transport = transport
        self.timeout = timeout
        self.headers: tuple[HeaderElement, ...] = tuple(headers)

    def call(self, operation: str, params: Mapping[str, Any] | None = None) -> list[Any]:
        """
        Invoke an operation and return its decoded `<operation>Return` values.

        Args:
            operation: Operation name, e.g. queryWorkItems
            params: Parameters in wire order; None values are omitted

        Returns:
            Decoded return values (empty for an empty result)

        Raises:
            CodecError: On encode/decode failure
            TransportError: On connection/TLS/timeout failure
            RemoteOperationError: On a SOAP fault or non-200 status
            MissingDataError: If the body has no `<operation>Response`

        """
        payload = build_envelope(self.service.namespace, operation, params, self.headers)
        headers = {
            "Content-Type": "text/xml; charset=utf-8",
            "SOAPAction": f"urn:{operation}",
        }

        logger.debug("POST %s (%s)", self.endpoint, operation)
        try:
            response = self.transport.post(self.endpoint, payload, headers, self.timeout)
        except TransportError as e:
            e.operation = e.operation or operation
            raise

        try:
            envelope = parse_envelope(response.body, operation)
        except CodecError:
            if response.status != 200:
                raise RemoteOperationError(
                    f"{operation} failed with HTTP status {response.status}",
                    operation=operation,
                    status=response.status,
                ) from None
            raise

        fault = envelope.fault()
        if fault is not None:
            details = {"detail": fault.detail} if fault.detail is not None else None
            raise RemoteOperationError(
                f"{operation} failed: {fault.message}",
                operation=operation,
                details=details,
                status=response.status,
                fault_code=fault.code,
            )

        if response.status != 200:
            raise RemoteOperationError(
                f"{operation} failed with HTTP status {response.status}",
                operation=operation,
                status=response.status,
            )

        values = return_values(envelope, operation)
        if values is None:
            raise MissingDataError(f"{operation} response body is empty", operation=operation)
        return values
