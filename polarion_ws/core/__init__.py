"""
Core layer - SOAP transport, envelope codec, login and raw types.

This layer provides:
- Typed dataclasses for Polarion web service payloads
- A SOAP client per service with session header attachment
- The token login handshake
"""

from polarion_ws.core.client import DEFAULT_TIMEOUT, SoapClient, service_endpoint
from polarion_ws.core.errors import (
    AuthError,
    CodecError,
    MissingDataError,
    PolarionError,
    RemoteOperationError,
    TransportError,
    ValidationError,
)
from polarion_ws.core.login import SessionHeader, login_with_token
from polarion_ws.core.transport import HttpResponse, HttpTransport
from polarion_ws.core.types import (
    Baseline,
    CustomField,
    Revision,
    TestRecord,
    TestRun,
    Text,
    WorkItem,
)

__all__ = [
    "DEFAULT_TIMEOUT",
    "AuthError",
    "Baseline",
    "CodecError",
    "CustomField",
    "HttpResponse",
    "HttpTransport",
    "MissingDataError",
    "PolarionError",
    "RemoteOperationError",
    "Revision",
    "SessionHeader",
    "SoapClient",
    "TestRecord",
    "TestRun",
    "Text",
    "TransportError",
    "ValidationError",
    "WorkItem",
    "login_with_token",
    "service_endpoint",
]
