"""
Error types for the Polarion web service client.

Every failure surfaces as a PolarionError subclass so callers can branch
on the kind of failure instead of parsing messages.
"""

from typing import Any


class PolarionError(Exception):
    """Base error class for all client errors."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def add_context(self, context: str) -> "PolarionError":
        """Prefix the message with caller context and return self for re-raising."""
        self.message = f"{context}: {self.message}"
        self.args = (self.message,)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result: dict[str, Any] = {"error": self.message, "kind": type(self).__name__}
        if self.operation:
            result["operation"] = self.operation
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(PolarionError):
    """Local precondition violation, raised before any network request."""


class CodecError(PolarionError):
    """Envelope could not be encoded, or a response could not be decoded."""


class TransportError(PolarionError):
    """Connection, DNS, TLS or timeout failure below the SOAP layer."""


class RemoteOperationError(PolarionError):
    """The server rejected a service call (SOAP fault or non-200 status)."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict | None = None,
        status: int = 0,
        fault_code: str | None = None,
    ):
        super().__init__(message, operation, details)
        self.status = status
        self.fault_code = fault_code

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result = super().to_dict()
        if self.status:
            result["status"] = self.status
        if self.fault_code:
            result["fault_code"] = self.fault_code
        return result


class MissingDataError(PolarionError):
    """A well-formed response lacked an element the operation requires."""


class AuthError(PolarionError):
    """
    Login handshake failure.

    `step` names the stage that failed: encode, transport, status, decode
    or session_header.
    """

    def __init__(
        self,
        message: str,
        step: str,
        operation: str | None = "logInWithToken",
        details: dict | None = None,
        status: int = 0,
    ):
        super().__init__(message, operation, details)
        self.step = step
        self.status = status

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result = super().to_dict()
        result["step"] = self.step
        if self.status:
            result["status"] = self.status
        return result
