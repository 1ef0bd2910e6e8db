"""
Shared error handling for the Salesforce connector.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ConnectorException(Exception):
    """Base exception for connector components."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        # Get trace ID from current span
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigurationError(ConnectorException):
    """Missing or malformed descriptor, loader or endpoint settings."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        details: Optional[Dict[str, Any]] = None,
        code: str = "CONFIGURATION_ERROR",
    ):
        super().__init__(code, message, details)


class SignatureError(ConfigurationError):
    """Signing key does not fit the declared assertion algorithm."""

    def __init__(self, message: str = "Assertion signing failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, code="SIGNATURE_ERROR")


class AcquisitionError(ConnectorException):
    """Token endpoint rejected the exchange or returned an unusable payload."""

    def __init__(
        self,
        message: str = "Credential acquisition failed",
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.status_code = status_code
        self.body = body
        merged = {"status_code": status_code, "body": body}
        merged.update(details or {})
        super().__init__("ACQUISITION_ERROR", message, merged)


class RemoteApiError(ConnectorException):
    """Salesforce REST API returned a non-success response."""

    def __init__(self, status_code: int, body: str, message: str = "Remote API error"):
        self.status_code = status_code
        self.body = body
        super().__init__(
            "REMOTE_API_ERROR",
            f"{message}: {status_code} - {body}",
            {"status_code": status_code, "body": body},
        )
