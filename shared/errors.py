"""
Shared error handling for the Elections Access Layer.

Three families of errors exist:

- ValidationError: malformed or missing input, user-correctable.
- PolicyDenial: a legitimate eligibility or quota decision.
- InfrastructureError: a backing dependency failed. Its message is
  never shown to callers.
"""

from typing import Dict, Any, Optional

from opentelemetry import trace
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ElectionsError(Exception):
    """Base exception for Elections Access Layer services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            trace_id=current_trace_id(),
            code=self.code,
            message=self.message,
            details=self.details
        )


def current_trace_id() -> Optional[str]:
    """Return the active trace id, if a span is recording."""
    current_span = trace.get_current_span()
    if current_span and current_span.is_recording():
        span_context = current_span.get_span_context()
        if span_context.trace_id != 0:
            return f"{span_context.trace_id:032x}"
    return None


class ValidationError(ElectionsError):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None,
                 code: str = "invalid-request"):
        super().__init__(code, message, details)


class PolicyDenial(ElectionsError):
    """A request was refused by eligibility or quota policy."""

    status_code = 429


class EligibilityDenial(PolicyDenial):
    """The claimed identity is not allowed to submit."""

    status_code = 403

    def __init__(self, message: str = "Identity is not whitelisted", details: Optional[Dict[str, Any]] = None):
        super().__init__("not-whitelisted", message, details)


class RateLimitError(PolicyDenial):
    """Rate limiting errors."""

    status_code = 429

    def __init__(self, code: str = "rate-limited", message: str = "Rate limit exceeded",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class DuplicateSubmissionError(PolicyDenial):
    """A submission already exists for this identity."""

    status_code = 409

    def __init__(self, message: str = "This identity has already submitted", details: Optional[Dict[str, Any]] = None):
        super().__init__("duplicate-identity", message, details)


class InfrastructureError(ElectionsError):
    """Backing store or other dependency failure."""

    status_code = 500

    def __init__(self, operation: str, message: str = "Backing store error", details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        super().__init__("internal-error", f"{operation}: {message}", details)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            trace_id=current_trace_id(),
            code=self.code,
            message="Internal server error",
            details={}
        )
