"""Error Hierarchy — typed, categorized exceptions for every gateway failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Client errors (400-level) surface to the publisher; collaborator errors
      (SinkFailureError, TriggerFailureError) are logged and never reach the HTTP caller
    - to_response() produces the REST envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with GatewayError base: FastAPI global handler catches all
    - ErrorContext as dataclass: observability fields without coupling to logging
"""

from dataclasses import dataclass, field
from enum import Enum
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    PROTOCOL = "protocol"
    EXTERNAL_API = "external_api"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str | None = None
    event_type: str | None = None
    request_kind: str | None = None
    element_index: int | None = None


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "event_id": self.context.event_id,
                    "event_type": self.context.event_type,
                    "request_kind": self.context.request_kind,
                    "element_index": self.context.element_index,
                },
            }
        }


# ─── Client Errors (400-level) ──────────────────────────────────

class MalformedEventError(GatewayError):
    """Body is not valid JSON in the expected shape, or required fields are absent."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "MALFORMED_EVENT", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )


class UnrecognizedRequestKindError(GatewayError):
    """Publisher identity header is missing or carries an unknown token."""
    def __init__(self, header_value: str | None, context: ErrorContext | None = None):
        shown = header_value if header_value is not None else "<missing>"
        super().__init__(
            f"Unrecognized event kind header: {shown}",
            "UNRECOGNIZED_REQUEST_KIND", ErrorCategory.PROTOCOL,
            ErrorSeverity.WARNING, context, 400,
        )
        self.header_value = header_value


class ValidationPreconditionError(GatewayError):
    """Subscription validation batch has no event to answer."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Subscription validation request contained no events",
            "VALIDATION_PRECONDITION", ErrorCategory.PROTOCOL,
            ErrorSeverity.ERROR, context, 400,
        )


# ─── Collaborator Errors (contained) ────────────────────────────

class SinkFailureError(GatewayError):
    """Broadcast to connected subscribers failed."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Broadcast failed: {message}",
            "SINK_FAILURE", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.WARNING, context, 502,
        )


class TriggerFailureError(GatewayError):
    """CI build trigger call failed."""
    def __init__(
        self, message: str, operation: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Build trigger {operation} failed: {message}",
            "TRIGGER_FAILURE", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.WARNING, context, 502,
        )
        self.operation = operation
