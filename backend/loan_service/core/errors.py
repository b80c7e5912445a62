"""Error Hierarchy — typed, categorized exceptions for all loan service failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are scoped to one operation; infrastructure errors (500-level) are critical
    - to_response() produces the REST error envelope
    - Every "loan not found" case raises LoanNotFoundError, whichever operation hit it

Design Decisions:
    - Single hierarchy with LoanServiceError base: FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
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
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    loan_id: str | None = None
    investor_id: str | None = None
    debug_info: dict[str, Any] | None = None


class LoanServiceError(Exception):
    """Base exception for all loan service errors."""

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
                    "loan_id": self.context.loan_id,
                    "investor_id": self.context.investor_id,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class LoanValidationError(LoanServiceError):
    """Caller-supplied data is malformed."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class InvalidOperationError(LoanServiceError):
    """Requested action is not allowed in the loan's current status."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "INVALID_OPERATION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )


class InvalidTransitionError(LoanServiceError):
    """No lifecycle edge connects the two statuses."""
    def __init__(self, from_status: str, to_status: str, context: ErrorContext | None = None):
        super().__init__(
            f"invalid state transition: {from_status} -> {to_status}",
            "INVALID_TRANSITION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )
        self.from_status = from_status
        self.to_status = to_status


class LimitExceededError(LoanServiceError):
    """Investment would push the total past the loan principal."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "LIMIT_EXCEEDED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )


class ResourceNotFoundError(LoanServiceError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class LoanNotFoundError(ResourceNotFoundError):
    """Unknown loan id."""
    def __init__(self, loan_id: object, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.loan_id = str(loan_id)
        super().__init__("Loan", str(loan_id), ctx)


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(LoanServiceError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class ConcurrencyError(LoanServiceError):
    """Concurrent modification detected."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONCURRENCY_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )
