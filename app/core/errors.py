"""
Domain error taxonomy.

Every failure reported to a client carries a stable ``code`` and a
human-readable ``message``. The exception handlers registered in
``app.main`` turn these into JSON responses.
"""
from typing import Any, Optional


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    """Malformed or unacceptable input; nothing was mutated."""
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class SlotFullError(ConflictError):
    """Terminal: the slot has no remaining capacity. Not retried server-side."""
    code = "SLOT_FULL"

    def __init__(self, message: str = "Slot full", **kwargs):
        super().__init__(message, **kwargs)


class DuplicateBookingError(ConflictError):
    code = "DUPLICATE_BOOKING"

    def __init__(self, message: str = "You already have an active booking for this slot", **kwargs):
        super().__init__(message, **kwargs)


class InvalidTransitionError(ConflictError):
    code = "INVALID_TRANSITION"


class SlotHasBookingsError(ConflictError):
    code = "SLOT_HAS_BOOKINGS"

    def __init__(self, message: str = "Cannot delete slot with existing bookings", **kwargs):
        super().__init__(message, **kwargs)


class PermissionDeniedError(AppError):
    status_code = 403
    code = "PERMISSION_DENIED"


class DependencyError(AppError):
    """An external collaborator (SMS, object storage) failed."""
    status_code = 503
    code = "DEPENDENCY_ERROR"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
