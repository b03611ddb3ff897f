"""
Application error taxonomy

Each error carries the HTTP status it maps to; main.py renders them into the
{success, error, code} envelope.
"""

from typing import Optional


class AppError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code = 500
    code: Optional[str] = None

    def __init__(self, message: str, code: Optional[str] = None, **extra):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message}
        if self.code:
            body["code"] = self.code
        body.update(self.extra)
        return body


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthorizationError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class SlotConflictError(AppError):
    """The requested time overlaps an existing booking"""

    status_code = 409
    code = "SLOT_CONFLICT"


class ConcurrentUpdateError(AppError):
    """A compare-and-set transition lost to another writer"""

    status_code = 409
    code = "CONCURRENT_UPDATE"


class ProviderError(Exception):
    """Raised by notification providers when a send fails"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
