"""
Error taxonomy shared by the store, the identity verifier and the API layer.

Every failure a request can end in is one of the ``ReservationAPIError``
subclasses below. Each carries an ``ErrorKind`` and the HTTP status it maps
to, so handlers never have to inspect messages or SDK error codes.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    AUTH = "auth"
    PERMISSION_DENIED = "permission_denied"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


class ReservationAPIError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL
    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None):
        self.message = message or self.default_message
        self.cause = cause
        super().__init__(self.message)

    @property
    def details(self) -> Optional[str]:
        """Underlying cause, only ever shown to clients in development."""
        return str(self.cause) if self.cause is not None else None


class ValidationError(ReservationAPIError):
    kind = ErrorKind.VALIDATION
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(ReservationAPIError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "Service or resource not found"


class ConflictError(ReservationAPIError):
    kind = ErrorKind.CONFLICT
    status_code = 409
    default_message = "This time slot is already booked for this service"


class AuthError(ReservationAPIError):
    kind = ErrorKind.AUTH
    status_code = 401
    default_message = "Unauthorized"


class PermissionDeniedError(ReservationAPIError):
    kind = ErrorKind.PERMISSION_DENIED
    status_code = 403
    default_message = "Access to the database was denied"


class RateLimitError(ReservationAPIError):
    kind = ErrorKind.RATE_LIMITED
    status_code = 429
    default_message = "Request limit reached, please try again later"


class StoreTimeoutError(ReservationAPIError):
    kind = ErrorKind.TIMEOUT
    status_code = 504
    default_message = "The database is taking too long to respond"


class InternalError(ReservationAPIError):
    kind = ErrorKind.INTERNAL
    status_code = 500
