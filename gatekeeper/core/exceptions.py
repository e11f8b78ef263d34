"""App-wide exception hierarchy.

Every error maps to an HTTP status code, a machine-readable ``error_type`` and
a message pair: ``message`` in English and ``message_localized`` in Arabic.
Domain packages subclass the kinds defined here and only override the class
attributes they need.
"""

from typing import Any


class AppException(Exception):
    """Base exception for all application errors.

    All custom exceptions inherit from this class and define their own
    status_code, error_type and default messages for consistent API responses.
    """

    status_code: int = 500
    error_type: str = "internal_error"
    message: str = "An unexpected error occurred"
    message_localized: str = "حدث خطأ غير متوقع"

    def __init__(
        self,
        message: str | None = None,
        *,
        message_localized: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        if message is not None:
            self.message = message
        if message_localized is not None:
            self.message_localized = message_localized
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        """Build the JSON error envelope returned to clients."""
        body: dict[str, Any] = {
            "code": self.error_type,
            "message": self.message,
            "messageLocalized": self.message_localized,
        }
        if self.details:
            body["details"] = self.details
        return {"error": body}


# Validation errors (400)
class InvalidInputError(AppException):
    """Base class for malformed or rejected input."""

    status_code = 400
    error_type = "invalid_input"
    message = "Invalid input data"
    message_localized = "البيانات المدخلة غير صحيحة"


class InvalidEmailError(InvalidInputError):
    error_type = "invalid_email"
    message = "Invalid email address"
    message_localized = "البريد الإلكتروني غير صحيح"


class InvalidPhoneError(InvalidInputError):
    error_type = "invalid_phone"
    message = "Invalid Saudi phone number"
    message_localized = "رقم الجوال السعودي غير صحيح"


# Authentication errors (401)
class AuthenticationError(AppException):
    """Base class for authentication failures."""

    status_code = 401
    error_type = "unauthenticated"
    message = "Authentication required"
    message_localized = "يجب تسجيل الدخول"


# Authorization errors (403)
class AuthorizationError(AppException):
    """Base class for authorization failures."""

    status_code = 403
    error_type = "forbidden"
    message = "You are not authorized to perform this action"
    message_localized = "غير مصرح لك بتنفيذ هذا الإجراء"


# Not found errors (404)
class NotFoundError(AppException):
    """Base class for resource not found errors."""

    status_code = 404
    error_type = "not_found"
    message = "Resource not found"
    message_localized = "المورد غير موجود"


# Conflict errors (409)
class ConflictError(AppException):
    """Base class for resource conflict errors."""

    status_code = 409
    error_type = "conflict"
    message = "Resource already exists"
    message_localized = "المورد موجود مسبقاً"


# Rate limit errors (429)
class RateLimitError(AppException):
    """Raised when a rate limit is exceeded.

    ``retry_after`` is the number of seconds until the window resets and is
    echoed to clients both in ``details`` and in the Retry-After header.
    """

    status_code = 429
    error_type = "rate_limit_exceeded"
    message = "Too many requests, please try again later"
    message_localized = "طلبات كثيرة جداً. يرجى المحاولة لاحقاً."

    def __init__(
        self,
        message: str | None = None,
        *,
        retry_after: int | None = None,
        message_localized: str | None = None,
    ):
        self.retry_after = retry_after
        details = {"retryAfterSeconds": retry_after} if retry_after is not None else None
        super().__init__(
            message, message_localized=message_localized, details=details
        )


# External service errors (502)
class ExternalServiceError(AppException):
    """Raised when an upstream provider (email, SMS) fails."""

    status_code = 502
    error_type = "external_service_error"
    message = "External service error"
    message_localized = "خطأ في خدمة خارجية"


class EmailSendError(ExternalServiceError):
    error_type = "email_send_failed"
    message = "Failed to send email"
    message_localized = "فشل في إرسال البريد الإلكتروني"


class SmsSendError(ExternalServiceError):
    error_type = "sms_send_failed"
    message = "Failed to send SMS"
    message_localized = "فشل في إرسال الرسالة النصية"


# Internal errors (500)
class InternalError(AppException):
    """Raised for internal server errors.

    The underlying cause is logged server-side and never returned to clients.
    """

    status_code = 500
    error_type = "internal_error"
    message = "An internal error occurred"
    message_localized = "حدث خطأ داخلي"
