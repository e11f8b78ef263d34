"""Auth domain exceptions.

Token, session, OTP and authorization failures.
"""

from gatekeeper.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InvalidInputError,
    RateLimitError,
)


# Authentication errors (401)
class NotAuthenticatedError(AuthenticationError):
    """Raised when no credential was presented."""

    error_type = "not_authenticated"


class InvalidTokenError(AuthenticationError):
    """Raised when a token fails verification or has no live session."""

    error_type = "invalid_token"
    message = "Invalid or expired token"
    message_localized = "الرمز غير صحيح أو منتهي الصلاحية"


class SessionExpiredError(AuthenticationError):
    error_type = "session_expired"
    message = "Session has expired"
    message_localized = "انتهت صلاحية الجلسة"


class InvalidCredentialsError(AuthenticationError):
    error_type = "invalid_credentials"
    message = "Invalid credentials"
    message_localized = "بيانات الدخول غير صحيحة"


# Authorization errors (403)
class InsufficientRoleError(AuthorizationError):
    error_type = "insufficient_role"


class InsufficientPermissionsError(AuthorizationError):
    error_type = "insufficient_permissions"

    def __init__(self, permission: str | None = None):
        super().__init__(details={"permission": permission} if permission else None)


class OwnershipError(AuthorizationError):
    """Raised when a caller acts on a resource they do not own."""

    error_type = "not_resource_owner"
    message = "You can only access your own resources"
    message_localized = "يمكنك الوصول إلى مواردك فقط"


# OTP errors (400)
class OtpInvalidOrExpiredError(InvalidInputError):
    """No live code exists for the purpose; a new one must be requested."""

    error_type = "invalid_otp"
    message = "Invalid or expired verification code"
    message_localized = "رمز التحقق غير صحيح أو منتهي الصلاحية"

    def __init__(self, attempts_left: int = 0):
        self.attempts_left = attempts_left
        super().__init__(details={"attemptsLeft": attempts_left})


class OtpMismatchError(OtpInvalidOrExpiredError):
    error_type = "otp_mismatch"
    message = "Incorrect verification code"
    message_localized = "رمز التحقق غير صحيح"


class OtpMaxAttemptsError(OtpInvalidOrExpiredError):
    error_type = "otp_max_attempts"
    message = "Maximum verification attempts exceeded. Please request a new code"
    message_localized = "تم تجاوز الحد الأقصى لمحاولات التحقق. يرجى طلب رمز جديد"


# Rate limit errors (429)
class OtpRateLimitError(RateLimitError):
    error_type = "otp_rate_limit"
    message = "Too many verification codes requested. Please try again later"
    message_localized = "تم طلب رموز تحقق كثيرة. يرجى المحاولة لاحقاً"


class LoginRateLimitError(RateLimitError):
    error_type = "login_rate_limit"
    message = "Too many login attempts. Please try again later"
    message_localized = "محاولات دخول كثيرة. يرجى المحاولة لاحقاً"
