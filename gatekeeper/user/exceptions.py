"""User domain exceptions.

User lookup, uniqueness, and account-state related exceptions.
"""

from gatekeeper.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
)


class UserNotFoundError(NotFoundError):
    """Raised when user cannot be found."""

    error_type = "user_not_found"
    message = "User not found"
    message_localized = "المستخدم غير موجود"


class EmailExistsError(ConflictError):
    """Raised when attempting to register with an existing email."""

    error_type = "user_already_exists"
    message = "A user with this email already exists"
    message_localized = "يوجد مستخدم مسجل بهذا البريد الإلكتروني"


class PhoneExistsError(ConflictError):
    error_type = "phone_already_exists"
    message = "This phone number is already registered"
    message_localized = "رقم الجوال مسجل مسبقاً"


class EmailAlreadyVerifiedError(InvalidInputError):
    error_type = "email_already_verified"
    message = "Email is already verified"
    message_localized = "البريد الإلكتروني محقق مسبقاً"


class PhoneAlreadyVerifiedError(InvalidInputError):
    error_type = "phone_already_verified"
    message = "Phone number is already verified"
    message_localized = "رقم الجوال محقق مسبقاً"


class PhoneRequiredError(InvalidInputError):
    error_type = "phone_required"
    message = "No phone number on file"
    message_localized = "لا يوجد رقم جوال مسجل"


# Account state (403)
class AccountBannedError(AuthorizationError):
    error_type = "account_banned"
    message = "Your account has been banned"
    message_localized = "تم حظر حسابك"


class AccountInactiveError(AuthorizationError):
    error_type = "account_inactive"
    message = "Your account is inactive"
    message_localized = "حسابك غير نشط"


class AccountPendingVerificationError(AuthorizationError):
    error_type = "account_pending_verification"
    message = "Please verify your email address first"
    message_localized = "يرجى تأكيد بريدك الإلكتروني أولاً"


class SelfStatusChangeError(AuthorizationError):
    error_type = "self_status_change"
    message = "You cannot change your own account status"
    message_localized = "لا يمكنك تغيير حالة حسابك"
