"""Admin domain exceptions."""

from gatekeeper.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidInputError,
)


class InvalidAdminRoleError(InvalidInputError):
    error_type = "invalid_admin_role"
    message = "Role must be admin or super_admin"
    message_localized = "يجب أن يكون الدور مشرفاً أو مشرفاً عاماً"


class AlreadyAdminError(ConflictError):
    error_type = "already_admin"
    message = "User is already an admin"
    message_localized = "المستخدم مشرف بالفعل"


class NotAdminError(InvalidInputError):
    error_type = "not_admin"
    message = "User is not an admin"
    message_localized = "المستخدم ليس مشرفاً"


class SelfDemotionError(AuthorizationError):
    error_type = "self_demotion"
    message = "You cannot demote yourself"
    message_localized = "لا يمكنك إزالة صلاحياتك بنفسك"


class SuperAdminRequiredError(AuthorizationError):
    error_type = "super_admin_required"
    message = "Only a super admin can perform this action"
    message_localized = "هذا الإجراء متاح للمشرف العام فقط"
