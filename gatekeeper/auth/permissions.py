"""Role to permission mapping.

The only place permissions are granted. super_admin holds every permission
without being listed; every other role has an explicit allow-list.
"""

from enum import Enum

from gatekeeper.user.models import Role


class Permission(str, Enum):
    users_read = "users.read"
    users_update_status = "users.update_status"
    admins_manage = "admins.manage"
    sellers_read = "sellers.read"
    sellers_approve = "sellers.approve"
    listings_read = "listings.read"
    listings_create = "listings.create"
    listings_update_own = "listings.update_own"
    listings_delete_own = "listings.delete_own"
    listings_moderate = "listings.moderate"
    orders_read = "orders.read"
    orders_read_own = "orders.read_own"
    orders_create = "orders.create"
    orders_manage = "orders.manage"
    analytics_read = "analytics.read"
    analytics_read_own = "analytics.read_own"


ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.super_admin: frozenset(Permission),
    Role.admin: frozenset(
        {
            Permission.users_read,
            Permission.users_update_status,
            Permission.sellers_read,
            Permission.sellers_approve,
            Permission.listings_read,
            Permission.listings_moderate,
            Permission.orders_read,
            Permission.orders_manage,
            Permission.analytics_read,
        }
    ),
    Role.seller: frozenset(
        {
            Permission.listings_create,
            Permission.listings_update_own,
            Permission.listings_delete_own,
            Permission.orders_read_own,
            Permission.analytics_read_own,
        }
    ),
    Role.buyer: frozenset(
        {
            Permission.listings_read,
            Permission.orders_create,
            Permission.orders_read_own,
        }
    ),
}


def has_permission(role: Role, permission: Permission) -> bool:
    if role is Role.super_admin:
        return True
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def permissions_for(role: Role) -> frozenset[Permission]:
    return ROLE_PERMISSIONS.get(role, frozenset())
