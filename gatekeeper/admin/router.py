"""Admin domain router.

Administrator management and platform statistics. Route access is decided
by the guard; hierarchy rules live in RoleAdministration.
"""

import uuid

from fastapi import APIRouter, Depends, status

from gatekeeper.admin.schemas import AdminCreate, AdminStats, OtpCounts, PromoteRequest
from gatekeeper.auth.dependencies import (
    AdminContextDep,
    OtpManagerDep,
    RoleAdministrationDep,
    UserServiceDep,
    admin_only,
    require_permission,
)
from gatekeeper.auth.permissions import Permission
from gatekeeper.core.constants import CommonResponses, Routes
from gatekeeper.user.schemas import UserRead

router = APIRouter(
    prefix=Routes.ADMIN.prefix,
    tags=[Routes.ADMIN.tag],
    responses={
        **CommonResponses.UNAUTHORIZED,
        **CommonResponses.FORBIDDEN,
        **CommonResponses.RATE_LIMITED,
    },
)

manage_admins = require_permission(Permission.admins_manage)


@router.get("/admins", response_model=list[UserRead], dependencies=[Depends(admin_only)])
async def list_admins(admins: RoleAdministrationDep):
    return admins.list_admins()


@router.post(
    "/admins",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(manage_admins)],
    responses={**CommonResponses.BAD_REQUEST, **CommonResponses.CONFLICT},
)
async def create_admin(payload: AdminCreate, admins: RoleAdministrationDep):
    """Create a pre-verified administrator account and send a welcome email."""
    return await admins.create_admin(
        payload.email,
        payload.name,
        payload.role,
        phone=payload.phone,
        preferred_locale=payload.preferred_locale,
    )


@router.post(
    "/users/{user_id}/promote",
    response_model=UserRead,
    dependencies=[Depends(manage_admins)],
    responses={
        **CommonResponses.BAD_REQUEST,
        **CommonResponses.NOT_FOUND,
        **CommonResponses.CONFLICT,
    },
)
async def promote_user(
    user_id: uuid.UUID,
    admins: RoleAdministrationDep,
    payload: PromoteRequest | None = None,
):
    role = payload.role if payload is not None else PromoteRequest().role
    return await admins.promote(user_id, role)


@router.post(
    "/users/{user_id}/demote",
    response_model=UserRead,
    responses={**CommonResponses.BAD_REQUEST, **CommonResponses.NOT_FOUND},
)
async def demote_user(
    user_id: uuid.UUID,
    context: AdminContextDep,
    admins: RoleAdministrationDep,
    users: UserServiceDep,
):
    """Return an administrator to the buyer role. Super admins only.

    The demoted account loses every session immediately.
    """
    performer = users.get(context.user_id)
    return await admins.demote(user_id, performer)


@router.get(
    "/stats",
    response_model=AdminStats,
    dependencies=[Depends(require_permission(Permission.analytics_read))],
)
async def platform_stats(users: UserServiceDep, otp: OtpManagerDep):
    user_stats = users.stats()
    otp_stats = otp.stats()
    return AdminStats(
        users_total=user_stats.total,
        users_by_status=user_stats.by_status,
        users_by_role=user_stats.by_role,
        otp=OtpCounts(
            total=otp_stats.total,
            active=otp_stats.active,
            expired=otp_stats.expired,
            verified=otp_stats.verified,
        ),
    )
