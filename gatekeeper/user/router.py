"""User domain router.

Profile routes for the caller and user management routes for staff.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from gatekeeper.auth.dependencies import (
    CurrentUserDep,
    SessionStoreDep,
    UserServiceDep,
    require_access,
    require_permission,
)
from gatekeeper.auth.guard import AccessPolicy, AuthContext, OwnershipRule, owns_user_record
from gatekeeper.auth.permissions import Permission
from gatekeeper.core.constants import CommonResponses, Routes
from gatekeeper.user.models import Role, UserStatus
from gatekeeper.user.schemas import (
    SessionRead,
    SessionsRevoked,
    UserPage,
    UserPublicRead,
    UserRead,
    UserStatusUpdate,
    UserUpdateMe,
)

router = APIRouter(
    prefix=Routes.USER.prefix,
    tags=[Routes.USER.tag],
    responses={
        **CommonResponses.UNAUTHORIZED,
        **CommonResponses.FORBIDDEN,
        **CommonResponses.RATE_LIMITED,
    },
)

owner_or_admin = require_access(
    AccessPolicy(ownership=OwnershipRule("user_id", owns_user_record))
)
StatusManagerDep = Annotated[
    AuthContext, Depends(require_permission(Permission.users_update_status))
]


@router.get("/me", response_model=UserPublicRead)
async def read_me(user: CurrentUserDep):
    return user


@router.patch("/me", response_model=UserPublicRead, responses={**CommonResponses.CONFLICT})
async def update_me(user: CurrentUserDep, user_update: UserUpdateMe, users: UserServiceDep):
    """Update the caller's profile.

    Only name, phone and preferred locale can change here. A new phone number
    must be verified again.
    """
    update_data = user_update.model_dump(exclude_unset=True)
    return users.update_profile(user, **update_data)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(user: CurrentUserDep, users: UserServiceDep):
    """Deactivate the caller's account and end all of its sessions."""
    users.deactivate_self(user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/",
    response_model=UserPage,
    dependencies=[Depends(require_permission(Permission.users_read))],
)
async def list_users(
    users: UserServiceDep,
    role: Role | None = None,
    user_status: Annotated[UserStatus | None, Query(alias="status")] = None,
    search: Annotated[str | None, Query(max_length=100)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
):
    """List users, newest first. Filters combine."""
    items, total = users.search(
        role=role, status=user_status, query=search, offset=offset, limit=limit
    )
    return UserPage(
        items=[UserRead.model_validate(user) for user in items],
        total=total,
        offset=offset,
        limit=limit,
    )


@router.get(
    "/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_permission(Permission.users_read))],
    responses={**CommonResponses.NOT_FOUND},
)
async def get_user(user_id: uuid.UUID, users: UserServiceDep):
    return users.get(user_id)


@router.patch(
    "/{user_id}/status",
    response_model=UserRead,
    responses={**CommonResponses.NOT_FOUND},
)
async def update_user_status(
    user_id: uuid.UUID,
    payload: UserStatusUpdate,
    context: StatusManagerDep,
    users: UserServiceDep,
):
    """Activate, deactivate or ban an account.

    Banning or deactivating revokes every session of the account. Only a
    super admin may change the status of another administrator.
    """
    return users.update_status(
        user_id,
        payload.status,
        performed_by_id=context.user_id,
        performed_by_role=context.role,
        reason=payload.reason,
    )


@router.get(
    "/{user_id}/sessions",
    response_model=list[SessionRead],
    dependencies=[Depends(owner_or_admin)],
)
async def list_user_sessions(user_id: uuid.UUID, sessions: SessionStoreDep):
    """List live sessions of a user. Owners and administrators only."""
    return sessions.list_for_user(user_id)


@router.delete(
    "/{user_id}/sessions",
    response_model=SessionsRevoked,
    dependencies=[Depends(owner_or_admin)],
)
async def revoke_user_sessions(user_id: uuid.UUID, sessions: SessionStoreDep):
    return SessionsRevoked(revoked=sessions.invalidate_all(user_id))
