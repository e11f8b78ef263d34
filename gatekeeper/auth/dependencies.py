"""Auth domain dependencies.

Builds the auth components per request and exposes the guard as FastAPI
dependencies:

    @router.get("/", dependencies=[Depends(require_permission(Permission.users_read))])
    async def list_users(...): ...

    @router.get("/me")
    async def me(user: CurrentUserDep): ...
"""

from collections.abc import Callable
from dataclasses import replace
from datetime import timedelta
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from gatekeeper.admin.service import RoleAdministration
from gatekeeper.auth.exceptions import LoginRateLimitError, OtpRateLimitError
from gatekeeper.auth.guard import (
    AccessPolicy,
    AuthContext,
    AuthorizationGuard,
    extract_credential,
)
from gatekeeper.auth.otp import OtpManager
from gatekeeper.auth.permissions import Permission
from gatekeeper.auth.rate_limit import RateLimiter, RateLimitRule, get_rate_limiter
from gatekeeper.auth.service import AuthService
from gatekeeper.auth.sessions import SessionStore
from gatekeeper.auth.tokens import TokenSigner
from gatekeeper.core.deps import ClockDep, SessionDep, SettingsDep
from gatekeeper.core.request_logging import client_ip
from gatekeeper.notifications.service import Notifier, get_notifier
from gatekeeper.user.models import ADMIN_ROLES, Role, User
from gatekeeper.user.service import UserService

security = HTTPBearer(auto_error=False)


def get_token_signer(settings: SettingsDep) -> TokenSigner:
    return TokenSigner.from_settings(settings)


TokenSignerDep = Annotated[TokenSigner, Depends(get_token_signer)]
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]
NotifierDep = Annotated[Notifier, Depends(get_notifier)]


def get_session_store(
    session: SessionDep, signer: TokenSignerDep, clock: ClockDep
) -> SessionStore:
    return SessionStore(session, signer, clock)


SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]


def get_otp_manager(
    session: SessionDep,
    rate_limiter: RateLimiterDep,
    settings: SettingsDep,
    clock: ClockDep,
) -> OtpManager:
    return OtpManager(
        session,
        rate_limiter,
        expires_in=settings.otp_expires_in,
        max_attempts=settings.otp_max_attempts,
        hourly_limit=settings.rate_limit_otp_per_hour,
        clock=clock,
    )


OtpManagerDep = Annotated[OtpManager, Depends(get_otp_manager)]


def get_user_service(
    session: SessionDep, sessions: SessionStoreDep, clock: ClockDep
) -> UserService:
    return UserService(session, sessions, clock)


UserServiceDep = Annotated[UserService, Depends(get_user_service)]


def get_auth_service(
    users: UserServiceDep,
    otp: OtpManagerDep,
    sessions: SessionStoreDep,
    notifier: NotifierDep,
) -> AuthService:
    return AuthService(users, otp, sessions, notifier)


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


def get_role_administration(
    session: SessionDep,
    users: UserServiceDep,
    sessions: SessionStoreDep,
    notifier: NotifierDep,
    settings: SettingsDep,
) -> RoleAdministration:
    return RoleAdministration(session, users, sessions, notifier, settings)


RoleAdministrationDep = Annotated[RoleAdministration, Depends(get_role_administration)]


def get_guard(
    session: SessionDep,
    sessions: SessionStoreDep,
    signer: TokenSignerDep,
    rate_limiter: RateLimiterDep,
) -> AuthorizationGuard:
    return AuthorizationGuard(sessions, signer, session, rate_limiter)


GuardDep = Annotated[AuthorizationGuard, Depends(get_guard)]


def api_rate_limit_rule(settings: SettingsDep) -> RateLimitRule:
    return RateLimitRule(
        scope="api",
        max_requests=settings.rate_limit_api_requests,
        window=timedelta(seconds=settings.rate_limit_api_window_seconds),
    )


def require_access(
    policy: AccessPolicy, *, throttle: bool = True
) -> Callable[..., AuthContext | None]:
    """Build a dependency that runs ``policy`` through the guard.

    Unless the policy names its own rule, authenticated callers are also
    throttled per user and endpoint with the configured API limit.
    """

    def dependency(
        request: Request,
        guard: GuardDep,
        settings: SettingsDep,
        api_rule: Annotated[RateLimitRule, Depends(api_rate_limit_rule)],
        bearer: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
    ) -> AuthContext | None:
        authorization = (
            f"{bearer.scheme} {bearer.credentials}" if bearer is not None else None
        )
        credential = extract_credential(
            request.cookies, authorization, settings.session_cookie_name
        )
        effective = policy
        if throttle and policy.rate_limit is None:
            effective = replace(policy, rate_limit=api_rule)

        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        return guard.authorize(
            credential, effective, request.path_params, f"{request.method} {endpoint}"
        )

    return dependency


def require_roles(*roles: Role) -> Callable[..., AuthContext | None]:
    return require_access(AccessPolicy(roles=frozenset(roles)))


def require_permission(permission: Permission) -> Callable[..., AuthContext | None]:
    return require_access(AccessPolicy(permission=permission))


authenticated = require_access(AccessPolicy())
authenticated_any_status = require_access(AccessPolicy(require_active=False))
admin_only = require_roles(*ADMIN_ROLES)

# Active account with a live session.
AuthContextDep = Annotated[AuthContext, Depends(authenticated)]
# Live session, account may still be pending verification.
SelfServiceContextDep = Annotated[AuthContext, Depends(authenticated_any_status)]
AdminContextDep = Annotated[AuthContext, Depends(admin_only)]


def get_current_user(context: AuthContextDep, users: UserServiceDep) -> User:
    return users.get(context.user_id)


def get_current_user_any_status(
    context: SelfServiceContextDep, users: UserServiceDep
) -> User:
    return users.get(context.user_id)


CurrentUserDep = Annotated[User, Depends(get_current_user)]
SelfServiceUserDep = Annotated[User, Depends(get_current_user_any_status)]


def ip_rate_limit_key(scope: str, request: Request) -> str:
    return f"ip:{scope}:{client_ip(request) or 'unknown'}"


def limit_by_ip(scope: str) -> Callable[..., None]:
    """Throttle an unauthenticated endpoint per client address.

    ``login`` uses RATE_LIMIT_LOGIN_PER_HOUR; every other scope uses the OTP
    hourly limit.
    """

    def dependency(
        request: Request, rate_limiter: RateLimiterDep, settings: SettingsDep
    ) -> None:
        if scope == "login":
            max_requests = settings.rate_limit_login_per_hour
            error = LoginRateLimitError
        else:
            max_requests = settings.rate_limit_otp_per_hour
            error = OtpRateLimitError

        result = rate_limiter.check(
            ip_rate_limit_key(scope, request), max_requests, timedelta(hours=1)
        )
        if result.limited:
            raise error(retry_after=result.retry_after_seconds)

    return dependency
