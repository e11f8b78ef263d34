"""Authorization guard.

Every protected route runs the same ordered checks:

1. a credential must be present (cookie first, then bearer header)
2. the session behind it must validate
3. the account must be active
4. the caller's role must be one of the allowed roles
5. the caller's role must grant the required permission
6. the caller must own the addressed resource (admins bypass)
7. the caller must be within the per-user rate limit

The first failing check decides the error.
"""

import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NoReturn

from sqlmodel import Session

from gatekeeper.auth.exceptions import (
    InsufficientPermissionsError,
    InsufficientRoleError,
    InvalidTokenError,
    NotAuthenticatedError,
    OwnershipError,
)
from gatekeeper.auth.permissions import Permission, has_permission
from gatekeeper.auth.rate_limit import RateLimiter, RateLimitRule
from gatekeeper.auth.sessions import SessionData, SessionStore
from gatekeeper.auth.tokens import TokenAudience, TokenSigner
from gatekeeper.core.exceptions import RateLimitError
from gatekeeper.user.exceptions import (
    AccountBannedError,
    AccountInactiveError,
    AccountPendingVerificationError,
)
from gatekeeper.user.models import ADMIN_ROLES, Role, User, UserStatus

logger = logging.getLogger(__name__)


class CredentialSource(str, Enum):
    cookie = "cookie"
    bearer = "bearer"


@dataclass(frozen=True)
class Credential:
    """An access token together with the transport it arrived on."""

    token: str = field(repr=False)
    source: CredentialSource


def extract_credential(
    cookies: Mapping[str, str],
    authorization: str | None,
    cookie_name: str,
) -> Credential | None:
    """Pick the access token from the session cookie, else the bearer header."""
    cookie_token = cookies.get(cookie_name)
    if cookie_token:
        return Credential(token=cookie_token, source=CredentialSource.cookie)

    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return Credential(token=token.strip(), source=CredentialSource.bearer)
    return None


@dataclass(frozen=True)
class AuthContext:
    """Identity of an authorized caller, handed to route handlers."""

    user_id: uuid.UUID
    session_id: uuid.UUID
    email: str
    name: str | None
    role: Role
    status: UserStatus
    credential_source: CredentialSource

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @classmethod
    def from_session(cls, data: SessionData, source: CredentialSource) -> "AuthContext":
        return cls(
            user_id=data.user_id,
            session_id=data.session_id,
            email=data.email,
            name=data.name,
            role=data.role,
            status=data.status,
            credential_source=source,
        )


@dataclass(frozen=True)
class OwnershipRule:
    """Require ``path_params[param]`` to equal the id the caller owns.

    ``owned_id`` resolves the caller's resource id (or None when they own
    nothing of that kind).
    """

    param: str
    owned_id: Callable[[AuthContext], Any]


def owns_user_record(context: AuthContext) -> uuid.UUID:
    return context.user_id


@dataclass(frozen=True)
class AccessPolicy:
    roles: frozenset[Role] = frozenset()
    permission: Permission | None = None
    allow_guest: bool = False
    require_active: bool = True
    rate_limit: RateLimitRule | None = None
    ownership: OwnershipRule | None = None


class AuthorizationGuard:
    def __init__(
        self,
        sessions: SessionStore,
        signer: TokenSigner,
        db: Session,
        rate_limiter: RateLimiter,
    ):
        self._sessions = sessions
        self._signer = signer
        self._db = db
        self._rate_limiter = rate_limiter

    def authorize(
        self,
        credential: Credential | None,
        policy: AccessPolicy,
        path_params: Mapping[str, Any] | None = None,
        endpoint: str = "",
    ) -> AuthContext | None:
        """Run the policy against a credential.

        Returns:
            AuthContext for the caller, or None for a guest on a guest-allowed route

        Raises:
            NotAuthenticatedError: No credential on a protected route
            InvalidTokenError: Credential does not resolve to a live session
            AuthorizationError subclasses: Account state, role, permission or ownership
            RateLimitError: Per-user limit exceeded
        """
        if credential is None:
            if policy.allow_guest:
                return None
            raise NotAuthenticatedError()

        data = self._sessions.validate(credential.token)
        if data is None:
            self._raise_rejected(credential)
        context = AuthContext.from_session(data, credential.source)

        if context.status != UserStatus.active and policy.require_active:
            raise AccountPendingVerificationError()

        if policy.roles and context.role not in policy.roles:
            raise InsufficientRoleError()

        if policy.permission is not None and not has_permission(
            context.role, policy.permission
        ):
            raise InsufficientPermissionsError(policy.permission.value)

        if policy.ownership is not None:
            self._check_ownership(context, policy.ownership, path_params or {})

        if policy.rate_limit is not None:
            result = self._rate_limiter.check_rule(
                policy.rate_limit, f"{context.user_id}:{endpoint}"
            )
            if result.limited:
                raise RateLimitError(retry_after=result.retry_after_seconds)

        return context

    def _raise_rejected(self, credential: Credential) -> NoReturn:
        """Explain a failed validation.

        An authentic token whose account was banned or deactivated is reported
        as Forbidden so clients can tell the account state apart from an
        expired login.
        """
        claims = self._signer.verify(credential.token, TokenAudience.access)

        user = self._db.get(User, claims.user_id)
        if user is not None and user.status == UserStatus.banned:
            raise AccountBannedError()
        if user is not None and user.status == UserStatus.inactive:
            raise AccountInactiveError()
        raise InvalidTokenError()

    def _check_ownership(
        self, context: AuthContext, rule: OwnershipRule, path_params: Mapping[str, Any]
    ) -> None:
        if context.is_admin:
            return
        requested = path_params.get(rule.param)
        if requested is None:
            return
        owned = rule.owned_id(context)
        if owned is None or str(owned).lower() != str(requested).lower():
            logger.info(
                "Ownership check failed",
                extra={"user_id": context.user_id, "path": rule.param},
            )
            raise OwnershipError()
