"""Token signing and verification.

Access and refresh tokens are HS256 JWTs sharing one secret and issuer. They
carry different audiences, so a refresh token is rejected wherever an access
token is expected and the other way round. Verification is pure: whether the
session behind a token is still live is the Session Store's concern.
"""

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from gatekeeper.auth.exceptions import InvalidTokenError
from gatekeeper.core.settings import Settings
from gatekeeper.user.models import Role

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class TokenAudience(str, Enum):
    access = "access"
    refresh = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    """Verified token contents. ``role`` is None for refresh tokens."""

    user_id: uuid.UUID
    session_id: uuid.UUID
    role: Role | None
    issued_at: datetime
    expires_at: datetime
    audience: TokenAudience


class TokenSigner:
    """Mint and verify access/refresh tokens over a shared secret."""

    def __init__(
        self,
        secret: str,
        issuer: str = "gatekeeper",
        access_expires_in: timedelta = timedelta(days=7),
        refresh_expires_in: timedelta = timedelta(days=30),
    ):
        self._secret = secret
        self.issuer = issuer
        self.access_expires_in = access_expires_in
        self.refresh_expires_in = refresh_expires_in

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenSigner":
        return cls(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            access_expires_in=settings.access_token_expires_in,
            refresh_expires_in=settings.refresh_token_expires_in,
        )

    def audience_for(self, audience: TokenAudience) -> str:
        return f"{self.issuer}-{audience.value}"

    def _encode(
        self,
        audience: TokenAudience,
        user_id: uuid.UUID,
        session_id: uuid.UUID,
        expires_in: timedelta,
        extra: dict[str, Any] | None = None,
    ) -> str:
        now = datetime.now(UTC)
        claims: dict[str, Any] = {
            "iss": self.issuer,
            "aud": self.audience_for(audience),
            "sub": str(user_id),
            "sid": str(session_id),
            "iat": int(now.timestamp()),
            "exp": int((now + expires_in).timestamp()),
            "jti": secrets.token_hex(16),
        }
        if extra:
            claims.update(extra)
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def issue_access_token(
        self,
        user_id: uuid.UUID,
        role: Role,
        session_id: uuid.UUID,
        *,
        expires_in: timedelta | None = None,
    ) -> str:
        return self._encode(
            TokenAudience.access,
            user_id,
            session_id,
            expires_in if expires_in is not None else self.access_expires_in,
            {"role": role.value},
        )

    def issue_refresh_token(
        self,
        user_id: uuid.UUID,
        session_id: uuid.UUID,
        *,
        expires_in: timedelta | None = None,
    ) -> str:
        return self._encode(
            TokenAudience.refresh,
            user_id,
            session_id,
            expires_in if expires_in is not None else self.refresh_expires_in,
        )

    def verify(self, token: str, audience: TokenAudience) -> TokenClaims:
        """Verify signature, issuer, audience and expiry.

        Args:
            token: Encoded JWT
            audience: Which kind of token the caller expects

        Returns:
            TokenClaims with parsed identifiers and timestamps

        Raises:
            InvalidTokenError: On any verification failure or malformed claims
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                audience=self.audience_for(audience),
                issuer=self.issuer,
            )
        except ExpiredSignatureError as e:
            raise InvalidTokenError("Token has expired") from e
        except JWTError as e:
            logger.debug("Token rejected (%s): %s", audience.value, e)
            raise InvalidTokenError() from e

        try:
            role = Role(payload["role"]) if audience is TokenAudience.access else None
            return TokenClaims(
                user_id=uuid.UUID(payload["sub"]),
                session_id=uuid.UUID(payload["sid"]),
                role=role,
                issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
                audience=audience,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidTokenError("Malformed token claims") from e
