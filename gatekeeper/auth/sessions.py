"""Server-side session store.

A session is valid only while all three hold: its access token verifies,
a matching unexpired row stores that exact token, and the owning user is not
banned or inactive. ``validate`` and ``refresh`` report failure as ``None``
so callers treat every rejection the same way.
"""

import hashlib
import hmac
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from gatekeeper.auth.exceptions import InvalidTokenError
from gatekeeper.auth.models import AuthSession
from gatekeeper.auth.tokens import TokenAudience, TokenSigner
from gatekeeper.core.mixins import Clock, as_utc, utc_now
from gatekeeper.user.models import Role, User, UserStatus

logger = logging.getLogger(__name__)

USER_AGENT_MAX_LENGTH = 500


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


@dataclass(frozen=True)
class IssuedSession:
    session_id: uuid.UUID
    access_token: str
    refresh_token: str
    expires_at: datetime
    refresh_expires_at: datetime


@dataclass(frozen=True)
class SessionData:
    """A validated session together with a snapshot of its user."""

    session_id: uuid.UUID
    user_id: uuid.UUID
    email: str
    name: str | None
    role: Role
    status: UserStatus
    expires_at: datetime


@dataclass(frozen=True)
class SessionStats:
    total: int
    active: int
    expired: int


class SessionStore:
    def __init__(self, session: Session, signer: TokenSigner, clock: Clock = utc_now):
        self._session = session
        self._signer = signer
        self._clock = clock

    def _mint(self, record: AuthSession, user_id: uuid.UUID, role: Role) -> IssuedSession:
        now = self._clock()
        access_token = self._signer.issue_access_token(user_id, role, record.id)
        refresh_token = self._signer.issue_refresh_token(user_id, record.id)
        record.token = access_token
        record.refresh_token_hash = hash_token(refresh_token)
        record.expires_at = now + self._signer.access_expires_in
        return IssuedSession(
            session_id=record.id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=record.expires_at,
            refresh_expires_at=now + self._signer.refresh_expires_in,
        )

    def create(
        self, user: User, user_agent: str | None = None, ip_address: str | None = None
    ) -> IssuedSession:
        """Persist a session for ``user`` and mint its token pair.

        The row is flushed with a placeholder token first so the minted tokens
        can embed its id.
        """
        record = AuthSession(
            user_id=user.id,
            token="",
            expires_at=self._clock() + self._signer.access_expires_in,
            user_agent=user_agent[:USER_AGENT_MAX_LENGTH] if user_agent else None,
            ip_address=ip_address,
        )
        self._session.add(record)
        self._session.flush()

        issued = self._mint(record, user.id, user.role)
        self._session.add(record)
        self._session.commit()

        logger.info(
            "Session created",
            extra={"user_id": user.id, "session_id": issued.session_id},
        )
        return issued

    def validate(self, access_token: str) -> SessionData | None:
        try:
            claims = self._signer.verify(access_token, TokenAudience.access)
        except InvalidTokenError:
            return None

        try:
            row = self._session.exec(
                select(AuthSession, User)
                .join(User, col(User.id) == col(AuthSession.user_id))
                .where(
                    AuthSession.id == claims.session_id,
                    AuthSession.token == access_token,
                    AuthSession.expires_at >= self._clock(),
                )
            ).first()
        except SQLAlchemyError:
            logger.exception("Session lookup failed")
            return None

        if row is None:
            return None
        record, user = row
        if user.is_revoked:
            return None

        return SessionData(
            session_id=record.id,
            user_id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            status=user.status,
            expires_at=as_utc(record.expires_at),
        )

    def refresh(self, refresh_token: str) -> IssuedSession | None:
        """Rotate the token pair of the session behind ``refresh_token``.

        Only the most recently issued refresh token is accepted; once it has
        been used, replaying it returns None.
        """
        try:
            claims = self._signer.verify(refresh_token, TokenAudience.refresh)
        except InvalidTokenError:
            return None

        record = self._session.exec(
            select(AuthSession).where(
                AuthSession.id == claims.session_id,
                AuthSession.user_id == claims.user_id,
            )
        ).first()
        if record is None or record.refresh_token_hash is None:
            return None
        if not hmac.compare_digest(record.refresh_token_hash, hash_token(refresh_token)):
            logger.warning(
                "Superseded refresh token presented",
                extra={"user_id": claims.user_id, "session_id": claims.session_id},
            )
            return None

        user = self._session.get(User, claims.user_id)
        if user is None or user.is_revoked:
            return None

        issued = self._mint(record, user.id, user.role)
        self._session.add(record)
        self._session.commit()
        return issued

    def invalidate(self, session_id: uuid.UUID) -> None:
        """Delete one session; a missing session is not an error."""
        record = self._session.get(AuthSession, session_id)
        if record is None:
            return
        self._session.delete(record)
        self._session.commit()
        logger.info("Session invalidated", extra={"session_id": session_id})

    def invalidate_all(self, user_id: uuid.UUID) -> int:
        """Revoke every session of ``user_id``; returns how many were deleted."""
        records = self._session.exec(
            select(AuthSession).where(AuthSession.user_id == user_id)
        ).all()
        for record in records:
            self._session.delete(record)
        self._session.commit()
        logger.info(
            "Invalidated %d sessions", len(records), extra={"user_id": user_id}
        )
        return len(records)

    def list_for_user(self, user_id: uuid.UUID) -> list[AuthSession]:
        return list(
            self._session.exec(
                select(AuthSession)
                .where(
                    AuthSession.user_id == user_id,
                    AuthSession.expires_at >= self._clock(),
                )
                .order_by(col(AuthSession.created_at).desc())
            ).all()
        )

    def sweep_expired(self) -> int:
        """Delete sessions whose refresh window has also closed.

        ``expires_at`` tracks the access token; the row is kept until the
        refresh token that could still rotate it has expired as well.
        """
        grace = max(
            timedelta(0),
            self._signer.refresh_expires_in - self._signer.access_expires_in,
        )
        cutoff = self._clock() - grace
        expired = self._session.exec(
            select(AuthSession).where(AuthSession.expires_at < cutoff)
        ).all()
        for record in expired:
            self._session.delete(record)
        self._session.commit()
        if expired:
            logger.info("Swept %d expired sessions", len(expired))
        return len(expired)

    def stats(self, user_id: uuid.UUID) -> SessionStats:
        now = self._clock()
        records = self._session.exec(
            select(AuthSession).where(AuthSession.user_id == user_id)
        ).all()
        active = sum(1 for record in records if as_utc(record.expires_at) >= now)
        return SessionStats(total=len(records), active=active, expired=len(records) - active)
