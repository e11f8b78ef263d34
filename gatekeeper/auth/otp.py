"""One-time passcode issuance and verification.

Codes are scoped to a (user, purpose) pair and at most one unverified,
unexpired code exists per pair: issuing a new code removes the previous one in
the same transaction. Verification failures are returned as values so callers
always learn how many attempts remain.
"""

import hmac
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import update
from sqlmodel import Session, col, func, select

from gatekeeper.auth.exceptions import OtpRateLimitError
from gatekeeper.auth.models import OtpCode, OtpPurpose
from gatekeeper.auth.rate_limit import RateLimiter
from gatekeeper.core.mixins import Clock, as_utc, utc_now
from gatekeeper.user.models import User

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = timedelta(minutes=10)
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_HOURLY_LIMIT = 5
ISSUANCE_WINDOW = timedelta(hours=1)


def generate_code() -> str:
    """Uniform 6-digit code from the OS CSPRNG."""
    return str(secrets.randbelow(900_000) + 100_000)


class OtpFailureReason(str, Enum):
    invalid_or_expired = "invalid_or_expired"
    mismatch = "mismatch"
    max_attempts_exceeded = "max_attempts_exceeded"


@dataclass(frozen=True)
class IssuedOtp:
    code: str
    expires_at: datetime


@dataclass(frozen=True)
class OtpVerified:
    success = True


@dataclass(frozen=True)
class OtpRejected:
    reason: OtpFailureReason
    attempts_left: int
    success = False


OtpVerification = OtpVerified | OtpRejected


@dataclass(frozen=True)
class OtpStatus:
    has_active_otp: bool
    expires_at: datetime | None
    attempts_used: int
    attempts_left: int


@dataclass(frozen=True)
class OtpStats:
    total: int
    active: int
    expired: int
    verified: int


class OtpManager:
    def __init__(
        self,
        session: Session,
        rate_limiter: RateLimiter,
        *,
        expires_in: timedelta = DEFAULT_EXPIRES_IN,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        hourly_limit: int = DEFAULT_HOURLY_LIMIT,
        clock: Clock = utc_now,
    ):
        self._session = session
        self._rate_limiter = rate_limiter
        self.expires_in = expires_in
        self.max_attempts = max_attempts
        self.hourly_limit = hourly_limit
        self._clock = clock

    def _active_codes(self, user_id: uuid.UUID, purpose: OtpPurpose):
        return select(OtpCode).where(
            OtpCode.user_id == user_id,
            OtpCode.purpose == purpose,
            OtpCode.verified == False,  # noqa: E712
        )

    def generate(self, user_id: uuid.UUID, purpose: OtpPurpose) -> IssuedOtp:
        """Issue a new code for (user, purpose), replacing any unverified one.

        Raises:
            OtpRateLimitError: If the hourly issuance limit is exhausted
        """
        limit = self._rate_limiter.check(
            f"otp:{user_id}:{purpose.value}", self.hourly_limit, ISSUANCE_WINDOW
        )
        if limit.limited:
            logger.info(
                "OTP issuance throttled",
                extra={"user_id": user_id, "purpose": purpose.value},
            )
            raise OtpRateLimitError(retry_after=limit.retry_after_seconds)

        # Row lock on the owner serializes concurrent issuance for this user.
        self._session.exec(
            select(User).where(User.id == user_id).with_for_update()
        ).first()
        for previous in self._session.exec(self._active_codes(user_id, purpose)).all():
            self._session.delete(previous)
        # Deletes must reach the database before the insert (unique open code).
        self._session.flush()

        code = generate_code()
        expires_at = self._clock() + self.expires_in
        otp = OtpCode(
            user_id=user_id, code=code, purpose=purpose, expires_at=expires_at
        )
        self._session.add(otp)
        self._session.commit()

        logger.info("OTP issued", extra={"user_id": user_id, "purpose": purpose.value})
        return IssuedOtp(code=code, expires_at=expires_at)

    def verify(
        self, user_id: uuid.UUID, code: str, purpose: OtpPurpose
    ) -> OtpVerification:
        """Check a submitted code against the newest live code for (user, purpose)."""
        otp = self._session.exec(
            self._active_codes(user_id, purpose)
            .where(OtpCode.expires_at >= self._clock())
            .order_by(col(OtpCode.created_at).desc())
        ).first()

        if otp is None:
            return OtpRejected(OtpFailureReason.invalid_or_expired, attempts_left=0)

        if otp.attempts >= self.max_attempts:
            self._session.delete(otp)
            self._session.commit()
            logger.warning(
                "OTP locked after max attempts",
                extra={"user_id": user_id, "purpose": purpose.value},
            )
            return OtpRejected(OtpFailureReason.max_attempts_exceeded, attempts_left=0)

        if not hmac.compare_digest(otp.code, code):
            # Counted in SQL so concurrent wrong guesses all land.
            self._session.exec(
                update(OtpCode)
                .where(col(OtpCode.id) == otp.id)
                .values(attempts=col(OtpCode.attempts) + 1)
            )
            self._session.commit()
            self._session.refresh(otp)
            return OtpRejected(
                OtpFailureReason.mismatch,
                attempts_left=max(0, self.max_attempts - otp.attempts),
            )

        otp.verified = True
        self._session.add(otp)
        self._session.commit()
        return OtpVerified()

    def consume(self, user_id: uuid.UUID, purpose: OtpPurpose) -> int:
        """Delete every code for (user, purpose) once the dependent action is done."""
        return self.invalidate(user_id, purpose)

    def invalidate(self, user_id: uuid.UUID, purpose: OtpPurpose | None = None) -> int:
        statement = select(OtpCode).where(OtpCode.user_id == user_id)
        if purpose is not None:
            statement = statement.where(OtpCode.purpose == purpose)
        codes = self._session.exec(statement).all()
        for otp in codes:
            self._session.delete(otp)
        self._session.commit()
        return len(codes)

    def status(self, user_id: uuid.UUID, purpose: OtpPurpose) -> OtpStatus:
        otp = self._session.exec(
            self._active_codes(user_id, purpose)
            .where(OtpCode.expires_at >= self._clock())
            .order_by(col(OtpCode.created_at).desc())
        ).first()
        if otp is None:
            return OtpStatus(
                has_active_otp=False,
                expires_at=None,
                attempts_used=0,
                attempts_left=self.max_attempts,
            )
        return OtpStatus(
            has_active_otp=True,
            expires_at=as_utc(otp.expires_at),
            attempts_used=otp.attempts,
            attempts_left=max(0, self.max_attempts - otp.attempts),
        )

    def sweep_expired(self) -> int:
        """Delete every code past expiry, verified or not."""
        expired = self._session.exec(
            select(OtpCode).where(OtpCode.expires_at < self._clock())
        ).all()
        for otp in expired:
            self._session.delete(otp)
        self._session.commit()
        if expired:
            logger.info("Swept %d expired OTP codes", len(expired))
        return len(expired)

    def stats(self) -> OtpStats:
        now = self._clock()

        def count(*conditions) -> int:
            statement = select(func.count()).select_from(OtpCode)
            if conditions:
                statement = statement.where(*conditions)
            return self._session.exec(statement).one()

        return OtpStats(
            total=count(),
            active=count(OtpCode.expires_at >= now, OtpCode.verified == False),  # noqa: E712
            expired=count(OtpCode.expires_at < now),
            verified=count(OtpCode.verified == True),  # noqa: E712
        )
