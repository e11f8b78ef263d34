"""Periodic cleanup of expired auth state.

Expired OTP codes, dead sessions and stale rate-limit windows are removed on
a fixed interval by a background task started from the application lifespan.
"""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy import Engine
from sqlmodel import Session

from gatekeeper.auth.otp import OtpManager
from gatekeeper.auth.rate_limit import RateLimiter
from gatekeeper.auth.sessions import SessionStore
from gatekeeper.auth.tokens import TokenSigner
from gatekeeper.core.mixins import Clock, utc_now
from gatekeeper.core.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    otp_codes: int
    sessions: int
    rate_limit_entries: int


def run_sweep_once(
    engine: Engine,
    rate_limiter: RateLimiter,
    settings: Settings,
    clock: Clock = utc_now,
) -> SweepResult:
    with Session(engine) as session:
        otp = OtpManager(
            session,
            rate_limiter,
            expires_in=settings.otp_expires_in,
            max_attempts=settings.otp_max_attempts,
            hourly_limit=settings.rate_limit_otp_per_hour,
            clock=clock,
        )
        sessions = SessionStore(session, TokenSigner.from_settings(settings), clock)
        result = SweepResult(
            otp_codes=otp.sweep_expired(),
            sessions=sessions.sweep_expired(),
            rate_limit_entries=rate_limiter.sweep(),
        )

    logger.debug(
        "Sweep finished: %d codes, %d sessions, %d rate-limit entries",
        result.otp_codes,
        result.sessions,
        result.rate_limit_entries,
    )
    return result


async def sweep_loop(
    engine: Engine,
    rate_limiter: RateLimiter,
    settings: Settings,
    interval: float | None = None,
) -> None:
    """Run ``run_sweep_once`` forever; a failed pass is logged and retried next tick."""
    delay = interval if interval is not None else settings.sweep_interval_seconds
    while True:
        await asyncio.sleep(delay)
        try:
            await asyncio.to_thread(run_sweep_once, engine, rate_limiter, settings)
        except Exception:
            logger.exception("Maintenance sweep failed")
