"""Reusable model mixins and UTC time helpers.

SQLite hands datetimes back without tzinfo, so anything compared in Python
goes through ``as_utc`` first.
"""

from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy import text
from sqlmodel import Field

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def _utc_now_seconds() -> datetime:
    return utc_now().replace(microsecond=0)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from the store."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps.

    Usage:
        class OtpCode(TimestampMixin, SQLModel, table=True):
            id: uuid.UUID = Field(primary_key=True)
    """

    created_at: datetime = Field(
        default_factory=_utc_now_seconds,
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")},
    )
    updated_at: datetime = Field(
        default_factory=_utc_now_seconds,
        sa_column_kwargs={
            "server_default": text("CURRENT_TIMESTAMP"),
            "onupdate": _utc_now_seconds,
        },
    )
