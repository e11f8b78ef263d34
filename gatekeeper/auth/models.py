"""Auth domain models.

OTP codes and sessions reference users but never own them; both tables are
swept once their rows expire.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel

from gatekeeper.core.mixins import TimestampMixin, utc_now


class OtpPurpose(str, Enum):
    email_verification = "email_verification"
    phone_verification = "phone_verification"
    login = "login"


class OtpCode(SQLModel, table=True):
    """One-time passcode scoped to a (user, purpose) pair.

    A partial unique index allows a single unverified code per pair.
    """

    __tablename__: str = "otp_codes"
    __table_args__ = (
        Index(
            "uq_otp_codes_open_code",
            "user_id",
            "purpose",
            unique=True,
            sqlite_where=text("NOT verified"),
            postgresql_where=text("NOT verified"),
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True, ondelete="CASCADE")
    code: str = Field(min_length=6, max_length=6)
    purpose: OtpPurpose = Field(max_length=30, index=True)
    expires_at: datetime = Field(index=True)
    attempts: int = Field(default=0)
    verified: bool = Field(default=False)
    # Full precision: "newest code" ordering depends on it.
    created_at: datetime = Field(default_factory=utc_now)


class AuthSession(TimestampMixin, SQLModel, table=True):
    """Server-side session binding the current token pair to a user.

    ``token`` holds the current access token so revocation is a row lookup;
    ``refresh_token_hash`` pins the single refresh token allowed to rotate it.
    """

    __tablename__: str = "sessions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True, ondelete="CASCADE")
    token: str = Field(default="", index=True)
    refresh_token_hash: str | None = Field(default=None, max_length=64)
    expires_at: datetime = Field(index=True)
    user_agent: str | None = Field(default=None, max_length=500)
    ip_address: str | None = Field(default=None, max_length=45)
