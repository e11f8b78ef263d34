"""User domain schemas.

Request and response schemas for user operations.

Security notes:
- UserPublicRead is what a user sees about themselves
- UserRead adds role and account-state fields for admin contexts
- UserUpdateMe is restricted to prevent privilege escalation
"""

import uuid
from datetime import UTC, datetime

from pydantic import Field, field_serializer, field_validator
from sqlmodel import SQLModel

from gatekeeper.user.models import Locale, Role, UserStatus
from gatekeeper.user.validation import phone_validator


def _iso_utc(value: datetime | None) -> str | None:
    """Format a datetime as ISO 8601 in UTC with a Z suffix."""
    if value is None:
        return None
    if value.tzinfo is not None:
        utc_value = value.astimezone(UTC)
    else:
        utc_value = value.replace(tzinfo=UTC)
    return utc_value.replace(microsecond=0).isoformat().replace("+00:00", "Z")


class UserPublicRead(SQLModel):
    """Response schema for the caller's own profile."""

    id: uuid.UUID
    email: str
    phone: str | None
    name: str | None
    role: Role
    status: UserStatus
    preferred_locale: Locale
    email_verified_at: datetime | None
    phone_verified_at: datetime | None
    created_at: datetime

    @field_serializer("email_verified_at", "phone_verified_at", "created_at")
    def serialize_datetime(self, value: datetime | None) -> str | None:
        return _iso_utc(value)


class UserRead(UserPublicRead):
    """Full response schema for admin contexts."""

    last_login_at: datetime | None
    updated_at: datetime

    @field_serializer("last_login_at", "updated_at")
    def serialize_admin_datetime(self, value: datetime | None) -> str | None:
        return _iso_utc(value)


class UserPage(SQLModel):
    items: list[UserRead]
    total: int
    offset: int
    limit: int


class UserUpdateMe(SQLModel):
    """Schema for users updating their own profile.

    Email, role and status cannot be changed here. Changing the phone number
    clears its verification.
    """

    name: str | None = Field(default=None, min_length=2, max_length=100)
    phone: str | None = None
    preferred_locale: Locale | None = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        return phone_validator(value)


class UserStatusUpdate(SQLModel):
    status: UserStatus
    reason: str | None = Field(default=None, max_length=500)


class SessionRead(SQLModel):
    id: uuid.UUID
    user_agent: str | None
    ip_address: str | None
    created_at: datetime
    expires_at: datetime

    @field_serializer("created_at", "expires_at")
    def serialize_datetime(self, value: datetime) -> str | None:
        return _iso_utc(value)


class SessionsRevoked(SQLModel):
    revoked: int
