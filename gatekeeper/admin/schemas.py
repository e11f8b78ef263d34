"""Admin domain schemas."""

from pydantic import EmailStr, Field, field_validator
from sqlmodel import SQLModel

from gatekeeper.user.models import Locale, Role
from gatekeeper.user.validation import normalize_email, phone_validator


class AdminCreate(SQLModel):
    email: EmailStr
    name: str = Field(min_length=2, max_length=100)
    role: Role = Role.admin
    phone: str | None = None
    preferred_locale: Locale = Locale.ar

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        return phone_validator(value)


class PromoteRequest(SQLModel):
    role: Role = Role.admin


class OtpCounts(SQLModel):
    total: int
    active: int
    expired: int
    verified: int


class AdminStats(SQLModel):
    """Platform counters for the admin dashboard."""

    users_total: int
    users_by_status: dict[str, int]
    users_by_role: dict[str, int]
    otp: OtpCounts
