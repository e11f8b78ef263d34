"""Auth domain schemas.

Request and response schemas for the passwordless login flow.
"""

import uuid
from datetime import datetime

from pydantic import EmailStr, Field, field_validator
from sqlmodel import SQLModel

from gatekeeper.auth.models import OtpPurpose
from gatekeeper.user.models import Locale
from gatekeeper.user.schemas import UserPublicRead
from gatekeeper.user.validation import OTP_CODE_PATTERN, normalize_email, phone_validator


class EmailRequest(SQLModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return normalize_email(value)


class RegisterRequest(EmailRequest):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    phone: str | None = None
    preferred_locale: Locale = Locale.ar

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        return phone_validator(value)


class LoginRequest(EmailRequest):
    pass


class VerifyOtpRequest(EmailRequest):
    code: str = Field(pattern=OTP_CODE_PATTERN)


class ResendOtpRequest(EmailRequest):
    purpose: OtpPurpose = OtpPurpose.email_verification


class PhoneVerifyRequest(SQLModel):
    code: str = Field(pattern=OTP_CODE_PATTERN)


class RefreshRequest(SQLModel):
    """Optional body for clients that do not use the refresh cookie."""

    refresh_token: str | None = None


class AuthMessage(SQLModel):
    message: str
    message_localized: str | None = None


class OtpIssued(AuthMessage):
    expires_in_seconds: int


class TokenPair(SQLModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime
    refresh_expires_at: datetime


class LoginResponse(SQLModel):
    user: UserPublicRead
    tokens: TokenPair


class SessionInfo(SQLModel):
    session_id: uuid.UUID
    user: UserPublicRead
    permissions: list[str]
    active_sessions: int
    total_sessions: int
