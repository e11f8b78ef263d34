"""User domain models.

SQLModel table definition for User plus the role/status enums and the
verification state variant derived from the nullable timestamp columns.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from gatekeeper.core.mixins import TimestampMixin, as_utc


class Role(str, Enum):
    """Account role, ordered from least to most privileged."""

    buyer = "buyer"
    seller = "seller"
    admin = "admin"
    super_admin = "super_admin"

    @property
    def is_admin(self) -> bool:
        return self in ADMIN_ROLES


ADMIN_ROLES = frozenset({Role.admin, Role.super_admin})


class UserStatus(str, Enum):
    """User account status.

    - pending_verification: registered, email not yet verified
    - active: verified and allowed to use the API
    - inactive: deactivated by an administrator
    - banned: banned by an administrator
    """

    pending_verification = "pending_verification"
    active = "active"
    inactive = "inactive"
    banned = "banned"


# Statuses that revoke every session of the account.
REVOKED_STATUSES = frozenset({UserStatus.inactive, UserStatus.banned})


class Locale(str, Enum):
    ar = "ar"
    en = "en"


@dataclass(frozen=True)
class Unverified:
    is_verified = False


@dataclass(frozen=True)
class VerifiedAt:
    at: datetime
    is_verified = True


Verification = Unverified | VerifiedAt


def verification_state(verified_at: datetime | None) -> Verification:
    if verified_at is None:
        return Unverified()
    return VerifiedAt(as_utc(verified_at))


class User(TimestampMixin, SQLModel, table=True):
    """User database model.

    Emails are stored lowercased; phones are stored in +9665XXXXXXXX form.
    """

    __tablename__: str = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(index=True, unique=True, max_length=255)
    phone: str | None = Field(default=None, index=True, unique=True, max_length=20)
    name: str | None = Field(default=None, max_length=100)
    role: Role = Field(default=Role.buyer, max_length=20)
    status: UserStatus = Field(default=UserStatus.pending_verification, max_length=30)
    email_verified_at: datetime | None = Field(default=None)
    phone_verified_at: datetime | None = Field(default=None)
    last_login_at: datetime | None = Field(default=None)
    preferred_locale: Locale = Field(default=Locale.ar, max_length=2)

    @property
    def email_verification(self) -> Verification:
        return verification_state(self.email_verified_at)

    @property
    def phone_verification(self) -> Verification:
        return verification_state(self.phone_verified_at)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.active

    @property
    def is_revoked(self) -> bool:
        return self.status in REVOKED_STATUSES
