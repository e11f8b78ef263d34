"""User lifecycle service.

Lookup, registration records, profile edits and administrator status
changes. Any change that bans or deactivates an account revokes every session
it holds before returning.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlmodel import Session, col, func, or_, select

from gatekeeper.admin.exceptions import SuperAdminRequiredError
from gatekeeper.auth.sessions import SessionStore
from gatekeeper.core.mixins import Clock, utc_now
from gatekeeper.user.exceptions import (
    EmailExistsError,
    PhoneExistsError,
    SelfStatusChangeError,
    UserNotFoundError,
)
from gatekeeper.user.models import (
    REVOKED_STATUSES,
    Locale,
    Role,
    User,
    UserStatus,
)
from gatekeeper.user.validation import normalize_email, normalize_phone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserStats:
    total: int
    by_status: dict[str, int]
    by_role: dict[str, int]


class UserService:
    def __init__(self, session: Session, sessions: SessionStore, clock: Clock = utc_now):
        self._session = session
        self._sessions = sessions
        self._clock = clock

    def get(self, user_id: uuid.UUID) -> User:
        """Raises UserNotFoundError when the id is unknown."""
        user = self._session.get(User, user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    def get_by_email(self, email: str) -> User | None:
        return self._session.exec(
            select(User).where(User.email == normalize_email(email))
        ).first()

    def get_by_phone(self, phone: str) -> User | None:
        return self._session.exec(
            select(User).where(User.phone == normalize_phone(phone))
        ).first()

    def ensure_available(
        self,
        email: str | None = None,
        phone: str | None = None,
        *,
        exclude: uuid.UUID | None = None,
    ) -> None:
        """Raise a Conflict when the email or phone belongs to another account."""
        if email is not None:
            existing = self.get_by_email(email)
            if existing is not None and existing.id != exclude:
                raise EmailExistsError()
        if phone is not None:
            existing = self.get_by_phone(phone)
            if existing is not None and existing.id != exclude:
                raise PhoneExistsError()

    def create_user(
        self,
        email: str,
        *,
        name: str | None = None,
        phone: str | None = None,
        preferred_locale: Locale = Locale.ar,
        role: Role = Role.buyer,
        status: UserStatus = UserStatus.pending_verification,
        email_verified: bool = False,
    ) -> User:
        phone = normalize_phone(phone) if phone else None
        self.ensure_available(email, phone)

        user = User(
            email=normalize_email(email),
            phone=phone,
            name=name.strip() if name else None,
            role=role,
            status=status,
            preferred_locale=preferred_locale,
            email_verified_at=self._clock() if email_verified else None,
        )
        self._session.add(user)
        self._session.commit()
        self._session.refresh(user)
        logger.info("User created", extra={"user_id": user.id})
        return user

    def update_profile(
        self,
        user: User,
        *,
        name: str | None = None,
        phone: str | None = None,
        preferred_locale: Locale | None = None,
    ) -> User:
        if name is not None:
            user.name = name.strip()
        if preferred_locale is not None:
            user.preferred_locale = preferred_locale
        if phone is not None:
            phone = normalize_phone(phone)
            if phone != user.phone:
                self.ensure_available(phone=phone, exclude=user.id)
                user.phone = phone
                user.phone_verified_at = None
        self._session.add(user)
        self._session.commit()
        self._session.refresh(user)
        return user

    def mark_email_verified(self, user: User) -> User:
        """Record the verification and activate a pending account."""
        user.email_verified_at = self._clock()
        if user.status == UserStatus.pending_verification:
            user.status = UserStatus.active
        self._session.add(user)
        self._session.commit()
        self._session.refresh(user)
        return user

    def mark_phone_verified(self, user: User) -> User:
        user.phone_verified_at = self._clock()
        self._session.add(user)
        self._session.commit()
        self._session.refresh(user)
        return user

    def touch_last_login(self, user: User) -> None:
        user.last_login_at = self._clock()
        self._session.add(user)
        self._session.commit()

    def update_status(
        self,
        user_id: uuid.UUID,
        status: UserStatus,
        *,
        performed_by_id: uuid.UUID,
        performed_by_role: Role,
        reason: str | None = None,
    ) -> User:
        """Change an account's status on behalf of an administrator.

        Raises:
            SelfStatusChangeError: If the administrator targets their own account
            UserNotFoundError: If the target does not exist
            SuperAdminRequiredError: If a non-super-admin targets an admin account
        """
        if user_id == performed_by_id:
            raise SelfStatusChangeError()

        user = self.get(user_id)
        if user.role.is_admin and performed_by_role != Role.super_admin:
            raise SuperAdminRequiredError()

        previous = user.status
        user.status = status
        self._session.add(user)
        self._session.commit()
        self._session.refresh(user)

        if status in REVOKED_STATUSES:
            self._sessions.invalidate_all(user.id)

        logger.info(
            "User status changed %s -> %s (reason: %s)",
            previous.value,
            status.value,
            reason or "-",
            extra={"user_id": user.id},
        )
        return user

    def deactivate_self(self, user: User) -> None:
        """Soft-delete: the account becomes inactive and loses its sessions."""
        user.status = UserStatus.inactive
        self._session.add(user)
        self._session.commit()
        self._sessions.invalidate_all(user.id)
        logger.info("User deactivated own account", extra={"user_id": user.id})

    def search(
        self,
        *,
        role: Role | None = None,
        status: UserStatus | None = None,
        query: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[User], int]:
        conditions = []
        if role is not None:
            conditions.append(User.role == role)
        if status is not None:
            conditions.append(User.status == status)
        if query:
            pattern = f"%{query.strip().lower()}%"
            conditions.append(
                or_(
                    col(User.email).like(pattern),
                    func.lower(col(User.name)).like(pattern),
                    col(User.phone).like(pattern),
                )
            )

        statement = select(User)
        count_statement = select(func.count()).select_from(User)
        if conditions:
            statement = statement.where(*conditions)
            count_statement = count_statement.where(*conditions)

        total = self._session.exec(count_statement).one()
        users = self._session.exec(
            statement.order_by(col(User.created_at).desc()).offset(offset).limit(limit)
        ).all()
        return list(users), total

    def stats(self) -> UserStats:
        by_status = {
            status.value: count
            for status, count in self._session.exec(
                select(User.status, func.count()).group_by(User.status)
            ).all()
        }
        by_role = {
            role.value: count
            for role, count in self._session.exec(
                select(User.role, func.count()).group_by(User.role)
            ).all()
        }
        return UserStats(
            total=sum(by_status.values()), by_status=by_status, by_role=by_role
        )
