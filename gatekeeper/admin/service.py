"""Role administration.

Creating, promoting and demoting administrator accounts. Route-level access
is decided by the authorization guard; the hierarchy rules that depend on who
is acting on whom are enforced here so scripts and routes share them.
"""

import logging
import uuid

from sqlmodel import Session, col, func, select

from gatekeeper.admin.exceptions import (
    AlreadyAdminError,
    InvalidAdminRoleError,
    NotAdminError,
    SelfDemotionError,
    SuperAdminRequiredError,
)
from gatekeeper.auth.sessions import SessionStore
from gatekeeper.auth.tokens import TokenSigner
from gatekeeper.core.settings import Settings
from gatekeeper.notifications.service import NotifierProtocol
from gatekeeper.user.models import ADMIN_ROLES, Locale, Role, User, UserStatus
from gatekeeper.user.service import UserService

logger = logging.getLogger(__name__)


def _require_admin_role(role: Role) -> None:
    if role not in ADMIN_ROLES:
        raise InvalidAdminRoleError()


class RoleAdministration:
    def __init__(
        self,
        session: Session,
        users: UserService,
        sessions: SessionStore,
        notifier: NotifierProtocol,
        settings: Settings,
    ):
        self._session = session
        self.users = users
        self.sessions = sessions
        self.notifier = notifier
        self.settings = settings

    async def create_admin(
        self,
        email: str,
        name: str,
        role: Role = Role.admin,
        *,
        phone: str | None = None,
        preferred_locale: Locale = Locale.ar,
        send_welcome: bool = True,
    ) -> User:
        """Provision a pre-verified administrator account.

        Raises:
            InvalidAdminRoleError: If role is not admin or super_admin
            EmailExistsError / PhoneExistsError: If either is already registered
        """
        _require_admin_role(role)
        user = self.users.create_user(
            email,
            name=name,
            phone=phone,
            preferred_locale=preferred_locale,
            role=role,
            status=UserStatus.active,
            email_verified=True,
        )
        logger.info("Admin account created (%s)", role.value, extra={"user_id": user.id})

        if send_welcome:
            await self.notifier.send_admin_welcome(
                user.email, user.name or user.email, user.preferred_locale.value, role.value
            )
        return user

    async def promote(self, user_id: uuid.UUID, role: Role = Role.admin) -> User:
        """Grant an admin role and force the account active.

        Raises:
            InvalidAdminRoleError: If role is not admin or super_admin
            UserNotFoundError: If the user does not exist
            AlreadyAdminError: If the user already holds an admin role
        """
        _require_admin_role(role)
        user = self.users.get(user_id)
        if user.role in ADMIN_ROLES:
            raise AlreadyAdminError()

        user.role = role
        user.status = UserStatus.active
        self._session.add(user)
        self._session.commit()
        self._session.refresh(user)
        logger.info("User promoted to %s", role.value, extra={"user_id": user.id})

        await self.notifier.send_admin_promotion(
            user.email, user.name or user.email, user.preferred_locale.value, role.value
        )
        return user

    async def demote(self, user_id: uuid.UUID, performed_by: User) -> User:
        """Reset an administrator to buyer and revoke their sessions.

        Raises:
            SelfDemotionError: If an administrator targets themselves
            SuperAdminRequiredError: If the performer is not a super admin
            UserNotFoundError: If the user does not exist
            NotAdminError: If the user holds no admin role
        """
        if user_id == performed_by.id:
            raise SelfDemotionError()
        if performed_by.role != Role.super_admin:
            raise SuperAdminRequiredError()

        user = self.users.get(user_id)
        if user.role not in ADMIN_ROLES:
            raise NotAdminError()

        user.role = Role.buyer
        self._session.add(user)
        self._session.commit()
        self._session.refresh(user)
        revoked = self.sessions.invalidate_all(user.id)
        logger.info(
            "Admin demoted by %s (%d sessions revoked)",
            performed_by.id,
            revoked,
            extra={"user_id": user.id},
        )

        await self.notifier.send_admin_demotion(
            user.email, user.name or user.email, user.preferred_locale.value
        )
        return user

    def list_admins(self) -> list[User]:
        return list(
            self._session.exec(
                select(User)
                .where(col(User.role).in_(ADMIN_ROLES))
                .order_by(col(User.created_at).desc())
            ).all()
        )

    def has_super_admin(self) -> bool:
        count = self._session.exec(
            select(func.count())
            .select_from(User)
            .where(User.role == Role.super_admin, User.status == UserStatus.active)
        ).one()
        return count > 0

    async def ensure_super_admin(self) -> User | None:
        """Create the configured super admin if no active one exists.

        An existing account with the configured email is promoted and
        reactivated instead of duplicated. Returns the account touched, or
        None when an active super admin already exists.
        """
        if self.has_super_admin():
            return None

        email = self.settings.super_admin_email
        existing = self.users.get_by_email(email)
        if existing is not None:
            existing.role = Role.super_admin
            existing.status = UserStatus.active
            self._session.add(existing)
            self._session.commit()
            self._session.refresh(existing)
            logger.warning(
                "Existing account restored as super admin", extra={"user_id": existing.id}
            )
            return existing

        user = await self.create_admin(
            email, self.settings.super_admin_name, Role.super_admin, send_welcome=False
        )
        logger.warning("Default super admin created", extra={"user_id": user.id})
        return user


async def bootstrap_super_admin(
    session: Session, settings: Settings, notifier: NotifierProtocol
) -> User | None:
    """Build the services around ``session`` and run ``ensure_super_admin``."""
    sessions = SessionStore(session, TokenSigner.from_settings(settings))
    users = UserService(session, sessions)
    admins = RoleAdministration(session, users, sessions, notifier, settings)
    return await admins.ensure_super_admin()
