"""Passwordless authentication flows.

Composes the user service, OTP manager, session store and notifier into the
operations exposed by the auth router: registration, OTP login, email and
phone verification, token refresh and logout.
"""

import logging
import uuid
from dataclasses import dataclass

from gatekeeper.auth.exceptions import (
    InvalidTokenError,
    OtpInvalidOrExpiredError,
    OtpMaxAttemptsError,
    OtpMismatchError,
)
from gatekeeper.auth.models import OtpPurpose
from gatekeeper.auth.otp import (
    IssuedOtp,
    OtpFailureReason,
    OtpManager,
    OtpRejected,
    OtpVerification,
)
from gatekeeper.auth.sessions import IssuedSession, SessionStore
from gatekeeper.core.exceptions import InvalidInputError
from gatekeeper.notifications.service import NotifierProtocol
from gatekeeper.user.exceptions import (
    AccountBannedError,
    AccountInactiveError,
    EmailAlreadyVerifiedError,
    PhoneAlreadyVerifiedError,
    PhoneRequiredError,
    UserNotFoundError,
)
from gatekeeper.user.models import Locale, User, UserStatus
from gatekeeper.user.service import UserService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    user: User
    session: IssuedSession


def raise_for_rejection(result: OtpVerification) -> None:
    """Turn a failed verification into the matching typed error."""
    if not isinstance(result, OtpRejected):
        return
    if result.reason is OtpFailureReason.mismatch:
        raise OtpMismatchError(result.attempts_left)
    if result.reason is OtpFailureReason.max_attempts_exceeded:
        raise OtpMaxAttemptsError(result.attempts_left)
    raise OtpInvalidOrExpiredError(result.attempts_left)


def ensure_not_revoked(user: User) -> None:
    if user.status == UserStatus.banned:
        raise AccountBannedError()
    if user.status == UserStatus.inactive:
        raise AccountInactiveError()


class AuthService:
    def __init__(
        self,
        users: UserService,
        otp: OtpManager,
        sessions: SessionStore,
        notifier: NotifierProtocol,
    ):
        self.users = users
        self.otp = otp
        self.sessions = sessions
        self.notifier = notifier

    async def _issue(
        self, user: User, purpose: OtpPurpose, destination: str
    ) -> IssuedOtp:
        issued = self.otp.generate(user.id, purpose)
        await self.notifier.send_otp_message(
            destination, issued.code, purpose, user.preferred_locale.value
        )
        return issued

    async def register(
        self,
        email: str,
        *,
        name: str | None = None,
        phone: str | None = None,
        preferred_locale: Locale = Locale.ar,
    ) -> tuple[User, IssuedOtp]:
        """Create a pending account and send its email verification code.

        Raises:
            EmailExistsError / PhoneExistsError: If either is already registered
        """
        user = self.users.create_user(
            email, name=name, phone=phone, preferred_locale=preferred_locale
        )
        issued = await self._issue(user, OtpPurpose.email_verification, user.email)
        return user, issued

    async def initiate_login(self, email: str) -> IssuedOtp | None:
        """Send a login code if the email belongs to a usable account.

        Unknown emails return None without error so the response does not
        reveal which addresses are registered.
        """
        user = self.users.get_by_email(email)
        if user is None:
            logger.info("Login requested for unknown email")
            return None
        ensure_not_revoked(user)
        return await self._issue(user, OtpPurpose.login, user.email)

    def complete_login(
        self,
        email: str,
        code: str,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> LoginResult:
        """Verify a login code and open a session.

        Raises:
            OtpInvalidOrExpiredError (and subclasses): Code rejected, with attempts left
            AccountBannedError / AccountInactiveError: Account cannot sign in
        """
        user = self.users.get_by_email(email)
        if user is None:
            raise OtpInvalidOrExpiredError()
        ensure_not_revoked(user)

        raise_for_rejection(self.otp.verify(user.id, code, OtpPurpose.login))

        issued = self.sessions.create(user, user_agent, ip_address)
        self.users.touch_last_login(user)
        self.otp.consume(user.id, OtpPurpose.login)
        logger.info(
            "Login completed",
            extra={"user_id": user.id, "session_id": issued.session_id},
        )
        return LoginResult(user=user, session=issued)

    def verify_email(self, email: str, code: str) -> User:
        user = self.users.get_by_email(email)
        if user is None:
            raise UserNotFoundError()
        if user.email_verification.is_verified:
            raise EmailAlreadyVerifiedError()

        raise_for_rejection(
            self.otp.verify(user.id, code, OtpPurpose.email_verification)
        )
        user = self.users.mark_email_verified(user)
        self.otp.consume(user.id, OtpPurpose.email_verification)
        logger.info("Email verified", extra={"user_id": user.id})
        return user

    async def resend_otp(self, email: str, purpose: OtpPurpose) -> IssuedOtp | None:
        if purpose is OtpPurpose.login:
            return await self.initiate_login(email)
        if purpose is OtpPurpose.phone_verification:
            raise InvalidInputError(
                "Phone codes are requested from an authenticated session",
                message_localized="يجب تسجيل الدخول لطلب رمز تحقق الجوال",
            )

        user = self.users.get_by_email(email)
        if user is None:
            return None
        if user.email_verification.is_verified:
            raise EmailAlreadyVerifiedError()
        return await self._issue(user, OtpPurpose.email_verification, user.email)

    async def request_phone_verification(self, user: User) -> IssuedOtp:
        if not user.phone:
            raise PhoneRequiredError()
        if user.phone_verification.is_verified:
            raise PhoneAlreadyVerifiedError()
        return await self._issue(user, OtpPurpose.phone_verification, user.phone)

    def verify_phone(self, user: User, code: str) -> User:
        if not user.phone:
            raise PhoneRequiredError()
        if user.phone_verification.is_verified:
            raise PhoneAlreadyVerifiedError()

        raise_for_rejection(
            self.otp.verify(user.id, code, OtpPurpose.phone_verification)
        )
        user = self.users.mark_phone_verified(user)
        self.otp.consume(user.id, OtpPurpose.phone_verification)
        logger.info("Phone verified", extra={"user_id": user.id})
        return user

    def refresh(self, refresh_token: str | None) -> IssuedSession:
        """Rotate the session's tokens.

        Raises:
            InvalidTokenError: If the refresh token is missing, invalid or superseded
        """
        if not refresh_token:
            raise InvalidTokenError("Refresh token required")
        issued = self.sessions.refresh(refresh_token)
        if issued is None:
            raise InvalidTokenError()
        return issued

    def logout(self, session_id: uuid.UUID) -> None:
        self.sessions.invalidate(session_id)
        logger.info("Logged out", extra={"session_id": session_id})

    def logout_all(self, user_id: uuid.UUID) -> int:
        revoked = self.sessions.invalidate_all(user_id)
        logger.info("Logged out everywhere", extra={"user_id": user_id})
        return revoked
