"""Notification collaborator used by the auth and admin flows.

Every method is fire-and-forget: delivery failures are logged with their
traceback and never reach the caller, so an OTP is still issued when the
email or SMS provider is down.
"""

import logging
from functools import lru_cache
from typing import Protocol

from gatekeeper.auth.models import OtpPurpose
from gatekeeper.core.settings import Settings, get_settings
from gatekeeper.notifications.email import (
    render_template,
    role_label,
    send_email,
    subject_for,
)
from gatekeeper.notifications.sms import otp_message, send_sms

logger = logging.getLogger(__name__)


class NotifierProtocol(Protocol):
    async def send_otp_message(
        self, destination: str, code: str, purpose: OtpPurpose, locale: str = "ar"
    ) -> None: ...

    async def send_admin_welcome(
        self, email: str, name: str, locale: str = "ar", role: str = "admin"
    ) -> None: ...

    async def send_admin_promotion(
        self, email: str, name: str, locale: str = "ar", role: str = "admin"
    ) -> None: ...

    async def send_admin_demotion(
        self, email: str, name: str, locale: str = "ar"
    ) -> None: ...


class Notifier:
    """Email through Resend, SMS through the configured gateway."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def send_otp_message(
        self, destination: str, code: str, purpose: OtpPurpose, locale: str = "ar"
    ) -> None:
        channel = "email" if "@" in destination else "sms"
        if self.settings.is_development:
            logger.debug("OTP for %s (%s): %s", destination, purpose.value, code)

        try:
            if channel == "email":
                subject = subject_for(f"otp-code.{purpose.value}", locale)
                html = render_template(
                    "otp-code.html",
                    locale=locale,
                    subject=subject,
                    code=code,
                    expires_minutes=self.settings.otp_expires_minutes,
                )
                send_email(destination, subject, html, self.settings)
            else:
                body = otp_message(code, locale, self.settings.otp_expires_minutes)
                await send_sms(destination, body, self.settings)
        except Exception:
            logger.warning(
                "OTP delivery failed",
                extra={"channel": channel, "purpose": purpose.value},
                exc_info=True,
            )

    async def _send_admin_email(
        self, template: str, email: str, locale: str, **context: object
    ) -> None:
        try:
            subject = subject_for(template, locale)
            html = render_template(
                f"{template}.html",
                locale=locale,
                subject=subject,
                login_url=f"{self.settings.client_url}/auth/login",
                **context,
            )
            send_email(email, subject, html, self.settings)
        except Exception:
            logger.warning(
                "Admin notification %s failed for %s",
                template,
                email,
                extra={"channel": "email"},
                exc_info=True,
            )

    async def send_admin_welcome(
        self, email: str, name: str, locale: str = "ar", role: str = "admin"
    ) -> None:
        await self._send_admin_email(
            "admin-welcome", email, locale, name=name, role_label=role_label(role, locale)
        )

    async def send_admin_promotion(
        self, email: str, name: str, locale: str = "ar", role: str = "admin"
    ) -> None:
        await self._send_admin_email(
            "admin-promotion",
            email,
            locale,
            name=name,
            role_label=role_label(role, locale),
        )

    async def send_admin_demotion(
        self, email: str, name: str, locale: str = "ar"
    ) -> None:
        await self._send_admin_email("admin-demotion", email, locale, name=name)


@lru_cache
def get_notifier() -> Notifier:
    return Notifier(get_settings())
