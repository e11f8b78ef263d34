"""Transactional email via Resend.

Templates live in ``gatekeeper/templates/emails`` and render both locales;
subjects are looked up here by template and locale.
"""

import logging

import resend

from gatekeeper.core.constants import JinjaEmailTemplatesEnv
from gatekeeper.core.exceptions import EmailSendError
from gatekeeper.core.settings import Settings, get_settings

logger = logging.getLogger(__name__)

SUBJECTS: dict[str, dict[str, str]] = {
    "otp-code.email_verification": {
        "ar": "تأكيد البريد الإلكتروني",
        "en": "Verify your email address",
    },
    "otp-code.phone_verification": {
        "ar": "تأكيد رقم الجوال",
        "en": "Verify your phone number",
    },
    "otp-code.login": {"ar": "رمز تسجيل الدخول", "en": "Your sign-in code"},
    "admin-welcome": {"ar": "مرحباً بك كمشرف", "en": "Welcome, administrator"},
    "admin-promotion": {"ar": "تمت ترقية حسابك", "en": "Your account was promoted"},
    "admin-demotion": {
        "ar": "تم تغيير صلاحيات حسابك",
        "en": "Your account permissions changed",
    },
}

ROLE_LABELS: dict[str, dict[str, str]] = {
    "admin": {"ar": "مشرف", "en": "Admin"},
    "super_admin": {"ar": "مشرف عام", "en": "Super Admin"},
}


def subject_for(key: str, locale: str) -> str:
    subjects = SUBJECTS[key]
    return subjects.get(locale, subjects["en"])


def role_label(role: str, locale: str) -> str:
    labels = ROLE_LABELS.get(role)
    if labels is None:
        return role
    return labels.get(locale, labels["en"])


def render_template(template_name: str, **context: object) -> str:
    """Render an email template.

    Args:
        template_name: Name of the template file
        **context: Template variables

    Returns:
        Rendered HTML
    """
    template = JinjaEmailTemplatesEnv.get_template(template_name)
    return template.render(**context)


def init_resend(settings: Settings | None = None) -> None:
    """Initialize Resend with API key if available."""
    settings = settings or get_settings()
    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY is not set; emails will be skipped")
        return
    resend.api_key = settings.resend_api_key


def send_email(
    to_email: str, subject: str, html: str, settings: Settings | None = None
) -> None:
    """Send one email through Resend.

    Raises:
        EmailSendError: If Resend rejects the request
    """
    settings = settings or get_settings()
    if not settings.resend_api_key:
        logger.info("Email delivery disabled, skipping %r to %s", subject, to_email)
        return

    try:
        resend.Emails.send(
            {
                "from": f"noreply@{settings.app_domain}",
                "to": to_email,
                "subject": subject,
                "html": html,
            }
        )
    except Exception as e:
        raise EmailSendError() from e
