"""SMS delivery through a Bearer-authenticated HTTP gateway."""

import logging

import httpx

from gatekeeper.core.exceptions import SmsSendError
from gatekeeper.core.http import get_sms_client
from gatekeeper.core.retry import with_retry
from gatekeeper.core.settings import Settings

logger = logging.getLogger(__name__)

OTP_TEMPLATES: dict[str, str] = {
    "ar": "رمز التحقق الخاص بك هو: {code}\nصالح لمدة {minutes} دقائق.",
    "en": "Your verification code is: {code}\nValid for {minutes} minutes.",
}


def otp_message(code: str, locale: str, minutes: int) -> str:
    template = OTP_TEMPLATES.get(locale, OTP_TEMPLATES["en"])
    return template.format(code=code, minutes=minutes)


def gateway_recipient(phone: str) -> str:
    """Gateways expect the international number without the leading plus."""
    return phone.removeprefix("+")


async def send_sms(
    phone: str,
    body: str,
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Send one SMS, retrying transport errors and 5xx responses.

    Raises:
        SmsSendError: If the gateway rejects the message or stays unreachable
    """
    if not settings.sms_api_key:
        logger.info("SMS delivery disabled, skipping message to %s", phone)
        return

    client = client or get_sms_client()

    async def _post() -> httpx.Response:
        response = await client.post(
            settings.sms_api_url,
            headers={"Authorization": f"Bearer {settings.sms_api_key}"},
            json={
                "recipients": [gateway_recipient(phone)],
                "body": body,
                "sender": settings.sms_sender,
            },
        )
        if response.status_code >= 500:
            response.raise_for_status()
        return response

    try:
        response = await with_retry(
            _post,
            exceptions=(httpx.TransportError, httpx.HTTPStatusError),
            operation="SMS gateway request",
        )
    except httpx.HTTPError as e:
        raise SmsSendError() from e

    if response.status_code >= 400:
        raise SmsSendError(f"SMS gateway rejected message ({response.status_code})")
