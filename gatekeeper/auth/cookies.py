"""Auth cookie transport."""

from fastapi import Response

from gatekeeper.auth.sessions import IssuedSession
from gatekeeper.core.settings import Settings


def set_auth_cookies(response: Response, issued: IssuedSession, settings: Settings) -> None:
    """Attach the access and refresh cookies for a freshly minted token pair."""
    common = {
        "httponly": True,
        "secure": settings.is_secure_cookie,
        "samesite": settings.auth_cookie_samesite,
        "path": "/",
    }
    response.set_cookie(
        key=settings.session_cookie_name,
        value=issued.access_token,
        max_age=int(settings.access_token_expires_in.total_seconds()),
        **common,
    )
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=issued.refresh_token,
        max_age=int(settings.refresh_token_expires_in.total_seconds()),
        **common,
    )


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    for name in (settings.session_cookie_name, settings.refresh_cookie_name):
        response.delete_cookie(
            key=name,
            path="/",
            httponly=True,
            secure=settings.is_secure_cookie,
            samesite=settings.auth_cookie_samesite,
        )
