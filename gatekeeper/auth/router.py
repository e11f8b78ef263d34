"""Auth domain router.

Passwordless authentication routes: registration, OTP login, verification,
token refresh and logout. Handlers stay thin and delegate to AuthService.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response, status

from gatekeeper.auth.cookies import clear_auth_cookies, set_auth_cookies
from gatekeeper.auth.dependencies import (
    AuthServiceDep,
    CurrentUserDep,
    RateLimiterDep,
    SelfServiceContextDep,
    SelfServiceUserDep,
    SessionStoreDep,
    ip_rate_limit_key,
    limit_by_ip,
)
from gatekeeper.auth.guard import extract_credential
from gatekeeper.auth.permissions import permissions_for
from gatekeeper.auth.schemas import (
    AuthMessage,
    LoginRequest,
    LoginResponse,
    OtpIssued,
    PhoneVerifyRequest,
    RefreshRequest,
    RegisterRequest,
    ResendOtpRequest,
    SessionInfo,
    TokenPair,
    VerifyOtpRequest,
)
from gatekeeper.auth.sessions import IssuedSession
from gatekeeper.core.constants import CommonResponses, Routes
from gatekeeper.core.deps import SettingsDep
from gatekeeper.core.request_logging import client_ip
from gatekeeper.user.schemas import UserPublicRead

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix=Routes.AUTH.prefix,
    tags=[Routes.AUTH.tag],
    responses={**CommonResponses.BAD_REQUEST, **CommonResponses.RATE_LIMITED},
)

OTP_SENT = AuthMessage(
    message="If the account exists, a verification code has been sent",
    message_localized="إذا كان الحساب موجوداً، فقد تم إرسال رمز التحقق",
)


def _otp_issued(message: AuthMessage, settings: SettingsDep) -> OtpIssued:
    return OtpIssued(
        message=message.message,
        message_localized=message.message_localized,
        expires_in_seconds=settings.otp_expires_minutes * 60,
    )


def _token_pair(issued: IssuedSession) -> TokenPair:
    return TokenPair(
        access_token=issued.access_token,
        refresh_token=issued.refresh_token,
        expires_at=issued.expires_at,
        refresh_expires_at=issued.refresh_expires_at,
    )


@router.post(
    "/register",
    response_model=OtpIssued,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(limit_by_ip("otp"))],
    responses={**CommonResponses.CONFLICT},
)
async def register(payload: RegisterRequest, auth: AuthServiceDep, settings: SettingsDep):
    """Register a new account and email its verification code.

    The account stays pending_verification until /auth/verify-email succeeds.
    """
    await auth.register(
        payload.email,
        name=payload.name,
        phone=payload.phone,
        preferred_locale=payload.preferred_locale,
    )
    return _otp_issued(
        AuthMessage(
            message="Account created. Check your email for the verification code",
            message_localized="تم إنشاء الحساب. تحقق من بريدك الإلكتروني للحصول على رمز التحقق",
        ),
        settings,
    )


@router.post(
    "/login",
    response_model=OtpIssued,
    dependencies=[Depends(limit_by_ip("login"))],
    responses={**CommonResponses.FORBIDDEN},
)
async def login(payload: LoginRequest, auth: AuthServiceDep, settings: SettingsDep):
    """Request a login code.

    The response is identical for unknown emails.
    """
    await auth.initiate_login(payload.email)
    return _otp_issued(OTP_SENT, settings)


@router.post(
    "/verify-otp",
    response_model=LoginResponse,
    dependencies=[Depends(limit_by_ip("login"))],
    responses={**CommonResponses.FORBIDDEN},
)
async def verify_otp(
    payload: VerifyOtpRequest,
    request: Request,
    response: Response,
    auth: AuthServiceDep,
    rate_limiter: RateLimiterDep,
    settings: SettingsDep,
):
    """Complete login with the emailed code; sets the session cookies."""
    result = auth.complete_login(
        payload.email,
        payload.code,
        user_agent=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    # A completed login clears the failed-attempt budget for this address.
    rate_limiter.reset(ip_rate_limit_key("login", request))
    set_auth_cookies(response, result.session, settings)
    return LoginResponse(
        user=UserPublicRead.model_validate(result.user),
        tokens=_token_pair(result.session),
    )


@router.post(
    "/verify-email",
    response_model=UserPublicRead,
    dependencies=[Depends(limit_by_ip("login"))],
    responses={**CommonResponses.NOT_FOUND},
)
async def verify_email(payload: VerifyOtpRequest, auth: AuthServiceDep):
    """Verify the email address and activate the account."""
    return auth.verify_email(payload.email, payload.code)


@router.post(
    "/resend-otp",
    response_model=OtpIssued,
    dependencies=[Depends(limit_by_ip("otp"))],
)
async def resend_otp(payload: ResendOtpRequest, auth: AuthServiceDep, settings: SettingsDep):
    await auth.resend_otp(payload.email, payload.purpose)
    return _otp_issued(OTP_SENT, settings)


@router.post(
    "/refresh",
    response_model=TokenPair,
    responses={**CommonResponses.UNAUTHORIZED},
)
async def refresh(
    request: Request,
    response: Response,
    auth: AuthServiceDep,
    settings: SettingsDep,
    payload: RefreshRequest | None = None,
):
    """Rotate the token pair using the refresh cookie or a body token.

    Each refresh token works once; the previous one is rejected afterwards.
    """
    token = request.cookies.get(settings.refresh_cookie_name)
    if payload is not None and payload.refresh_token:
        token = payload.refresh_token

    issued = auth.refresh(token)
    set_auth_cookies(response, issued, settings)
    return _token_pair(issued)


@router.post("/logout", response_model=AuthMessage)
async def logout(
    request: Request,
    response: Response,
    auth: AuthServiceDep,
    sessions: SessionStoreDep,
    settings: SettingsDep,
):
    """End the current session. Always clears cookies, even for a stale token.

    Only the token the session currently holds can end it; a token replaced
    by a refresh is ignored.
    """
    credential = extract_credential(
        request.cookies,
        request.headers.get("authorization"),
        settings.session_cookie_name,
    )
    current = sessions.validate(credential.token) if credential is not None else None
    if current is not None:
        auth.logout(current.session_id)
    elif credential is not None:
        logger.debug("Logout with a stale token; clearing cookies only")

    clear_auth_cookies(response, settings)
    return AuthMessage(message="Logged out", message_localized="تم تسجيل الخروج")


@router.post(
    "/logout-all",
    response_model=AuthMessage,
    responses={**CommonResponses.UNAUTHORIZED},
)
async def logout_all(
    context: SelfServiceContextDep,
    response: Response,
    auth: AuthServiceDep,
    settings: SettingsDep,
):
    """Revoke every session of the caller, including this one."""
    revoked = auth.logout_all(context.user_id)
    clear_auth_cookies(response, settings)
    return AuthMessage(
        message=f"Logged out of {revoked} sessions",
        message_localized=f"تم تسجيل الخروج من {revoked} جلسات",
    )


@router.get(
    "/me",
    response_model=UserPublicRead,
    responses={**CommonResponses.UNAUTHORIZED, **CommonResponses.FORBIDDEN},
)
async def me(user: SelfServiceUserDep):
    return user


@router.get(
    "/session",
    response_model=SessionInfo,
    responses={**CommonResponses.UNAUTHORIZED, **CommonResponses.FORBIDDEN},
)
async def session_info(
    context: SelfServiceContextDep, user: SelfServiceUserDep, sessions: SessionStoreDep
):
    """Describe the current session, the caller's permissions and session counts."""
    stats = sessions.stats(context.user_id)
    return SessionInfo(
        session_id=context.session_id,
        user=UserPublicRead.model_validate(user),
        permissions=sorted(p.value for p in permissions_for(context.role)),
        active_sessions=stats.active,
        total_sessions=stats.total,
    )


@router.post(
    "/phone/request-verification",
    response_model=OtpIssued,
    responses={**CommonResponses.UNAUTHORIZED, **CommonResponses.FORBIDDEN},
)
async def request_phone_verification(
    user: CurrentUserDep, auth: AuthServiceDep, settings: SettingsDep
):
    """Send a verification code to the phone number on file by SMS."""
    await auth.request_phone_verification(user)
    return _otp_issued(
        AuthMessage(
            message="Verification code sent by SMS",
            message_localized="تم إرسال رمز التحقق عبر رسالة نصية",
        ),
        settings,
    )


@router.post(
    "/phone/verify",
    response_model=UserPublicRead,
    responses={**CommonResponses.UNAUTHORIZED, **CommonResponses.FORBIDDEN},
)
async def verify_phone(payload: PhoneVerifyRequest, user: CurrentUserDep, auth: AuthServiceDep):
    return auth.verify_phone(user, payload.code)
