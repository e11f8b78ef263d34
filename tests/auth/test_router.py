"""Tests for auth domain router."""

from datetime import timedelta

from fastapi.testclient import TestClient
from sqlmodel import Session

from gatekeeper.auth.models import OtpPurpose
from gatekeeper.user.models import Role, UserStatus


def _sent_code(mock_notifier) -> str:
    return mock_notifier.send_otp_message.call_args.args[1]


def _other(code: str) -> str:
    return f"{(int(code) + 1) % 1_000_000:06d}"


# --- POST /auth/register ---


def test_register_new_user(client: TestClient, mock_notifier):
    response = client.post(
        "/auth/register",
        json={"email": "New@Example.com", "name": "New User", "phone": "0551234567"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["expires_in_seconds"] == 600
    assert data["message_localized"]
    args = mock_notifier.send_otp_message.call_args.args
    assert args[0] == "new@example.com"
    assert args[2] == OtpPurpose.email_verification


def test_register_duplicate_email(client: TestClient, test_user):
    response = client.post("/auth/register", json={"email": test_user.email})

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "user_already_exists"


def test_register_invalid_phone(client: TestClient):
    response = client.post(
        "/auth/register", json={"email": "new@example.com", "phone": "12345"}
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "invalid_input"
    assert error["details"]["fields"][0]["field"] == "phone"


def test_register_invalid_email(client: TestClient):
    response = client.post("/auth/register", json={"email": "not-an-email"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_input"


# --- Email verification ---


def test_register_then_verify_email(client: TestClient, mock_notifier, session: Session):
    client.post("/auth/register", json={"email": "pending@example.com"})

    response = client.post(
        "/auth/verify-email",
        json={"email": "pending@example.com", "code": _sent_code(mock_notifier)},
    )

    assert response.status_code == 200
    assert response.json()["status"] == UserStatus.active.value
    assert response.json()["email_verified_at"].endswith("Z")


def test_verify_email_bad_code_format(client: TestClient):
    response = client.post(
        "/auth/verify-email", json={"email": "pending@example.com", "code": "12ab"}
    )
    assert response.status_code == 400


# --- POST /auth/login + /auth/verify-otp ---


def test_login_unknown_email_looks_identical(client: TestClient, test_user, mock_notifier):
    known = client.post("/auth/login", json={"email": test_user.email})
    unknown = client.post("/auth/login", json={"email": "ghost@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert mock_notifier.send_otp_message.await_count == 1


def test_login_banned_user(client: TestClient, make_user):
    user = make_user(status=UserStatus.banned)

    response = client.post("/auth/login", json={"email": user.email})

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "account_banned"


def test_verify_otp_sets_cookies_and_returns_tokens(
    client: TestClient, test_user, mock_notifier, settings
):
    client.post("/auth/login", json={"email": test_user.email})

    response = client.post(
        "/auth/verify-otp",
        json={"email": test_user.email, "code": _sent_code(mock_notifier)},
        headers={"User-Agent": "pytest-browser"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["user"]["id"] == str(test_user.id)
    assert data["tokens"]["token_type"] == "bearer"
    assert response.cookies.get(settings.session_cookie_name) == data["tokens"]["access_token"]
    assert response.cookies.get(settings.refresh_cookie_name) == data["tokens"]["refresh_token"]

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["email"] == test_user.email


def test_verify_otp_clears_login_budget_for_address(
    client: TestClient, test_user, mock_notifier, rate_limiter
):
    client.post("/auth/login", json={"email": test_user.email})
    client.post(
        "/auth/verify-otp", json={"email": test_user.email, "code": _other(_sent_code(mock_notifier))}
    )
    response = client.post(
        "/auth/verify-otp", json={"email": test_user.email, "code": _sent_code(mock_notifier)}
    )

    assert response.status_code == 200
    assert not rate_limiter.check("ip:login:testclient", 1, timedelta(hours=1)).limited


def test_verify_otp_without_code_issued(client: TestClient, test_user):
    response = client.post(
        "/auth/verify-otp", json={"email": test_user.email, "code": "123456"}
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "invalid_otp"
    assert error["details"] == {"attemptsLeft": 0}
    assert error["messageLocalized"]


def test_login_ip_rate_limit(client: TestClient):
    for _ in range(10):
        assert client.post("/auth/login", json={"email": "ghost@example.com"}).status_code == 200

    response = client.post("/auth/login", json={"email": "ghost@example.com"})

    assert response.status_code == 429
    assert response.json()["error"]["code"] == "login_rate_limit"
    assert int(response.headers["Retry-After"]) > 0


def test_otp_issuance_rate_limit(client: TestClient, test_user):
    for _ in range(5):
        client.post(
            "/auth/resend-otp", json={"email": test_user.email, "purpose": "login"}
        )

    response = client.post(
        "/auth/resend-otp", json={"email": test_user.email, "purpose": "login"}
    )

    assert response.status_code == 429
    assert response.json()["error"]["code"] == "otp_rate_limit"


# --- Refresh and logout ---


def test_refresh_with_body_token_rotates(client: TestClient, login_as, test_user):
    issued = login_as(test_user)

    response = client.post("/auth/refresh", json={"refresh_token": issued.refresh_token})
    replay = client.post("/auth/refresh", json={"refresh_token": issued.refresh_token})

    assert response.status_code == 200
    assert response.json()["access_token"] != issued.access_token
    assert replay.status_code == 401
    assert replay.json()["error"]["code"] == "invalid_token"


def test_refresh_with_cookie(client: TestClient, login_as, test_user, settings):
    issued = login_as(test_user)
    client.cookies.set(settings.refresh_cookie_name, issued.refresh_token)

    response = client.post("/auth/refresh")

    assert response.status_code == 200
    assert response.cookies.get(settings.session_cookie_name) == response.json()["access_token"]


def test_refresh_without_token(client: TestClient):
    response = client.post("/auth/refresh")
    assert response.status_code == 401


def test_logout_invalidates_session(client: TestClient, login_as, test_user):
    issued = login_as(test_user)
    headers = {"Authorization": f"Bearer {issued.access_token}"}

    response = client.post("/auth/logout", headers=headers)

    assert response.status_code == 200
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_logout_without_session_still_succeeds(client: TestClient):
    response = client.post("/auth/logout", headers={"Authorization": "Bearer junk"})
    assert response.status_code == 200


def test_logout_with_replaced_token_keeps_session(
    client: TestClient, login_as, test_user, session_store
):
    issued = login_as(test_user)
    rotated = client.post("/auth/refresh", json={"refresh_token": issued.refresh_token}).json()
    client.cookies.clear()

    response = client.post(
        "/auth/logout", headers={"Authorization": f"Bearer {issued.access_token}"}
    )

    assert response.status_code == 200
    assert session_store.validate(rotated["access_token"]) is not None
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {rotated['access_token']}"})
    assert me.status_code == 200


def test_logout_all(client: TestClient, login_as, test_user):
    first = login_as(test_user)
    second = login_as(test_user)

    response = client.post(
        "/auth/logout-all", headers={"Authorization": f"Bearer {first.access_token}"}
    )

    assert response.status_code == 200
    assert "2" in response.json()["message"]
    assert (
        client.get(
            "/auth/me", headers={"Authorization": f"Bearer {second.access_token}"}
        ).status_code
        == 401
    )


# --- Session introspection ---


def test_me_requires_credentials(client: TestClient):
    response = client.get("/auth/me")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "not_authenticated"


def test_me_allows_pending_account(client: TestClient, make_user, auth_headers):
    user = make_user(status=UserStatus.pending_verification)

    response = client.get("/auth/me", headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json()["status"] == "pending_verification"


def test_session_info(client: TestClient, admin_user, login_as):
    login_as(admin_user)
    issued = login_as(admin_user)

    response = client.get(
        "/auth/session", headers={"Authorization": f"Bearer {issued.access_token}"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["session_id"] == str(issued.session_id)
    assert "users.read" in data["permissions"]
    assert "admins.manage" not in data["permissions"]
    assert data["active_sessions"] == 2


# --- Phone verification ---


def test_phone_verification_flow(client: TestClient, make_user, auth_headers, mock_notifier):
    user = make_user(phone="+966512345678")
    headers = auth_headers(user)

    requested = client.post("/auth/phone/request-verification", headers=headers)
    verified = client.post(
        "/auth/phone/verify", json={"code": _sent_code(mock_notifier)}, headers=headers
    )

    assert requested.status_code == 200
    assert verified.status_code == 200
    assert verified.json()["phone_verified_at"] is not None


def test_phone_verification_needs_active_account(client: TestClient, make_user, auth_headers):
    user = make_user(status=UserStatus.pending_verification, phone="+966512345678")

    response = client.post("/auth/phone/request-verification", headers=auth_headers(user))

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "account_pending_verification"


# --- End to end ---


def test_login_wrong_codes_then_ban(
    client: TestClient, make_user, admin_user, auth_headers, mock_notifier
):
    """OTP login with three wrong codes, profile read, then a ban revokes access."""
    user = make_user("u1@example.com")
    client.post("/auth/login", json={"email": user.email})
    code = _sent_code(mock_notifier)

    attempts_left = []
    for _ in range(3):
        response = client.post(
            "/auth/verify-otp", json={"email": user.email, "code": _other(code)}
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "otp_mismatch"
        attempts_left.append(response.json()["error"]["details"]["attemptsLeft"])
    assert attempts_left == [4, 3, 2]

    response = client.post("/auth/verify-otp", json={"email": user.email, "code": code})
    assert response.status_code == 200
    token = response.json()["tokens"]["access_token"]
    client.cookies.clear()
    user_headers = {"Authorization": f"Bearer {token}"}

    me = client.get("/auth/me", headers=user_headers)
    assert me.status_code == 200
    assert me.json()["id"] == str(user.id)

    ban = client.patch(
        f"/users/{user.id}/status",
        json={"status": "banned", "reason": "fraud"},
        headers=auth_headers(admin_user),
    )
    assert ban.status_code == 200
    assert ban.json()["status"] == "banned"

    after = client.get("/auth/me", headers=user_headers)
    assert after.status_code == 403
    assert after.json()["error"]["code"] == "account_banned"
    assert admin_user.role == Role.admin
