"""Tests for gatekeeper/auth/dependencies.py - guard dependencies on routes."""

import pytest
from fastapi import APIRouter, Depends, FastAPI
from fastapi.testclient import TestClient

from gatekeeper.auth.dependencies import (
    CurrentUserDep,
    limit_by_ip,
    require_access,
    require_roles,
)
from gatekeeper.auth.guard import AccessPolicy, AuthContext
from gatekeeper.auth.rate_limit import get_rate_limiter
from gatekeeper.core.deps import get_clock
from gatekeeper.core.exception_handlers import register_exception_handlers
from gatekeeper.core.settings import get_settings
from gatekeeper.db.engine import get_session
from gatekeeper.user.models import Role


def _build_app() -> FastAPI:
    router = APIRouter()

    @router.get("/feed")
    async def feed(
        context: AuthContext | None = Depends(require_access(AccessPolicy(allow_guest=True))),
    ):
        return {"user": str(context.user_id) if context else None}

    @router.get("/listings", dependencies=[Depends(require_roles(Role.seller))])
    async def listings():
        return {"ok": True}

    @router.get("/profile")
    async def profile(user: CurrentUserDep):
        return {"email": user.email}

    @router.post("/code", dependencies=[Depends(limit_by_ip("otp"))])
    async def code():
        return {"ok": True}

    app = FastAPI()
    app.include_router(router)
    register_exception_handlers(app)
    return app


@pytest.fixture(name="guarded_client")
def guarded_client_fixture(session, settings, rate_limiter, clock):
    app = _build_app()
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_clock] = lambda: clock
    return TestClient(app)


def test_guest_access_without_token(guarded_client: TestClient):
    response = guarded_client.get("/feed")

    assert response.status_code == 200
    assert response.json() == {"user": None}


def test_guest_access_with_token(guarded_client: TestClient, test_user, auth_headers):
    response = guarded_client.get("/feed", headers=auth_headers(test_user))

    assert response.json() == {"user": str(test_user.id)}


def test_guest_access_rejects_bad_token(guarded_client: TestClient):
    response = guarded_client.get("/feed", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "invalid_token"


def test_role_route(guarded_client: TestClient, make_user, test_user, auth_headers):
    seller = make_user(role=Role.seller)

    assert guarded_client.get("/listings", headers=auth_headers(seller)).status_code == 200

    response = guarded_client.get("/listings", headers=auth_headers(test_user))
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "insufficient_role"


def test_session_cookie_accepted(guarded_client: TestClient, test_user, login_as, settings):
    issued = login_as(test_user)
    guarded_client.cookies.set(settings.session_cookie_name, issued.access_token)

    response = guarded_client.get("/profile")

    assert response.status_code == 200
    assert response.json() == {"email": test_user.email}


def test_api_limit_per_user_and_endpoint(
    guarded_client: TestClient, test_user, auth_headers, settings
):
    settings.rate_limit_api_requests = 2
    headers = auth_headers(test_user)

    assert guarded_client.get("/profile", headers=headers).status_code == 200
    assert guarded_client.get("/profile", headers=headers).status_code == 200
    response = guarded_client.get("/profile", headers=headers)

    assert response.status_code == 429
    assert "Retry-After" in response.headers
    # Other endpoints keep their own budget.
    assert guarded_client.get("/feed", headers=headers).status_code == 200


def test_limit_by_ip(guarded_client: TestClient, settings):
    for _ in range(settings.rate_limit_otp_per_hour):
        assert guarded_client.post("/code").status_code == 200

    response = guarded_client.post("/code")

    assert response.status_code == 429
    assert response.json()["error"]["code"] == "otp_rate_limit"
