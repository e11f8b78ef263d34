import inspect
import os
from collections.abc import Callable
from datetime import timedelta
from unittest.mock import MagicMock

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-at-least-32-chars")
os.environ.setdefault("ENV_NAME", "test")
os.environ.setdefault("BOOTSTRAP_SUPER_ADMIN", "false")

import anyio  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402
from sqlmodel.pool import StaticPool  # noqa: E402

import gatekeeper.models  # noqa: E402,F401
from gatekeeper.admin.service import RoleAdministration  # noqa: E402
from gatekeeper.auth.otp import OtpManager  # noqa: E402
from gatekeeper.auth.rate_limit import RateLimiter, get_rate_limiter  # noqa: E402
from gatekeeper.auth.service import AuthService  # noqa: E402
from gatekeeper.auth.sessions import IssuedSession, SessionStore  # noqa: E402
from gatekeeper.auth.tokens import TokenSigner  # noqa: E402
from gatekeeper.core.deps import get_clock  # noqa: E402
from gatekeeper.core.mixins import utc_now  # noqa: E402
from gatekeeper.core.settings import Settings, get_settings  # noqa: E402
from gatekeeper.db.engine import get_session  # noqa: E402
from gatekeeper.main import app  # noqa: E402
from gatekeeper.notifications.service import Notifier, get_notifier  # noqa: E402
from gatekeeper.user.models import Role, User, UserStatus  # noqa: E402
from gatekeeper.user.service import UserService  # noqa: E402

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"


def pytest_configure(config: pytest.Config) -> None:
    # Tests use @pytest.mark.asyncio, but we intentionally rely on anyio.
    config.addinivalue_line(
        "markers",
        "asyncio: run async tests using anyio (project-local hook)",
    )


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run @pytest.mark.asyncio tests with anyio.

    This avoids adding an external pytest-asyncio dependency.
    """
    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None

    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None

    funcargs = {
        name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames
    }

    async def _run_async_test() -> None:
        await test_func(**funcargs)

    anyio.run(_run_async_test)
    return True


class FakeClock:
    """Controllable UTC clock; starts at the real current time."""

    def __init__(self):
        self.now = utc_now()

    def __call__(self):
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(name="session")
def session_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture(name="clock")
def clock_fixture() -> FakeClock:
    return FakeClock()


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    return Settings(
        env_name="test",
        database_url="sqlite://",
        jwt_secret=TEST_SECRET,
        auth_cookie_secure=False,
        resend_api_key=None,
        sms_api_key=None,
        bootstrap_super_admin=False,
    )


@pytest.fixture(name="signer")
def signer_fixture(settings: Settings) -> TokenSigner:
    return TokenSigner.from_settings(settings)


@pytest.fixture(name="rate_limiter")
def rate_limiter_fixture(clock: FakeClock) -> RateLimiter:
    return RateLimiter(clock)


@pytest.fixture(name="session_store")
def session_store_fixture(
    session: Session, signer: TokenSigner, clock: FakeClock
) -> SessionStore:
    return SessionStore(session, signer, clock)


@pytest.fixture(name="otp_manager")
def otp_manager_fixture(
    session: Session, rate_limiter: RateLimiter, settings: Settings, clock: FakeClock
) -> OtpManager:
    return OtpManager(
        session,
        rate_limiter,
        expires_in=settings.otp_expires_in,
        max_attempts=settings.otp_max_attempts,
        hourly_limit=settings.rate_limit_otp_per_hour,
        clock=clock,
    )


@pytest.fixture(name="user_service")
def user_service_fixture(
    session: Session, session_store: SessionStore, clock: FakeClock
) -> UserService:
    return UserService(session, session_store, clock)


@pytest.fixture(name="mock_notifier")
def mock_notifier_fixture() -> MagicMock:
    """Notifier double; async methods become AsyncMocks via spec=Notifier."""
    return MagicMock(spec=Notifier)


@pytest.fixture(name="auth_service")
def auth_service_fixture(
    user_service: UserService,
    otp_manager: OtpManager,
    session_store: SessionStore,
    mock_notifier: MagicMock,
) -> AuthService:
    return AuthService(user_service, otp_manager, session_store, mock_notifier)


@pytest.fixture(name="role_admin")
def role_admin_fixture(
    session: Session,
    user_service: UserService,
    session_store: SessionStore,
    mock_notifier: MagicMock,
    settings: Settings,
) -> RoleAdministration:
    return RoleAdministration(
        session, user_service, session_store, mock_notifier, settings
    )


@pytest.fixture(name="make_user")
def make_user_fixture(session: Session) -> Callable[..., User]:
    """Factory for persisted users; emails are unique per call."""
    counter = 0

    def _make(
        email: str | None = None,
        *,
        role: Role = Role.buyer,
        status: UserStatus = UserStatus.active,
        name: str | None = "Test User",
        phone: str | None = None,
    ) -> User:
        nonlocal counter
        counter += 1
        user = User(
            email=email or f"user{counter}@example.com",
            name=name,
            phone=phone,
            role=role,
            status=status,
            email_verified_at=utc_now() if status != UserStatus.pending_verification else None,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture(name="test_user")
def test_user_fixture(make_user: Callable[..., User]) -> User:
    return make_user("test@example.com", name="Test User")


@pytest.fixture(name="admin_user")
def admin_user_fixture(make_user: Callable[..., User]) -> User:
    return make_user("admin@example.com", role=Role.admin, name="Admin User")


@pytest.fixture(name="super_admin_user")
def super_admin_user_fixture(make_user: Callable[..., User]) -> User:
    return make_user("owner@example.com", role=Role.super_admin, name="Owner")


@pytest.fixture(name="login_as")
def login_as_fixture(session_store: SessionStore) -> Callable[[User], IssuedSession]:
    """Open a session for ``user`` directly in the store."""

    def _login(user: User) -> IssuedSession:
        return session_store.create(user, "pytest", "127.0.0.1")

    return _login


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(
    login_as: Callable[[User], IssuedSession],
) -> Callable[[User], dict[str, str]]:
    """Bearer headers for a fresh session of ``user``."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {login_as(user).access_token}"}

    return _headers


@pytest.fixture(name="client")
def client_fixture(
    session: Session,
    settings: Settings,
    mock_notifier: MagicMock,
    rate_limiter: RateLimiter,
    clock: FakeClock,
):
    """Create a test client with overridden dependencies."""
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_notifier] = lambda: mock_notifier
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_clock] = lambda: clock

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
