"""Tests for scripts/create_admin.py - admin bootstrap CLI."""

import importlib.util
from pathlib import Path
from unittest.mock import patch

import pytest
from sqlmodel import Session, SQLModel, create_engine, select
from sqlmodel.pool import StaticPool

from gatekeeper.core.settings import Settings
from gatekeeper.user.models import Role, User, UserStatus

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "create_admin.py"


@pytest.fixture(name="cli")
def cli_fixture():
    spec = importlib.util.spec_from_file_location("create_admin", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture(name="cli_engine")
def cli_engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(name="run_cli")
def run_cli_fixture(cli, cli_engine, settings: Settings, mock_notifier):
    def _run(*argv: str) -> int:
        with (
            patch.object(cli, "engine", cli_engine),
            patch.object(cli, "get_settings", return_value=settings),
            patch.object(cli, "get_notifier", return_value=mock_notifier),
            patch.object(cli, "init_resend"),
            patch.object(cli, "configure_logging"),
        ):
            return cli.main(list(argv))

    return _run


def _users(engine) -> list[User]:
    with Session(engine) as session:
        return list(session.exec(select(User)).all())


def test_create_admin(run_cli, cli_engine, mock_notifier):
    assert run_cli("ops@example.com", "Ops Admin", "--locale", "en") == 0

    [user] = _users(cli_engine)
    assert user.email == "ops@example.com"
    assert user.role == Role.admin
    assert user.status == UserStatus.active
    mock_notifier.send_admin_welcome.assert_awaited_once()


def test_create_super_admin_without_welcome(run_cli, cli_engine, mock_notifier):
    assert run_cli("owner@example.com", "Owner", "--role", "super_admin", "--no-welcome") == 0

    [user] = _users(cli_engine)
    assert user.role == Role.super_admin
    mock_notifier.send_admin_welcome.assert_not_called()


def test_duplicate_email_fails(run_cli, capsys):
    assert run_cli("ops@example.com", "Ops Admin", "--no-welcome") == 0
    assert run_cli("ops@example.com", "Ops Again", "--no-welcome") == 1

    assert "Error:" in capsys.readouterr().err


def test_ensure_super_admin_is_idempotent(run_cli, cli_engine, settings: Settings):
    assert run_cli("--ensure-super-admin") == 0
    assert run_cli("--ensure-super-admin") == 0

    [user] = _users(cli_engine)
    assert user.email == settings.super_admin_email
    assert user.role == Role.super_admin


def test_email_and_name_required(run_cli):
    with pytest.raises(SystemExit):
        run_cli("ops@example.com")
