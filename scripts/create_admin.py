#!/usr/bin/env python3
"""Create an administrator account from the command line.

    python scripts/create_admin.py admin@example.com "Ops Admin"
    python scripts/create_admin.py owner@example.com "Owner" --role super_admin
    python scripts/create_admin.py --ensure-super-admin

The account is created active with a verified email. Pass --no-welcome to
skip the welcome email.
"""

import argparse
import asyncio
import logging
import sys

from sqlmodel import Session

from gatekeeper.admin.service import RoleAdministration, bootstrap_super_admin
from gatekeeper.auth.sessions import SessionStore
from gatekeeper.auth.tokens import TokenSigner
from gatekeeper.core.exceptions import AppException
from gatekeeper.core.logging import configure_logging
from gatekeeper.core.settings import get_settings
from gatekeeper.db.engine import engine
from gatekeeper.notifications.email import init_resend
from gatekeeper.notifications.service import get_notifier
from gatekeeper.user.models import ADMIN_ROLES, Locale, Role
from gatekeeper.user.service import UserService

logger = logging.getLogger("gatekeeper.scripts.create_admin")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create an administrator account")
    parser.add_argument("email", nargs="?")
    parser.add_argument("name", nargs="?")
    parser.add_argument(
        "--role",
        choices=sorted(role.value for role in ADMIN_ROLES),
        default=Role.admin.value,
    )
    parser.add_argument("--phone")
    parser.add_argument(
        "--locale", choices=[locale.value for locale in Locale], default=Locale.ar.value
    )
    parser.add_argument("--no-welcome", action="store_true")
    parser.add_argument(
        "--ensure-super-admin",
        action="store_true",
        help="Create the configured SUPER_ADMIN_EMAIL account if no active super admin exists",
    )
    return parser


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    init_resend(settings)
    notifier = get_notifier()

    with Session(engine) as session:
        if args.ensure_super_admin:
            user = await bootstrap_super_admin(session, settings, notifier)
            if user is None:
                print("An active super admin already exists")
            else:
                print(f"Super admin ready: {user.email} ({user.id})")
            return 0

        sessions = SessionStore(session, TokenSigner.from_settings(settings))
        users = UserService(session, sessions)
        admins = RoleAdministration(session, users, sessions, notifier, settings)
        user = await admins.create_admin(
            args.email,
            args.name,
            Role(args.role),
            phone=args.phone,
            preferred_locale=Locale(args.locale),
            send_welcome=not args.no_welcome,
        )
        print(f"Created {user.role.value}: {user.email} ({user.id})")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.ensure_super_admin and not (args.email and args.name):
        parser.error("email and name are required unless --ensure-super-admin is given")

    configure_logging()
    try:
        return asyncio.run(run(args))
    except AppException as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
