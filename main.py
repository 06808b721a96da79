#!/usr/bin/env python3
"""
UserHub admin CLI -- maintenance tasks that run against the auth database
without going through the HTTP API.

Usage:
  python main.py seed-roles
  python main.py create-admin --username admin --email admin@example.com --name "Site Admin"
  python main.py invalidate-sessions <user_id>
  python main.py invalidate-access <user_id>

Environment variables (see core/config.py):
  DATABASE_URL        SQLAlchemy URL of the auth database.
  JWT_SECRET          Access-token signing key (required unless DEBUG=true).
  JWT_REFRESH_SECRET  Refresh-token signing key (required unless DEBUG=true).

create-admin reads the password from ADMIN_PASSWORD, or prompts for it.
"""

import argparse
import getpass
import logging
import os
import sys
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from auth.models import User, UserStatus
from auth.passwords import hash_password
from auth.rbac import RbacStore
from auth.service import build_auth_service
from auth.store import UserStore
from core.config import get_settings
from core.errors import AuthError
from mail.mailer import SmtpMailer


def _seed_roles(store: UserStore, args: argparse.Namespace) -> int:
    for role in RbacStore(store.engine).seed_defaults():
        print(f"  role {role.name} (id={role.id})")
    return 0


def _create_admin(store: UserStore, args: argparse.Namespace) -> int:
    """Create an ACTIVE, email-verified user holding the Admin role."""
    password = os.environ.get("ADMIN_PASSWORD") or getpass.getpass("Admin password: ")
    if len(password) < 8:
        print("  [!] Password must be at least 8 characters.")
        return 1

    roles = {r.name: r for r in RbacStore(store.engine).seed_defaults()}
    try:
        user = store.create(
            User(
                username=args.username,
                email=args.email,
                name=args.name or args.username,
                password_hash=hash_password(password),
                role=roles["Admin"],
                status=UserStatus.ACTIVE,
                email_verified_at=datetime.now(timezone.utc),
            )
        )
    except IntegrityError:
        print(f"  [!] A user with username '{args.username}' or email '{args.email}' already exists.")
        return 1
    except AuthError as exc:
        print(f"  [!] {exc.message}")
        return 1
    print(f"  Created admin {user.username} (id={user.id})")
    return 0


def _invalidate(store: UserStore, args: argparse.Namespace) -> int:
    service = build_auth_service(
        store, RbacStore(store.engine), SmtpMailer.from_settings(get_settings()), get_settings()
    )
    try:
        if args.command == "invalidate-sessions":
            service.invalidate_all_sessions(args.user_id)
            print(f"  All sessions invalidated for {args.user_id}")
        else:
            service.invalidate_access_tokens(args.user_id)
            print(f"  Access tokens invalidated for {args.user_id}")
    except AuthError as exc:
        print(f"  [!] {exc.message}")
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="UserHub auth administration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("seed-roles", help="Create the default roles and permissions (idempotent)")

    admin = sub.add_parser("create-admin", help="Create an active, verified admin account")
    admin.add_argument("--username", required=True)
    admin.add_argument("--email", required=True)
    admin.add_argument("--name", help="Display name (defaults to username)")

    for name, text in (
        ("invalidate-sessions", "Force logout: invalidate all access and refresh tokens"),
        ("invalidate-access", "Invalidate access tokens only; refresh tokens keep working"),
    ):
        p = sub.add_parser(name, help=text)
        p.add_argument("user_id")

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s %(message)s")

    handlers = {
        "seed-roles": _seed_roles,
        "create-admin": _create_admin,
        "invalidate-sessions": _invalidate,
        "invalidate-access": _invalidate,
    }
    store = UserStore(get_settings().database_url)
    try:
        return handlers[args.command](store, args)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
