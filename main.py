#!/usr/bin/env python3
"""
MarketBoard -- operator commands.

Usage:
  python main.py init-db
  python main.py set-password admin

init-db creates the tables, seeds the default market sessions and creates the
bootstrap admin if no admin exists yet. The bootstrap credentials are the
documented defaults (ADMIN_DEFAULT_USERNAME / ADMIN_DEFAULT_PASSWORD); rotate
them with set-password before exposing the site.

set-password prompts twice for a new password, checks it against the strength
policy and replaces the stored hash. Use it to rotate the bootstrap password or
to recover a locked-out account.

Environment variables:
  DATABASE_URL  SQLAlchemy URL (default sqlite:///marketboard.db)
  JWT_SECRET    required unless DEBUG=true (see core/config.py)
"""

import argparse
import asyncio
import getpass
import sys

from auth.limiter import RateLimiter
from auth.passwords import check_password_policy, hash_password
from auth.service import AuthService
from auth.store import AdminStore
from auth.tokens import TokenService
from core.config import Settings, get_settings
from market.store import SessionStore


def _init_db(settings: Settings) -> int:
    admin_store = AdminStore(settings.database_url)
    session_store = SessionStore(settings.database_url)
    try:
        seeded = session_store.seed_defaults()
        service = AuthService(
            admin_store,
            TokenService(settings.jwt_secret, settings.token_expire_seconds),
            RateLimiter(settings.login_max_attempts, settings.login_window_seconds),
            bcrypt_rounds=settings.bcrypt_rounds,
        )
        created = asyncio.run(
            service.ensure_default_admin(settings.admin_default_username, settings.admin_default_password)
        )
    finally:
        admin_store.close()
        session_store.close()

    print(f"  Market sessions seeded: {seeded}")
    if created:
        print(f"  Default admin created: {settings.admin_default_username}")
        print("  [!] Change this password now: python main.py set-password " + settings.admin_default_username)
    else:
        print("  Admin accounts already exist -- bootstrap skipped.")
    return 0


def _set_password(settings: Settings, username: str) -> int:
    store = AdminStore(settings.database_url)
    try:
        user = store.get_by_username(username)
        if user is None:
            print(f"  [!] No admin named '{username}'.")
            return 1

        new_password = getpass.getpass("  New password: ")
        problems = check_password_policy(new_password)
        if problems:
            for problem in problems:
                print(f"  [!] {problem}")
            return 1
        if getpass.getpass("  Repeat password: ") != new_password:
            print("  [!] Passwords do not match.")
            return 1

        store.update_password(user.id, hash_password(new_password, settings.bcrypt_rounds))
    finally:
        store.close()

    print(f"  Password updated for {username}.")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="marketboard",
        description="MarketBoard operator commands.",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create tables, seed sessions, bootstrap the default admin")
    set_pw = sub.add_parser("set-password", help="Replace an admin's password")
    set_pw.add_argument("username", help="Admin username")

    args = parser.parse_args(argv)
    settings = get_settings()

    if args.command == "init-db":
        return _init_db(settings)
    return _set_password(settings, args.username)


if __name__ == "__main__":
    sys.exit(main())
