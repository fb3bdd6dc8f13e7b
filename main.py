#!/usr/bin/env python3
"""
LMS Auth -- authentication and role-based access control for an e-learning backend.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 9000
  python main.py serve --reload
  python main.py create-admin admin@example.com
  python main.py create-admin admin@example.com --password 'long-enough-pass'
  python main.py purge-otps

Environment variables (or .env):
  SECRET_KEY     Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL   SQLAlchemy URL. Default: sqlite:///./lmsauth.db
  HOST / PORT    Bind address for `serve`. Default: 127.0.0.1:8000
  DEBUG          true enables /docs, logs OTP codes, and auto-generates SECRET_KEY.
"""

import argparse
import getpass
import sys

from auth.models import Role, User
from auth.otp import OtpService
from auth.passwords import MAX_PASSWORD_BYTES, PasswordHasher, password_too_long
from auth.store import UserStore
from core.config import Settings, get_settings
from core.errors import DuplicateResourceError


def _serve(settings: Settings, args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "asgi:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
    )
    return 0


def _create_admin(settings: Settings, args: argparse.Namespace) -> int:
    """Create a verified admin account.

    Admins cannot self-register over HTTP (unless ALLOW_ADMIN_REGISTRATION is
    set), so this is how the first one comes into existence.
    """
    password = args.password or getpass.getpass("Password for new admin: ")
    if len(password) < 8 or password_too_long(password):
        print(f"  [!] Password must be at least 8 characters and at most {MAX_PASSWORD_BYTES} bytes.")
        return 1

    store = UserStore(settings.database_url)
    try:
        user_id = store.create_user(
            User(
                email=args.email,
                role=Role.admin,
                hashed_password=PasswordHasher().hash(password),
                is_verified=True,
            )
        )
    except DuplicateResourceError:
        print(f"  [!] An account for {args.email} already exists.")
        return 1
    finally:
        store.close()
    print(f"  Created admin {args.email} (id {user_id}).")
    return 0


def _purge_otps(settings: Settings, args: argparse.Namespace) -> int:
    store = UserStore(settings.database_url)
    try:
        removed = OtpService(store).purge_expired()
    finally:
        store.close()
    print(f"  Removed {removed} expired OTP record(s).")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="lms-auth",
        description="Authentication and RBAC service for an e-learning backend.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST or 127.0.0.1)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: PORT or 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    serve.set_defaults(handler=_serve)

    admin = sub.add_parser("create-admin", help="Create a verified admin account")
    admin.add_argument("email", help="Admin email address (login name)")
    admin.add_argument("--password", default=None, help="Password (prompted if omitted)")
    admin.set_defaults(handler=_create_admin)

    purge = sub.add_parser("purge-otps", help="Delete expired one-time passcodes")
    purge.set_defaults(handler=_purge_otps)

    args = parser.parse_args(argv)
    # Settings() raises on a missing SECRET_KEY -- before any command runs.
    settings = get_settings()
    return args.handler(settings, args)


if __name__ == "__main__":
    sys.exit(main())
