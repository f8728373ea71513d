#!/usr/bin/env python3
"""
AuthGate -- email/password login with rotating refresh tokens.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py serve --reload
  python main.py hash-password

Environment variables (see core/config.py for the full list):
  ACCESS_TOKEN_SECRET   HS256 key for access tokens (32+ chars). Required unless DEBUG=true.
  REFRESH_TOKEN_SECRET  HS256 key for refresh tokens (32+ chars, must differ). Required unless DEBUG=true.
  USE_MOCK_DATA         Seed demo@example.com / admin@example.com at startup (default: true).
"""

import argparse
import getpass
import sys
from typing import Optional


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="Minimal authentication service with refresh-token rotation.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve
  python main.py serve --port 8080 --reload
  DEBUG=true python main.py serve
  python main.py hash-password
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST setting, 127.0.0.1)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: PORT setting, 4000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")

    sub.add_parser("hash-password", help="Prompt for a password and print its bcrypt hash")
    return parser


def _serve(host: Optional[str], port: Optional[int], reload: bool) -> None:
    import uvicorn

    from core.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "asgi:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


def _hash_password() -> int:
    from auth.tokens import hash_password

    password = getpass.getpass("Password: ")
    if not password:
        print("  [!] Password must not be empty.", file=sys.stderr)
        return 1
    if password != getpass.getpass("Repeat: "):
        print("  [!] Passwords do not match.", file=sys.stderr)
        return 1
    print(hash_password(password))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        _serve(args.host, args.port, args.reload)
        return 0
    if args.command == "hash-password":
        return _hash_password()

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
