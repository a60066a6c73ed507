"""Command-line helper for the user management API.

This module serves as a CLI wrapper around userapi.core services.
"""
from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from pathlib import Path

import requests

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from userapi.config import AppConfig, load_settings
from userapi.core.http import (
    ApiError,
    AuthenticatingRequestExecutor,
    AuthenticationError,
    CredentialManager,
    TransportExhaustedError,
)
from userapi.core.users import User, UserService
from userapi.core.zip_codes import ZipCodeService

EXIT_API_ERROR = 1
EXIT_AUTH_ERROR = 2


def _parse_params(pairs: list[str], parser: argparse.ArgumentParser) -> dict[str, str]:
    params = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            parser.error(f"Invalid --param {pair!r}, expected key=value")
        params[key] = value
    return params


def _print_response(response) -> None:
    print(f"[users] Status {response.status_code}", file=sys.stderr)
    if response.body:
        print(response.body)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="User management API helper")
    parser.add_argument("--api-base-url", default=os.environ.get("API_BASE_URL"))
    parser.add_argument("--token-url", default=os.environ.get("OAUTH2_TOKEN_URL"))
    parser.add_argument("--client-id", default=os.environ.get("OAUTH2_CLIENT_ID"))
    parser.add_argument("--client-secret", default=os.environ.get("OAUTH2_CLIENT_SECRET"))
    parser.add_argument("--max-retries", type=int, default=None)
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="cmd")

    st = sub.add_parser("token", help="Fetch a bearer token")
    st.add_argument("--scope", choices=["read", "write"], default="read")

    sl = sub.add_parser("list", help="List users")
    sl.add_argument("--param", action="append", default=[], help="Query filter, key=value (repeatable)")

    sc = sub.add_parser("create", help="Create a user")
    sc.add_argument("--name", required=True)
    sc.add_argument("--email")
    sc.add_argument("--sex", required=True)
    sc.add_argument("--age", type=int)
    sc.add_argument("--zip-code")

    sd = sub.add_parser("delete", help="Delete the user matching the given fields")
    sd.add_argument("--name", required=True)
    sd.add_argument("--sex", required=True)
    sd.add_argument("--email")
    sd.add_argument("--age", type=int)
    sd.add_argument("--zip-code")

    sub.add_parser("delete-all", help="Delete every user")

    su = sub.add_parser("upload", help="Upload a JSON file of users")
    su.add_argument("file")

    sub.add_parser("zip-codes", help="List available zip codes")

    sr = sub.add_parser("reset-zip-codes", help="Replace the available zip codes")
    sr.add_argument("codes", nargs="+")

    return parser


def _resolve_settings(args: argparse.Namespace, parser: argparse.ArgumentParser) -> AppConfig:
    environ = dict(os.environ)
    overrides = {
        "API_BASE_URL": args.api_base_url,
        "OAUTH2_TOKEN_URL": args.token_url,
        "OAUTH2_CLIENT_ID": args.client_id,
        "OAUTH2_CLIENT_SECRET": args.client_secret,
        "HTTP_MAX_RETRIES": str(args.max_retries) if args.max_retries is not None else None,
    }
    environ.update({key: value for key, value in overrides.items() if value})
    try:
        return load_settings(environ)
    except (RuntimeError, ValueError) as e:
        parser.error(str(e))


def run(args: argparse.Namespace, cfg: AppConfig) -> int:
    credentials = CredentialManager.from_settings(cfg)

    if args.cmd == "token":
        print(credentials.get_token(args.scope))
        return 0

    executor = AuthenticatingRequestExecutor.from_settings(cfg, credentials=credentials)
    users = UserService(executor, cfg.api_base_url)
    zip_codes = ZipCodeService(executor, cfg.api_base_url)

    if args.cmd == "list":
        _print_response(users.get_users(args.params))
    elif args.cmd == "create":
        user = User(name=args.name, email=args.email, sex=args.sex, age=args.age, zip_code=args.zip_code)
        _print_response(users.create_user(user))
    elif args.cmd == "delete":
        user = User(name=args.name, email=args.email, sex=args.sex, age=args.age, zip_code=args.zip_code)
        _print_response(users.delete_user(user))
    elif args.cmd == "delete-all":
        users.delete_all_users()
        print("[users] All users deleted", file=sys.stderr)
    elif args.cmd == "upload":
        _print_response(users.upload_users(args.file))
    elif args.cmd == "zip-codes":
        print(json.dumps(zip_codes.get_available_zip_codes()))
    elif args.cmd == "reset-zip-codes":
        zip_codes.reset_zip_codes(args.codes)
        print(f"[zip-codes] Reset to {len(args.codes)} code(s)", file=sys.stderr)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.cmd:
        parser.print_help()
        return 0

    if args.cmd == "list":
        args.params = _parse_params(args.param, parser)

    cfg = _resolve_settings(args, parser)

    try:
        return run(args, cfg)
    except AuthenticationError as e:
        print(f"[users] Authentication failed: {e.message}", file=sys.stderr)
        return EXIT_AUTH_ERROR
    except ApiError as e:
        print(f"[users] {e}", file=sys.stderr)
        return EXIT_API_ERROR
    except (TransportExhaustedError, requests.RequestException) as e:
        print(f"[users] Request failed: {e}", file=sys.stderr)
        return EXIT_API_ERROR


if __name__ == "__main__":
    sys.exit(main())
