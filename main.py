"""Command-line interface for the TechHive user management service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Sequence

import httpx

from usermanagement.config import Settings, load_settings
from usermanagement.security import InvalidTokenError, TokenParser

logger = logging.getLogger("usermanagement.main")

_DEFAULT_SERVICE_URL = "http://localhost:8000"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="TechHive user management utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML settings file (defaults to USERMGMT_CONFIG or config/settings.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the HTTP API (default: 8000)",
    )
    serve_parser.add_argument(
        "--environment",
        default=None,
        help="Override the configured environment name (e.g. Development)",
    )

    check_parser = subparsers.add_parser(
        "check", help="Query the detailed health endpoint of a running service"
    )
    check_parser.add_argument(
        "--service-url",
        default=None,
        help=f"Base URL of the running service (default: {_DEFAULT_SERVICE_URL})",
    )

    token_parser = subparsers.add_parser(
        "inspect-token", help="Show the role and identity derived from a token"
    )
    token_parser.add_argument("token", help="Token to inspect")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "check", "inspect-token"}

    if not args_list:
        args_list = ["serve"]
    elif not any(arg in known_commands for arg in args_list):
        if not any(flag in args_list for flag in ("-h", "--help")):
            args_list = _insert_default_command(args_list)

    return parser.parse_args(args_list)


def _insert_default_command(args_list: list[str]) -> list[str]:
    """Place ``serve`` after any global options so its own flags parse."""

    if args_list[0] == "--config" and len(args_list) >= 2:
        return [*args_list[:2], "serve", *args_list[2:]]
    if args_list[0].startswith("--config="):
        return [args_list[0], "serve", *args_list[1:]]
    return ["serve", *args_list]


def _load_settings(config: str | None) -> Settings:
    path = Path(config).expanduser() if config else None
    return load_settings(path)


def _serve(*, settings: Settings, host: str, port: int) -> None:
    from usermanagement.api import create_app
    import uvicorn

    logger.info("Starting user management API on http://%s:%s (%s)", host, port, settings.environment)

    app = create_app(settings=settings)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _check_service(service_url: str | None) -> int:
    base_url = (service_url or os.getenv("USERMGMT_SERVICE_URL") or _DEFAULT_SERVICE_URL).rstrip("/")
    endpoint = base_url + "/health/detailed"

    try:
        response = httpx.get(endpoint, timeout=10.0)
    except httpx.HTTPError as exc:
        print(f"Failed to contact user management service: {exc}")
        return 1

    if response.status_code != 200:
        print(f"Service responded with HTTP {response.status_code}: {response.text}")
        return 1

    payload = response.json()
    services = payload.get("services", {})
    print(f"Status:       {payload.get('status')}")
    print(f"Version:      {payload.get('version')}")
    print(f"Environment:  {payload.get('environment')}")
    print(f"Uptime (s):   {payload.get('uptime')}")
    print(f"Active users: {services.get('activeUsers')}")
    return 0


def _inspect_token(settings: Settings, token: str) -> int:
    parser = TokenParser(settings.token_roles, min_length=settings.min_token_length)
    try:
        principal = parser.parse(token)
    except InvalidTokenError as exc:
        print(f"Invalid token: {exc}")
        return 1

    print(f"Role:     {principal.role.value}")
    print(f"User ID:  {principal.user_id}")
    print(f"Name:     {principal.name}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    settings = _load_settings(args.config)

    if args.command == "serve":
        if args.environment:
            settings = replace(settings, environment=args.environment)
        _serve(settings=settings, host=args.host, port=args.port)
        return 0
    if args.command == "check":
        return _check_service(args.service_url)
    if args.command == "inspect-token":
        return _inspect_token(settings, args.token)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
