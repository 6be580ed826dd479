"""Generate demo access tokens accepted by the user management API."""

from __future__ import annotations

import argparse
import secrets
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from usermanagement.config import DEFAULT_TOKEN_ROLES  # noqa: E402
from usermanagement.models import Role  # noqa: E402

ROLE_PREFIXES = {role.value.lower(): prefix for prefix, role in DEFAULT_TOKEN_ROLES.items()}


def build_token(role: str, user_id: str | None = None) -> str:
    """Return a token of the form ``<prefix>_<user id>_<random suffix>``."""

    try:
        prefix = ROLE_PREFIXES[role.strip().lower()]
    except KeyError as exc:
        choices = ", ".join(sorted(member.value for member in Role))
        raise ValueError(f"Unknown role {role!r}; expected one of {choices}") from exc

    identity = (user_id or "").strip() or secrets.token_hex(4)
    if "_" in identity:
        raise ValueError("User ID must not contain underscores")
    return f"{prefix}_{identity}_{secrets.token_urlsafe(12).replace('_', '-')}"


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a demo access token")
    parser.add_argument("role", help="Role encoded in the token prefix (Admin, API or User)")
    parser.add_argument(
        "--user-id",
        default=None,
        help="Identity segment to embed in the token (default: random)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(list(argv) if argv is not None else None)

    try:
        token = build_token(args.role, args.user_id)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    print("Generated token:")
    print(token)
    print("\nThese tokens are for demonstration only; they are not signed and never expire.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
