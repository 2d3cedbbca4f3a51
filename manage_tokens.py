#!/usr/bin/env python3
"""
Token Management Utility

Issues and inspects bearer tokens for local development:
- Issue a token for a user id
- Decode a token and show its claims
"""

import sys
from datetime import datetime, timezone

from fastapi import HTTPException

from bookreviews.auth import create_access_token, decode_access_token
from bookreviews.config import config
from utilities.config import config as service_config
from utilities.logger import get_logger, setup_logging

logger = get_logger(__name__)


def issue_token(user_id: str, minutes: int = None) -> str:
    """Issue a token for ``user_id`` and print it."""
    token = create_access_token(user_id, expires_minutes=minutes)
    logger.info("Development token issued", user_id=user_id, expires_minutes=minutes)
    lifetime = minutes if minutes is not None else config.access_token_expire_minutes
    print(f"Token for user '{user_id}' (valid {lifetime} minutes):")
    print(token)
    return token


def show_claims(token: str) -> int:
    """Print the claims of a token. Returns a process exit code."""
    try:
        claims = decode_access_token(token)
    except HTTPException as e:
        print(f"Invalid token: {e.detail}")
        return 1

    for name, value in sorted(claims.items()):
        if name in ("exp", "iat"):
            value = datetime.fromtimestamp(value, tz=timezone.utc).isoformat()
        print(f"{name:10s} {value}")
    return 0


def usage():
    print("Usage: python manage_tokens.py [issue|decode] <argument> [minutes]")
    print()
    print("Commands:")
    print("  issue    - Issue a bearer token for a user id")
    print("  decode   - Show the claims of a token")
    print()
    print("Examples:")
    print("  python manage_tokens.py issue alice")
    print("  python manage_tokens.py issue alice 1440")
    print("  python manage_tokens.py decode eyJhbGciOi...")


def main(argv=None) -> int:
    """Main function."""
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) < 2:
        usage()
        return 1

    setup_logging(
        log_level="WARNING",
        log_format=service_config.log_format,
        debug=service_config.debug
    )

    command = argv[0].lower()
    if command == "issue":
        minutes = None
        if len(argv) > 2:
            try:
                minutes = int(argv[2])
            except ValueError:
                print(f"Invalid number of minutes: {argv[2]}")
                return 1
        issue_token(argv[1], minutes)
        return 0
    elif command == "decode":
        return show_claims(argv[1])

    print(f"Unknown command: {command}")
    print("Available commands: issue, decode")
    return 1


if __name__ == "__main__":
    sys.exit(main())
