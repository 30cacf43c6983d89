"""
Deployment Readiness

Hardened-mode validation shared by process bootstrap and the
`churchapi-check-ready` command line tool. A deployment is ready when every
required key holds a real value, the public API URL is not the reserved
upstream default, and mail goes through SMTP.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Mapping, NamedTuple, Sequence

from dotenv import dotenv_values

from churchapi.db.modules import PRIMARY_MODULES

PLACEHOLDER_MARKER = "REPLACE_ME"
RESERVED_API_HOST = "churchapps.org"
REQUIRED_MAIL_SYSTEM = "SMTP"

REQUIRED_KEYS: tuple[str, ...] = (
    "API_URL",
    "MESSAGING_API",
    "SERVER_PORT",
    "SOCKET_URL",
    "MAIL_SYSTEM",
    "SMTP_HOST",
    "SMTP_USER",
    "SMTP_PASS",
    "ENCRYPTION_KEY",
    "JWT_SECRET",
    "SUPPORT_EMAIL",
    *(module.env_var for module in PRIMARY_MODULES),
)


class ConfigProblem(NamedTuple):
    key: str
    message: str


def is_placeholder(value: str | None) -> bool:
    return value is None or not value.strip() or PLACEHOLDER_MARKER in value


def find_hardened_config_problems(values: Mapping[str, str | None]) -> list[ConfigProblem]:
    """
    Validate a flat env-style mapping for hardened (production) mode.

    Returns one problem per offending key; empty means ready.
    """
    problems = [
        ConfigProblem(key, f"{key} is missing, empty or still a {PLACEHOLDER_MARKER} placeholder")
        for key in REQUIRED_KEYS
        if is_placeholder(values.get(key))
    ]

    api_url = values.get("API_URL") or ""
    if RESERVED_API_HOST in api_url:
        problems.append(
            ConfigProblem("API_URL", f"API_URL must point to your deployment domain (not api.{RESERVED_API_HOST})")
        )

    mail_system = values.get("MAIL_SYSTEM")
    if mail_system != REQUIRED_MAIL_SYSTEM and not is_placeholder(mail_system):
        problems.append(
            ConfigProblem("MAIL_SYSTEM", f"MAIL_SYSTEM must be set to {REQUIRED_MAIL_SYSTEM} for non-AWS deployments")
        )

    return problems


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check a .env file for production readiness")
    parser.add_argument("--env-file", default=".env", help="Path to the dotenv file (default: .env)")
    args = parser.parse_args(argv)

    env_path = Path(args.env_file)
    if not env_path.exists():
        print(f"Missing {env_path} file. Create one from .env.sample.", file=sys.stderr)
        return 1

    problems = find_hardened_config_problems(dotenv_values(env_path))
    if problems:
        print("Deployment is not ready:", file=sys.stderr)
        for problem in problems:
            print(f"- {problem.message}", file=sys.stderr)
        return 1

    print("Readiness check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
