"""Command-line interface for the HealthBridge credential service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence


def _running_in_virtualenv() -> bool:
    """Return ``True`` when the current interpreter is executing inside a venv."""

    base_prefix = getattr(sys, "base_prefix", sys.prefix)
    return sys.prefix != base_prefix


def _bootstrap_virtualenv() -> None:
    """Re-exec the script using the bundled virtualenv interpreter when available."""

    if _running_in_virtualenv():
        return

    root = Path(__file__).resolve().parent
    venv_dir = root / ".venv"
    if not venv_dir.is_dir():
        return

    candidates = (
        venv_dir / "bin" / "python",
        venv_dir / "bin" / "python3",
        venv_dir / "Scripts" / "python.exe",
        venv_dir / "Scripts" / "python",
    )

    script = str(Path(__file__).resolve())
    for candidate in candidates:
        if candidate.exists():
            os.execv(str(candidate), [str(candidate), script, *sys.argv[1:]])


if __name__ == "__main__":
    _bootstrap_virtualenv()

from healthbridge.config import Settings, load_settings
from healthbridge.credentials import CredentialService
from healthbridge.database import Database
from healthbridge.errors import ConflictError
from healthbridge.models import Role
from healthbridge.security import PasswordHasher

logger = logging.getLogger("healthbridge.main")

DEMO_ACCOUNTS = (
    ("Admin User", "admin@healthbridge.gov", "admin123", Role.ADMINISTRATOR),
    ("Kael Miranda", "kaelmiranda@example.com", "kael123", Role.CITIZEN),
    ("Test Citizen", "citizen@example.com", "citizen123", Role.CITIZEN),
)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="HealthBridge credential service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Create the credential store schema")
    subparsers.add_parser("list-users", help="Print registered users and citizen profiles")
    subparsers.add_parser("seed-demo", help="Create the demo administrator and citizen accounts")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP credential service")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=4000,
        help="Port for the HTTP API (default: 4000)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "list-users", "seed-demo"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database(settings: Settings) -> Database:
    database = Database(
        settings.database_path,
        pool_size=settings.pool_size,
        timeout=settings.store_timeout,
    )
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, database: Database, settings: Settings, host: str, port: int) -> None:
    from healthbridge.service import create_app
    import uvicorn

    logger.info("Starting credential service on http://%s:%s", host, port)

    app = create_app(database=database, settings=settings)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _list_users(database: Database) -> None:
    users = database.list_users()
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  {'Role':<14}  Created")
    print("-" * 96)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(f"{user.id:>4}  {user.name:<24}  {user.email:<32}  {user.role.value:<14}  {created}")

    profiles = database.list_citizen_profiles()
    print()
    if not profiles:
        print("No citizen profiles are stored.")
        return

    print(f"{len(profiles)} citizen profile(s):")
    print(f"{'User':>4}  {'Date of birth':<14}  {'Phone':<16}  Gender")
    print("-" * 60)
    for profile in profiles:
        print(
            f"{profile.user_id:>4}  {profile.dob or '-':<14}  {profile.phone or '-':<16}  {profile.gender or '-'}"
        )


def _seed_demo(database: Database, settings: Settings) -> int:
    """Create the demo accounts, skipping any email that is already registered."""

    service = CredentialService(database, PasswordHasher(settings.bcrypt_rounds))
    created = 0
    for name, email, password, role in DEMO_ACCOUNTS:
        try:
            user = service.create_account(name, email, password, role)
        except ConflictError:
            print(f"User {email} already exists, skipping.")
            continue
        created += 1
        print(f"Created {role.value} #{user.id} <{email}>")
    return created


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    settings = load_settings()
    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(database=database, settings=settings, host=args.host, port=args.port)
    elif args.command == "list-users":
        _list_users(database)
    elif args.command == "seed-demo":
        _seed_demo(database, settings)
    elif args.command == "init-db":
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
