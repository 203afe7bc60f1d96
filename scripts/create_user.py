import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from healthbridge.config import load_settings, resolve_database_path
from healthbridge.credentials import CredentialService
from healthbridge.database import Database
from healthbridge.errors import CredentialError
from healthbridge.models import Role
from healthbridge.security import PasswordHasher


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a HealthBridge account")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument(
        "--role",
        choices=[role.value for role in Role],
        default=Role.ADMINISTRATOR.value,
        help="Account role (default: administrator; citizens normally use the signup page)",
    )
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to HEALTHBRIDGE_DB_PATH or data/healthbridge.sqlite3)",
    )
    return parser.parse_args(argv)


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if not password:
            print("Password must not be empty.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    password = prompt_for_password()

    settings = load_settings()
    db_path = resolve_database_path(args.db_path) if args.db_path else settings.database_path

    database = Database(db_path, pool_size=settings.pool_size, timeout=settings.store_timeout)
    database.initialize()
    service = CredentialService(database, PasswordHasher(rounds=settings.bcrypt_rounds))

    try:
        user = service.create_account(args.name, args.email, password, Role(args.role))
    except CredentialError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        database.close()

    print(f"Created {user.role.value} #{user.id}: {user.name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
