import argparse
import getpass
import os
import sys
from pathlib import Path

import anyio

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from webstarter.database import Database, resolve_database_path
from webstarter.models import RegistrationSubmission
from webstarter.registration import RegistrationHandler
from webstarter.security import DEFAULT_BCRYPT_ROUNDS, PASSWORD_MIN_LENGTH, PasswordHasher


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a web starter account")
    parser.add_argument("name", help="Display name for the account")
    parser.add_argument("email", help="Unique email address for sign-in")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path or sqlite:/// URL of the database (defaults to DATABASE_URL or data/webstarter.sqlite3)",
    )
    return parser.parse_args()


def prompt_for_password() -> tuple[str, str]:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < PASSWORD_MIN_LENGTH:
            print(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long.", file=sys.stderr)
            continue
        return password, confirm
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    password, confirm = prompt_for_password()

    db_env = args.db_path or os.getenv("DATABASE_URL")
    database = Database(resolve_database_path(db_env))
    database.initialize()

    rounds = int(os.getenv("AUTH_BCRYPT_ROUNDS") or DEFAULT_BCRYPT_ROUNDS)
    handler = RegistrationHandler(database, PasswordHasher(rounds=rounds))
    submission = RegistrationSubmission(
        name=args.name,
        email=args.email,
        password=password,
        confirm_password=confirm,
    )
    outcome = anyio.run(handler.register, submission)

    if outcome.error is not None:
        print(f"Error: {outcome.error.message}", file=sys.stderr)
        return 1

    account = outcome.account
    print(f"Created account #{account.id}: {account.name} <{account.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
