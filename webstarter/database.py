"""SQLite-backed credential store for accounts and their OAuth links."""
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .errors import DuplicateAccountError
from .models import Account, LinkedAccount


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the credential database.

    Accepts either a plain filesystem path or a ``sqlite:///`` URL as found in
    ``DATABASE_URL``.
    """

    if env_value:
        value = env_value.strip()
        if value.startswith("sqlite:///"):
            value = value[len("sqlite:///"):]
        elif "://" in value:
            raise ValueError(f"Unsupported database URL {env_value!r}; expected sqlite:///path")
        if value:
            return Path(value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "webstarter.sqlite3").resolve(strict=False)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


class Database:
    """Simple wrapper around SQLite for persisting accounts."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                    password_hash TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS linked_accounts (
                    account_id INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
                    provider TEXT NOT NULL,
                    provider_account_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (provider, provider_account_id)
                );

                CREATE INDEX IF NOT EXISTS idx_linked_accounts_account_id
                    ON linked_accounts(account_id);
                """
            )

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    def create_account(
        self,
        name: str,
        email: str,
        password_hash: Optional[str],
    ) -> Account:
        """Insert a new account.

        The caller hashes the password; plaintext never reaches this layer.
        OAuth-only accounts pass ``password_hash=None``. Raises
        :class:`DuplicateAccountError` when the email is already registered.
        """

        normalized_name = name.strip()
        if not normalized_name:
            raise ValueError("Name must not be empty")
        normalized_email = normalize_email(email)
        if not normalized_email:
            raise ValueError("Email must not be empty")

        created_at = _current_timestamp()
        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO accounts (name, email, password_hash, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        normalized_name,
                        normalized_email,
                        password_hash,
                        _serialize_datetime(created_at),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateAccountError("An account with this email already exists") from exc
            account_id = cursor.lastrowid

        return Account(
            id=int(account_id),
            name=normalized_name,
            email=normalized_email,
            created_at=created_at,
            has_password=password_hash is not None,
        )

    def get_account(self, account_id: int) -> Optional[Account]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM accounts WHERE id = ?", (account_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    def get_account_by_email(self, email: str) -> Optional[Account]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM accounts WHERE email = ?",
                (normalize_email(email),),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    def get_password_hash(self, email: str) -> Optional[str]:
        """Return the stored hash for ``email`` or ``None`` for unknown/OAuth-only accounts."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT password_hash FROM accounts WHERE email = ?",
                (normalize_email(email),),
            ).fetchone()
        if row is None:
            return None
        return row["password_hash"]

    def email_exists(self, email: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM accounts WHERE email = ?",
                (normalize_email(email),),
            ).fetchone()
        return row is not None

    def count_accounts(self, email: Optional[str] = None) -> int:
        with self._connect() as conn:
            if email is None:
                row = conn.execute("SELECT COUNT(*) AS total FROM accounts").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) AS total FROM accounts WHERE email = ?",
                    (normalize_email(email),),
                ).fetchone()
        return int(row["total"])

    def list_accounts(self) -> List[Account]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM accounts ORDER BY id").fetchall()
        return [self._row_to_account(row) for row in rows]

    # ------------------------------------------------------------------
    # OAuth linkage
    # ------------------------------------------------------------------
    def link_oauth_account(
        self,
        account_id: int,
        provider: str,
        provider_account_id: str,
    ) -> LinkedAccount:
        """Attach an external provider identity to an existing account."""

        provider = provider.strip().lower()
        provider_account_id = provider_account_id.strip()
        if not provider or not provider_account_id:
            raise ValueError("Provider and provider account id must not be empty")

        created_at = _current_timestamp()
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO linked_accounts (account_id, provider, provider_account_id, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (account_id, provider, provider_account_id, _serialize_datetime(created_at)),
                )
            except sqlite3.IntegrityError as exc:
                raise ValueError(
                    f"{provider} identity {provider_account_id!r} is already linked or the account does not exist"
                ) from exc

        return LinkedAccount(
            account_id=account_id,
            provider=provider,
            provider_account_id=provider_account_id,
            created_at=created_at,
        )

    def get_account_by_provider(self, provider: str, provider_account_id: str) -> Optional[Account]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT accounts.* FROM accounts
                JOIN linked_accounts ON linked_accounts.account_id = accounts.id
                WHERE linked_accounts.provider = ? AND linked_accounts.provider_account_id = ?
                """,
                (provider.strip().lower(), provider_account_id.strip()),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    def list_linked_accounts(self, account_id: int) -> List[LinkedAccount]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM linked_accounts WHERE account_id = ? ORDER BY provider",
                (account_id,),
            ).fetchall()
        return [
            LinkedAccount(
                account_id=int(row["account_id"]),
                provider=str(row["provider"]),
                provider_account_id=str(row["provider_account_id"]),
                created_at=_parse_datetime(str(row["created_at"])),
            )
            for row in rows
        ]

    def _row_to_account(self, row: sqlite3.Row) -> Account:
        return Account(
            id=int(row["id"]),
            name=str(row["name"]),
            email=str(row["email"]),
            created_at=_parse_datetime(str(row["created_at"])),
            has_password=row["password_hash"] is not None,
        )


__all__ = ["Database", "normalize_email", "resolve_database_path"]
