"""Initial data for development databases."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List

from .database import Database
from .errors import DuplicateAccountError
from .models import Account
from .security import PasswordHasher

logger = logging.getLogger("webstarter.seed")


@dataclass(frozen=True)
class SeedAccount:
    name: str
    email: str
    password: str


DEFAULT_SEED_ACCOUNTS = (
    SeedAccount(name="Test User", email="test@example.com", password="password123"),
    SeedAccount(name="Admin User", email="admin@example.com", password="admin123"),
)


def seed_database(
    database: Database,
    hasher: PasswordHasher,
    accounts: Iterable[SeedAccount] = DEFAULT_SEED_ACCOUNTS,
) -> List[Account]:
    """Create the seed accounts that do not exist yet and return them."""

    created: List[Account] = []
    for entry in accounts:
        if database.email_exists(entry.email):
            logger.info("Seed account %s already exists; skipping", entry.email)
            continue
        try:
            account = database.create_account(entry.name, entry.email, hasher.hash(entry.password))
        except DuplicateAccountError:
            logger.info("Seed account %s was created concurrently; skipping", entry.email)
            continue
        logger.info("Created seed account #%s <%s>", account.id, account.email)
        created.append(account)
    return created


__all__ = ["DEFAULT_SEED_ACCOUNTS", "SeedAccount", "seed_database"]
