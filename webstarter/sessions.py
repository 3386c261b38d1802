"""Credential session exchange and post-registration session bootstrap."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import MutableMapping, Optional, Protocol

import anyio

from .database import Database
from .errors import SessionExchangeError
from .models import Account
from .security import PasswordHasher

logger = logging.getLogger("webstarter.sessions")

SESSION_ACCOUNT_KEY = "account_id"
LANDING_PATH = "/"
SIGNIN_AFTER_REGISTRATION_PATH = "/auth/signin?registered=1"
BOOTSTRAP_FAILED_MESSAGE = "Your account was created, but we could not sign you in. Please sign in."


class Authenticator(Protocol):
    def authenticate(self, email: str, password: str) -> Optional[Account]: ...


class CredentialsAuthenticator:
    """Verify an email/password pair against the credential store."""

    def __init__(self, database: Database, hasher: PasswordHasher) -> None:
        self._database = database
        self._hasher = hasher

    def authenticate(self, email: str, password: str) -> Optional[Account]:
        """Return the matching account, or ``None`` when the pair is rejected.

        Raises :class:`SessionExchangeError` when the store cannot be read.
        """

        if not email or not password:
            return None
        try:
            stored_hash = self._database.get_password_hash(email)
            if not stored_hash or not self._hasher.verify(password, stored_hash):
                return None
            return self._database.get_account_by_email(email)
        except sqlite3.Error as exc:
            raise SessionExchangeError("Credential store is unavailable") from exc


def establish_session(session: MutableMapping[str, object], account: Account) -> None:
    session.clear()
    session[SESSION_ACCOUNT_KEY] = account.id


def clear_session(session: MutableMapping[str, object]) -> None:
    session.clear()


def session_account_id(session: MutableMapping[str, object]) -> Optional[int]:
    raw = session.get(SESSION_ACCOUNT_KEY)
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


async def current_account(session: MutableMapping[str, object], database: Database) -> Optional[Account]:
    account_id = session_account_id(session)
    if account_id is None:
        return None
    account = await anyio.to_thread.run_sync(database.get_account, account_id)
    if account is None:
        session.pop(SESSION_ACCOUNT_KEY, None)
    return account


async def sign_in(
    session: MutableMapping[str, object],
    authenticator: Authenticator,
    email: str,
    password: str,
) -> Optional[Account]:
    """Exchange credentials for an active session; ``None`` when rejected."""

    account = await anyio.to_thread.run_sync(authenticator.authenticate, email, password)
    if account is None:
        return None
    establish_session(session, account)
    return account


@dataclass(frozen=True)
class BootstrapResult:
    """Outcome of signing a freshly registered account in."""

    signed_in: bool
    redirect_to: str
    account: Optional[Account] = None
    error: Optional[str] = None


async def bootstrap_session(
    session: MutableMapping[str, object],
    authenticator: Authenticator,
    email: str,
    password: str,
) -> BootstrapResult:
    """Sign a just-registered account in without a second manual sign-in.

    Failure here never touches the stored account: the caller reports the
    registration as successful and routes the user to the sign-in page.
    """

    try:
        account = await sign_in(session, authenticator, email, password)
    except SessionExchangeError as exc:
        logger.warning("Automatic sign-in after registration failed: %s", exc)
        return BootstrapResult(
            signed_in=False,
            redirect_to=SIGNIN_AFTER_REGISTRATION_PATH,
            error=BOOTSTRAP_FAILED_MESSAGE,
        )

    if account is None:
        logger.warning("Automatic sign-in after registration was rejected")
        return BootstrapResult(
            signed_in=False,
            redirect_to=SIGNIN_AFTER_REGISTRATION_PATH,
            error=BOOTSTRAP_FAILED_MESSAGE,
        )

    logger.info("Account %s signed in after registration", account.id)
    return BootstrapResult(signed_in=True, redirect_to=LANDING_PATH, account=account)


__all__ = [
    "Authenticator",
    "BOOTSTRAP_FAILED_MESSAGE",
    "BootstrapResult",
    "CredentialsAuthenticator",
    "LANDING_PATH",
    "SESSION_ACCOUNT_KEY",
    "SIGNIN_AFTER_REGISTRATION_PATH",
    "bootstrap_session",
    "clear_session",
    "current_account",
    "establish_session",
    "sign_in",
]
