"""Credential registration: validate a submission and persist a new account."""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional

import anyio

from .database import Database
from .errors import (
    ConflictError,
    DuplicateAccountError,
    InternalError,
    RegistrationError,
    ValidationError,
)
from .models import AccountPublic, RegistrationSubmission
from .security import PASSWORD_MIN_LENGTH, PasswordHasher

logger = logging.getLogger("webstarter.registration")

MISSING_FIELDS_MESSAGE = "All fields are required"
PASSWORD_MISMATCH_MESSAGE = "Passwords do not match"
PASSWORD_TOO_SHORT_MESSAGE = f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
EMAIL_TAKEN_MESSAGE = "An account with this email already exists"
INTERNAL_ERROR_MESSAGE = "An error occurred during registration"
PASSWORD_INVALID_CHARACTERS_MESSAGE = "Password contains unsupported characters"


@dataclass(frozen=True)
class RegistrationOutcome:
    """Result of a registration attempt: exactly one of ``account``/``error`` is set."""

    account: Optional[AccountPublic] = None
    error: Optional[RegistrationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.account is not None

    @property
    def status_code(self) -> int:
        if self.error is not None:
            return self.error.status_code
        return 200


def validate_submission(submission: RegistrationSubmission) -> RegistrationSubmission:
    """Check the submission and return it with name and email trimmed.

    Rules apply in order and the first failure is raised as a
    :class:`ValidationError`. The confirmation check only runs when the form
    collected a confirmation value.
    """

    name = (submission.name or "").strip()
    email = (submission.email or "").strip()
    password = submission.password or ""
    confirm = submission.confirm_password

    if not name or not email or not password or confirm == "":
        raise ValidationError(MISSING_FIELDS_MESSAGE)
    if confirm is not None and password != confirm:
        raise ValidationError(PASSWORD_MISMATCH_MESSAGE)
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(PASSWORD_TOO_SHORT_MESSAGE)
    # bcrypt cannot hash passwords containing NUL bytes.
    if "\x00" in password:
        raise ValidationError(PASSWORD_INVALID_CHARACTERS_MESSAGE)

    return RegistrationSubmission(name=name, email=email, password=password, confirm_password=confirm)


class RegistrationHandler:
    """Turn raw submissions into persisted accounts or typed rejections."""

    def __init__(self, database: Database, hasher: PasswordHasher) -> None:
        self._database = database
        self._hasher = hasher

    async def register(self, submission: RegistrationSubmission) -> RegistrationOutcome:
        try:
            account = await self._register(submission)
        except ValidationError as exc:
            logger.info("Registration rejected: %s", exc.message)
            return RegistrationOutcome(error=exc)
        except ConflictError as exc:
            logger.info("Registration rejected for an already registered email")
            return RegistrationOutcome(error=exc)
        except sqlite3.Error as exc:
            logger.exception("Credential store failure while registering an account")
            return RegistrationOutcome(error=InternalError(INTERNAL_ERROR_MESSAGE, cause=exc))
        except Exception as exc:
            logger.exception("Unexpected failure while registering an account")
            return RegistrationOutcome(error=InternalError(INTERNAL_ERROR_MESSAGE, cause=exc))

        logger.info("Registered account %s", account.id)
        return RegistrationOutcome(account=account)

    async def _register(self, submission: RegistrationSubmission) -> AccountPublic:
        cleaned = validate_submission(submission)

        exists = await anyio.to_thread.run_sync(self._database.email_exists, cleaned.email)
        if exists:
            raise ConflictError(EMAIL_TAKEN_MESSAGE)

        try:
            password_hash = await anyio.to_thread.run_sync(self._hasher.hash, cleaned.password)
        except ValueError as exc:
            raise ValidationError(PASSWORD_INVALID_CHARACTERS_MESSAGE, cause=exc) from exc

        # A concurrent registration may have claimed the email since the check above.
        try:
            account = await anyio.to_thread.run_sync(
                self._database.create_account,
                cleaned.name,
                cleaned.email,
                password_hash,
            )
        except DuplicateAccountError as exc:
            raise ConflictError(EMAIL_TAKEN_MESSAGE, cause=exc) from exc

        return account.to_public()


__all__ = [
    "EMAIL_TAKEN_MESSAGE",
    "INTERNAL_ERROR_MESSAGE",
    "MISSING_FIELDS_MESSAGE",
    "PASSWORD_INVALID_CHARACTERS_MESSAGE",
    "PASSWORD_MISMATCH_MESSAGE",
    "PASSWORD_TOO_SHORT_MESSAGE",
    "RegistrationHandler",
    "RegistrationOutcome",
    "validate_submission",
]
