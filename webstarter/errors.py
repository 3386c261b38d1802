"""Error types raised and reported by the registration and sign-in flows."""
from __future__ import annotations

from typing import Optional


class ConfigurationError(RuntimeError):
    """Raised when the process environment does not describe a usable setup."""


class DuplicateAccountError(ValueError):
    """Raised by the credential store when an email is already registered."""


class SessionExchangeError(RuntimeError):
    """Raised when the credential exchange cannot reach the credential store."""


class RegistrationError(Exception):
    """Base class for failures reported back to the registering client."""

    status_code = 400
    kind = "error"

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ValidationError(RegistrationError):
    """Malformed or incomplete input; the message is safe to show verbatim."""

    status_code = 400
    kind = "validation"


class ConflictError(RegistrationError):
    """The submitted email address already belongs to an account."""

    status_code = 409
    kind = "conflict"


class InternalError(RegistrationError):
    """The store or auth layer failed; clients only see a generic message."""

    status_code = 500
    kind = "internal"


__all__ = [
    "ConfigurationError",
    "ConflictError",
    "DuplicateAccountError",
    "InternalError",
    "RegistrationError",
    "SessionExchangeError",
    "ValidationError",
]
