"""Password hashing policy for credential accounts."""
from __future__ import annotations

from passlib.context import CryptContext

DEFAULT_BCRYPT_ROUNDS = 12
PASSWORD_MIN_LENGTH = 6


class PasswordHasher:
    """bcrypt hashing with a fixed cost factor."""

    def __init__(self, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        if rounds < 4 or rounds > 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self._rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, password: str) -> str:
        if not password:
            raise ValueError("Password must not be empty")
        return self._context.hash(password)

    def verify(self, password: str, hashed: str | None) -> bool:
        """Return ``True`` if ``password`` matches the stored ``hashed`` value."""

        if not hashed or not password:
            return False
        try:
            return self._context.verify(password, hashed)
        except (ValueError, TypeError):
            return False


__all__ = ["DEFAULT_BCRYPT_ROUNDS", "PASSWORD_MIN_LENGTH", "PasswordHasher"]
