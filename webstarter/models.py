"""Domain records shared by the credential store, handlers and views."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Account:
    """Represents a user account stored in the credential database."""

    id: int
    name: str
    email: str
    created_at: datetime
    has_password: bool = True

    def to_public(self) -> "AccountPublic":
        return AccountPublic(
            id=self.id,
            name=self.name,
            email=self.email,
            created_at=self.created_at,
        )


@dataclass(frozen=True)
class AccountPublic:
    """Fields of an account that may be returned to clients."""

    id: int
    name: str
    email: str
    created_at: datetime

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class LinkedAccount:
    """Links an account to an identity at an external OAuth provider."""

    account_id: int
    provider: str
    provider_account_id: str
    created_at: datetime


@dataclass(frozen=True)
class RegistrationSubmission:
    """Raw values posted by a registering client."""

    name: str
    email: str
    password: str
    confirm_password: Optional[str] = None


__all__ = ["Account", "AccountPublic", "LinkedAccount", "RegistrationSubmission"]
