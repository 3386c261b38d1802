"""Sign-in provider listing and discovery for the authentication pages."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import Dict, Iterable, Literal, Mapping, Optional, Protocol, Tuple, Union

import httpx

from .config import OAuthProviderConfig

logger = logging.getLogger("webstarter.providers")

CREDENTIALS_PROVIDER_ID = "credentials"

_PROVIDER_COLORS: Dict[str, str] = {
    "github": "gray",
    "google": "red",
    "discord": "purple",
    "gitlab": "orange",
    "twitter": "blue",
    "facebook": "blue",
}


@dataclass(frozen=True)
class CredentialsProvider:
    """The email/password sign-in method; always available."""

    kind: Literal["credentials"] = "credentials"
    id: str = CREDENTIALS_PROVIDER_ID
    name: str = "Credentials"


@dataclass(frozen=True)
class OAuthProvider:
    """A one-click sign-in button backed by an external identity service."""

    id: str
    name: str
    kind: Literal["oauth"] = "oauth"

    @property
    def color(self) -> str:
        return provider_color(self.id)


Provider = Union[CredentialsProvider, OAuthProvider]


@dataclass(frozen=True)
class ProviderSelection:
    """Providers split into the credentials form and OAuth buttons."""

    credentials: CredentialsProvider = field(default_factory=CredentialsProvider)
    oauth: Tuple[OAuthProvider, ...] = ()

    @property
    def has_oauth(self) -> bool:
        return bool(self.oauth)


class ProviderSource(Protocol):
    def get_providers(self) -> Mapping[str, Mapping[str, str]]: ...


def provider_color(provider_id: str) -> str:
    return _PROVIDER_COLORS.get(provider_id.lower(), "gray")


class ProviderRegistry:
    """Read-only registry of configured sign-in methods."""

    def __init__(self, oauth_providers: Iterable[OAuthProviderConfig] = ()) -> None:
        self._oauth: Dict[str, OAuthProviderConfig] = {}
        for provider in oauth_providers:
            if provider.id == CREDENTIALS_PROVIDER_ID:
                raise ValueError("OAuth providers cannot use the reserved 'credentials' id")
            self._oauth[provider.id] = provider

    def get_providers(self) -> Dict[str, Dict[str, str]]:
        """Return ``{id: {"id", "name", "type"}}`` for every configured method."""

        providers: Dict[str, Dict[str, str]] = {
            CREDENTIALS_PROVIDER_ID: {
                "id": CREDENTIALS_PROVIDER_ID,
                "name": "Credentials",
                "type": "credentials",
            }
        }
        for provider in self._oauth.values():
            providers[provider.id] = {"id": provider.id, "name": provider.name, "type": "oauth"}
        return providers

    def get_oauth_config(self, provider_id: str) -> Optional[OAuthProviderConfig]:
        return self._oauth.get(provider_id)

    def authorization_url(self, provider_id: str, redirect_uri: str) -> Tuple[str, str]:
        """Build the provider's authorize URL; returns ``(url, state)``."""

        config = self._oauth.get(provider_id)
        if config is None:
            raise KeyError(f"Unknown OAuth provider '{provider_id}'")
        state = secrets.token_urlsafe(24)
        params = {
            "client_id": config.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "state": state,
        }
        if config.scope:
            params["scope"] = config.scope
        url = httpx.URL(config.authorize_url, params=params)
        return str(url), state


def _to_provider(provider_id: str, record: Mapping[str, str]) -> Optional[Provider]:
    kind = str(record.get("type") or "").lower()
    identifier = str(record.get("id") or provider_id)
    if identifier == CREDENTIALS_PROVIDER_ID or kind == "credentials":
        return CredentialsProvider()
    if kind in {"oauth", "oidc"}:
        return OAuthProvider(id=identifier, name=str(record.get("name") or identifier.title()))
    logger.debug("Ignoring sign-in provider %s with unsupported type %r", identifier, kind)
    return None


def discover_providers(source: ProviderSource) -> ProviderSelection:
    """Partition the configured sign-in methods for rendering.

    The credentials form is always part of the selection, even when the
    provider source fails or reports nothing.
    """

    try:
        raw = source.get_providers()
    except Exception:
        logger.warning("Sign-in provider discovery failed; showing the credentials form only", exc_info=True)
        return ProviderSelection()

    if not raw:
        return ProviderSelection()

    oauth: list[OAuthProvider] = []
    for provider_id, record in raw.items():
        provider = _to_provider(provider_id, record)
        if isinstance(provider, OAuthProvider):
            oauth.append(provider)
    return ProviderSelection(oauth=tuple(oauth))


__all__ = [
    "CREDENTIALS_PROVIDER_ID",
    "CredentialsProvider",
    "OAuthProvider",
    "Provider",
    "ProviderRegistry",
    "ProviderSelection",
    "ProviderSource",
    "discover_providers",
    "provider_color",
]
