"""Configuration management for the web starter."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import yaml

from .database import resolve_database_path
from .errors import ConfigurationError
from .security import DEFAULT_BCRYPT_ROUNDS

DEFAULT_SESSION_MAX_AGE = 60 * 60 * 24 * 30


@dataclass(frozen=True)
class OAuthProviderConfig:
    """Client credentials for an external OAuth sign-in provider."""

    id: str
    name: str
    client_id: str
    client_secret: str
    authorize_url: str
    scope: str = ""

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "OAuthProviderConfig":
        """Create an :class:`OAuthProviderConfig` from raw dictionary data."""
        required_fields = {"id", "client_id", "client_secret", "authorize_url"}
        missing = required_fields - data.keys()
        if missing:
            raise ConfigurationError(
                f"Missing required provider configuration fields: {', '.join(sorted(missing))}"
            )

        provider_id = str(data["id"]).strip().lower()
        if not provider_id or provider_id == "credentials":
            raise ConfigurationError(f"Invalid OAuth provider id {data['id']!r}")

        return OAuthProviderConfig(
            id=provider_id,
            name=str(data.get("name") or provider_id.title()),
            client_id=str(data["client_id"]),
            client_secret=str(data["client_secret"]),
            authorize_url=str(data["authorize_url"]),
            scope=str(data.get("scope") or ""),
        )


# Well-known providers that only need client credentials in the environment.
_BUILTIN_PROVIDERS: Tuple[Tuple[str, str, str, str], ...] = (
    ("github", "GitHub", "https://github.com/login/oauth/authorize", "read:user user:email"),
    ("google", "Google", "https://accounts.google.com/o/oauth2/v2/auth", "openid email profile"),
)


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _env_int(name: str, value: Optional[str], default: int) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer value {value!r} for {name}") from exc


def load_oauth_providers_file(config_path: Path) -> List[OAuthProviderConfig]:
    """Load additional OAuth providers from a YAML file."""
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    providers_raw = raw.get("providers")
    if providers_raw is None:
        return []
    if not isinstance(providers_raw, list):
        raise ConfigurationError("The 'providers' key must contain a list of provider entries")
    return [OAuthProviderConfig.from_dict(item) for item in providers_raw]


def _oauth_providers_from_env(environ: Mapping[str, str]) -> List[OAuthProviderConfig]:
    providers: List[OAuthProviderConfig] = []
    for provider_id, name, authorize_url, scope in _BUILTIN_PROVIDERS:
        prefix = f"AUTH_{provider_id.upper()}"
        client_id = environ.get(f"{prefix}_ID", "").strip()
        client_secret = environ.get(f"{prefix}_SECRET", "").strip()
        if not client_id or not client_secret:
            continue
        providers.append(
            OAuthProviderConfig(
                id=provider_id,
                name=name,
                client_id=client_id,
                client_secret=client_secret,
                authorize_url=authorize_url,
                scope=scope,
            )
        )
    return providers


def _merge_providers(groups: Iterable[Iterable[OAuthProviderConfig]]) -> Tuple[OAuthProviderConfig, ...]:
    merged: Dict[str, OAuthProviderConfig] = {}
    for group in groups:
        for provider in group:
            merged[provider.id] = provider
    return tuple(merged.values())


@dataclass(frozen=True)
class AppConfig:
    """Settings read from the environment at process start."""

    database_path: Path
    session_secret: str
    secure_cookies: bool = True
    session_max_age: int = DEFAULT_SESSION_MAX_AGE
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS
    oauth_providers: Tuple[OAuthProviderConfig, ...] = field(default_factory=tuple)

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        env = os.environ if environ is None else environ

        session_secret = (env.get("AUTH_SECRET") or "").strip()
        if not session_secret:
            raise ConfigurationError("AUTH_SECRET must be configured to sign session cookies")

        try:
            database_path = resolve_database_path(env.get("DATABASE_URL"))
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

        session_max_age = _env_int("AUTH_SESSION_MAX_AGE", env.get("AUTH_SESSION_MAX_AGE"), DEFAULT_SESSION_MAX_AGE)
        if session_max_age <= 0:
            raise ConfigurationError("AUTH_SESSION_MAX_AGE must be positive")

        provider_groups: List[Iterable[OAuthProviderConfig]] = [_oauth_providers_from_env(env)]
        providers_file = (env.get("AUTH_PROVIDERS_FILE") or "").strip()
        if providers_file:
            path = Path(providers_file).expanduser().resolve(strict=False)
            if not path.exists():
                raise ConfigurationError(f"AUTH_PROVIDERS_FILE {path} does not exist")
            provider_groups.append(load_oauth_providers_file(path))

        return AppConfig(
            database_path=database_path,
            session_secret=session_secret,
            secure_cookies=_env_bool(env.get("AUTH_SECURE_COOKIES"), True),
            session_max_age=session_max_age,
            bcrypt_rounds=_env_int("AUTH_BCRYPT_ROUNDS", env.get("AUTH_BCRYPT_ROUNDS"), DEFAULT_BCRYPT_ROUNDS),
            oauth_providers=_merge_providers(provider_groups),
        )


__all__ = ["AppConfig", "OAuthProviderConfig", "load_oauth_providers_file"]
