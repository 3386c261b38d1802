from __future__ import annotations

from pathlib import Path

import pytest

from webstarter.config import AppConfig, load_oauth_providers_file
from webstarter.errors import ConfigurationError
from webstarter.security import DEFAULT_BCRYPT_ROUNDS


def test_from_env_requires_session_secret(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        AppConfig.from_env({"DATABASE_URL": f"sqlite:///{tmp_path / 'db.sqlite3'}"})


def test_from_env_defaults(tmp_path: Path) -> None:
    config = AppConfig.from_env(
        {"AUTH_SECRET": "s3cret", "DATABASE_URL": f"sqlite:///{tmp_path / 'db.sqlite3'}"}
    )

    assert config.session_secret == "s3cret"
    assert config.database_path == (tmp_path / "db.sqlite3").resolve()
    assert config.secure_cookies is True
    assert config.bcrypt_rounds == DEFAULT_BCRYPT_ROUNDS
    assert config.oauth_providers == ()


def test_from_env_reads_oauth_credentials_and_flags(tmp_path: Path) -> None:
    config = AppConfig.from_env(
        {
            "AUTH_SECRET": "s3cret",
            "DATABASE_URL": str(tmp_path / "db.sqlite3"),
            "AUTH_SECURE_COOKIES": "false",
            "AUTH_BCRYPT_ROUNDS": "10",
            "AUTH_SESSION_MAX_AGE": "3600",
            "AUTH_GITHUB_ID": "gh-id",
            "AUTH_GITHUB_SECRET": "gh-secret",
            "AUTH_GOOGLE_ID": "only-an-id",
        }
    )

    assert config.secure_cookies is False
    assert config.bcrypt_rounds == 10
    assert config.session_max_age == 3600
    assert [provider.id for provider in config.oauth_providers] == ["github"]
    assert config.oauth_providers[0].client_id == "gh-id"


def test_from_env_rejects_malformed_numbers() -> None:
    with pytest.raises(ConfigurationError):
        AppConfig.from_env({"AUTH_SECRET": "s3cret", "AUTH_BCRYPT_ROUNDS": "many"})
    with pytest.raises(ConfigurationError):
        AppConfig.from_env({"AUTH_SECRET": "s3cret", "AUTH_SESSION_MAX_AGE": "0"})


def test_from_env_rejects_non_sqlite_urls() -> None:
    with pytest.raises(ConfigurationError):
        AppConfig.from_env({"AUTH_SECRET": "s3cret", "DATABASE_URL": "postgresql://db/app"})


def test_providers_file_is_merged(tmp_path: Path) -> None:
    providers_file = tmp_path / "providers.yaml"
    providers_file.write_text(
        "providers:\n"
        "  - id: gitlab\n"
        "    name: GitLab\n"
        "    client_id: gl-id\n"
        "    client_secret: gl-secret\n"
        "    authorize_url: https://gitlab.com/oauth/authorize\n"
        "    scope: read_user\n",
        encoding="utf-8",
    )

    config = AppConfig.from_env(
        {
            "AUTH_SECRET": "s3cret",
            "DATABASE_URL": str(tmp_path / "db.sqlite3"),
            "AUTH_GITHUB_ID": "gh-id",
            "AUTH_GITHUB_SECRET": "gh-secret",
            "AUTH_PROVIDERS_FILE": str(providers_file),
        }
    )

    assert [provider.id for provider in config.oauth_providers] == ["github", "gitlab"]
    assert config.oauth_providers[1].name == "GitLab"


def test_providers_file_requires_client_fields(tmp_path: Path) -> None:
    providers_file = tmp_path / "providers.yaml"
    providers_file.write_text("providers:\n  - id: gitlab\n    client_id: gl-id\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_oauth_providers_file(providers_file)


def test_missing_providers_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        AppConfig.from_env(
            {"AUTH_SECRET": "s3cret", "AUTH_PROVIDERS_FILE": str(tmp_path / "missing.yaml")}
        )
