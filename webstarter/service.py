"""Application factory wiring the credential store, auth layer and routes."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from .api import register_api_routes
from .config import AppConfig
from .database import Database
from .providers import ProviderRegistry
from .registration import RegistrationHandler
from .security import PasswordHasher
from .sessions import Authenticator, CredentialsAuthenticator
from .web import register_ui_routes

logger = logging.getLogger("webstarter.service")

SESSION_COOKIE_NAME = "webstarter_session"


def _initialise_database(database: Database) -> Database:
    database.initialize()
    return database


def create_app(
    *,
    config: Optional[AppConfig] = None,
    database: Database | None = None,
    hasher: PasswordHasher | None = None,
    providers: ProviderRegistry | None = None,
    authenticator: Authenticator | None = None,
    include_api: bool = True,
    include_web: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application.

    Every collaborator can be injected; anything omitted is built from
    ``config`` (or :meth:`AppConfig.from_env` when no config is given).
    """

    app_config = config or AppConfig.from_env()

    db = database or Database(app_config.database_path)
    _initialise_database(db)

    password_hasher = hasher or PasswordHasher(rounds=app_config.bcrypt_rounds)
    provider_registry = providers or ProviderRegistry(app_config.oauth_providers)
    credentials = authenticator or CredentialsAuthenticator(db, password_hasher)
    registration = RegistrationHandler(db, password_hasher)

    app = FastAPI(
        title="Web Starter",
        version="0.1.0",
        description="Starter web application with credential registration and sign-in.",
    )

    if not app_config.secure_cookies:
        logger.warning(
            "Session cookies are not marked as secure. Only disable secure cookies for"
            " local development."
        )
    app.add_middleware(
        SessionMiddleware,
        secret_key=app_config.session_secret,
        session_cookie=SESSION_COOKIE_NAME,
        https_only=app_config.secure_cookies,
        same_site="lax",
        max_age=app_config.session_max_age,
    )

    app.state.config = app_config
    app.state.database = db
    app.state.hasher = password_hasher
    app.state.providers = provider_registry
    app.state.authenticator = credentials
    app.state.registration = registration

    @app.get("/healthz", include_in_schema=False)
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    if include_api:
        register_api_routes(
            app,
            database=db,
            registration=registration,
            authenticator=credentials,
            providers=provider_registry,
        )

    if include_web:
        register_ui_routes(
            app,
            database=db,
            registration=registration,
            authenticator=credentials,
            providers=provider_registry,
        )

    return app


def create_api_app(**kwargs) -> FastAPI:
    """Return an application exposing only the JSON API."""

    return create_app(include_api=True, include_web=False, **kwargs)


def create_web_app(**kwargs) -> FastAPI:
    """Return an application exposing only the HTML pages."""

    return create_app(include_api=False, include_web=True, **kwargs)


__all__ = ["SESSION_COOKIE_NAME", "create_api_app", "create_app", "create_web_app"]
