"""JSON API for registration, credential sign-in and provider discovery."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Optional

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .database import Database
from .errors import InternalError, SessionExchangeError
from .models import AccountPublic, RegistrationSubmission
from .providers import ProviderRegistry
from .registration import INTERNAL_ERROR_MESSAGE, RegistrationHandler
from .sessions import Authenticator, clear_session, current_account, sign_in

logger = logging.getLogger("webstarter.api")

API_PREFIX = "/api/auth"
INVALID_REQUEST_MESSAGE = "Invalid request body"


class RegisterRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=320)
    password: Optional[str] = Field(default=None, max_length=1024)


class CredentialsSignInRequest(BaseModel):
    email: Optional[str] = Field(default=None, max_length=320)
    password: Optional[str] = Field(default=None, max_length=1024)


class AccountView(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime


class RegisterResponse(BaseModel):
    message: str
    user: AccountView


class SignInResponse(BaseModel):
    ok: bool
    user: AccountView


class ProviderView(BaseModel):
    id: str
    name: str
    type: str


def _account_view(account: AccountPublic) -> AccountView:
    return AccountView(
        id=account.id,
        name=account.name,
        email=account.email,
        created_at=account.created_at,
    )


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def _invalid_request(request: Request, exc: RequestValidationError):
    if not request.url.path.startswith(API_PREFIX + "/"):
        return await request_validation_exception_handler(request, exc)
    problems = [(error.get("loc"), error.get("type")) for error in exc.errors()]
    logger.info("Rejected malformed request to %s: %s", request.url.path, problems)
    return _error(INVALID_REQUEST_MESSAGE, status.HTTP_400_BAD_REQUEST)


def register_api_routes(
    app: FastAPI,
    *,
    database: Database,
    registration: RegistrationHandler,
    authenticator: Authenticator,
    providers: ProviderRegistry,
) -> None:
    """Expose the JSON endpoints under ``/api/auth``."""

    router = APIRouter(prefix=API_PREFIX, tags=["auth"])

    @router.post("/register", response_model=RegisterResponse)
    async def register(payload: RegisterRequest):
        outcome = await registration.register(
            RegistrationSubmission(
                name=payload.name or "",
                email=payload.email or "",
                password=payload.password or "",
            )
        )
        account = outcome.account
        if outcome.error is not None or account is None:
            error = outcome.error or InternalError(INTERNAL_ERROR_MESSAGE)
            return _error(error.message, error.status_code)

        return RegisterResponse(
            message="User created successfully",
            user=_account_view(account),
        )

    @router.get("/providers", response_model=Dict[str, ProviderView])
    async def list_providers() -> Dict[str, ProviderView]:
        return {
            provider_id: ProviderView(**record)
            for provider_id, record in providers.get_providers().items()
        }

    @router.post("/signin/credentials", response_model=SignInResponse)
    async def signin_credentials(request: Request, payload: CredentialsSignInRequest):
        email = (payload.email or "").strip()
        password = payload.password or ""
        try:
            account = await sign_in(request.session, authenticator, email, password)
        except SessionExchangeError:
            logger.exception("Credential sign-in failed for an API client")
            return _error("An error occurred during sign in", status.HTTP_500_INTERNAL_SERVER_ERROR)

        if account is None:
            logger.warning("Failed API sign-in attempt for %s", email)
            return _error("Invalid email or password", status.HTTP_401_UNAUTHORIZED)

        return SignInResponse(ok=True, user=_account_view(account.to_public()))

    @router.get("/session")
    async def get_session(request: Request):
        account = await current_account(request.session, database)
        if account is None:
            return {}
        return {"user": _account_view(account.to_public())}

    @router.post("/signout")
    async def signout(request: Request) -> Dict[str, bool]:
        clear_session(request.session)
        return {"ok": True}

    app.add_exception_handler(RequestValidationError, _invalid_request)
    app.include_router(router)


__all__ = ["register_api_routes"]
