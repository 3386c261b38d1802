"""Server-rendered pages for registration, sign-in and the landing page."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping, Optional
from urllib.parse import parse_qs

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from .database import Database
from .errors import InternalError, SessionExchangeError
from .models import Account, RegistrationSubmission
from .providers import ProviderRegistry, discover_providers
from .registration import INTERNAL_ERROR_MESSAGE, RegistrationHandler
from .security import PASSWORD_MIN_LENGTH
from .sessions import Authenticator, bootstrap_session, clear_session, current_account, sign_in

logger = logging.getLogger("webstarter.web")

OAUTH_STATE_KEY = "oauth_state"
REGISTERED_NOTICE = "Registration successful! Please sign in to continue."


def _template_environment() -> Jinja2Templates:
    base_dir = Path(__file__).resolve().parent
    templates = Jinja2Templates(directory=str(base_dir / "templates"))
    templates.env.globals["now"] = datetime.now
    return templates


def _safe_callback_url(value: Optional[str]) -> str:
    """Only allow same-site relative redirect targets."""

    if not value:
        return "/"
    candidate = value.strip()
    if not candidate.startswith("/") or candidate.startswith("//") or "\\" in candidate:
        return "/"
    return candidate


async def _parse_form(request: Request) -> Dict[str, str]:
    body_bytes = await request.body()
    content_type = request.headers.get("content-type", "")
    charset = "utf-8"
    if "charset=" in content_type:
        charset = content_type.split("charset=", 1)[1].split(";", 1)[0].strip() or "utf-8"
    try:
        decoded = body_bytes.decode(charset)
    except (LookupError, UnicodeDecodeError):
        decoded = body_bytes.decode("utf-8", errors="ignore")
    data = parse_qs(decoded, keep_blank_values=True)
    return {key: values[0] for key, values in data.items() if values}


def register_ui_routes(
    app: FastAPI,
    *,
    database: Database,
    registration: RegistrationHandler,
    authenticator: Authenticator,
    providers: ProviderRegistry,
) -> None:
    """Expose the HTML pages on the provided FastAPI app."""

    templates = _template_environment()
    router = APIRouter(include_in_schema=False)

    def _flash(request: Request, message: str, *, category: str = "info") -> None:
        messages = request.session.get("flash_messages")
        if not isinstance(messages, list):
            messages = []
        messages.append({"message": message, "category": category})
        request.session["flash_messages"] = messages

    def _consume_flash(request: Request) -> List[Dict[str, str]]:
        messages = request.session.pop("flash_messages", [])
        if isinstance(messages, list):
            return messages
        return []

    def _base_context(request: Request, account: Optional[Account], **extra) -> Dict[str, object]:
        context: Dict[str, object] = {
            "account": account,
            "messages": _consume_flash(request),
        }
        context.update(extra)
        return context

    def _redirect(url: object) -> RedirectResponse:
        return RedirectResponse(str(url), status_code=status.HTTP_303_SEE_OTHER)

    def _render_register(
        request: Request,
        *,
        values: Mapping[str, str] | None = None,
        error: Optional[str] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        values = values or {}
        context = _base_context(
            request,
            None,
            name=values.get("name", ""),
            email=values.get("email", ""),
            error=error,
            selection=discover_providers(providers),
            password_min_length=PASSWORD_MIN_LENGTH,
        )
        return templates.TemplateResponse(request, "register.html", context, status_code=status_code)

    def _render_signin(
        request: Request,
        *,
        email: str = "",
        error: Optional[str] = None,
        callback_url: str = "/",
        status_code: int = status.HTTP_200_OK,
    ) -> HTMLResponse:
        notice = REGISTERED_NOTICE if request.query_params.get("registered") == "1" else None
        context = _base_context(
            request,
            None,
            email=email,
            error=error,
            notice=notice,
            callback_url=callback_url,
            selection=discover_providers(providers),
        )
        return templates.TemplateResponse(request, "signin.html", context, status_code=status_code)

    @router.get("/", response_class=HTMLResponse, name="ui_home")
    async def homepage(request: Request):
        account = await current_account(request.session, database)
        return templates.TemplateResponse(request, "home.html", _base_context(request, account))

    @router.get("/auth/register", response_class=HTMLResponse, name="ui_register")
    async def register_form(request: Request):
        if await current_account(request.session, database) is not None:
            return _redirect(request.url_for("ui_home"))
        return _render_register(request)

    @router.post("/auth/register", name="ui_register_submit")
    async def register_submit(request: Request):
        form = await _parse_form(request)
        submission = RegistrationSubmission(
            name=form.get("name", ""),
            email=form.get("email", ""),
            password=form.get("password", ""),
            confirm_password=form.get("confirm_password", ""),
        )

        outcome = await registration.register(submission)
        account = outcome.account
        if outcome.error is not None or account is None:
            error = outcome.error or InternalError(INTERNAL_ERROR_MESSAGE)
            return _render_register(
                request,
                values=form,
                error=error.message,
                status_code=error.status_code,
            )

        bootstrap = await bootstrap_session(
            request.session,
            authenticator,
            submission.email.strip(),
            submission.password,
        )
        if not bootstrap.signed_in:
            if bootstrap.error:
                _flash(request, bootstrap.error, category="warning")
            return _redirect(bootstrap.redirect_to)

        _flash(request, f"Registration successful! Welcome, {account.name}.", category="success")
        return _redirect(bootstrap.redirect_to)

    @router.get("/auth/signin", response_class=HTMLResponse, name="ui_signin")
    async def signin_form(request: Request):
        callback_url = _safe_callback_url(request.query_params.get("callback_url"))
        if await current_account(request.session, database) is not None:
            return _redirect(callback_url)
        return _render_signin(request, callback_url=callback_url)

    @router.post("/auth/signin", name="ui_signin_submit")
    async def signin_submit(request: Request):
        form = await _parse_form(request)
        email = form.get("email", "").strip()
        password = form.get("password", "")
        callback_url = _safe_callback_url(form.get("callback_url"))

        if not email or not password:
            return _render_signin(
                request,
                email=email,
                error="Please provide both email and password.",
                callback_url=callback_url,
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        try:
            account = await sign_in(request.session, authenticator, email, password)
        except SessionExchangeError:
            logger.exception("Credential sign-in failed")
            return _render_signin(
                request,
                email=email,
                error="An error occurred during sign in. Please try again later.",
                callback_url=callback_url,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        if account is None:
            logger.warning("Failed web sign-in attempt for %s", email)
            return _render_signin(
                request,
                email=email,
                error="Invalid email or password.",
                callback_url=callback_url,
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        logger.info("Account %s signed in", account.id)
        return _redirect(callback_url)

    @router.get("/auth/signin/{provider_id}", name="ui_signin_oauth")
    async def signin_oauth(provider_id: str, request: Request):
        redirect_uri = f"{str(request.base_url).rstrip('/')}/api/auth/callback/{provider_id}"
        try:
            url, state = providers.authorization_url(provider_id, redirect_uri)
        except KeyError:
            _flash(request, "That sign-in method is not available.", category="error")
            return _redirect(request.url_for("ui_signin"))
        request.session[OAUTH_STATE_KEY] = state
        return RedirectResponse(url, status_code=status.HTTP_302_FOUND)

    @router.get("/auth/signout", name="ui_signout")
    async def signout(request: Request):
        clear_session(request.session)
        return _redirect(request.url_for("ui_signin"))

    app.include_router(router)


__all__ = ["register_ui_routes"]
