import os
import sys
from pathlib import Path
from typing import Dict, Optional

from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("AUTH_SECRET", "tests-secret-key")

from webstarter.config import AppConfig, OAuthProviderConfig
from webstarter.database import Database
from webstarter.models import Account
from webstarter.providers import ProviderRegistry
from webstarter.service import create_app


NAME = "Ada"
EMAIL = "ada@example.com"
PASSWORD = "secret1"

GITHUB = OAuthProviderConfig(
    id="github",
    name="GitHub",
    client_id="gh-id",
    client_secret="gh-secret",
    authorize_url="https://github.com/login/oauth/authorize",
    scope="read:user",
)


class _OfflineProviderRegistry(ProviderRegistry):
    def get_providers(self) -> Dict[str, Dict[str, str]]:
        raise ConnectionError("auth layer offline")


class _RejectingAuthenticator:
    def authenticate(self, email: str, password: str) -> Optional[Account]:
        return None


def _build_app(tmp_path: Path, **overrides):
    config = AppConfig(
        database_path=tmp_path / "web.sqlite3",
        session_secret="not-so-secret",
        secure_cookies=False,
        bcrypt_rounds=4,
    )
    database = Database(config.database_path)
    app = create_app(config=config, database=database, **overrides)
    return app, database


def _registration_form(**fields: str) -> Dict[str, str]:
    form = {
        "name": NAME,
        "email": EMAIL,
        "password": PASSWORD,
        "confirm_password": PASSWORD,
    }
    form.update(fields)
    return form


def test_register_form_without_oauth_providers(tmp_path):
    app, _ = _build_app(tmp_path)

    with TestClient(app) as client:
        response = client.get("/auth/register")

    assert response.status_code == 200
    assert "Create Account" in response.text
    assert "Confirm Password" in response.text
    assert "Or continue with" not in response.text


def test_register_form_lists_oauth_buttons(tmp_path):
    app, _ = _build_app(tmp_path, providers=ProviderRegistry([GITHUB]))

    with TestClient(app) as client:
        response = client.get("/auth/register")

    assert response.status_code == 200
    assert "Or continue with" in response.text
    assert "Sign in with GitHub" in response.text
    assert 'data-provider="github"' in response.text


def test_register_form_survives_provider_discovery_failure(tmp_path):
    app, database = _build_app(tmp_path, providers=_OfflineProviderRegistry())

    with TestClient(app) as client:
        page = client.get("/auth/register")
        assert page.status_code == 200
        assert "Create Account" in page.text
        assert "Or continue with" not in page.text

        submitted = client.post("/auth/register", data=_registration_form(), follow_redirects=False)
        assert submitted.status_code == 303

    assert database.count_accounts(EMAIL) == 1


def test_registration_signs_in_and_redirects_home(tmp_path):
    app, database = _build_app(tmp_path)

    with TestClient(app) as client:
        response = client.post("/auth/register", data=_registration_form(), follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == "/"

        home = client.get("/")
        assert home.status_code == 200
        assert f"Hello, {NAME}!" in home.text
        assert "Registration successful!" in home.text

        again = client.get("/auth/register", follow_redirects=False)
        assert again.status_code == 303

    assert database.count_accounts(EMAIL) == 1


def test_registration_rejects_mismatched_confirmation(tmp_path):
    app, database = _build_app(tmp_path)

    with TestClient(app) as client:
        response = client.post(
            "/auth/register",
            data=_registration_form(confirm_password="different"),
            follow_redirects=False,
        )

    assert response.status_code == 400
    assert "Passwords do not match" in response.text
    assert f'value="{EMAIL}"' in response.text
    assert database.count_accounts() == 0


def test_registration_short_password_renders_inline_error(tmp_path):
    app, database = _build_app(tmp_path)

    with TestClient(app) as client:
        response = client.post(
            "/auth/register",
            data=_registration_form(password="abc", confirm_password="abc"),
            follow_redirects=False,
        )

    assert response.status_code == 400
    assert "Password must be at least 6 characters long" in response.text
    assert database.count_accounts() == 0


def test_registration_password_with_nul_byte_renders_inline_error(tmp_path):
    app, database = _build_app(tmp_path)

    with TestClient(app) as client:
        response = client.post(
            "/auth/register",
            data=_registration_form(password="secret\x00x", confirm_password="secret\x00x"),
            follow_redirects=False,
        )

    assert response.status_code == 400
    assert "Password contains unsupported characters" in response.text
    assert database.count_accounts() == 0


def test_registration_duplicate_email_renders_conflict(tmp_path):
    app, database = _build_app(tmp_path)

    with TestClient(app) as first_client:
        first_client.post("/auth/register", data=_registration_form(), follow_redirects=False)

    with TestClient(app) as client:
        response = client.post(
            "/auth/register",
            data=_registration_form(name="Imposter", email=EMAIL.upper()),
            follow_redirects=False,
        )

    assert response.status_code == 409
    assert "An account with this email already exists" in response.text
    assert database.count_accounts(EMAIL) == 1


def test_bootstrap_failure_routes_to_signin_and_keeps_account(tmp_path):
    app, database = _build_app(tmp_path, authenticator=_RejectingAuthenticator())

    with TestClient(app) as client:
        response = client.post("/auth/register", data=_registration_form(), follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == "/auth/signin?registered=1"

        signin = client.get(response.headers["location"])
        assert signin.status_code == 200
        assert "Registration successful! Please sign in to continue." in signin.text
        assert "we could not sign you in" in signin.text

        home = client.get("/")
        assert "Hello," not in home.text

    assert database.count_accounts(EMAIL) == 1


def test_signin_flow_and_callback_protection(tmp_path):
    app, _ = _build_app(tmp_path)

    with TestClient(app) as registrar:
        registrar.post("/auth/register", data=_registration_form(), follow_redirects=False)

    with TestClient(app) as client:
        page = client.get("/auth/signin")
        assert page.status_code == 200
        assert "Welcome back!" in page.text

        denied = client.post(
            "/auth/signin",
            data={"email": EMAIL, "password": "wrong-password"},
            follow_redirects=False,
        )
        assert denied.status_code == 400
        assert "Invalid email or password." in denied.text

        missing = client.post("/auth/signin", data={"email": EMAIL, "password": ""}, follow_redirects=False)
        assert missing.status_code == 400

        allowed = client.post(
            "/auth/signin",
            data={"email": EMAIL, "password": PASSWORD, "callback_url": "https://evil.example.com/"},
            follow_redirects=False,
        )
        assert allowed.status_code == 303
        assert allowed.headers["location"] == "/"

        assert f"Hello, {NAME}!" in client.get("/").text

        signout = client.get("/auth/signout", follow_redirects=False)
        assert signout.status_code == 303
        assert "Hello," not in client.get("/").text


def test_signin_honours_relative_callback(tmp_path):
    app, _ = _build_app(tmp_path)

    with TestClient(app) as client:
        client.post("/auth/register", data=_registration_form(), follow_redirects=False)
        client.get("/auth/signout")

        response = client.post(
            "/auth/signin",
            data={"email": EMAIL, "password": PASSWORD, "callback_url": "/healthz"},
            follow_redirects=False,
        )

    assert response.status_code == 303
    assert response.headers["location"] == "/healthz"


def test_oauth_button_redirects_to_provider(tmp_path):
    app, _ = _build_app(tmp_path, providers=ProviderRegistry([GITHUB]))

    with TestClient(app) as client:
        response = client.get("/auth/signin/github", follow_redirects=False)
        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith("https://github.com/login/oauth/authorize?")
        assert "client_id=gh-id" in location

        unknown = client.get("/auth/signin/gitlab", follow_redirects=False)
        assert unknown.status_code == 303
        assert unknown.headers["location"].endswith("/auth/signin")
