import threading

import pytest
from fido2.server import Fido2Server

from admin_auth.backend import BackendHandle, build_backend
from admin_auth.config import (
    DEFAULT_CHALLENGE_TTL,
    DEFAULT_CLIENT_TIMEOUT_MS,
    DEFAULT_SESSION_TTL,
    Settings,
    create_fido_server,
    load_settings,
)
from admin_auth.identity import (
    CallerIdentity,
    IdentityTokenError,
    IdentityVerifier,
    extract_bearer_token,
)
from admin_auth.storage import JsonFileDocumentStore


def test_defaults_without_environment():
    settings = load_settings({})

    assert settings.rp_id == "localhost"
    assert settings.rp_name == "IBA Admin"
    assert settings.origins == frozenset({"https://localhost"})
    assert settings.challenge_ttl == DEFAULT_CHALLENGE_TTL == 300
    assert settings.session_ttl == DEFAULT_SESSION_TTL == 86400
    assert settings.client_timeout_ms == DEFAULT_CLIENT_TIMEOUT_MS == 60000
    assert settings.storage_path is None
    assert settings.debug is False


def test_environment_overrides():
    settings = load_settings(
        {
            "ADMIN_AUTH_RP_ID": "Admin.Example.com",
            "ADMIN_AUTH_ORIGINS": "https://admin.example.com/, http://localhost:5000",
            "ADMIN_AUTH_ADMIN_EMAILS": "One@example.com;two@example.com",
            "ADMIN_AUTH_STORAGE_PATH": "/var/lib/admin-auth",
            "ADMIN_AUTH_CHALLENGE_TTL": "120",
            "ADMIN_AUTH_DEBUG": "yes",
        }
    )

    assert settings.rp_id == "admin.example.com"
    assert settings.origins == frozenset({"https://admin.example.com", "http://localhost:5000"})
    assert settings.admin_emails == frozenset({"one@example.com", "two@example.com"})
    assert settings.storage_path == "/var/lib/admin-auth"
    assert settings.challenge_ttl == 120
    assert settings.debug is True
    assert settings.is_allowed_origin("http://localhost:5000")
    assert not settings.is_allowed_origin("https://evil.example.com")


@pytest.mark.parametrize("value", ["abc", "0", "-5"])
def test_invalid_lifetimes_are_rejected(value):
    with pytest.raises(ValueError):
        load_settings({"ADMIN_AUTH_SESSION_TTL": value})


def test_fido_server_uses_configured_origins():
    server = create_fido_server(Settings(rp_id="admin.example.com"))

    assert isinstance(server, Fido2Server)
    assert server.rp.id == "admin.example.com"


def test_build_backend_uses_file_store_when_configured(tmp_path):
    backend = build_backend(Settings(storage_path=str(tmp_path), secret_key="k"))
    assert isinstance(backend.store, JsonFileDocumentStore)


def test_build_backend_without_secret_still_issues_tokens(caplog):
    backend = build_backend(Settings())
    token = backend.identity_verifier.issue(CallerIdentity(uid="u"))

    assert backend.identity_verifier.verify(token).uid == "u"
    assert "SECRET_KEY is not set" in caplog.text


def test_identity_tokens_round_trip_and_reject_forgeries():
    verifier = IdentityVerifier("secret", max_age=60)
    token = verifier.issue(CallerIdentity(uid="u1", email="a@example.com", display_name="Ada"))

    identity = verifier.verify(token)
    assert identity == CallerIdentity(uid="u1", email="a@example.com", display_name="Ada")
    assert identity.name == "Ada"

    with pytest.raises(IdentityTokenError):
        IdentityVerifier("other-secret", max_age=60).verify(token)
    with pytest.raises(IdentityTokenError):
        verifier.verify(token + "x")


def test_extract_bearer_token():
    assert extract_bearer_token("Bearer abc") == "abc"
    assert extract_bearer_token("bearer  abc ") == "abc"
    assert extract_bearer_token("Basic abc") is None
    assert extract_bearer_token("Bearer") is None
    assert extract_bearer_token(None) is None


def test_backend_handle_resolves_once(backend):
    handle = BackendHandle()
    assert handle.is_ready is False
    with pytest.raises(TimeoutError):
        handle.wait_until_ready(timeout=0.01)

    handle.resolve(backend)
    assert handle.is_ready is True
    assert handle.wait_until_ready(timeout=0) is backend
    with pytest.raises(RuntimeError):
        handle.resolve(backend)


def test_waiters_are_released_when_backend_resolves(backend):
    handle = BackendHandle()
    results = []
    waiter = threading.Thread(target=lambda: results.append(handle.wait_until_ready(timeout=5)))
    waiter.start()

    handle.resolve(backend)
    waiter.join(timeout=5)

    assert results == [backend]


def test_package_exports_resolve_on_first_use():
    import admin_auth
    from admin_auth import app as app_module
    from admin_auth import purge as purge_module

    assert admin_auth.create_app is app_module.create_app
    assert admin_auth.main is app_module.main
    assert admin_auth.purge_expired is purge_module.purge_expired
    with pytest.raises(AttributeError):
        admin_auth.not_exported  # noqa: B018
