import pytest

from admin_auth.errors import InvalidArgument, PermissionDenied
from admin_auth.services import SessionValidator
from admin_auth.stores.sessions import SESSIONS_COLLECTION


def test_session_token_is_redeemed_exactly_once(backend):
    session = backend.sessions.mint("admin-uid", "webauthn")
    validator = SessionValidator(backend)

    assert validator.validate_session_token(session.token) == {
        "valid": True,
        "ownerId": "admin-uid",
        "authMethod": "webauthn",
    }
    with pytest.raises(PermissionDenied):
        validator.validate_session_token(session.token)


def test_expired_session_is_rejected_and_removed(backend, clock):
    session = backend.sessions.mint("admin-uid", "webauthn")
    clock.advance(86400)

    with pytest.raises(PermissionDenied):
        SessionValidator(backend).validate_session_token(session.token)

    assert backend.store.get(SESSIONS_COLLECTION, session.token) is None


def test_unknown_session_is_rejected(backend):
    with pytest.raises(PermissionDenied):
        SessionValidator(backend).validate_session_token("no-such-token")


@pytest.mark.parametrize("token", [None, "", "   ", 42])
def test_missing_session_token_is_an_invalid_argument(backend, token):
    with pytest.raises(InvalidArgument):
        SessionValidator(backend).validate_session_token(token)


def test_minted_tokens_are_unique(backend):
    tokens = {backend.sessions.mint("admin-uid", "webauthn").token for _ in range(20)}
    assert len(tokens) == 20


def test_purge_drops_expired_sessions(backend, clock):
    stale = backend.sessions.mint("admin-uid", "webauthn")
    clock.advance(86400)
    live = backend.sessions.mint("admin-uid", "webauthn")

    assert backend.sessions.purge_expired() == 1
    assert backend.store.get(SESSIONS_COLLECTION, stale.token) is None
    assert backend.store.get(SESSIONS_COLLECTION, live.token) is not None


def test_session_token_must_match_exactly(backend):
    session = backend.sessions.mint("admin-uid", "webauthn")
    validator = SessionValidator(backend)

    with pytest.raises(PermissionDenied):
        validator.validate_session_token(f" {session.token}\n")

    assert validator.validate_session_token(session.token)["valid"] is True
