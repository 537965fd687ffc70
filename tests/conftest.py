import pytest

from admin_auth.app import create_app
from admin_auth.backend import build_backend
from admin_auth.config import Settings
from admin_auth.identity import CallerIdentity
from admin_auth.storage import MemoryDocumentStore

from software_authenticator import SoftwareAuthenticator

RP_ID = "admin.example.com"
ORIGIN = "https://admin.example.com"
ADMIN_EMAIL = "admin@example.com"


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        rp_id=RP_ID,
        rp_name="IBA Admin",
        admin_emails=frozenset({ADMIN_EMAIL}),
        secret_key="test-secret-key",
    )


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def backend(settings, store, clock):
    return build_backend(settings, store=store, clock=clock)


@pytest.fixture
def admin():
    return CallerIdentity(uid="admin-uid", email=ADMIN_EMAIL, display_name="Ada Admin")


@pytest.fixture
def outsider():
    return CallerIdentity(uid="player-uid", email="player@example.com")


@pytest.fixture
def authenticator():
    return SoftwareAuthenticator(ORIGIN)


@pytest.fixture
def app(backend):
    flask_app = create_app(backend=backend)
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture
def client(app):
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture
def id_token(backend, admin):
    return backend.identity_verifier.issue(admin)
