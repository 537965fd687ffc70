"""Configuration for the admin WebAuthn service."""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Mapping, Optional

from fido2.server import Fido2Server
from fido2.webauthn import PublicKeyCredentialRpEntity

__all__ = [
    "DEFAULT_CHALLENGE_TTL",
    "DEFAULT_CLIENT_TIMEOUT_MS",
    "DEFAULT_SESSION_TTL",
    "Settings",
    "build_rp_entity",
    "create_fido_server",
    "load_settings",
]

DEFAULT_RP_ID = "localhost"
DEFAULT_RP_NAME = "IBA Admin"
DEFAULT_CHALLENGE_TTL = 5 * 60
DEFAULT_SESSION_TTL = 24 * 60 * 60
DEFAULT_CLIENT_TIMEOUT_MS = 60_000
DEFAULT_IDENTITY_TOKEN_MAX_AGE = 60 * 60

_ENV_PREFIX = "ADMIN_AUTH_"


@dataclass(frozen=True)
class Settings:
    """Resolved relying-party binding and lifetimes."""

    rp_id: str = DEFAULT_RP_ID
    rp_name: str = DEFAULT_RP_NAME
    origins: FrozenSet[str] = field(default_factory=frozenset)
    admin_emails: FrozenSet[str] = field(default_factory=frozenset)
    storage_path: Optional[str] = None
    secret_key: Optional[str] = None
    challenge_ttl: int = DEFAULT_CHALLENGE_TTL
    session_ttl: int = DEFAULT_SESSION_TTL
    client_timeout_ms: int = DEFAULT_CLIENT_TIMEOUT_MS
    identity_token_max_age: int = DEFAULT_IDENTITY_TOKEN_MAX_AGE
    debug: bool = False

    def __post_init__(self) -> None:
        if not self.origins:
            object.__setattr__(self, "origins", frozenset({f"https://{self.rp_id}"}))
        object.__setattr__(
            self,
            "admin_emails",
            frozenset(email.strip().lower() for email in self.admin_emails if email.strip()),
        )

    def is_allowed_origin(self, origin: str) -> bool:
        return origin in self.origins


def _env_flag(raw_value: Optional[str]) -> Optional[bool]:
    """Return ``True`` or ``False`` when the raw env value is explicitly set."""

    if raw_value is None:
        return None

    normalised = raw_value.strip().lower()
    if normalised in {"", "0", "false", "off", "no"}:
        return False
    return True


def _split_list(raw_value: Optional[str]) -> FrozenSet[str]:
    """Normalise a comma, semicolon or newline separated list."""

    if raw_value is None:
        return frozenset()

    components = re.split(r"[,;\n]+", raw_value)
    return frozenset(component.strip() for component in components if component.strip())


def _normalise_origin(origin: str) -> str:
    return origin.strip().rstrip("/")


def _positive_int(raw_value: Optional[str], default: int, name: str) -> int:
    if raw_value is None or not raw_value.strip():
        return default
    try:
        value = int(raw_value.strip())
    except ValueError as exc:
        raise ValueError(f"{_ENV_PREFIX}{name} must be an integer") from exc
    if value <= 0:
        raise ValueError(f"{_ENV_PREFIX}{name} must be positive")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from ``ADMIN_AUTH_*`` environment variables."""

    env = os.environ if environ is None else environ

    def get(name: str) -> Optional[str]:
        return env.get(_ENV_PREFIX + name)

    rp_id = (get("RP_ID") or DEFAULT_RP_ID).strip().lower()
    origins = frozenset(_normalise_origin(origin) for origin in _split_list(get("ORIGINS")))

    return Settings(
        rp_id=rp_id,
        rp_name=(get("RP_NAME") or DEFAULT_RP_NAME).strip(),
        origins=origins,
        admin_emails=_split_list(get("ADMIN_EMAILS")),
        storage_path=(get("STORAGE_PATH") or "").strip() or None,
        secret_key=get("SECRET_KEY") or None,
        challenge_ttl=_positive_int(get("CHALLENGE_TTL"), DEFAULT_CHALLENGE_TTL, "CHALLENGE_TTL"),
        session_ttl=_positive_int(get("SESSION_TTL"), DEFAULT_SESSION_TTL, "SESSION_TTL"),
        client_timeout_ms=_positive_int(
            get("CLIENT_TIMEOUT_MS"), DEFAULT_CLIENT_TIMEOUT_MS, "CLIENT_TIMEOUT_MS"
        ),
        identity_token_max_age=_positive_int(
            get("IDENTITY_TOKEN_MAX_AGE"),
            DEFAULT_IDENTITY_TOKEN_MAX_AGE,
            "IDENTITY_TOKEN_MAX_AGE",
        ),
        debug=bool(_env_flag(get("DEBUG"))),
    )


def build_rp_entity(settings: Settings) -> PublicKeyCredentialRpEntity:
    return PublicKeyCredentialRpEntity(name=settings.rp_name, id=settings.rp_id)


def create_fido_server(
    settings: Settings,
    *,
    verify_origin: Optional[Callable[[str], bool]] = None,
) -> Fido2Server:
    """Instantiate a :class:`Fido2Server` bound to the configured RP and origins.

    python-fido2 only checks the origin against the RP id by default; here the
    accepted origins are an explicit set, so anything outside it is refused
    even when it shares the RP domain.
    """

    return Fido2Server(
        build_rp_entity(settings),
        verify_origin=verify_origin or settings.is_allowed_origin,
    )
