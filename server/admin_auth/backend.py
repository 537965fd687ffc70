"""Explicitly constructed service backend and its readiness signal."""
from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from fido2.server import Fido2Server

from .admins import AdminPolicy, StoreAdminPolicy
from .config import Settings, create_fido_server
from .identity import IdentityVerifier
from .storage import DocumentStore, create_document_store
from .stores import ChallengeStore, CredentialStore, SessionStore

__all__ = ["Backend", "BackendHandle", "build_backend"]

LOGGER = logging.getLogger("admin_auth.backend")


@dataclass
class Backend:
    """Everything a service operation needs, passed in rather than imported."""

    settings: Settings
    store: DocumentStore
    admin_policy: AdminPolicy
    identity_verifier: IdentityVerifier
    clock: Callable[[], float] = time.time
    challenges: ChallengeStore = field(init=False)
    credentials: CredentialStore = field(init=False)
    sessions: SessionStore = field(init=False)

    def __post_init__(self) -> None:
        self.challenges = ChallengeStore(
            self.store, ttl=self.settings.challenge_ttl, clock=self.clock
        )
        self.credentials = CredentialStore(self.store, clock=self.clock)
        self.sessions = SessionStore(self.store, ttl=self.settings.session_ttl, clock=self.clock)

    def fido_server(self) -> Fido2Server:
        return create_fido_server(self.settings)


def build_backend(
    settings: Settings,
    *,
    store: Optional[DocumentStore] = None,
    admin_policy: Optional[AdminPolicy] = None,
    identity_verifier: Optional[IdentityVerifier] = None,
    clock: Callable[[], float] = time.time,
) -> Backend:
    """Single initialisation point for the backend collaborators."""

    store = store if store is not None else create_document_store(settings.storage_path)
    if admin_policy is None:
        admin_policy = StoreAdminPolicy(store, settings.admin_emails)
    if identity_verifier is None:
        secret_key = settings.secret_key
        if not secret_key:
            LOGGER.warning("ADMIN_AUTH_SECRET_KEY is not set; ID tokens will not survive a restart.")
            secret_key = os.urandom(32).hex()
        identity_verifier = IdentityVerifier(secret_key, max_age=settings.identity_token_max_age)

    return Backend(
        settings=settings,
        store=store,
        admin_policy=admin_policy,
        identity_verifier=identity_verifier,
        clock=clock,
    )


class BackendHandle:
    """Readiness signal for the backend, resolved exactly once."""

    def __init__(self) -> None:
        self._ready = threading.Event()
        self._lock = threading.Lock()
        self._backend: Optional[Backend] = None

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def resolve(self, backend: Backend) -> None:
        with self._lock:
            if self._backend is not None:
                raise RuntimeError("backend has already been initialised")
            self._backend = backend
            self._ready.set()
        LOGGER.info("Admin auth backend ready (rp_id=%s).", backend.settings.rp_id)

    def wait_until_ready(self, timeout: Optional[float] = None) -> Backend:
        if not self._ready.wait(timeout):
            raise TimeoutError("admin auth backend was not initialised in time")
        assert self._backend is not None
        return self._backend
