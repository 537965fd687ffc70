"""Request helpers shared by the route modules."""
from __future__ import annotations

from typing import Any, Dict, Optional

from flask import current_app, request

from ..backend import Backend
from ..identity import CallerIdentity, IdentityTokenError, extract_bearer_token

EXTENSION_KEY = "admin_auth"

# Requests wait this long for the backend before failing.
BACKEND_READY_TIMEOUT = 10.0


def current_backend() -> Backend:
    return current_app.extensions[EXTENSION_KEY].wait_until_ready(BACKEND_READY_TIMEOUT)


def request_payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def current_caller(backend: Backend) -> Optional[CallerIdentity]:
    """Resolve the bearer ID token, or ``None`` when absent or invalid."""

    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        return None
    try:
        return backend.identity_verifier.verify(token)
    except IdentityTokenError as exc:
        current_app.logger.info("Ignoring ID token: %s", exc)
        return None
