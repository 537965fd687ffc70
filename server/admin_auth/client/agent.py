"""Client Credential Agent: drive the registration and login round trips."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional

from ..encoding import decode_urlsafe, encode_urlsafe
from ..errors import InvalidArgument, PermissionDenied
from .platform import PlatformAuthenticator
from .session import ClientSession, SessionState
from .transport import Transport

__all__ = [
    "CredentialAgent",
    "decode_creation_options",
    "decode_request_options",
    "encode_for_transport",
]

LOGGER = logging.getLogger("admin_auth.client")

DEFAULT_SESSION_LIFETIME = 24 * 60 * 60


def _decode_descriptors(entries: Any) -> list:
    descriptors = []
    for entry in entries or []:
        descriptors.append(
            {
                "id": decode_urlsafe(entry["id"]),
                "type": entry.get("type", "public-key"),
                "transports": entry.get("transports"),
            }
        )
    return descriptors


def decode_creation_options(options: Mapping[str, Any]) -> Dict[str, Any]:
    """Turn registration options into their binary form."""

    decoded = dict(options)
    decoded["challenge"] = decode_urlsafe(options["challenge"])
    user = dict(options["user"])
    user["id"] = decode_urlsafe(user["id"])
    decoded["user"] = user
    decoded["excludeCredentials"] = _decode_descriptors(options.get("excludeCredentials"))
    return decoded


def decode_request_options(options: Mapping[str, Any]) -> Dict[str, Any]:
    """Turn authentication options into their binary form."""

    decoded = dict(options)
    decoded["challenge"] = decode_urlsafe(options["challenge"])
    decoded["allowCredentials"] = _decode_descriptors(options.get("allowCredentials"))
    return decoded


def encode_for_transport(value: Any) -> Any:
    """Recursively replace bytes with URL-safe unpadded base64 strings."""

    if isinstance(value, (bytes, bytearray, memoryview)):
        return encode_urlsafe(bytes(value))
    if isinstance(value, Mapping):
        return {key: encode_for_transport(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_for_transport(item) for item in value]
    return value


class CredentialAgent:
    """Registers and authenticates an admin's platform credential.

    Service failures propagate unchanged and nothing is retried: a failed
    biometric ceremony has to be restarted by the user.
    """

    def __init__(
        self,
        transport: Transport,
        platform: PlatformAuthenticator,
        session: Optional[ClientSession] = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.transport = transport
        self.platform = platform
        self.session = session if session is not None else ClientSession(clock=clock)
        self._clock = clock

    def register(self, id_token: str) -> Dict[str, Any]:
        """Enrol a new platform credential for the signed-in admin."""

        options = self.transport.post("/api/register/begin", {}, id_token=id_token)
        credential = self.platform.create(decode_creation_options(options))

        result = self.transport.post(
            "/api/register/complete",
            {"credential": encode_for_transport(credential)},
            id_token=id_token,
        )
        if not result.get("verified"):
            raise InvalidArgument("Server verification failed")
        LOGGER.info("Biometric credential registered.")
        return result

    def authenticate(self) -> SessionState:
        """Log in with a platform credential and keep the issued session token."""

        options = self.transport.post("/api/authenticate/begin", {})
        assertion = self.platform.get(decode_request_options(options))

        result = self.transport.post(
            "/api/authenticate/complete",
            {"credential": encode_for_transport(assertion)},
        )
        token = result.get("sessionToken")
        if not result.get("verified") or not isinstance(token, str):
            raise PermissionDenied("Server verification failed")

        expires_at = result.get("expiresAt")
        if not isinstance(expires_at, (int, float)):
            expires_at = self._clock() + DEFAULT_SESSION_LIFETIME
        LOGGER.info("Biometric authentication verified for %s.", result.get("ownerId"))
        return self.session.store(token, "webauthn", expires_at)

    def redeem_session(self) -> Dict[str, Any]:
        """Exchange the stored token for the privileged context, exactly once."""

        state = self.session.restore()
        if state is None:
            raise PermissionDenied("No active admin session")
        try:
            return self.transport.post("/api/session/validate", {"sessionToken": state.token})
        finally:
            self.session.clear()

    def logout(self) -> None:
        self.session.clear()
