"""Client-side storage of the issued admin session token."""
from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import asdict, dataclass
from typing import Callable, Optional

__all__ = ["ClientSession", "SessionState"]

LOGGER = logging.getLogger("admin_auth.client.session")


@dataclass(frozen=True)
class SessionState:
    token: str
    authMethod: str
    expiresAt: float


class ClientSession:
    """Holds at most one session token, optionally mirrored to a JSON file."""

    def __init__(self, path: Optional[str] = None, *, clock: Callable[[], float] = time.time) -> None:
        self._path = path
        self._clock = clock
        self._state: Optional[SessionState] = None
        if path:
            self._state = self._read()

    def _read(self) -> Optional[SessionState]:
        try:
            with open(self._path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
            return SessionState(
                token=str(data["token"]),
                authMethod=str(data["authMethod"]),
                expiresAt=float(data["expiresAt"]),
            )
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError) as exc:
            LOGGER.warning("Discarding unreadable session file %s: %s", self._path, exc)
            return None

    def _write(self) -> None:
        if not self._path:
            return
        if self._state is None:
            try:
                os.remove(self._path)
            except FileNotFoundError:
                pass
            return
        with open(self._path, "w", encoding="utf-8") as handle:
            json.dump(asdict(self._state), handle)

    def store(self, token: str, auth_method: str, expires_at: float) -> SessionState:
        self._state = SessionState(token=token, authMethod=auth_method, expiresAt=float(expires_at))
        self._write()
        return self._state

    def restore(self) -> Optional[SessionState]:
        """Return the stored session while it is live, clearing it once expired."""

        if self._state is not None and self._clock() < self._state.expiresAt:
            return self._state
        self.clear()
        return None

    def clear(self) -> None:
        self._state = None
        self._write()

    @property
    def is_admin_mode(self) -> bool:
        return self.restore() is not None
