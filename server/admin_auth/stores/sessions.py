"""Short-lived, single-use admin session tokens."""
from __future__ import annotations

import os
import time
from dataclasses import asdict, dataclass
from typing import Callable, Optional

from ..config import DEFAULT_SESSION_TTL
from ..encoding import encode_urlsafe
from ..storage import DocumentStore

__all__ = ["SESSIONS_COLLECTION", "SessionRecord", "SessionStore"]

SESSIONS_COLLECTION = "admin_sessions"
TOKEN_LENGTH_BYTES = 32


@dataclass(frozen=True)
class SessionRecord:
    token: str
    ownerId: str
    authMethod: str
    createdAt: float
    expiresAt: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expiresAt


class SessionStore:
    def __init__(
        self,
        store: DocumentStore,
        *,
        ttl: int = DEFAULT_SESSION_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl
        self._clock = clock

    def mint(self, owner_id: str, auth_method: str) -> SessionRecord:
        now = self._clock()
        record = SessionRecord(
            token=encode_urlsafe(os.urandom(TOKEN_LENGTH_BYTES)),
            ownerId=owner_id,
            authMethod=auth_method,
            createdAt=now,
            expiresAt=now + self._ttl,
        )
        while not self._store.create(SESSIONS_COLLECTION, record.token, asdict(record)):
            record = SessionRecord(**{**asdict(record), "token": encode_urlsafe(os.urandom(TOKEN_LENGTH_BYTES))})
        return record

    def redeem(self, token: str) -> Optional[SessionRecord]:
        """Delete and return the live record for ``token``.

        Expired records are deleted too but yield ``None``. Only the caller
        whose delete succeeds gets the record back.
        """

        document = self._store.get(SESSIONS_COLLECTION, token)
        if document is None:
            return None

        record = SessionRecord(**document)
        removed = self._store.delete(SESSIONS_COLLECTION, token)
        if not removed or record.is_expired(self._clock()):
            return None
        return record

    def purge_expired(self) -> int:
        return self._store.delete_where(SESSIONS_COLLECTION, [("expiresAt", "<=", self._clock())])
