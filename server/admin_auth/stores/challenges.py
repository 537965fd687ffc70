"""Single-use, time-boxed WebAuthn challenges."""
from __future__ import annotations

import logging
import os
import time
from dataclasses import asdict, dataclass
from typing import Callable, Optional

from ..config import DEFAULT_CHALLENGE_TTL
from ..encoding import encode_urlsafe
from ..storage import DocumentStore

__all__ = [
    "AUTHENTICATION",
    "CHALLENGE_LENGTH_BYTES",
    "ChallengeRecord",
    "ChallengeStore",
    "REGISTRATION",
]

LOGGER = logging.getLogger("admin_auth.challenges")

REGISTRATION = "registration"
AUTHENTICATION = "authentication"

CHALLENGE_LENGTH_BYTES = 32

REGISTRATION_COLLECTION = "registration_challenges"
AUTHENTICATION_COLLECTION = "auth_challenges"


def generate_challenge() -> bytes:
    return os.urandom(CHALLENGE_LENGTH_BYTES)


@dataclass(frozen=True)
class ChallengeRecord:
    challenge: str
    kind: str
    createdAt: float
    expiresAt: float
    ownerId: Optional[str] = None
    recordId: Optional[str] = None

    def is_expired(self, now: float) -> bool:
        return now >= self.expiresAt

    def to_document(self) -> dict:
        document = asdict(self)
        document.pop("recordId", None)
        return document

    @classmethod
    def from_document(cls, record_id: str, document: dict) -> "ChallengeRecord":
        return cls(
            challenge=document["challenge"],
            kind=document.get("kind", AUTHENTICATION),
            createdAt=float(document["createdAt"]),
            expiresAt=float(document["expiresAt"]),
            ownerId=document.get("ownerId"),
            recordId=record_id,
        )


class ChallengeStore:
    """Registration uses one slot per admin; authentication a shared collection."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        ttl: int = DEFAULT_CHALLENGE_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl
        self._clock = clock

    def _new_record(self, kind: str, owner_id: Optional[str]) -> ChallengeRecord:
        now = self._clock()
        return ChallengeRecord(
            challenge=encode_urlsafe(generate_challenge()),
            kind=kind,
            createdAt=now,
            expiresAt=now + self._ttl,
            ownerId=owner_id,
        )

    # Registration: keyed by owner, a new challenge replaces the pending one.

    def issue_registration(self, owner_id: str) -> ChallengeRecord:
        record = self._new_record(REGISTRATION, owner_id)
        self._store.set(REGISTRATION_COLLECTION, owner_id, record.to_document())
        LOGGER.debug("Issued registration challenge for %s", owner_id)
        return ChallengeRecord(**{**asdict(record), "recordId": owner_id})

    def pending_registration(self, owner_id: str) -> Optional[ChallengeRecord]:
        document = self._store.get(REGISTRATION_COLLECTION, owner_id)
        if document is None:
            return None
        return ChallengeRecord.from_document(owner_id, document)

    def consume_registration(self, owner_id: str, challenge: Optional[str] = None) -> bool:
        """Delete the pending slot, only if it still holds ``challenge`` when given."""

        filters = [("challenge", "==", challenge)] if challenge is not None else []
        return self._store.delete(REGISTRATION_COLLECTION, owner_id, filters)

    # Authentication: unscoped, matched by challenge value.

    def issue_authentication(self) -> ChallengeRecord:
        record = self._new_record(AUTHENTICATION, None)
        record_id = self._store.add(AUTHENTICATION_COLLECTION, record.to_document())
        return ChallengeRecord(**{**asdict(record), "recordId": record_id})

    def find_authentication(self, challenge: str) -> Optional[ChallengeRecord]:
        """Return the live record whose value equals ``challenge``.

        Expiry is part of the query, so a record past ``expiresAt`` is never
        returned even if it has not been purged yet.
        """

        matches = self._store.query(
            AUTHENTICATION_COLLECTION,
            [("challenge", "==", challenge), ("expiresAt", ">", self._clock())],
            limit=1,
        )
        if not matches:
            return None
        record_id, document = matches[0]
        return ChallengeRecord.from_document(record_id, document)

    def consume_authentication(self, record_id: str) -> bool:
        return self._store.delete(AUTHENTICATION_COLLECTION, record_id)

    def purge_expired(self) -> int:
        now = self._clock()
        removed = 0
        for collection in (REGISTRATION_COLLECTION, AUTHENTICATION_COLLECTION):
            removed += self._store.delete_where(collection, [("expiresAt", "<=", now)])
        return removed
