"""Registered public-key credentials, one document per authenticator."""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Callable, List, Optional

import cbor2
from fido2.cose import CoseKey
from fido2.webauthn import Aaguid, AttestedCredentialData

from ..encoding import decode_urlsafe, encode_urlsafe
from ..storage import DocumentStore

__all__ = ["CREDENTIALS_COLLECTION", "CredentialRecord", "CredentialStore"]

CREDENTIALS_COLLECTION = "webauthn_credentials"

DEFAULT_TRANSPORTS = ("internal",)


@dataclass(frozen=True)
class CredentialRecord:
    """Stored credential. Binary fields are URL-safe unpadded base64."""

    credentialId: str
    publicKey: str
    signatureCounter: int
    ownerId: str
    registeredAt: float
    ownerEmail: Optional[str] = None
    deviceType: str = "singleDevice"
    backedUp: bool = False
    transports: List[str] = field(default_factory=lambda: list(DEFAULT_TRANSPORTS))
    lastUsedAt: Optional[float] = None

    @property
    def credential_id_bytes(self) -> bytes:
        return decode_urlsafe(self.credentialId)

    def to_attested_credential_data(self) -> AttestedCredentialData:
        """Rebuild the python-fido2 structure used for signature checks."""

        public_key = CoseKey.parse(cbor2.loads(decode_urlsafe(self.publicKey)))
        return AttestedCredentialData.create(Aaguid.NONE, self.credential_id_bytes, public_key)

    def descriptor(self) -> dict:
        return {
            "id": self.credentialId,
            "type": "public-key",
            "transports": list(self.transports or DEFAULT_TRANSPORTS),
        }

    def to_document(self) -> dict:
        return asdict(self)

    @classmethod
    def from_document(cls, document: dict) -> "CredentialRecord":
        return cls(
            credentialId=document["credentialId"],
            publicKey=document["publicKey"],
            signatureCounter=int(document.get("signatureCounter", 0)),
            ownerId=document["ownerId"],
            registeredAt=float(document.get("registeredAt", 0.0)),
            ownerEmail=document.get("ownerEmail"),
            deviceType=document.get("deviceType", "singleDevice"),
            backedUp=bool(document.get("backedUp", False)),
            transports=list(document.get("transports") or DEFAULT_TRANSPORTS),
            lastUsedAt=document.get("lastUsedAt"),
        )

    @classmethod
    def from_attested_data(
        cls,
        credential_data: AttestedCredentialData,
        *,
        owner_id: str,
        owner_email: Optional[str],
        counter: int,
        backup_eligible: bool,
        backed_up: bool,
        transports: Optional[List[str]],
        registered_at: float,
    ) -> "CredentialRecord":
        return cls(
            credentialId=encode_urlsafe(bytes(credential_data.credential_id)),
            publicKey=encode_urlsafe(cbor2.dumps(dict(credential_data.public_key), canonical=True)),
            signatureCounter=int(counter),
            ownerId=owner_id,
            ownerEmail=owner_email,
            registeredAt=registered_at,
            deviceType="multiDevice" if backup_eligible else "singleDevice",
            backedUp=bool(backed_up),
            transports=list(transports or DEFAULT_TRANSPORTS),
        )


class CredentialStore:
    def __init__(self, store: DocumentStore, *, clock: Callable[[], float] = time.time) -> None:
        self._store = store
        self._clock = clock

    def add(self, record: CredentialRecord) -> bool:
        """Append ``record``; ``False`` if its credential id is already taken."""

        return self._store.create(CREDENTIALS_COLLECTION, record.credentialId, record.to_document())

    def get(self, credential_id: str) -> Optional[CredentialRecord]:
        document = self._store.get(CREDENTIALS_COLLECTION, credential_id)
        if document is None:
            return None
        return CredentialRecord.from_document(document)

    def for_owner(self, owner_id: str) -> List[CredentialRecord]:
        return [
            CredentialRecord.from_document(document)
            for _doc_id, document in self._store.query(
                CREDENTIALS_COLLECTION, [("ownerId", "==", owner_id)]
            )
        ]

    def all(self) -> List[CredentialRecord]:
        return [
            CredentialRecord.from_document(document)
            for _doc_id, document in self._store.query(CREDENTIALS_COLLECTION)
        ]

    def update_counter(self, credential_id: str, counter: int) -> Optional[CredentialRecord]:
        """Persist a new signature counter on that one credential document."""

        changes = {"signatureCounter": int(counter), "lastUsedAt": self._clock()}
        if not self._store.update(CREDENTIALS_COLLECTION, credential_id, changes):
            return None
        return self.get(credential_id)
