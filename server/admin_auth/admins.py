"""Admin-authorization policy."""
from __future__ import annotations

import logging
from typing import FrozenSet, Iterable, Optional

from .identity import CallerIdentity
from .storage import DocumentStore

__all__ = [
    "ADMIN_REQUESTS_COLLECTION",
    "APPROVED_ADMINS_COLLECTION",
    "AdminPolicy",
    "StoreAdminPolicy",
]

LOGGER = logging.getLogger("admin_auth.admins")

APPROVED_ADMINS_COLLECTION = "approved_admins"
ADMIN_REQUESTS_COLLECTION = "admin_requests"


class AdminPolicy:
    """Decides whether an identity may act as an admin.

    Services only call :meth:`is_approved`, so any object providing it can be
    plugged into the backend.
    """

    def is_approved(self, identity: CallerIdentity) -> bool:
        raise NotImplementedError


class StoreAdminPolicy(AdminPolicy):
    """Configured email allow-list, ``approved_admins`` or an approved request."""

    def __init__(self, store: DocumentStore, allowed_emails: Iterable[str] = ()) -> None:
        self._store = store
        self._allowed_emails: FrozenSet[str] = frozenset(
            email.strip().lower() for email in allowed_emails if email and email.strip()
        )

    def _normalise(self, email: Optional[str]) -> Optional[str]:
        if not email or not email.strip():
            return None
        return email.strip().lower()

    def is_approved(self, identity: CallerIdentity) -> bool:
        email = self._normalise(identity.email)

        if email and email in self._allowed_emails:
            return True

        if email and self._store.query(APPROVED_ADMINS_COLLECTION, [("email", "==", email)], limit=1):
            return True

        request = self._store.get(ADMIN_REQUESTS_COLLECTION, identity.uid)
        if request is not None and request.get("status") == "approved":
            return True

        LOGGER.info("Identity %s is not an approved admin", identity.uid)
        return False

    def approve(self, identity: CallerIdentity) -> None:
        self._store.set(
            ADMIN_REQUESTS_COLLECTION,
            identity.uid,
            {"status": "approved", "email": self._normalise(identity.email)},
        )

    def revoke(self, identity: CallerIdentity) -> None:
        """Mark the admin request revoked and drop any ``approved_admins`` entry."""

        self._store.set(
            ADMIN_REQUESTS_COLLECTION,
            identity.uid,
            {"status": "revoked", "email": self._normalise(identity.email)},
        )
        email = self._normalise(identity.email)
        if email:
            self._store.delete_where(APPROVED_ADMINS_COLLECTION, [("email", "==", email)])
