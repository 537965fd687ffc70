"""Server-side stores for challenges, credentials and session tokens."""

from .challenges import ChallengeRecord, ChallengeStore
from .credentials import CredentialRecord, CredentialStore
from .sessions import SessionRecord, SessionStore

__all__ = [
    "ChallengeRecord",
    "ChallengeStore",
    "CredentialRecord",
    "CredentialStore",
    "SessionRecord",
    "SessionStore",
]
