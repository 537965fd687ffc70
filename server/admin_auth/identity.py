"""Caller identities and the ID tokens that carry them.

The upstream sign-in provider is outside this service. It hands callers a
signed, timed ID token which the service verifies on every privileged call.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

__all__ = ["CallerIdentity", "IdentityTokenError", "IdentityVerifier", "extract_bearer_token"]

_TOKEN_SALT = "admin-auth.identity"


class IdentityTokenError(Exception):
    """Raised when an ID token is missing, malformed, forged or expired."""


@dataclass(frozen=True)
class CallerIdentity:
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def name(self) -> str:
        return self.display_name or self.email or self.uid


class IdentityVerifier:
    """Issue and verify ID tokens signed with the application secret."""

    def __init__(self, secret_key: str, *, max_age: int) -> None:
        if not secret_key:
            raise ValueError("an identity secret key is required")
        self._serializer = URLSafeTimedSerializer(secret_key, salt=_TOKEN_SALT)
        self._max_age = max_age

    def issue(self, identity: CallerIdentity) -> str:
        payload = {"uid": identity.uid}
        if identity.email:
            payload["email"] = identity.email
        if identity.display_name:
            payload["name"] = identity.display_name
        return self._serializer.dumps(payload)

    def verify(self, token: str) -> CallerIdentity:
        try:
            payload = self._serializer.loads(token, max_age=self._max_age)
        except SignatureExpired as exc:
            raise IdentityTokenError("ID token has expired") from exc
        except BadSignature as exc:
            raise IdentityTokenError("ID token is invalid") from exc

        uid = payload.get("uid") if isinstance(payload, dict) else None
        if not isinstance(uid, str) or not uid:
            raise IdentityTokenError("ID token has no subject")
        return CallerIdentity(uid=uid, email=payload.get("email"), display_name=payload.get("name"))


def extract_bearer_token(header_value: Optional[str]) -> Optional[str]:
    if not header_value:
        return None
    scheme, _, token = header_value.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
