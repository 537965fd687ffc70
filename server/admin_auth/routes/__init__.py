"""HTTP function surface for the admin WebAuthn service."""

from .general import bp as general_bp
from .webauthn import bp as webauthn_bp

__all__ = ["general_bp", "webauthn_bp"]
