"""Client side of the admin biometric login."""

from .agent import CredentialAgent
from .platform import Fido2ClientPlatform, PlatformAuthenticator
from .session import ClientSession, SessionState
from .transport import HttpTransport, Transport

__all__ = [
    "ClientSession",
    "CredentialAgent",
    "Fido2ClientPlatform",
    "HttpTransport",
    "PlatformAuthenticator",
    "SessionState",
    "Transport",
]
