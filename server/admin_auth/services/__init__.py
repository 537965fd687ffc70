"""Service operations behind the HTTP functions."""

from .admin_status import check_admin_status
from .authentication import AuthenticationService
from .registration import RegistrationService
from .sessions import SessionValidator

__all__ = [
    "AuthenticationService",
    "RegistrationService",
    "SessionValidator",
    "check_admin_status",
]
