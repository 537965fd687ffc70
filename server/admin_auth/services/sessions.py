"""Session Validator: one-time redemption of admin session tokens."""
from __future__ import annotations

import logging
from typing import Any, Dict

from ..errors import InvalidArgument, PermissionDenied
from .base import Service, service_operation

__all__ = ["SessionValidator"]

LOGGER = logging.getLogger("admin_auth.sessions")


class SessionValidator(Service):
    @service_operation("Failed to validate session")
    def validate_session_token(self, token: Any) -> Dict[str, Any]:
        if not isinstance(token, str) or not token.strip():
            raise InvalidArgument("A session token is required")

        record = self.backend.sessions.redeem(token)
        if record is None:
            LOGGER.warning("Rejected unknown, used or expired session token %s...", token[:8])
            raise PermissionDenied("Invalid or expired session")

        return {"valid": True, "ownerId": record.ownerId, "authMethod": record.authMethod}
