"""Error taxonomy shared by the services, the HTTP layer and the client."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Type

__all__ = [
    "DeadlineExceeded",
    "FailedPrecondition",
    "Internal",
    "InvalidArgument",
    "PermissionDenied",
    "ServiceError",
    "error_for_status",
]


class ServiceError(Exception):
    """Base class for failures reported across the service boundary.

    Only ``message`` is ever sent to callers. Anything more detailed belongs
    in the server log.
    """

    status = "INTERNAL"
    http_status = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.status.replace("_", " ").lower())
        self.message = message or self.status.replace("_", " ").lower()

    def to_payload(self) -> Dict[str, Any]:
        return {"error": {"status": self.status, "message": self.message}}

    @classmethod
    def from_payload(
        cls, payload: Optional[Mapping[str, Any]], *, http_status: Optional[int] = None
    ) -> "ServiceError":
        """Rebuild the error a service reported from its JSON error body."""

        error = payload.get("error") if isinstance(payload, Mapping) else None
        if not isinstance(error, Mapping):
            error_cls = _BY_HTTP_STATUS.get(http_status or 500, Internal)
            return error_cls("unexpected response from service")

        message = error.get("message")
        error_cls = error_for_status(error.get("status"))
        return error_cls(message if isinstance(message, str) else "")


class PermissionDenied(ServiceError):
    status = "PERMISSION_DENIED"
    http_status = 403


class FailedPrecondition(ServiceError):
    status = "FAILED_PRECONDITION"
    http_status = 412


class DeadlineExceeded(ServiceError):
    status = "DEADLINE_EXCEEDED"
    http_status = 410


class InvalidArgument(ServiceError):
    status = "INVALID_ARGUMENT"
    http_status = 400


class Internal(ServiceError):
    status = "INTERNAL"
    http_status = 500


_BY_STATUS: Dict[str, Type[ServiceError]] = {
    error_cls.status: error_cls
    for error_cls in (
        PermissionDenied,
        FailedPrecondition,
        DeadlineExceeded,
        InvalidArgument,
        Internal,
    )
}

_BY_HTTP_STATUS: Dict[int, Type[ServiceError]] = {
    error_cls.http_status: error_cls for error_cls in _BY_STATUS.values()
}


def error_for_status(status: Any) -> Type[ServiceError]:
    if isinstance(status, str):
        return _BY_STATUS.get(status.strip().upper(), Internal)
    return Internal
