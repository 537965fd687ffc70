"""Shared plumbing for service operations."""
from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Optional, TypeVar, cast

from ..backend import Backend
from ..errors import Internal, PermissionDenied, ServiceError
from ..identity import CallerIdentity
from ..storage import StorageError

LOGGER = logging.getLogger("admin_auth.services")

F = TypeVar("F", bound=Callable[..., Any])


def service_operation(failure_message: str) -> Callable[[F], F]:
    """Map anything that is not already a :class:`ServiceError` to ``Internal``.

    The original exception is logged; callers only see ``failure_message``.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except ServiceError:
                raise
            except StorageError as exc:
                LOGGER.error("%s: storage failure: %s", func.__name__, exc)
                raise Internal(failure_message) from exc
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.exception("%s: unexpected failure", func.__name__)
                raise Internal(failure_message) from exc

        return cast(F, wrapper)

    return decorator


class Service:
    def __init__(self, backend: Backend) -> None:
        self.backend = backend

    def require_admin(self, caller: Optional[CallerIdentity], message: str) -> CallerIdentity:
        if caller is None:
            raise PermissionDenied(message)
        if not self.backend.admin_policy.is_approved(caller):
            LOGGER.warning("Rejected non-admin caller %s", caller.uid)
            raise PermissionDenied(message)
        return caller
