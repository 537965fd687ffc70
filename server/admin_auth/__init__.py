"""Admin WebAuthn service: biometric login for tournament admins.

``admin_auth.client`` runs on admin machines that never host the service, so
the Flask factory and the purge job load only when one of their names is
first looked up on the package.
"""
from __future__ import annotations

from importlib import import_module
from typing import Any, Dict

_LAZY_EXPORTS: Dict[str, str] = {
    "create_app": ".app",
    "main": ".app",
    "purge_expired": ".purge",
}

__all__ = sorted(_LAZY_EXPORTS)


def __getattr__(name: str) -> Any:
    module_name = _LAZY_EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    value = getattr(import_module(module_name, __name__), name)
    globals()[name] = value
    return value
