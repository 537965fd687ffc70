"""Report whether the calling identity holds admin privileges."""
from __future__ import annotations

from typing import Any, Dict, Optional

from ..backend import Backend
from ..identity import CallerIdentity


def check_admin_status(backend: Backend, caller: Optional[CallerIdentity]) -> Dict[str, Any]:
    if caller is None:
        return {"isAdmin": False}
    return {
        "isAdmin": backend.admin_policy.is_approved(caller),
        "uid": caller.uid,
        "email": caller.email,
    }
