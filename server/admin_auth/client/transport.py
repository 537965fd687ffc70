"""HTTP transport between the client agent and the service."""
from __future__ import annotations

import json
import logging
import ssl
import urllib.error
import urllib.request
from typing import Any, Dict, Mapping, Optional

import certifi

from ..errors import Internal, ServiceError

__all__ = ["HttpTransport", "Transport"]

LOGGER = logging.getLogger("admin_auth.client.transport")


class Transport:
    """Posts a JSON payload to a service path and returns the JSON result.

    Implementations raise the :class:`~admin_auth.errors.ServiceError`
    subclass matching the service's error body.
    """

    def post(
        self,
        path: str,
        payload: Optional[Mapping[str, Any]] = None,
        *,
        id_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        raise NotImplementedError


def _decode_body(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None


class HttpTransport(Transport):
    def __init__(self, base_url: str, *, timeout: float = 70.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._ssl_context = ssl.create_default_context(cafile=certifi.where())

    def post(
        self,
        path: str,
        payload: Optional[Mapping[str, Any]] = None,
        *,
        id_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if id_token:
            headers["Authorization"] = f"Bearer {id_token}"

        body = json.dumps(dict(payload or {})).encode("utf-8")
        request = urllib.request.Request(
            f"{self.base_url}{path}", data=body, headers=headers, method="POST"
        )
        context = self._ssl_context if self.base_url.startswith("https://") else None

        try:
            with urllib.request.urlopen(request, timeout=self.timeout, context=context) as response:
                result = _decode_body(response.read())
        except urllib.error.HTTPError as exc:
            error_body = _decode_body(exc.read())
            raise ServiceError.from_payload(error_body, http_status=exc.code) from exc
        except (urllib.error.URLError, OSError) as exc:
            LOGGER.warning("Request to %s failed: %s", path, exc)
            raise Internal(f"Unable to reach the service: {exc}") from exc

        if not isinstance(result, dict):
            raise Internal("Unexpected response from the service")
        return result
