"""Transport encoding helpers for binary WebAuthn fields.

Every binary value that crosses the network boundary travels as URL-safe
base64 without padding. Browsers and some SDKs hand back the standard padded
alphabet instead, so decoding accepts either variant.
"""
from __future__ import annotations

import base64
import binascii
from typing import Any, Iterable

from fido2.utils import websafe_decode, websafe_encode

__all__ = [
    "add_base64_padding",
    "base64_to_urlsafe",
    "decode_binary_value",
    "decode_urlsafe",
    "encode_urlsafe",
    "urlsafe_from_any",
    "urlsafe_to_base64",
]


def add_base64_padding(value: str) -> str:
    return value + "=" * (-len(value) % 4)


def encode_urlsafe(data: bytes) -> str:
    """Encode ``data`` as URL-safe base64 with the padding stripped."""

    return websafe_encode(bytes(data))


def decode_urlsafe(value: str) -> bytes:
    """Decode URL-safe or standard base64, padded or not."""

    if not isinstance(value, str):
        raise ValueError("expected a base64 string")

    candidate = value.strip()
    try:
        return websafe_decode(urlsafe_from_any(candidate))
    except (binascii.Error, ValueError) as exc:
        raise ValueError("invalid base64 value") from exc


def urlsafe_from_any(value: str) -> str:
    return value.replace("+", "-").replace("/", "_").rstrip("=")


def urlsafe_to_base64(value: str) -> str:
    """Convert URL-safe (possibly unpadded) base64 to the standard padded form."""

    return add_base64_padding(value.strip().replace("-", "+").replace("_", "/"))


def base64_to_urlsafe(value: str) -> str:
    """Convert standard base64 to URL-safe base64 without padding."""

    return urlsafe_from_any(value.strip())


def decode_binary_value(value: Any) -> bytes:
    """Coerce a JSON transported binary value into ``bytes``."""

    if value is None:
        raise ValueError("missing binary value")

    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)

    if isinstance(value, str):
        if not value.strip():
            raise ValueError("empty string")
        return decode_urlsafe(value)

    if isinstance(value, Iterable):
        try:
            return bytes(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("invalid iterable value") from exc

    raise ValueError("unsupported binary value type")
