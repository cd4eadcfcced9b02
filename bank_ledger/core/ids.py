"""Surrogate-id codec.

Primary keys are 64-bit integers; outside the storage layer they travel as the
unpadded URL-safe base64 encoding of their 8-byte big-endian form. The token is
opaque, not secret, and carries no ordering.
"""

from __future__ import annotations

import base64
import binascii
import re
from typing import Optional

from . import errors
from .result import ApiResult

_TOKEN = re.compile(r"[A-Za-z0-9_-]{11}=?")


def encode(value: int) -> str:
    raw = value.to_bytes(8, "big", signed=True)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def decode(token: str) -> int:
    if not isinstance(token, str) or _TOKEN.fullmatch(token) is None:
        raise ValueError(f"{token!r} is not an 8-byte url-safe base64 token")
    stripped = token.rstrip("=")
    try:
        raw = base64.urlsafe_b64decode(stripped + "=")
    except binascii.Error as exc:
        raise ValueError(f"{token!r} is not valid base64") from exc
    if len(raw) != 8:
        raise ValueError(f"{token!r} does not decode to 8 bytes")
    return int.from_bytes(raw, "big", signed=True)


def is_valid(token: Optional[str]) -> bool:
    try:
        decode(token)
    except ValueError:
        return False
    return True


def parse(token: Optional[str], param: str) -> ApiResult[int]:
    """Decode ``token`` or explain why it cannot be used as ``param``."""
    if token is None:
        return ApiResult.error(errors.null_parameter(param))
    try:
        return ApiResult.ok(decode(token))
    except ValueError:
        return ApiResult.error(errors.malformed_parameter(param))
