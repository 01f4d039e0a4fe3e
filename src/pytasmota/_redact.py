"""Redaction of FILEDOWNLOAD traffic for debug logs."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

# Keys whose values are device or broker secrets.
_SECRET_KEYS: frozenset[str] = frozenset({"password", "mqttpassword", "webpassword"})


def redact_for_log(value: Any, *, max_string: int = 256) -> Any:
    """Return a copy of *value* that is safe to log.

    Secrets in a request or record mapping are masked, binary chunks are
    reduced to their size and long strings are cut to *max_string*.
    """
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"
    if isinstance(value, str) and len(value) > max_string:
        return f"{value[:max_string]}…<truncated>"
    if isinstance(value, Mapping):
        return {
            str(key): "<redacted>" if str(key).lower() in _SECRET_KEYS else redact_for_log(item, max_string=max_string)
            for key, item in value.items()
        }
    return value
