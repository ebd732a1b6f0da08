"""Masking for DEBUG request traces.

Request and response bodies are logged at DEBUG. Roster responses can be
long, so lists and strings are cut down; credential-like keys are masked.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_MASK = "<redacted>"
_MAX_ITEMS = 20
_SECRET_KEYS = frozenset({"password", "token", "accesstoken", "authorization", "cookie", "sessiontoken"})


def _is_secret(key: object) -> bool:
    return str(key).lower().replace("_", "").replace("-", "") in _SECRET_KEYS


def redact_for_log(value: Any, *, max_string: int = 200) -> Any:
    """Copy *value* for logging with secrets masked and long values shortened."""
    if isinstance(value, Mapping):
        return {
            str(key): _MASK if _is_secret(key) else redact_for_log(item, max_string=max_string)
            for key, item in value.items()
        }
    if isinstance(value, list | tuple):
        shortened = [redact_for_log(item, max_string=max_string) for item in value[:_MAX_ITEMS]]
        if len(value) > _MAX_ITEMS:
            shortened.append(f"<{len(value) - _MAX_ITEMS} more>")
        return shortened
    if isinstance(value, str) and len(value) > max_string:
        return f"{value[:max_string]}…"
    return value
