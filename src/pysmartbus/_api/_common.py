"""Shared helpers for SmartBus API endpoint modules.

This module centralizes the most repeated patterns:
- mapping ``{"success": false}`` bodies to :class:`SmartBusApiError`
- validating list payloads into response models

It is internal to pysmartbus and may change at any time.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from pysmartbus._constants import DRIVERS_API
from pysmartbus._transport import Transport
from pysmartbus.exceptions import SmartBusApiError

_logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def drivers_endpoint(path: str) -> str:
    """Join *path* onto the drivers API base path."""
    return f"{DRIVERS_API}/{path.lstrip('/')}"


def require_success(response: Mapping[str, Any], endpoint: str) -> Mapping[str, Any]:
    """Return *response* unless the backend reported ``success: false``."""
    if response.get("success") is True:
        return response
    message = response.get("message")
    if not isinstance(message, str) or not message:
        message = "request was not successful"
    raise SmartBusApiError(f"{endpoint} failed: {message}", endpoint=endpoint)


def parse_items(response: Mapping[str, Any], key: str, model: type[M], endpoint: str) -> list[M]:
    """Validate ``response[key]`` as a list of *model*.

    Items that fail validation are skipped with a debug log; a missing or
    non-list value is a malformed response.
    """
    items = response.get(key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise SmartBusApiError(f"{endpoint} returned a non-list '{key}'", endpoint=endpoint)
    parsed: list[M] = []
    for item in items:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as exc:
            _logger.debug("Skipping invalid %s item from %s: %s", model.__name__, endpoint, exc)
    return parsed


async def request_checked(
    transport: Transport,
    method: str,
    endpoint: str,
    payload: Mapping[str, Any] | None = None,
) -> Mapping[str, Any]:
    """Send one request and require a successful body."""
    response = await transport.request_json(method, endpoint, payload)
    return require_success(response, endpoint)
