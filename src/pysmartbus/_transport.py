"""JSON-over-HTTP transport for the SmartBus REST API."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pysmartbus._constants import USER_AGENT
from pysmartbus._redact import redact_for_log
from pysmartbus.config import SmartBusConfig
from pysmartbus.exceptions import SmartBusTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles/mocks while
    keeping the production implementation (`JsonTransport`) concrete.
    """

    async def request_json(
        self,
        method: str,
        endpoint: str,
        payload: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        ...


class JsonTransport:
    """HTTP transport that sends and receives JSON objects."""

    def __init__(self, config: SmartBusConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def request_json(
        self,
        method: str,
        endpoint: str,
        payload: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one request and return the decoded JSON object.

        The backend reports application failures as ``{"success": false}``
        bodies, sometimes with a 4xx/5xx status. Such bodies are returned
        as-is so the endpoint layer can read ``message``; only responses
        that are not a JSON object raise.
        """
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }
        url = f"{self._config.base_url}{endpoint}"
        body = json.dumps(dict(payload)) if payload is not None else None

        _logger.debug("%s %s body=%s", method, url, redact_for_log(payload))

        try:
            async with self._http.request(method, url, data=body, headers=headers, timeout=self._timeout) as resp:
                status = resp.status
                raw = await resp.read()
        except aiohttp.ClientError as exc:
            raise SmartBusTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc
        except TimeoutError as exc:
            raise SmartBusTransportError(
                f"Request to {endpoint} timed out after {self._config.request_timeout}s",
                endpoint=endpoint,
            ) from exc

        text = raw.decode("utf-8", errors="replace")
        try:
            result = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise SmartBusTransportError(
                f"HTTP {status} from {endpoint} is not UTF-8 JSON: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            ) from exc

        if not isinstance(result, dict):
            raise SmartBusTransportError(
                f"HTTP {status} from {endpoint} is not a JSON object",
                status_code=status,
                endpoint=endpoint,
            )

        if status >= 400 and "success" not in result:
            raise SmartBusTransportError(
                f"HTTP {status} from {endpoint}: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            )

        _logger.debug("%s %s -> %s %s", method, url, status, redact_for_log(result))
        return result
