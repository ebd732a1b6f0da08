"""Agent configuration for pysmartbus."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pysmartbus._constants import (
    BASE_URL,
    CONNECT_TIMEOUT_S,
    DEFAULT_SAMPLE_INTERVAL_S,
    DISTANCE_FILTER_M,
    PUSH_TRANSPORTS,
    RECONNECTION_ATTEMPTS,
    RECONNECTION_DELAY_S,
    SENSOR_RESTART_DELAY_S,
)
from pysmartbus.exceptions import SmartBusConfigError


def _env_float(value: str | None, name: str) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise SmartBusConfigError(f"{name} must be a number, got {value!r}") from exc


def _env_int(value: str | None, name: str) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise SmartBusConfigError(f"{name} must be an integer, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class SmartBusConfig:
    """Agent configuration.

    Parameters
    ----------
    base_url : str
        Backend base URL. The REST endpoints live under ``/api/drivers``.
    push_url : str or None
        Socket.IO server URL. ``None`` uses *base_url*.
    request_timeout : float
        Total timeout in seconds for one HTTP request.
    sample_interval : float
        Nominal seconds between location fixes.
    distance_filter : float
        Minimum displacement in metres before a source reports a new fix.
    restart_delay : float
        Seconds the sampler waits before restarting after a sensor failure.
    connect_timeout : float
        Socket.IO handshake timeout in seconds.
    reconnection_attempts : int
        Automatic reconnection attempts before the push channel gives up.
    reconnection_delay : float
        Seconds between reconnection attempts.
    push_transports : tuple of str
        Engine.IO transports in order of preference.
    """

    base_url: str = BASE_URL
    push_url: str | None = None
    request_timeout: float = 15.0
    sample_interval: float = DEFAULT_SAMPLE_INTERVAL_S
    distance_filter: float = DISTANCE_FILTER_M
    restart_delay: float = SENSOR_RESTART_DELAY_S
    connect_timeout: float = CONNECT_TIMEOUT_S
    reconnection_attempts: int = RECONNECTION_ATTEMPTS
    reconnection_delay: float = RECONNECTION_DELAY_S
    push_transports: tuple[str, ...] = PUSH_TRANSPORTS

    def __post_init__(self) -> None:
        if not self.base_url.strip():
            raise SmartBusConfigError("base_url must be non-empty")
        for name in ("request_timeout", "sample_interval", "connect_timeout"):
            if getattr(self, name) <= 0:
                raise SmartBusConfigError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("distance_filter", "restart_delay", "reconnection_delay"):
            if getattr(self, name) < 0:
                raise SmartBusConfigError(f"{name} must not be negative, got {getattr(self, name)}")
        if self.reconnection_attempts < 0:
            raise SmartBusConfigError(f"reconnection_attempts must not be negative, got {self.reconnection_attempts}")
        if not self.push_transports:
            raise SmartBusConfigError("push_transports must name at least one transport")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @property
    def resolved_push_url(self) -> str:
        """Socket.IO endpoint, defaulting to the REST base URL."""
        return self.push_url or self.base_url

    @classmethod
    def from_env(cls, **overrides: Any) -> SmartBusConfig:
        """Create configuration from ``SMARTBUS_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        for env_key, field_name in (("SMARTBUS_BASE_URL", "base_url"), ("SMARTBUS_PUSH_URL", "push_url")):
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "SMARTBUS_REQUEST_TIMEOUT": "request_timeout",
            "SMARTBUS_SAMPLE_INTERVAL": "sample_interval",
            "SMARTBUS_DISTANCE_FILTER": "distance_filter",
            "SMARTBUS_RESTART_DELAY": "restart_delay",
            "SMARTBUS_CONNECT_TIMEOUT": "connect_timeout",
            "SMARTBUS_RECONNECTION_DELAY": "reconnection_delay",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            parsed = _env_float(env.get(env_key), env_key)
            if parsed is not None:
                config_kwargs[field_name] = parsed

        attempts = _env_int(env.get("SMARTBUS_RECONNECTION_ATTEMPTS"), "SMARTBUS_RECONNECTION_ATTEMPTS")
        if attempts is not None:
            config_kwargs["reconnection_attempts"] = attempts

        transports_env = env.get("SMARTBUS_PUSH_TRANSPORTS")
        if transports_env is not None:
            config_kwargs["push_transports"] = tuple(t.strip() for t in transports_env.split(",") if t.strip())

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
