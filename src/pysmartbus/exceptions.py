"""Custom exception hierarchy for pysmartbus."""

from __future__ import annotations

import enum


class SmartBusError(Exception):
    """Base exception for all pysmartbus errors."""


class SmartBusConfigError(SmartBusError):
    """Invalid or missing configuration."""


class SmartBusTransportError(SmartBusError):
    """HTTP-level failure (network, timeout, non-JSON body)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class SmartBusApiError(SmartBusError):
    """Backend answered with ``success: false`` or a malformed body."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)


class SensorError(SmartBusError):
    """The location sensor could not produce a fix."""


class LocationPermissionError(SensorError):
    """Location permission or capability is not available on this device."""


class PositionErrorCode(enum.IntEnum):
    """Failure codes reported by geolocation sources.

    Values follow the W3C/mobile geolocation convention.
    """

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


class PositionError(SensorError):
    """A watch could not deliver a fix."""

    def __init__(self, message: str, *, code: PositionErrorCode = PositionErrorCode.POSITION_UNAVAILABLE) -> None:
        self.code = code
        super().__init__(message)
