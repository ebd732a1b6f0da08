"""Pydantic request models for client entrypoints.

These models provide a consistent "validate → normalize → execute" flow.
They serialize with the camelCase keys the backend expects.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from pysmartbus.models.location import LocationSample
from pysmartbus.models.tracking import TrackingIdentity


class _CamelRequest(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class DriverRequest(_CamelRequest):
    """Request containing a driver id."""

    driver_id: str | int

    @field_validator("driver_id")
    @classmethod
    def _driver_non_empty(cls, value: str | int) -> str | int:
        if isinstance(value, str) and not value.strip():
            raise ValueError("driver_id must be non-empty")
        return value


class StopTrackingRequest(DriverRequest):
    pass


class StartTrackingRequest(DriverRequest):
    bus_id: str | int

    @field_validator("bus_id")
    @classmethod
    def _bus_non_empty(cls, value: str | int) -> str | int:
        if isinstance(value, str) and not value.strip():
            raise ValueError("bus_id must be non-empty")
        return value


class UpdateLocationRequest(DriverRequest):
    latitude: float
    longitude: float
    speed: float = 0.0
    bearing: float = 0.0

    @classmethod
    def from_sample(cls, sample: LocationSample, identity: TrackingIdentity) -> UpdateLocationRequest:
        """Build the durable-channel body; unknown speed/bearing are sent as 0."""
        return cls(
            driver_id=identity.driver_id,
            latitude=sample.latitude,
            longitude=sample.longitude,
            speed=sample.speed_mps or 0,
            bearing=sample.bearing_deg or 0,
        )
