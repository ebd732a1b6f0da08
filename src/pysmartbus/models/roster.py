"""Driver and bus roster models."""

from __future__ import annotations

from pydantic import AliasChoices, Field

from pysmartbus.models._base import SmartBusBaseModel


class Driver(SmartBusBaseModel):
    """A driver that can be selected for a tracking session."""

    driver_id: str | int = Field(validation_alias=AliasChoices("driver_id", "driverId", "id"))
    driver_name: str | None = Field(default=None, validation_alias=AliasChoices("driver_name", "driverName", "name"))

    @property
    def display_name(self) -> str:
        return self.driver_name or "Driver"


class Bus(SmartBusBaseModel):
    """A bus that is currently free to be assigned."""

    bus_id: str | int = Field(validation_alias=AliasChoices("bus_id", "busId", "id"))
    bus_number: str | int | None = Field(default=None, validation_alias=AliasChoices("bus_number", "busNumber"))
    capacity: int | None = None

    @property
    def display_name(self) -> str:
        return str(self.bus_number) if self.bus_number is not None else "Bus"
