"""pysmartbus - Async GPS tracking agent for the SmartBus driver backend."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pysmartbus")
except PackageNotFoundError:
    __version__ = "0+local"
from pysmartbus.channels import ChannelConnectionState, ConnectionStateChange, DurableChannel, LiveChannel
from pysmartbus.client import SmartBusClient
from pysmartbus.config import SmartBusConfig
from pysmartbus.exceptions import (
    LocationPermissionError,
    PositionError,
    PositionErrorCode,
    SensorError,
    SmartBusApiError,
    SmartBusConfigError,
    SmartBusError,
    SmartBusTransportError,
)
from pysmartbus.geolocation import GeolocationSource, ReplaySource, TermuxLocationSource, WatchOptions
from pysmartbus.models import (
    ApiAck,
    Bus,
    DeliveryOutcome,
    Driver,
    LocationSample,
    StopTrackingResult,
    TrackingIdentity,
)
from pysmartbus.sampler import Sampler, SamplerOptions, SamplerState
from pysmartbus.session import TrackingSession
from pysmartbus.state.events import SessionEvent, SessionEventKind
from pysmartbus.state.statistics import SessionStatistics
from pysmartbus.supervisor import FailureAction, TrackingSupervisor

__all__ = [
    "__version__",
    "ApiAck",
    "Bus",
    "ChannelConnectionState",
    "ConnectionStateChange",
    "DeliveryOutcome",
    "Driver",
    "DurableChannel",
    "FailureAction",
    "GeolocationSource",
    "LiveChannel",
    "LocationPermissionError",
    "LocationSample",
    "PositionError",
    "PositionErrorCode",
    "ReplaySource",
    "Sampler",
    "SamplerOptions",
    "SamplerState",
    "SensorError",
    "SessionEvent",
    "SessionEventKind",
    "SessionStatistics",
    "SmartBusApiError",
    "SmartBusClient",
    "SmartBusConfig",
    "SmartBusConfigError",
    "SmartBusError",
    "SmartBusTransportError",
    "StopTrackingResult",
    "TermuxLocationSource",
    "TrackingIdentity",
    "TrackingSession",
    "TrackingSupervisor",
    "WatchOptions",
]
