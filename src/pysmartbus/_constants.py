"""Internal constants shared across the library."""

BASE_URL = "https://smartbus-backend-production.up.railway.app"
DRIVERS_API = "/api/drivers"
USER_AGENT = "pysmartbus/0.1"

# ------------------------------------------------------------------
# Sampling
# ------------------------------------------------------------------

DEFAULT_SAMPLE_INTERVAL_S = 10.0
MIN_FASTEST_INTERVAL_S = 5.0
DISTANCE_FILTER_M = 5.0
SENSOR_RESTART_DELAY_S = 5.0

# ------------------------------------------------------------------
# Live push channel (Socket.IO)
# ------------------------------------------------------------------

CONNECT_TIMEOUT_S = 5.0
RECONNECTION_ATTEMPTS = 10
RECONNECTION_DELAY_S = 1.0
PUSH_TRANSPORTS: tuple[str, ...] = ("websocket", "polling")

EVENT_JOIN_ROOM = "join-driver-room"
EVENT_LEAVE_ROOM = "leave-driver-room"
EVENT_LOCATION_UPDATE = "driver-location-update"
EVENT_PING = "ping"
PING_TIMEOUT_S = 3.0


def fastest_interval(interval: float) -> float:
    """Fastest cadence a source may deliver fixes at for a nominal *interval*."""
    return max(MIN_FASTEST_INTERVAL_S, interval / 2)
