"""trackstream - simulated vehicle telemetry with streaming distance aggregation."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("trackstream")
except PackageNotFoundError:
    __version__ = "0+local"
from trackstream._feed import PositionFeed
from trackstream._mqtt import BusMessage, InMemoryBus, MessageBus, MqttBus
from trackstream.aggregator import AggregatorState, DistanceAggregator
from trackstream.config import MqttSettings, TrackstreamConfig
from trackstream.exceptions import (
    ConfigError,
    ConstructionError,
    ParseError,
    TrackstreamError,
    TransportError,
)
from trackstream.models import (
    DEFAULT_WAYPOINTS,
    ControlUpdate,
    Point,
    Waypoint,
    WaypointGraph,
    distance_between,
    format_position,
    load_waypoints,
    parse_position,
)
from trackstream.publisher import TelemetryPublisher
from trackstream.track import Track
from trackstream.vehicle import VehicleController, VehicleParameters

__all__ = [
    "__version__",
    "AggregatorState",
    "BusMessage",
    "ConfigError",
    "ConstructionError",
    "ControlUpdate",
    "DEFAULT_WAYPOINTS",
    "DistanceAggregator",
    "InMemoryBus",
    "MessageBus",
    "MqttBus",
    "MqttSettings",
    "ParseError",
    "Point",
    "PositionFeed",
    "TelemetryPublisher",
    "Track",
    "TrackstreamConfig",
    "TrackstreamError",
    "TransportError",
    "VehicleController",
    "VehicleParameters",
    "Waypoint",
    "WaypointGraph",
    "distance_between",
    "format_position",
    "load_waypoints",
    "parse_position",
]
