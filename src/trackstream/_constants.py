"""Internal constants shared across the library."""

# ------------------------------------------------------------------
# Channel names (relative to the configured topic prefix)
# ------------------------------------------------------------------

POSITION_CHANNEL = "position"
DISTANCE_CHANNEL = "totalDistance"
CONTROL_CHANNEL = "control"
REPORTED_CHANNEL = "reported"

# ------------------------------------------------------------------
# Timing and motion defaults
# ------------------------------------------------------------------

DEFAULT_TICK_INTERVAL: float = 1.0
DEFAULT_REPORT_INTERVAL: float = 10.0

# Degrees per tick in the planar lat/lng space.
DEFAULT_AVERAGE_SPEED: float = 0.02
DEFAULT_JITTER: float = 0.0001

# ------------------------------------------------------------------
# Position feed
# ------------------------------------------------------------------

DEFAULT_FEED_PATH = "positions.csv"
# Longitude first; renderers depend on this column order.
FEED_HEADER: tuple[str, str] = ("lng", "lat")

POSITION_SEPARATOR = ":"
