"""Data models for positions, waypoints and control updates."""

from trackstream.models._base import TrackstreamModel, positive_or_none, safe_float
from trackstream.models.control import ControlUpdate
from trackstream.models.point import Point, distance_between, format_position, parse_position
from trackstream.models.waypoint import DEFAULT_WAYPOINTS, Waypoint, WaypointGraph, load_waypoints

__all__ = [
    "ControlUpdate",
    "DEFAULT_WAYPOINTS",
    "Point",
    "TrackstreamModel",
    "Waypoint",
    "WaypointGraph",
    "distance_between",
    "format_position",
    "load_waypoints",
    "parse_position",
    "positive_or_none",
    "safe_float",
]
