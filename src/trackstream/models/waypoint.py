"""Waypoint graph models and loader.

A waypoint is a named location plus an ordered list of breadcrumbs that
guide the approach toward it. Breadcrumbs are always listed in the
approach direction; departures reuse them in reverse.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator

from trackstream.exceptions import ConstructionError
from trackstream.models._base import TrackstreamModel
from trackstream.models.point import Point

_logger = logging.getLogger(__name__)


class Waypoint(TrackstreamModel):
    """A named location with at least one approach breadcrumb."""

    name: str
    breadcrumbs: tuple[Point, ...] = Field(min_length=1)

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("waypoint name must be non-empty")
        return name


class WaypointGraph(TrackstreamModel):
    """Static, ordered collection of waypoints, cycled through sequentially."""

    waypoints: tuple[Waypoint, ...] = Field(min_length=2)

    def __len__(self) -> int:
        return len(self.waypoints)

    def __getitem__(self, index: int) -> Waypoint:
        return self.waypoints[index]

    def next_index(self, index: int) -> int:
        """Sequential-cycle successor of *index*, wrapping to 0."""
        return (index + 1) % len(self.waypoints)

    @classmethod
    def from_raw(cls, raw: Sequence[Any]) -> WaypointGraph:
        """Build a graph from ``[{name, breadcrumbs: [[lat, lng], ...]}, ...]``.

        Raises :class:`ConstructionError` for any invalid entry, including a
        graph with fewer than two waypoints or a waypoint without breadcrumbs.
        """
        try:
            return cls.model_validate({"waypoints": list(raw)})
        except ValidationError as exc:
            raise ConstructionError(f"invalid waypoint graph: {exc}") from exc


def load_waypoints(path: str | Path) -> WaypointGraph:
    """Load a waypoint graph from a JSON file.

    The file holds a list of ``{"name": ..., "breadcrumbs": [[lat, lng], ...]}``
    objects, or an object with a ``"waypoints"`` key holding that list.
    """
    source = Path(path)
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConstructionError(f"cannot read waypoint file {source}: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("waypoints")
    if not isinstance(data, list):
        raise ConstructionError(f"waypoint file {source} must contain a list of waypoints")

    graph = WaypointGraph.from_raw(data)
    _logger.debug("Loaded %d waypoints from %s", len(graph), source)
    return graph


DEFAULT_WAYPOINTS = WaypointGraph.from_raw(
    [
        {
            "name": "Depot",
            "breadcrumbs": [
                [47.6450, -122.1420],
                [47.6440, -122.1380],
                [47.6431, -122.1352],
            ],
        },
        {
            "name": "Harbor",
            "breadcrumbs": [
                [47.6020, -122.3450],
                [47.6055, -122.3410],
                [47.6062, -122.3393],
            ],
        },
        {
            "name": "Airfield",
            "breadcrumbs": [
                [47.5300, -122.3050],
                [47.5338, -122.3002],
            ],
        },
        {
            "name": "Warehouse",
            "breadcrumbs": [
                [47.6800, -122.2050],
                [47.6788, -122.2011],
                [47.6774, -122.1990],
            ],
        },
    ]
)
