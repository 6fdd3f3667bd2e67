"""Vehicle controller: cycles legs through the waypoint graph."""

from __future__ import annotations

import dataclasses
import logging
import math
import random
from collections.abc import Sequence

from pydantic import ValidationError

from trackstream._constants import DEFAULT_AVERAGE_SPEED, DEFAULT_JITTER
from trackstream.exceptions import ConstructionError
from trackstream.models.control import ControlUpdate
from trackstream.models.point import Point
from trackstream.models.waypoint import Waypoint, WaypointGraph
from trackstream.track import Track

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class VehicleParameters:
    """Snapshot of the live-tunable motion parameters."""

    average_speed: float
    jitter: float

    def to_wire(self) -> dict[str, float]:
        return {"AverageSpeed": self.average_speed, "Jitter": self.jitter}


def _as_graph(waypoints: WaypointGraph | Sequence[Waypoint]) -> WaypointGraph:
    if isinstance(waypoints, WaypointGraph):
        return waypoints
    if len(waypoints) < 2:
        raise ConstructionError(f"need at least 2 waypoints for a track, got {len(waypoints)}")
    try:
        return WaypointGraph(waypoints=tuple(waypoints))
    except ValidationError as exc:
        raise ConstructionError(f"invalid waypoint graph: {exc}") from exc


class VehicleController:
    """Owns the current leg and the live speed/jitter parameters.

    Destinations are chosen by sequential cycling: after arriving, the
    destination becomes the new origin and the next graph entry (wrapping
    to 0) becomes the new destination.

    Usage::

        controller = VehicleController.create(DEFAULT_WAYPOINTS)
        point = controller.next()
    """

    def __init__(
        self,
        waypoints: WaypointGraph,
        *,
        origin_index: int,
        average_speed: float = DEFAULT_AVERAGE_SPEED,
        jitter: float = DEFAULT_JITTER,
        rng: random.Random | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if not 0 <= origin_index < len(waypoints):
            raise ConstructionError(f"origin index {origin_index} out of range for {len(waypoints)} waypoints")
        if not math.isfinite(average_speed) or average_speed <= 0:
            raise ConstructionError(f"average speed must be finite and positive, got {average_speed}")
        if not math.isfinite(jitter) or jitter < 0:
            raise ConstructionError(f"jitter must be finite and non-negative, got {jitter}")

        self._waypoints = waypoints
        self._rng = rng or random.Random()
        self._logger = logger or _logger
        self._average_speed = float(average_speed)
        self._jitter = float(jitter)
        self._origin_index = origin_index
        self._destination_index = waypoints.next_index(origin_index)
        self._legs_completed = 0
        self._track = self._build_track()

    @classmethod
    def create(
        cls,
        waypoints: WaypointGraph | Sequence[Waypoint],
        average_speed: float | None = None,
        jitter: float | None = None,
        *,
        rng: random.Random | None = None,
        start_index: int | None = None,
        logger: logging.Logger | None = None,
    ) -> VehicleController:
        """Build a controller starting at a uniformly random waypoint.

        ``None`` parameters fall back to the package defaults. Raises
        :class:`ConstructionError` for fewer than two waypoints.
        """
        graph = _as_graph(waypoints)
        rng = rng or random.Random()
        origin = rng.randrange(len(graph)) if start_index is None else start_index
        return cls(
            graph,
            origin_index=origin,
            average_speed=DEFAULT_AVERAGE_SPEED if average_speed is None else average_speed,
            jitter=DEFAULT_JITTER if jitter is None else jitter,
            rng=rng,
            logger=logger,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def waypoints(self) -> WaypointGraph:
        return self._waypoints

    @property
    def origin_index(self) -> int:
        return self._origin_index

    @property
    def destination_index(self) -> int:
        return self._destination_index

    @property
    def leg(self) -> tuple[str, str]:
        """Names of the current origin and destination."""
        return (
            self._waypoints[self._origin_index].name,
            self._waypoints[self._destination_index].name,
        )

    @property
    def track(self) -> Track:
        return self._track

    @property
    def legs_completed(self) -> int:
        return self._legs_completed

    @property
    def average_speed(self) -> float:
        return self._average_speed

    @property
    def jitter(self) -> float:
        return self._jitter

    @property
    def parameters(self) -> VehicleParameters:
        return VehicleParameters(average_speed=self._average_speed, jitter=self._jitter)

    # ------------------------------------------------------------------
    # Live parameters
    # ------------------------------------------------------------------

    def set_average_speed(self, value: float) -> None:
        """Replace the speed from the next step on; non-positive or non-finite values are ignored."""
        if math.isfinite(value) and value > 0:
            self._average_speed = float(value)

    def set_jitter(self, value: float) -> None:
        """Replace the jitter from the next step on; non-positive or non-finite values are ignored."""
        if math.isfinite(value) and value > 0:
            self._jitter = float(value)

    def apply(self, update: ControlUpdate) -> VehicleParameters:
        """Apply a sparse control update and return the effective parameters."""
        if update.average_speed is not None:
            self.set_average_speed(update.average_speed)
        if update.jitter is not None:
            self.set_jitter(update.jitter)
        return self.parameters

    # ------------------------------------------------------------------
    # Motion
    # ------------------------------------------------------------------

    def next(self) -> Point:
        """Advance the current leg by one step, rolling over to a new leg on arrival."""
        point = self._track.advance(self._average_speed, self._jitter)
        if self._track.is_done():
            self._origin_index = self._destination_index
            self._destination_index = self._waypoints.next_index(self._destination_index)
            self._legs_completed += 1
            self._track = self._build_track()
            self._logger.info("Leg complete; heading %s -> %s", *self.leg)
        return point

    def _build_track(self) -> Track:
        origin = self._waypoints[self._origin_index]
        destination = self._waypoints[self._destination_index]
        return Track(origin.breadcrumbs, destination.breadcrumbs, rng=self._rng)
