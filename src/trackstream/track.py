"""Single-leg path following with bounded jitter.

A :class:`Track` is built from the origin waypoint's breadcrumbs as-is,
followed by the destination waypoint's breadcrumbs reversed. That yields
one ordered path that leaves the origin the way it was approached and
arrives at the destination along its approach crumbs.
"""

from __future__ import annotations

import random
from collections.abc import Sequence

from trackstream.exceptions import ConstructionError
from trackstream.models.point import Point, distance_between


def build_path(origin: Sequence[Point], destination: Sequence[Point]) -> tuple[Point, ...]:
    """Concatenate *origin* crumbs with *destination* crumbs reversed."""
    path = (*origin, *reversed(destination))
    if not path:
        raise ConstructionError("track path is empty; waypoints need at least one breadcrumb")
    return path


class Track:
    """Cursor over an immutable path of target points.

    The cursor only moves forward. Once it passes the last target the
    track is done and :meth:`advance` keeps returning the final point.
    """

    def __init__(
        self,
        origin: Sequence[Point],
        destination: Sequence[Point],
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._path = build_path(origin, destination)
        self._index = 0
        self._position = self._path[0]
        self._rng = rng or random.Random()

    @property
    def path(self) -> tuple[Point, ...]:
        return self._path

    @property
    def index(self) -> int:
        return self._index

    @property
    def position(self) -> Point:
        return self._position

    @property
    def target(self) -> Point | None:
        """Current target point, or ``None`` once the track is done."""
        if self.is_done():
            return None
        return self._path[self._index]

    def is_done(self) -> bool:
        return self._index >= len(self._path)

    def advance(self, speed: float, jitter: float) -> Point:
        """Move one step toward the current target and return the new position.

        Within *speed* of the target the position snaps onto it exactly and
        the cursor moves on. Otherwise the position covers ``speed / d`` of
        the remaining gap on each axis, then each axis gets an independent
        uniform perturbation in ``[-jitter, +jitter]``.
        """
        if self.is_done():
            return self._position

        target = self._path[self._index]
        current = self._position
        d = distance_between(current, target)

        if d <= speed:
            self._position = target
            self._index += 1
            return self._position

        fraction = speed / d
        self._position = Point(
            lat=current.lat + (target.lat - current.lat) * fraction + self._rng.uniform(-jitter, jitter),
            lng=current.lng + (target.lng - current.lng) * fraction + self._rng.uniform(-jitter, jitter),
        )
        return self._position
