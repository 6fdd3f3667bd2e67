"""Planar position model and the ``"<lat>:<lng>"`` wire codec."""

from __future__ import annotations

import math
from typing import Any

from pydantic import ValidationError, model_validator

from trackstream._constants import POSITION_SEPARATOR
from trackstream.exceptions import ParseError
from trackstream.models._base import TrackstreamModel


class Point(TrackstreamModel):
    """A 2-D coordinate.

    Validates from ``{"lat": .., "lng": ..}`` or from a two-element
    ``[lat, lng]`` sequence, which is the waypoint file format.
    """

    lat: float
    lng: float

    @model_validator(mode="before")
    @classmethod
    def _from_pair(cls, values: Any) -> Any:
        if isinstance(values, (list, tuple)):
            if len(values) != 2:
                raise ValueError(f"expected [lat, lng], got {len(values)} values")
            return {"lat": values[0], "lng": values[1]}
        return values

    def __str__(self) -> str:
        return format_position(self)


def distance_between(a: Point, b: Point) -> float:
    """Planar distance between two points.

    Euclidean in raw lat/lng degrees, not geodesic. Downstream totals are
    expressed in the same unit, so this must not be swapped for haversine.
    """
    return math.hypot(a.lat - b.lat, a.lng - b.lng)


def format_position(point: Point) -> str:
    """Encode a point as ``"<lat>:<lng>"``."""
    return f"{point.lat!r}{POSITION_SEPARATOR}{point.lng!r}"


def parse_position(raw: str | bytes) -> Point:
    """Decode a ``"<lat>:<lng>"`` payload.

    Raises :class:`ParseError` for anything other than exactly two finite
    numeric fields.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            text = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError("position payload is not valid UTF-8", payload=bytes(raw)) from exc
    else:
        text = raw

    parts = text.strip().split(POSITION_SEPARATOR)
    if len(parts) != 2:
        raise ParseError(f"expected '<lat>:<lng>', got {text!r}", payload=raw)

    try:
        lat = float(parts[0])
        lng = float(parts[1])
    except ValueError as exc:
        raise ParseError(f"non-numeric position field in {text!r}", payload=raw) from exc

    try:
        return Point(lat=lat, lng=lng)
    except ValidationError as exc:
        raise ParseError(f"non-finite position in {text!r}", payload=raw) from exc
