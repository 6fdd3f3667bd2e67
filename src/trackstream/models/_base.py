"""Base model and normalization helpers shared by trackstream models.

Every model inherits from :class:`TrackstreamModel` which provides a
frozen, alias-aware pydantic configuration. Non-finite floats are
rejected at the model boundary so that a single ``NaN`` can never
poison a running distance total.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict


def safe_float(value: Any) -> float | None:
    """Coerce *value* to a finite float, or ``None`` when it is not one."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def positive_or_none(value: Any) -> float | None:
    """Return *value* as a float when it is strictly positive, else ``None``."""
    parsed = safe_float(value)
    if parsed is None or parsed <= 0:
        return None
    return parsed


class TrackstreamModel(BaseModel):
    """Base for trackstream value types."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        allow_inf_nan=False,
    )
