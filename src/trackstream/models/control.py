"""Inbound control-plane update model."""

from __future__ import annotations

import json
from typing import Any

from pydantic import Field, field_validator

from trackstream.models._base import TrackstreamModel, positive_or_none


class ControlUpdate(TrackstreamModel):
    """Sparse update of live vehicle parameters.

    Wire keys are ``AverageSpeed`` and ``Jitter``. Each field is
    ``None`` when the key is absent, null, non-numeric, zero or negative;
    ``None`` means "leave the current value untouched". Unknown keys
    (for example ``$version`` metadata) are ignored.
    """

    average_speed: float | None = Field(default=None, alias="AverageSpeed")
    jitter: float | None = Field(default=None, alias="Jitter")

    @field_validator("average_speed", "jitter", mode="before")
    @classmethod
    def _positive_only(cls, value: Any) -> float | None:
        return positive_or_none(value)

    @property
    def is_empty(self) -> bool:
        return self.average_speed is None and self.jitter is None

    @classmethod
    def from_payload(cls, payload: str | bytes) -> ControlUpdate:
        """Decode a JSON control message.

        Raises :class:`ValueError` (``json.JSONDecodeError`` or a pydantic
        ``ValidationError``) when the payload is not a JSON object.
        """
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError("control payload must be a JSON object")
        return cls.model_validate(data)

    def to_wire(self) -> dict[str, float]:
        return self.model_dump(by_alias=True, exclude_none=True)
