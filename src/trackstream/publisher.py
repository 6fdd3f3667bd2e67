"""Telemetry publisher: drives the vehicle and streams its positions.

Owns:
- the fixed-period generation loop (advance -> publish -> persist)
- the inbound control channel that retunes the vehicle controller
- the reported-parameters echo sent after each applied update
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from trackstream._constants import CONTROL_CHANNEL, DEFAULT_TICK_INTERVAL, POSITION_CHANNEL, REPORTED_CHANNEL
from trackstream._feed import PositionFeed
from trackstream._mqtt import BusMessage, MessageBus
from trackstream._scheduler import run_periodic
from trackstream.models.control import ControlUpdate
from trackstream.models.point import Point, format_position
from trackstream.vehicle import VehicleController, VehicleParameters

_logger = logging.getLogger(__name__)


class TelemetryPublisher:
    """Publish generated positions and accept live parameter updates.

    Control updates arrive through the bus on the event loop thread and
    never during a :meth:`tick`, so each update lands wholly before or
    after a given step.
    """

    def __init__(
        self,
        controller: VehicleController,
        bus: MessageBus,
        feed: PositionFeed,
        *,
        position_channel: str = POSITION_CHANNEL,
        control_channel: str = CONTROL_CHANNEL,
        reported_channel: str | None = REPORTED_CHANNEL,
        logger: logging.Logger | None = None,
    ) -> None:
        self._controller = controller
        self._bus = bus
        self._feed = feed
        self._position_channel = position_channel
        self._control_channel = control_channel
        self._reported_channel = reported_channel
        self._logger = logger or _logger
        self._started = False
        self.positions_published = 0

    @property
    def controller(self) -> VehicleController:
        return self._controller

    def start(self) -> None:
        """Subscribe to the control channel. Safe before the first position."""
        if self._started:
            return
        self._bus.subscribe(self._control_channel, self._on_control_message)
        self._started = True

    def publish_position(self, point: Point) -> None:
        """Send *point* on the position channel, then append it to the feed."""
        self._bus.publish(self._position_channel, format_position(point))
        self._feed.append(point)
        self.positions_published += 1

    def tick(self) -> Point:
        point = self._controller.next()
        self.publish_position(point)
        self._logger.debug("Published position %s", point)
        return point

    def on_control_update(self, fields: ControlUpdate | Mapping[str, Any]) -> VehicleParameters:
        """Apply a sparse ``{AverageSpeed?, Jitter?}`` update.

        Absent, null, zero and negative fields leave the current value
        untouched, so redelivered updates are harmless.
        """
        update = fields if isinstance(fields, ControlUpdate) else ControlUpdate.model_validate(dict(fields))
        before = self._controller.parameters
        params = self._controller.apply(update)
        if params != before:
            self._logger.info(
                "Vehicle parameters updated average_speed=%s jitter=%s",
                params.average_speed,
                params.jitter,
            )
        else:
            self._logger.debug("Control update left parameters unchanged: %s", update.to_wire())
        if self._reported_channel:
            self._bus.publish(self._reported_channel, json.dumps(params.to_wire()))
        return params

    def _on_control_message(self, message: BusMessage) -> None:
        try:
            update = ControlUpdate.from_payload(message.payload)
        except (ValueError, ValidationError):
            self._logger.warning("Dropping malformed control message: %r", message.payload[:256])
            return
        self.on_control_update(update)

    async def run(
        self,
        interval: float = DEFAULT_TICK_INTERVAL,
        *,
        stop: asyncio.Event | None = None,
        max_ticks: int | None = None,
    ) -> int:
        """Generate one position per *interval* until *stop* is set.

        Transport and feed errors propagate and end the loop.
        """
        self.start()
        self._logger.info(
            "Telemetry loop started interval=%ss leg=%s -> %s",
            interval,
            *self._controller.leg,
        )
        ticks = await run_periodic(self.tick, interval, stop=stop, max_runs=max_ticks)
        self._logger.info("Telemetry loop stopped after %d ticks", ticks)
        return ticks
