"""Streaming distance aggregator.

Folds position messages, in arrival order, into a cumulative planar
distance and reports the total on its own fixed schedule. Messages are
neither reordered nor deduplicated; a redelivered point adds zero
distance only when it immediately follows itself. The total is
process-local and starts from zero on every restart.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging

from trackstream._constants import DEFAULT_REPORT_INTERVAL, DISTANCE_CHANNEL, POSITION_CHANNEL
from trackstream._mqtt import BusMessage, MessageBus
from trackstream._scheduler import run_periodic
from trackstream.exceptions import ParseError
from trackstream.models.point import Point, distance_between, parse_position

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class AggregatorState:
    """Immutable snapshot of the aggregator."""

    total_distance: float = 0.0
    last_position: Point | None = None
    accepted: int = 0
    rejected: int = 0


class DistanceAggregator:
    """Cumulative distance over a position stream.

    Ingestion and reporting both run on the owning event loop, and the
    state is swapped as a whole snapshot, so a report never observes a
    half-applied position.
    """

    def __init__(
        self,
        bus: MessageBus | None = None,
        *,
        position_channel: str = POSITION_CHANNEL,
        distance_channel: str = DISTANCE_CHANNEL,
        logger: logging.Logger | None = None,
    ) -> None:
        self._bus = bus
        self._position_channel = position_channel
        self._distance_channel = distance_channel
        self._logger = logger or _logger
        self._state = AggregatorState()

    @property
    def total_distance(self) -> float:
        return self._state.total_distance

    @property
    def last_position(self) -> Point | None:
        return self._state.last_position

    def snapshot(self) -> AggregatorState:
        return self._state

    def start(self) -> None:
        """Subscribe to the position channel."""
        if self._bus is None:
            raise RuntimeError("aggregator has no bus to subscribe on")
        self._bus.subscribe(self._position_channel, self.handle_message)

    def on_position(self, raw: str | bytes) -> Point:
        """Fold one ``"<lat>:<lng>"`` payload into the running total.

        Raises :class:`ParseError` for a malformed payload, leaving the
        total and last position untouched.
        """
        point = parse_position(raw)
        state = self._state
        total = state.total_distance
        if state.last_position is not None:
            total += distance_between(state.last_position, point)
        self._state = dataclasses.replace(
            state,
            total_distance=total,
            last_position=point,
            accepted=state.accepted + 1,
        )
        return point

    def handle_message(self, message: BusMessage) -> None:
        """Bus handler: ingest a position, dropping malformed payloads."""
        try:
            self.on_position(message.payload)
        except ParseError as exc:
            self._state = dataclasses.replace(self._state, rejected=self._state.rejected + 1)
            self._logger.warning("Dropping malformed position message: %s", exc)

    def report(self) -> float:
        """Publish the current total on the distance channel and return it."""
        total = self._state.total_distance
        if self._bus is not None:
            self._bus.publish(self._distance_channel, repr(total))
        self._logger.info("Total distance %s (accepted=%d rejected=%d)", total, self._state.accepted, self._state.rejected)
        return total

    async def report_loop(
        self,
        interval: float = DEFAULT_REPORT_INTERVAL,
        *,
        stop: asyncio.Event | None = None,
        max_reports: int | None = None,
    ) -> int:
        """Report every *interval* seconds, independent of message arrival.

        The counter is never reset; each report is cumulative since start.
        """
        return await run_periodic(self.report, interval, stop=stop, max_runs=max_reports, immediate=False)
