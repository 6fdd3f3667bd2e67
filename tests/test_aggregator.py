from __future__ import annotations

import asyncio
import math

import pytest

from trackstream._mqtt import InMemoryBus
from trackstream.aggregator import DistanceAggregator
from trackstream.exceptions import ParseError
from trackstream.models.point import Point


def test_first_message_sets_position_without_distance() -> None:
    aggregator = DistanceAggregator()

    aggregator.on_position("3:4")

    assert aggregator.total_distance == 0.0
    assert aggregator.last_position == Point(lat=3, lng=4)


def test_identical_positions_add_nothing() -> None:
    aggregator = DistanceAggregator()
    aggregator.on_position("10:20")
    aggregator.on_position("10:20")
    assert aggregator.total_distance == 0.0


def test_malformed_message_contributes_nothing() -> None:
    aggregator = DistanceAggregator()

    with pytest.raises(ParseError):
        aggregator.on_position("abc:def")
    assert aggregator.total_distance == 0.0
    assert aggregator.last_position is None

    aggregator.on_position("5:5")
    aggregator.on_position("6:6")

    assert aggregator.total_distance == pytest.approx(math.sqrt(2))


def test_total_is_non_decreasing_and_cumulative() -> None:
    aggregator = DistanceAggregator()
    payloads = ["0:0", "0:3", "4:3", "4:3", "0:0", "oops", "1:1:1", "0:0"]
    totals = []
    for payload in payloads:
        try:
            aggregator.on_position(payload)
        except ParseError:
            pass
        totals.append(aggregator.total_distance)

    assert totals == sorted(totals)
    assert aggregator.total_distance == pytest.approx(3 + 4 + 0 + 5 + 0)


def test_out_of_order_messages_are_measured_in_arrival_order() -> None:
    aggregator = DistanceAggregator()
    for payload in ("0:0", "0:2", "0:1"):
        aggregator.on_position(payload)
    assert aggregator.total_distance == pytest.approx(3.0)


def test_bus_handler_drops_malformed_and_counts(caplog: pytest.LogCaptureFixture) -> None:
    bus = InMemoryBus()
    aggregator = DistanceAggregator(bus)
    aggregator.start()

    bus.publish("position", "abc:def")
    bus.publish("position", "5:5")
    bus.publish("position", "6:6")

    state = aggregator.snapshot()
    assert state.total_distance == pytest.approx(math.sqrt(2))
    assert state.accepted == 2
    assert state.rejected == 1
    assert state.last_position == Point(lat=6, lng=6)
    assert "malformed position" in caplog.text


def test_far_apart_positions_do_not_overflow() -> None:
    bus = InMemoryBus()
    aggregator = DistanceAggregator(bus)
    aggregator.start()

    bus.publish("position", "1e200:0")
    bus.publish("position", "-1e200:0")

    state = aggregator.snapshot()
    assert state.total_distance == pytest.approx(2e200)
    assert state.accepted == 2
    assert state.rejected == 0


def test_report_publishes_without_resetting() -> None:
    bus = InMemoryBus()
    aggregator = DistanceAggregator(bus)
    aggregator.on_position("0:0")
    aggregator.on_position("3:4")

    assert aggregator.report() == 5.0
    assert aggregator.report() == 5.0
    assert bus.sent_on("totalDistance") == ["5.0", "5.0"]


def test_start_without_bus_is_an_error() -> None:
    with pytest.raises(RuntimeError):
        DistanceAggregator().start()


@pytest.mark.asyncio
async def test_report_loop_runs_on_its_own_schedule() -> None:
    bus = InMemoryBus()
    aggregator = DistanceAggregator(bus)
    aggregator.start()

    async def feed_positions() -> None:
        for payload in ("0:0", "0:1", "0:2", "0:3"):
            bus.publish("position", payload)
            await asyncio.sleep(0)

    feeder = asyncio.create_task(feed_positions())
    reports = await aggregator.report_loop(0.01, max_reports=3)
    await feeder

    assert reports == 3
    published = [float(p) for p in bus.sent_on("totalDistance")]
    assert len(published) == 3
    assert published == sorted(published)
    assert published[-1] == pytest.approx(3.0)


@pytest.mark.asyncio
async def test_report_loop_stops_on_event() -> None:
    bus = InMemoryBus()
    aggregator = DistanceAggregator(bus)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    loop.call_later(0.05, stop.set)
    reports = await aggregator.report_loop(0.02, stop=stop)

    assert 1 <= reports <= 3
    assert bus.sent_on("totalDistance") == ["0.0"] * reports
