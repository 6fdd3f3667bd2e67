"""Command-line entry point.

Runs the position simulator, the distance aggregator, or both wired
together over an in-process bus::

    python -m trackstream simulate --waypoints route.json
    python -m trackstream aggregate
    python -m trackstream local --duration 30 -v
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
from collections.abc import Coroutine
from typing import Any

from trackstream._feed import PositionFeed
from trackstream._mqtt import InMemoryBus, MessageBus, MqttBus
from trackstream.aggregator import DistanceAggregator
from trackstream.config import TrackstreamConfig
from trackstream.exceptions import ConstructionError, TransportError
from trackstream.models.waypoint import DEFAULT_WAYPOINTS, WaypointGraph, load_waypoints
from trackstream.publisher import TelemetryPublisher
from trackstream.vehicle import VehicleController

_logger = logging.getLogger("trackstream")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="trackstream",
        description="Simulated vehicle telemetry with streaming distance aggregation.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    parser.add_argument(
        "--duration",
        type=float,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def add_simulator_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--waypoints", help="JSON waypoint graph (default: built-in sample).")
        p.add_argument("--feed", help="Append-only CSV position feed path.")
        p.add_argument("--speed", type=float, help="Initial average speed per tick.")
        p.add_argument("--jitter", type=float, help="Initial per-axis jitter bound.")
        p.add_argument("--tick", type=float, help="Seconds between generated positions.")

    def add_aggregator_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--report-interval", type=float, help="Seconds between distance reports.")

    add_simulator_args(sub.add_parser("simulate", help="Generate positions and publish them over MQTT."))
    add_aggregator_args(sub.add_parser("aggregate", help="Aggregate MQTT positions into a total distance."))
    local = sub.add_parser("local", help="Run simulator and aggregator over an in-process bus.")
    add_simulator_args(local)
    add_aggregator_args(local)
    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> TrackstreamConfig:
    overrides: dict[str, Any] = {}
    for arg_name, field_name in (
        ("waypoints", "waypoints_path"),
        ("feed", "feed_path"),
        ("speed", "average_speed"),
        ("jitter", "jitter"),
        ("tick", "tick_interval"),
        ("report_interval", "report_interval"),
    ):
        value = getattr(args, arg_name, None)
        if value is not None:
            overrides[field_name] = value
    return TrackstreamConfig.from_env(**overrides)


def _load_graph(config: TrackstreamConfig) -> WaypointGraph:
    if config.waypoints_path:
        return load_waypoints(config.waypoints_path)
    return DEFAULT_WAYPOINTS


def _build_controller(config: TrackstreamConfig) -> VehicleController:
    return VehicleController.create(_load_graph(config), config.average_speed, config.jitter)


def _build_publisher(
    config: TrackstreamConfig,
    controller: VehicleController,
    bus: MessageBus,
    feed: PositionFeed,
) -> TelemetryPublisher:
    return TelemetryPublisher(
        controller,
        bus,
        feed,
        position_channel=config.position_channel,
        control_channel=config.control_channel,
        reported_channel=config.reported_channel,
    )


def _build_aggregator(config: TrackstreamConfig, bus: MessageBus) -> DistanceAggregator:
    return DistanceAggregator(
        bus,
        position_channel=config.position_channel,
        distance_channel=config.distance_channel,
    )


def _install_stop(stop: asyncio.Event, duration: float) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signum, stop.set)
    if duration > 0:
        loop.call_later(duration, stop.set)


async def _supervise(workers: list[Coroutine[Any, Any, Any]], bus: MqttBus | None) -> None:
    """Run *workers* until they all finish; the first failure is fatal."""
    tasks = [asyncio.create_task(worker) for worker in workers]
    watchers = set(tasks)
    failure_task: asyncio.Task[BaseException] | None = None
    if bus is not None:
        failure_task = asyncio.create_task(bus.wait_failed())
        watchers.add(failure_task)

    try:
        pending = set(tasks)
        while pending:
            done, _ = await asyncio.wait(watchers, return_when=asyncio.FIRST_COMPLETED)
            if failure_task is not None and failure_task in done:
                raise failure_task.result()
            for task in done:
                task.result()
            pending -= done
            watchers -= done
    finally:
        for task in watchers:
            task.cancel()
        await asyncio.gather(*watchers, return_exceptions=True)


async def _start_bus(config: TrackstreamConfig) -> MqttBus:
    loop = asyncio.get_running_loop()
    bus = MqttBus(config.mqtt, loop=loop, logger=logging.getLogger("trackstream.mqtt"))
    await loop.run_in_executor(None, bus.start)
    return bus


async def _run_simulate(config: TrackstreamConfig, duration: float) -> None:
    stop = asyncio.Event()
    controller = _build_controller(config)
    _install_stop(stop, duration)
    bus = await _start_bus(config)
    try:
        with PositionFeed(config.feed_path) as feed:
            publisher = _build_publisher(config, controller, bus, feed)
            publisher.start()
            await _supervise([publisher.run(config.tick_interval, stop=stop)], bus)
    finally:
        await asyncio.get_running_loop().run_in_executor(None, bus.stop)


async def _run_aggregate(config: TrackstreamConfig, duration: float) -> None:
    stop = asyncio.Event()
    _install_stop(stop, duration)
    bus = await _start_bus(config)
    try:
        aggregator = _build_aggregator(config, bus)
        aggregator.start()
        await _supervise([aggregator.report_loop(config.report_interval, stop=stop)], bus)
    finally:
        await asyncio.get_running_loop().run_in_executor(None, bus.stop)


async def _run_local(config: TrackstreamConfig, duration: float) -> None:
    stop = asyncio.Event()
    controller = _build_controller(config)
    _install_stop(stop, duration)
    bus = InMemoryBus()
    aggregator = _build_aggregator(config, bus)
    aggregator.start()
    with PositionFeed(config.feed_path) as feed:
        publisher = _build_publisher(config, controller, bus, feed)
        await _supervise(
            [
                publisher.run(config.tick_interval, stop=stop),
                aggregator.report_loop(config.report_interval, stop=stop),
            ],
            None,
        )
    aggregator.report()


_COMMANDS = {
    "simulate": _run_simulate,
    "aggregate": _run_aggregate,
    "local": _run_local,
}


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _build_config(args)
        asyncio.run(_COMMANDS[args.command](config, args.duration))
    except ConstructionError as exc:
        _logger.error("Invalid configuration: %s", exc)
        return 2
    except (TransportError, OSError):
        _logger.error("Fatal transport or I/O error", exc_info=True)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
