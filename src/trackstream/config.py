"""Runtime configuration for trackstream."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable
from typing import Any

from trackstream._constants import (
    CONTROL_CHANNEL,
    DEFAULT_AVERAGE_SPEED,
    DEFAULT_FEED_PATH,
    DEFAULT_JITTER,
    DEFAULT_REPORT_INTERVAL,
    DEFAULT_TICK_INTERVAL,
    DISTANCE_CHANNEL,
    POSITION_CHANNEL,
    REPORTED_CHANNEL,
)
from trackstream.exceptions import ConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: Callable[[str], Any]) -> Any:
    try:
        return cast(value)
    except ValueError as exc:
        raise ConfigError(f"{env_key} must be numeric, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class MqttSettings:
    """Broker connection settings.

    ``qos`` defaults to 1 (at-least-once); consumers must therefore
    tolerate duplicates and reordering.
    """

    host: str = "localhost"
    port: int = 1883
    keepalive: int = 60
    client_id: str = ""
    topic_prefix: str = "trackstream"
    qos: int = 1
    username: str | None = None
    password: str | None = None
    tls: bool = False
    connect_timeout: float = 10.0

    def topic(self, channel: str) -> str:
        """Full MQTT topic for a logical channel name."""
        prefix = self.topic_prefix.strip("/")
        return f"{prefix}/{channel}" if prefix else channel


@dataclasses.dataclass(frozen=True)
class TrackstreamConfig:
    """Simulator and aggregator configuration.

    Parameters
    ----------
    tick_interval : float
        Seconds between generated positions.
    report_interval : float
        Seconds between ``totalDistance`` reports.
    average_speed : float
        Initial step size per tick, in planar degrees.
    jitter : float
        Initial bound of the per-axis uniform perturbation.
    feed_path : str
        Append-only CSV file shared with the map renderer.
    waypoints_path : str or None
        JSON waypoint graph. ``None`` uses the built-in sample graph.
    position_channel, distance_channel, control_channel, reported_channel : str
        Logical channel names; mapped to MQTT topics by :class:`MqttSettings`.
    mqtt : MqttSettings
        Broker connection settings.
    """

    tick_interval: float = DEFAULT_TICK_INTERVAL
    report_interval: float = DEFAULT_REPORT_INTERVAL
    average_speed: float = DEFAULT_AVERAGE_SPEED
    jitter: float = DEFAULT_JITTER
    feed_path: str = DEFAULT_FEED_PATH
    waypoints_path: str | None = None
    position_channel: str = POSITION_CHANNEL
    distance_channel: str = DISTANCE_CHANNEL
    control_channel: str = CONTROL_CHANNEL
    reported_channel: str = REPORTED_CHANNEL
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)

    def __post_init__(self) -> None:
        if self.tick_interval <= 0:
            raise ConfigError(f"tick_interval must be positive, got {self.tick_interval}")
        if self.report_interval <= 0:
            raise ConfigError(f"report_interval must be positive, got {self.report_interval}")
        if self.average_speed <= 0:
            raise ConfigError(f"average_speed must be positive, got {self.average_speed}")
        if self.jitter < 0:
            raise ConfigError(f"jitter must not be negative, got {self.jitter}")

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackstreamConfig:
        """Create configuration from ``TRACKSTREAM_*`` environment variables.

        Explicit keyword arguments override environment values. A nested
        ``mqtt`` override may be a dict of field values or an
        :class:`MqttSettings` instance.
        """
        env = os.environ

        mqtt_kwargs: dict[str, Any] = {}
        _ENV_MQTT_MAP: dict[str, tuple[str, Callable[[str], Any]]] = {
            "TRACKSTREAM_MQTT_HOST": ("host", str),
            "TRACKSTREAM_MQTT_PORT": ("port", int),
            "TRACKSTREAM_MQTT_KEEPALIVE": ("keepalive", int),
            "TRACKSTREAM_MQTT_CLIENT_ID": ("client_id", str),
            "TRACKSTREAM_MQTT_TOPIC_PREFIX": ("topic_prefix", str),
            "TRACKSTREAM_MQTT_QOS": ("qos", int),
            "TRACKSTREAM_MQTT_USERNAME": ("username", str),
            "TRACKSTREAM_MQTT_PASSWORD": ("password", str),
            "TRACKSTREAM_MQTT_CONNECT_TIMEOUT": ("connect_timeout", float),
        }
        for env_key, (field_name, cast) in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                mqtt_kwargs[field_name] = _env_number(env_key, val, cast)
        tls_env = env.get("TRACKSTREAM_MQTT_TLS")
        if tls_env is not None:
            mqtt_kwargs["tls"] = _env_bool(tls_env, False)

        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttSettings):
            mqtt_kwargs = dataclasses.asdict(mqtt_overrides)

        config_kwargs: dict[str, Any] = {"mqtt": MqttSettings(**mqtt_kwargs)}

        _ENV_CONFIG_MAP: dict[str, tuple[str, Callable[[str], Any]]] = {
            "TRACKSTREAM_TICK_INTERVAL": ("tick_interval", float),
            "TRACKSTREAM_REPORT_INTERVAL": ("report_interval", float),
            "TRACKSTREAM_AVERAGE_SPEED": ("average_speed", float),
            "TRACKSTREAM_JITTER": ("jitter", float),
            "TRACKSTREAM_FEED_PATH": ("feed_path", str),
            "TRACKSTREAM_WAYPOINTS_PATH": ("waypoints_path", str),
        }
        for env_key, (field_name, cast) in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, cast)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
