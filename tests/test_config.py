from __future__ import annotations

import os

import pytest

from trackstream.config import MqttSettings, TrackstreamConfig
from trackstream.exceptions import ConfigError, ConstructionError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("TRACKSTREAM_"):
            monkeypatch.delenv(key)


def test_defaults_match_reference_behavior() -> None:
    config = TrackstreamConfig.from_env()
    assert config.tick_interval == 1.0
    assert config.report_interval == 10.0
    assert config.position_channel == "position"
    assert config.distance_channel == "totalDistance"
    assert config.mqtt.qos == 1


def test_from_env_reads_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKSTREAM_TICK_INTERVAL", "0.5")
    monkeypatch.setenv("TRACKSTREAM_AVERAGE_SPEED", "0.04")
    monkeypatch.setenv("TRACKSTREAM_FEED_PATH", "/data/positions.csv")
    monkeypatch.setenv("TRACKSTREAM_MQTT_HOST", "broker.local")
    monkeypatch.setenv("TRACKSTREAM_MQTT_PORT", "8883")
    monkeypatch.setenv("TRACKSTREAM_MQTT_TLS", "yes")

    config = TrackstreamConfig.from_env()

    assert config.tick_interval == 0.5
    assert config.average_speed == 0.04
    assert config.feed_path == "/data/positions.csv"
    assert config.mqtt.host == "broker.local"
    assert config.mqtt.port == 8883
    assert config.mqtt.tls is True


def test_overrides_win_over_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKSTREAM_JITTER", "0.5")
    monkeypatch.setenv("TRACKSTREAM_MQTT_HOST", "from-env")

    config = TrackstreamConfig.from_env(jitter=0.25, mqtt={"host": "from-override"})

    assert config.jitter == 0.25
    assert config.mqtt.host == "from-override"


def test_mqtt_settings_instance_override() -> None:
    settings = MqttSettings(host="h", port=1884)
    assert TrackstreamConfig.from_env(mqtt=settings).mqtt == settings


def test_invalid_numeric_env_is_config_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKSTREAM_REPORT_INTERVAL", "soon")
    with pytest.raises(ConfigError):
        TrackstreamConfig.from_env()


@pytest.mark.parametrize(
    "kwargs",
    [{"tick_interval": 0}, {"report_interval": -1}, {"average_speed": 0}, {"jitter": -0.1}],
)
def test_invalid_values_rejected(kwargs: dict[str, float]) -> None:
    with pytest.raises(ConstructionError):
        TrackstreamConfig(**kwargs)


def test_topic_mapping() -> None:
    assert MqttSettings(topic_prefix="fleet/truck-7/").topic("position") == "fleet/truck-7/position"
    assert MqttSettings(topic_prefix="").topic("totalDistance") == "totalDistance"
