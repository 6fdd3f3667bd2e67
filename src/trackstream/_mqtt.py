"""Message bus abstraction and the threaded paho-mqtt runtime."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from trackstream.config import MqttSettings
from trackstream.exceptions import TransportError


@dataclass(frozen=True)
class BusMessage:
    """An inbound message on a logical channel."""

    channel: str
    payload: bytes

    @property
    def text(self) -> str:
        return self.payload.decode("utf-8", errors="replace")


MessageHandler = Callable[[BusMessage], None]


class MessageBus(Protocol):
    """Structural transport interface used by the publisher and aggregator.

    Delivery is at-least-once with no ordering guarantee. ``publish``
    raises :class:`TransportError` when a send cannot be handed to the
    transport.
    """

    def publish(self, channel: str, payload: str) -> None:
        ...

    def subscribe(self, channel: str, handler: MessageHandler) -> None:
        ...


class InMemoryBus:
    """Synchronous in-process bus.

    Handlers run inline inside :meth:`publish`. Every published message is
    also kept in :attr:`sent` so callers can inspect outbound traffic.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[MessageHandler]] = {}
        self.sent: list[tuple[str, str]] = []

    def publish(self, channel: str, payload: str) -> None:
        self.sent.append((channel, payload))
        message = BusMessage(channel=channel, payload=payload.encode("utf-8"))
        for handler in list(self._handlers.get(channel, [])):
            handler(message)

    def subscribe(self, channel: str, handler: MessageHandler) -> None:
        self._handlers.setdefault(channel, []).append(handler)

    def sent_on(self, channel: str) -> list[str]:
        return [payload for sent_channel, payload in self.sent if sent_channel == channel]


class MqttBus:
    """Threaded paho-mqtt runtime that dispatches inbound messages onto an asyncio loop.

    Transport failures are fatal: a refused connection or failed send
    raises :class:`TransportError`, and an unexpected disconnect or a
    handler crash resolves :meth:`wait_failed` so the owner can shut down
    and leave restarts to an external supervisor.
    """

    def __init__(
        self,
        settings: MqttSettings,
        *,
        loop: asyncio.AbstractEventLoop,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings
        self._loop = loop
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._handlers: dict[str, list[MessageHandler]] = {}
        self._topics: dict[str, str] = {}
        self._connected = threading.Event()
        self._connect_error: TransportError | None = None
        self._failure: asyncio.Future[BaseException] = loop.create_future()

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def start(self) -> None:
        """Connect to the broker and block until the CONNACK arrives.

        Blocking; call through ``loop.run_in_executor`` from async code.
        """
        self.stop()
        settings = self._settings
        self._logger.debug(
            "MQTT bus start requested host=%s port=%s prefix=%s client_id=%s",
            settings.host,
            settings.port,
            settings.topic_prefix,
            settings.client_id or "<broker-assigned>",
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password)
        if settings.tls:
            client.tls_set()

        self._connected.clear()
        self._connect_error = None

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.error("MQTT connect refused: %s", reason_code)
                self._connect_error = TransportError(f"MQTT connect refused: {reason_code}", rc=reason_code.value)
                self._connected.set()
                return
            self._logger.debug("MQTT connected reason=%s", reason_code)
            # Re-subscribe after every (re)connect.
            for topic in self._topics:
                self._logger.debug("MQTT subscribing topic=%s", topic)
                c.subscribe(topic, qos=settings.qos)
            self._connected.set()

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            channel = self._topics.get(msg.topic)
            if channel is None:
                self._logger.debug("Ignoring message on unmapped topic=%s", msg.topic)
                return
            message = BusMessage(channel=channel, payload=bytes(msg.payload))
            self._loop.call_soon_threadsafe(self._dispatch, message)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.error("MQTT disconnected unexpectedly: %s", reason_code)
                error = TransportError(f"MQTT disconnected: {reason_code}", rc=reason_code.value)
                self._loop.call_soon_threadsafe(self._fail, error)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(settings.host, settings.port, keepalive=settings.keepalive)
        except (OSError, ValueError) as exc:
            raise TransportError(f"cannot connect to MQTT broker {settings.host}:{settings.port}: {exc}") from exc
        client.loop_start()

        if not self._connected.wait(settings.connect_timeout):
            client.disconnect()
            client.loop_stop()
            raise TransportError(f"timed out waiting for CONNACK from {settings.host}:{settings.port}")
        if self._connect_error is not None:
            client.disconnect()
            client.loop_stop()
            raise self._connect_error

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect the current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def publish(self, channel: str, payload: str) -> None:
        client = self._client
        if client is None or not self._running:
            raise TransportError("MQTT bus is not running", channel=channel)
        topic = self._settings.topic(channel)
        info = client.publish(topic, payload.encode("utf-8"), qos=self._settings.qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(
                f"publish to {topic} failed: {mqtt.error_string(info.rc)}",
                channel=channel,
                rc=int(info.rc),
            )

    def subscribe(self, channel: str, handler: MessageHandler) -> None:
        topic = self._settings.topic(channel)
        first = topic not in self._topics
        self._topics[topic] = channel
        self._handlers.setdefault(channel, []).append(handler)
        client = self._client
        if first and client is not None and self._running:
            result, _mid = client.subscribe(topic, qos=self._settings.qos)
            if result != mqtt.MQTT_ERR_SUCCESS:
                raise TransportError(f"subscribe to {topic} failed: {mqtt.error_string(result)}", channel=channel)

    async def wait_failed(self) -> BaseException:
        """Resolve with the first fatal error observed by the bus."""
        return await asyncio.shield(self._failure)

    def _dispatch(self, message: BusMessage) -> None:
        for handler in list(self._handlers.get(message.channel, [])):
            try:
                handler(message)
            except Exception as exc:
                self._logger.error("Handler for channel=%s failed", message.channel, exc_info=True)
                self._fail(exc)
                return

    def _fail(self, error: BaseException) -> None:
        if not self._failure.done():
            self._failure.set_result(error)
