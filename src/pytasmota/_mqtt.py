"""Internal MQTT transport: threaded paho-mqtt runtime bridged onto asyncio."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from pytasmota.config import TasmotaConfig
from pytasmota.exceptions import TasmotaTransportError


@dataclass(frozen=True)
class InboundMessage:
    """One publish delivered by the broker."""

    topic: str
    payload: bytes
    retain: bool = False


class Transport(Protocol):
    """Structural transport interface used by the client.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`TasmotaMqttRuntime`) concrete.
    """

    def publish(self, topic: str, payload: bytes, *, retain: bool = False) -> None:
        ...

    def subscribe(self, topic_filter: str) -> None:
        ...


class TasmotaMqttRuntime:
    """Threaded paho-mqtt runtime that emits inbound messages onto an asyncio loop.

    Subscriptions are remembered and replayed on every (re)connect, so
    retained presence announcements are redelivered after a broker
    reconnect handled by paho itself.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_message: Callable[[InboundMessage], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_message = on_message
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._connected = False
        self._subscriptions: set[str] = set()
        self._lock = threading.Lock()
        self._connack: asyncio.Future[None] = loop.create_future()

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._connected

    def start(self, config: TasmotaConfig) -> None:
        """Connect to the broker and start the network loop.

        Blocks on the TCP connect, so call it from an executor. Use
        :meth:`wait_connected` to wait for the broker's CONNACK.
        """
        self.stop()
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s client_id=%s",
            config.host,
            config.port,
            config.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=config.client_id,
            protocol=mqtt.MQTTv311,
        )
        client.enable_logger(self._logger)
        credentials = config.credentials
        if credentials is not None:
            client.username_pw_set(*credentials)

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                self._loop.call_soon_threadsafe(self._resolve_connack, str(reason_code))
                return
            self._logger.debug("MQTT connected successfully reason=%s", reason_code)
            self._connected = True
            with self._lock:
                topics = sorted(self._subscriptions)
            for topic in topics:
                self._logger.debug("MQTT subscribing topic=%s", topic)
                c.subscribe(topic, qos=1)
            self._loop.call_soon_threadsafe(self._resolve_connack, None)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            message = InboundMessage(topic=msg.topic, payload=bytes(msg.payload), retain=bool(msg.retain))
            self._logger.debug(
                "Received PUBLISH topic=%s retain=%s bytes=%d",
                message.topic,
                message.retain,
                len(message.payload),
            )
            self._loop.call_soon_threadsafe(self._on_message, message)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            self._connected = False
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(config.host, config.port, keepalive=config.keepalive)
        except OSError as exc:
            raise TasmotaTransportError(f"Unable to connect to {config.host}:{config.port}: {exc}") from exc

        # Callbacks only fire once the network loop runs.
        self._client = client
        self._running = True
        client.loop_start()
        self._logger.debug("MQTT network loop started")

    def _resolve_connack(self, failure: str | None) -> None:
        connack = self._connack
        if connack.done():
            return
        if failure is None:
            connack.set_result(None)
        else:
            connack.set_exception(TasmotaTransportError(f"Broker refused connection: {failure}"))

    async def wait_connected(self, timeout: float) -> None:
        """Wait for a successful CONNACK.

        Raises
        ------
        TasmotaTransportError
            If the broker refuses the connection or does not answer in time.
        """
        connack = self._connack
        try:
            await asyncio.wait_for(asyncio.shield(connack), timeout)
        except TimeoutError as exc:
            raise TasmotaTransportError(f"No CONNACK from broker within {timeout}s") from exc

    def subscribe(self, topic_filter: str) -> None:
        """Subscribe to *topic_filter*, now if connected and on every reconnect."""
        with self._lock:
            if topic_filter in self._subscriptions:
                return
            self._subscriptions.add(topic_filter)
        client = self._client
        if client is None or not self._connected:
            return
        rc, _mid = client.subscribe(topic_filter, qos=1)
        if rc != mqtt.MQTT_ERR_SUCCESS:
            with self._lock:
                self._subscriptions.discard(topic_filter)
            raise TasmotaTransportError(f"Subscribe failed: {mqtt.error_string(rc)}", topic=topic_filter)
        self._logger.debug("MQTT subscribed topic=%s", topic_filter)

    def publish(self, topic: str, payload: bytes, *, retain: bool = False) -> None:
        client = self._client
        if client is None:
            raise TasmotaTransportError("MQTT runtime not started", topic=topic)
        info = client.publish(topic, payload, qos=1, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TasmotaTransportError(f"Publish failed: {mqtt.error_string(info.rc)}", topic=topic)
        self._logger.debug("Published topic=%s bytes=%d", topic, len(payload))

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._connected = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
