"""High-level async client for Tasmota devices over MQTT."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any, TypeVar

from pydantic import BaseModel

from pytasmota._correlation import QueryCorrelator
from pytasmota._download import download_config
from pytasmota._mqtt import InboundMessage, TasmotaMqttRuntime, Transport
from pytasmota._topics import file_download_topic, presence_subscription, result_topic
from pytasmota.config import TasmotaConfig
from pytasmota.exceptions import TasmotaError, TasmotaMalformedReplyError
from pytasmota.models.device import DeviceUpdate
from pytasmota.models.download import DownloadedFile
from pytasmota.models.replies import DeviceNameReply, IpAddressReply
from pytasmota.presence import PresenceTracker

_logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class TasmotaClient:
    """Async client for Tasmota devices connected to an MQTT broker.

    Usage::

        async with TasmotaClient(TasmotaConfig(host="mqtt.example.com")) as client:
            async for update in client.devices():
                ...
    """

    def __init__(self, config: TasmotaConfig) -> None:
        self._config = config
        self._timeout = config.command_timeout
        self._loop: asyncio.AbstractEventLoop | None = None
        self._runtime: Transport | None = None
        self._tracker = PresenceTracker()
        self._correlator = QueryCorrelator(self._publish)

    @classmethod
    async def connect(
        cls,
        host: str,
        port: int = 1883,
        credentials: tuple[str, str] | None = None,
    ) -> TasmotaClient:
        """Connect to an MQTT server to reach the Tasmota devices on it.

        The returned client is already started; call :meth:`close` when done.
        """
        username, password = credentials if credentials is not None else (None, None)
        client = cls(TasmotaConfig(host=host, port=port, username=username, password=password))
        await client.start()
        return client

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TasmotaClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Connect to the broker and start tracking device presence.

        Raises
        ------
        TasmotaTransportError
            The broker is unreachable or refused the connection.
        """
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._tracker.reopen()
        runtime = TasmotaMqttRuntime(loop=loop, on_message=self._on_message, logger=_logger)
        runtime.subscribe(presence_subscription())
        try:
            await loop.run_in_executor(None, runtime.start, self._config)
            await runtime.wait_connected(self._config.connect_timeout)
        except TasmotaError:
            await loop.run_in_executor(None, runtime.stop)
            raise
        self._runtime = runtime

    async def close(self) -> None:
        runtime = self._runtime
        self._runtime = None
        self._correlator.close()
        self._tracker.close()
        if isinstance(runtime, TasmotaMqttRuntime):
            loop = self._loop or asyncio.get_running_loop()
            await loop.run_in_executor(None, runtime.stop)
        self._loop = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_runtime(self) -> Transport:
        runtime = self._runtime
        if runtime is None:
            raise TasmotaError("Client not started. Use 'async with TasmotaClient(...) as client:'")
        return runtime

    def _publish(self, topic: str, payload: bytes) -> None:
        self._require_runtime().publish(topic, payload)

    def _on_message(self, message: InboundMessage) -> None:
        """Dispatch one inbound message (called on the loop via call_soon_threadsafe)."""
        update = self._tracker.apply(message)
        if update is not None:
            _logger.debug("Device %s: %s", update.kind, update.device)
        self._correlator.dispatch(message)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def current_devices(self) -> list[str]:
        """Get the list of known devices at this point in time.

        Due to the asynchronous nature of discovery, calling this directly
        after connecting will be unlikely to return all live devices. Use
        :meth:`devices` if you need to know all live devices.
        """
        return self._tracker.current_devices()

    def devices(self) -> AsyncIterator[DeviceUpdate]:
        """Subscribe to device discovery.

        Yields an ``ADDED`` update for every device known at the time of
        calling, then an update whenever a device comes online or goes
        offline. The iteration ends when the client is closed.

        Example::

            async for update in client.devices():
                if update.kind == DeviceUpdateKind.ADDED:
                    name, ip = await asyncio.gather(
                        client.device_name(update.device),
                        client.device_ip(update.device),
                    )
        """
        return self._tracker.updates()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def set_timeout(self, timeout: float) -> None:
        """Set the timeout used for single-shot commands.

        The default comes from ``config.command_timeout`` (1 second).
        """
        self._timeout = timeout

    async def command(
        self,
        device: str,
        command: str,
        payload: str | bytes | Mapping[str, Any] = "",
        *,
        reply_model: type[ModelT],
        timeout: float | None = None,
    ) -> ModelT:
        """Send a command that expects a single reply message.

        The first reply on ``stat/<device>/RESULT`` that validates as
        *reply_model* is returned. A device that is not currently known
        is still asked.

        Raises
        ------
        TasmotaTransportError
            The command could not be published.
        TasmotaTimeoutError
            No matching reply arrived in time.
        """
        self._require_runtime().subscribe(result_topic(device))
        effective_timeout = timeout if timeout is not None else self._timeout
        _logger.debug("Sending command device=%s command=%s", device, command)
        return await self._correlator.ask(device, command, payload, reply_model, effective_timeout)

    async def device_ip(self, device: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
        """Get the ip address for the device."""
        reply = await self.command(device, "IPAddress", reply_model=IpAddressReply)
        try:
            return ipaddress.ip_address(reply.current_address)
        except ValueError as exc:
            raise TasmotaMalformedReplyError("device ip", reply.ip_address_1) from exc

    async def device_name(self, device: str) -> str:
        """Get the name for the device."""
        reply = await self.command(device, "DeviceName", reply_model=DeviceNameReply)
        return reply.device_name

    async def backup_config(self, device: str, password: str) -> DownloadedFile:
        """Download the config backup from a device.

        The password is the MQTT password used by the device, which might
        be different from the MQTT password used by this client.
        """
        self._require_runtime().subscribe(file_download_topic(device))
        return await download_config(
            self._correlator,
            self._publish,
            self._tracker,
            device,
            password,
            timeout=self._config.download_timeout,
        )
