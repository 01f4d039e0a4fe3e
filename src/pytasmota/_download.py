"""Config backup download over ``FILEDOWNLOAD``.

The device streams the backup as a sequence of messages on
``stat/<device>/FILEDOWNLOAD``: JSON records carrying the status and file
metadata, interleaved with raw binary chunks. Every message except the
initial ``Started`` record is acknowledged with ``?`` to request the next.
"""

from __future__ import annotations

import asyncio
import binascii
import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from pytasmota._correlation import QueryCorrelator
from pytasmota._mqtt import InboundMessage
from pytasmota._redact import redact_for_log
from pytasmota._topics import (
    FILE_DOWNLOAD_COMMAND,
    decode_json_object,
    encode_command,
    file_download_topic,
)
from pytasmota.exceptions import (
    BadChunkSizeError,
    DeviceGoneError,
    DownloadAbortedError,
    InvalidFileTypeError,
    InvalidHashError,
    InvalidPasswordError,
    MismatchedHashError,
    MismatchedLengthError,
    TasmotaDownloadError,
    TasmotaTimeoutError,
    TasmotaTransportError,
)
from pytasmota.models.device import DeviceUpdate, DeviceUpdateKind
from pytasmota.models.download import DownloadedFile, FileDownloadReply, FileDownloadStatus
from pytasmota.presence import PresenceTracker

_logger = logging.getLogger(__name__)

# Tasmota ``Type`` for the settings file, requested as raw binary.
_CONFIG_FILE_TYPE = 2

_STATUS_ERRORS: dict[str, type[TasmotaDownloadError]] = {
    FileDownloadStatus.ABORTED: DownloadAbortedError,
    FileDownloadStatus.INVALID_PASSWORD: InvalidPasswordError,
    FileDownloadStatus.BAD_CHUNK_SIZE: BadChunkSizeError,
    FileDownloadStatus.INVALID_FILE_TYPE: InvalidFileTypeError,
}


@dataclass
class _DownloadState:
    name: str = ""
    size: int = 0
    id: int = 0
    type: int = 0
    md5: bytes = b""
    data: bytearray = field(default_factory=bytearray)

    def update(self, record: FileDownloadReply) -> None:
        if record.file is not None:
            self.name = record.file
        if record.size is not None:
            self.size = record.size
        if record.id is not None:
            self.id = record.id
        if record.type is not None:
            self.type = record.type
        if record.md5 is not None:
            try:
                digest = binascii.unhexlify(record.md5)
            except (binascii.Error, ValueError) as exc:
                raise InvalidHashError("Received an invalid md5 hash") from exc
            if len(digest) != 16:
                raise InvalidHashError("Received an invalid md5 hash")
            self.md5 = digest


def _raise_for_status(status: str) -> None:
    error = _STATUS_ERRORS.get(status)
    if error is not None:
        raise error(f"Download failed: {status}")
    if status.startswith("Error"):
        raise TasmotaDownloadError(f"Received error code: {status}")


async def download_config(
    correlator: QueryCorrelator,
    publish: Callable[[str, bytes], None],
    tracker: PresenceTracker,
    device: str,
    password: str,
    *,
    timeout: float,
) -> DownloadedFile:
    """Download the config backup of *device*.

    *password* is the device's own MQTT password, which may differ from
    the one this client uses.

    Raises
    ------
    TasmotaDownloadError
        The device reported an error, went offline, or sent data that
        fails the length or md5 check.
    TasmotaTimeoutError
        No message arrived within *timeout* seconds.
    TasmotaTransportError
        Publishing failed or the client was closed mid-download.
    """
    queue: asyncio.Queue[Any] = asyncio.Queue()
    request = {"password": password, "type": _CONFIG_FILE_TYPE, "binary": 1}
    _logger.debug("Requesting config download device=%s request=%s", device, redact_for_log(request))

    with correlator.listen(file_download_topic(device), queue), tracker.subscribe(queue):
        topic, body = encode_command(device, FILE_DOWNLOAD_COMMAND, request)
        publish(topic, body)

        state = _DownloadState()
        while True:
            try:
                item = await asyncio.wait_for(queue.get(), timeout)
            except TimeoutError as exc:
                raise TasmotaTimeoutError(
                    f"Timeout while downloading config from {device}",
                    device=device,
                    command=FILE_DOWNLOAD_COMMAND,
                    timeout=timeout,
                ) from exc

            if item is None:
                raise TasmotaTransportError("MQTT connection closed during the download", topic=topic)
            if isinstance(item, DeviceUpdate):
                if item.kind == DeviceUpdateKind.REMOVED and item.device == device:
                    raise DeviceGoneError("Device has disconnected during the download")
                continue

            message: InboundMessage = item
            body_json = decode_json_object(message.payload)
            if body_json is None:
                state.data.extend(message.payload)
            else:
                try:
                    record = FileDownloadReply.model_validate(body_json)
                except ValidationError as exc:
                    raise TasmotaDownloadError(f"Malformed download record: {body_json}") from exc
                _logger.debug("Download record device=%s record=%s", device, redact_for_log(body_json))
                if record.status == FileDownloadStatus.STARTED:
                    continue
                if record.status == FileDownloadStatus.DONE:
                    break
                if record.status is not None:
                    _raise_for_status(record.status)
                state.update(record)

            publish(topic, b"?")

    if len(state.data) != state.size:
        raise MismatchedLengthError(state.size, len(state.data))

    digest = hashlib.md5(state.data).digest()
    if digest != state.md5:
        raise MismatchedHashError(state.md5.hex(), digest.hex())

    _logger.debug("Downloaded config device=%s file=%s bytes=%d", device, state.name, len(state.data))
    return DownloadedFile(name=state.name, data=bytes(state.data))
