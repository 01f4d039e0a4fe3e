"""Custom exception hierarchy for pytasmota."""

from __future__ import annotations


class TasmotaError(Exception):
    """Base exception for all pytasmota errors."""


class TasmotaConfigError(TasmotaError):
    """Invalid or missing configuration."""


class TasmotaTransportError(TasmotaError):
    """MQTT-level failure (connect, CONNACK refusal, publish, subscribe)."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class TasmotaTimeoutError(TasmotaError):
    """No matching reply arrived from the device in time.

    Kept separate from :class:`TasmotaTransportError`: the request was
    published fine, the device just never answered.
    """

    def __init__(self, message: str, *, device: str = "", command: str = "", timeout: float = 0.0) -> None:
        self.device = device
        self.command = command
        self.timeout = timeout
        super().__init__(message)


class TasmotaMalformedReplyError(TasmotaError):
    """A reply matched the query but its content could not be interpreted."""

    def __init__(self, what: str, value: str) -> None:
        self.what = what
        self.value = value
        super().__init__(f"Malformed reply received from device for {what}: {value}")


class TasmotaDownloadError(TasmotaError):
    """Config backup download failed."""


class DownloadAbortedError(TasmotaDownloadError):
    """Device reported ``FileDownload: Aborted``."""


class InvalidPasswordError(TasmotaDownloadError):
    """Device rejected the download password (``Error 1``)."""


class BadChunkSizeError(TasmotaDownloadError):
    """Device reported a bad chunk size (``Error 2``)."""


class InvalidFileTypeError(TasmotaDownloadError):
    """Device rejected the requested file type (``Error 3``)."""


class InvalidHashError(TasmotaDownloadError):
    """Device announced an ``Md5`` value that is not 16 bytes of hex."""


class MismatchedLengthError(TasmotaDownloadError):
    """Received data length differs from the announced ``Size``."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Mismatched payload length, expected {expected} got {actual}")


class MismatchedHashError(TasmotaDownloadError):
    """Received data does not hash to the announced ``Md5``."""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Received data doesn't match the expected md5 hash, expected {expected} got {actual}")


class DeviceGoneError(TasmotaDownloadError):
    """Device went offline while the download was in progress."""
