"""pytasmota - Async Python client for Tasmota devices over MQTT."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pytasmota")
except PackageNotFoundError:
    __version__ = "0+local"
from pytasmota.client import TasmotaClient
from pytasmota.config import TasmotaConfig
from pytasmota.exceptions import (
    BadChunkSizeError,
    DeviceGoneError,
    DownloadAbortedError,
    InvalidFileTypeError,
    InvalidHashError,
    InvalidPasswordError,
    MismatchedHashError,
    MismatchedLengthError,
    TasmotaConfigError,
    TasmotaDownloadError,
    TasmotaError,
    TasmotaMalformedReplyError,
    TasmotaTimeoutError,
    TasmotaTransportError,
)
from pytasmota.models import (
    DeviceNameReply,
    DeviceUpdate,
    DeviceUpdateKind,
    DownloadedFile,
    IpAddressReply,
    TasmotaBaseModel,
)

__all__ = [
    "__version__",
    "BadChunkSizeError",
    "DeviceGoneError",
    "DeviceNameReply",
    "DeviceUpdate",
    "DeviceUpdateKind",
    "DownloadAbortedError",
    "DownloadedFile",
    "InvalidFileTypeError",
    "InvalidHashError",
    "InvalidPasswordError",
    "IpAddressReply",
    "MismatchedHashError",
    "MismatchedLengthError",
    "TasmotaBaseModel",
    "TasmotaClient",
    "TasmotaConfig",
    "TasmotaConfigError",
    "TasmotaDownloadError",
    "TasmotaError",
    "TasmotaMalformedReplyError",
    "TasmotaTimeoutError",
    "TasmotaTransportError",
]
