"""Data models for Tasmota replies and presence events."""

from pytasmota.models._base import TasmotaBaseModel
from pytasmota.models.device import DeviceUpdate, DeviceUpdateKind
from pytasmota.models.download import DownloadedFile, FileDownloadReply, FileDownloadStatus
from pytasmota.models.replies import DeviceNameReply, IpAddressReply

__all__ = [
    "DeviceNameReply",
    "DeviceUpdate",
    "DeviceUpdateKind",
    "DownloadedFile",
    "FileDownloadReply",
    "FileDownloadStatus",
    "IpAddressReply",
    "TasmotaBaseModel",
]
