"""Reply models for single-shot commands.

A reply model's required fields are what the correlator uses to tell
the answer to one command apart from answers to others on the shared
``stat/<device>/RESULT`` topic.
"""

from __future__ import annotations

from pydantic import Field

from pytasmota.models._base import TasmotaBaseModel


class DeviceNameReply(TasmotaBaseModel):
    """Reply to ``DeviceName``: ``{"DeviceName": "Kitchen"}``."""

    device_name: str = Field(validation_alias="DeviceName")


class IpAddressReply(TasmotaBaseModel):
    """Reply to ``IPAddress``.

    ``IPAddress1`` holds the configured address followed by the one in use
    in parentheses, e.g. ``"0.0.0.0 (192.168.1.42)"`` when DHCP is on.
    """

    ip_address_1: str = Field(validation_alias="IPAddress1")

    @property
    def current_address(self) -> str:
        """The address actually in use (last token, parentheses stripped)."""
        parts = self.ip_address_1.split()
        if not parts:
            return ""
        return parts[-1].strip("()")
