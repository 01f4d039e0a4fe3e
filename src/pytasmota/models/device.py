"""Device presence events."""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DeviceUpdateKind(enum.StrEnum):
    ADDED = "added"
    REMOVED = "removed"


class DeviceUpdate(BaseModel):
    """A device has been added or removed.

    ``ADDED`` covers both a newly discovered device and a previously
    offline device coming back. ``REMOVED`` means a known device went
    offline, whether it said so itself or the broker published its last
    will.
    """

    model_config = ConfigDict(frozen=True)

    kind: DeviceUpdateKind
    device: str = Field(..., description="Device MQTT topic")

    @field_validator("device")
    @classmethod
    def _check_device(cls, value: str) -> str:
        # The id is the device's MQTT topic and used verbatim in commands.
        if not value.strip():
            raise ValueError("device must be non-blank")
        return value

    @classmethod
    def added(cls, device: str) -> DeviceUpdate:
        return cls(kind=DeviceUpdateKind.ADDED, device=device)

    @classmethod
    def removed(cls, device: str) -> DeviceUpdate:
        return cls(kind=DeviceUpdateKind.REMOVED, device=device)
