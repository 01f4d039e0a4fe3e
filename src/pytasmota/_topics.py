"""Tasmota topic codec.

Pure functions mapping between ``(device, command)`` addresses and the
MQTT topic namespace used by Tasmota's default ``%prefix%/%topic%/``
FullTopic:

* ``tele/<device>/LWT`` retained presence, ``Online`` / ``Offline``
* ``cmnd/<device>/<Command>`` commands
* ``stat/<device>/RESULT`` single-shot command replies
* ``stat/<device>/FILEDOWNLOAD`` config backup stream

Every decoder returns ``None`` for messages it does not recognise. The
shared subscription delivers plenty of those, so it is never an error.
"""

from __future__ import annotations

import enum
import json
from collections.abc import Mapping
from typing import Any, TypeVar

import paho.mqtt.client as mqtt
from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

COMMAND_PREFIX = "cmnd"
STAT_PREFIX = "stat"
TELE_PREFIX = "tele"

LWT_SUFFIX = "LWT"
RESULT_SUFFIX = "RESULT"
FILE_DOWNLOAD_COMMAND = "FILEDOWNLOAD"


class PresenceState(enum.StrEnum):
    """Device reachability as announced on the LWT topic."""

    ONLINE = "online"
    OFFLINE = "offline"


def presence_subscription() -> str:
    """Wildcard filter capturing every device's presence announcement."""
    return f"{TELE_PREFIX}/+/{LWT_SUFFIX}"


def _split(topic: str) -> tuple[str, str, str] | None:
    parts = topic.split("/")
    if len(parts) != 3 or not parts[1].strip():
        return None
    return parts[0], parts[1], parts[2]


def device_from_topic(topic: str) -> str | None:
    """Return the device segment of a ``prefix/<device>/suffix`` topic."""
    parts = _split(topic)
    return parts[1] if parts is not None else None


def decode_presence(topic: str, payload: bytes) -> tuple[str, PresenceState] | None:
    """Decode an LWT message into ``(device, state)``.

    An empty payload means the retained announcement was cleared and is
    treated as offline.
    """
    parts = _split(topic)
    if parts is None:
        return None
    prefix, device, suffix = parts
    if prefix != TELE_PREFIX or suffix != LWT_SUFFIX:
        return None

    try:
        text = payload.decode("utf-8").strip().lower()
    except UnicodeDecodeError:
        return None

    if text == PresenceState.ONLINE:
        return device, PresenceState.ONLINE
    if text in (PresenceState.OFFLINE, ""):
        return device, PresenceState.OFFLINE
    return None


def command_topic(device: str, command: str) -> str:
    return f"{COMMAND_PREFIX}/{device}/{command}"


def result_topic(device: str) -> str:
    """Topic a device answers single-shot commands on."""
    return f"{STAT_PREFIX}/{device}/{RESULT_SUFFIX}"


def file_download_topic(device: str) -> str:
    return f"{STAT_PREFIX}/{device}/{FILE_DOWNLOAD_COMMAND}"


def encode_payload(payload: str | bytes | Mapping[str, Any]) -> bytes:
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def encode_command(device: str, command: str, payload: str | bytes | Mapping[str, Any] = "") -> tuple[str, bytes]:
    """Build ``(topic, payload)`` for a command addressed to *device*."""
    return command_topic(device, command), encode_payload(payload)


def decode_json_object(payload: bytes) -> dict[str, Any] | None:
    """Parse *payload* as a JSON object, ``None`` for anything else."""
    try:
        parsed = json.loads(payload)
    except (UnicodeDecodeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def decode_reply(topic: str, payload: bytes, device: str, reply_model: type[ModelT]) -> ModelT | None:
    """Decode a reply from *device* as *reply_model*.

    Tasmota answers every command on the same ``RESULT`` topic, so the
    model's required fields double as the match predicate: a reply to a
    different command fails validation and yields ``None``.
    """
    if topic != result_topic(device):
        return None
    body = decode_json_object(payload)
    if body is None:
        return None
    try:
        return reply_model.model_validate(body)
    except ValidationError:
        return None


def topic_matches(topic_filter: str, topic: str) -> bool:
    """MQTT wildcard match of *topic* against *topic_filter*."""
    return bool(mqtt.topic_matches_sub(topic_filter, topic))
