"""Tests for the Tasmota topic codec."""

from __future__ import annotations

import json

import pytest

from pytasmota._topics import (
    PresenceState,
    command_topic,
    decode_json_object,
    decode_presence,
    decode_reply,
    device_from_topic,
    encode_command,
    file_download_topic,
    presence_subscription,
    result_topic,
    topic_matches,
)
from pytasmota.models.replies import DeviceNameReply, IpAddressReply


def test_presence_subscription_covers_every_device() -> None:
    assert presence_subscription() == "tele/+/LWT"
    assert topic_matches(presence_subscription(), "tele/sonoff-1/LWT")
    assert not topic_matches(presence_subscription(), "stat/sonoff-1/LWT")


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        (b"Online", PresenceState.ONLINE),
        (b"Offline", PresenceState.OFFLINE),
        (b" online\n", PresenceState.ONLINE),
        (b"OFFLINE", PresenceState.OFFLINE),
        (b"", PresenceState.OFFLINE),
    ],
)
def test_decode_presence_states(payload: bytes, expected: PresenceState) -> None:
    assert decode_presence("tele/sonoff-1/LWT", payload) == ("sonoff-1", expected)


@pytest.mark.parametrize(
    ("topic", "payload"),
    [
        ("tele/sonoff-1/LWT", b"Rebooting"),
        ("tele/sonoff-1/LWT", b"\xff\xfe"),
        ("tele/sonoff-1/STATE", b"Online"),
        ("stat/sonoff-1/LWT", b"Online"),
        ("tele//LWT", b"Online"),
        ("tele/ /LWT", b"Online"),
        ("tele/sonoff-1/LWT/extra", b"Online"),
        ("tele/LWT", b"Online"),
    ],
)
def test_decode_presence_ignores_unrecognised_messages(topic: str, payload: bytes) -> None:
    assert decode_presence(topic, payload) is None


def test_device_from_topic() -> None:
    assert device_from_topic("stat/kitchen/RESULT") == "kitchen"
    assert device_from_topic("stat/kitchen") is None
    assert device_from_topic("a/b/c/d") is None


def test_command_and_reply_topics() -> None:
    assert command_topic("sonoff-1", "IPAddress") == "cmnd/sonoff-1/IPAddress"
    assert result_topic("sonoff-1") == "stat/sonoff-1/RESULT"
    assert file_download_topic("sonoff-1") == "stat/sonoff-1/FILEDOWNLOAD"


def test_encode_command_payload_shapes() -> None:
    assert encode_command("dev", "Power", "Off") == ("cmnd/dev/Power", b"Off")
    assert encode_command("dev", "Power") == ("cmnd/dev/Power", b"")
    assert encode_command("dev", "Raw", b"\x01\x02") == ("cmnd/dev/Raw", b"\x01\x02")

    topic, body = encode_command("dev", "FILEDOWNLOAD", {"password": "pw", "type": 2})
    assert topic == "cmnd/dev/FILEDOWNLOAD"
    assert body == b'{"password":"pw","type":2}'


def test_decode_json_object_rejects_non_objects() -> None:
    assert decode_json_object(b'{"a": 1}') == {"a": 1}
    assert decode_json_object(b"[1, 2]") is None
    assert decode_json_object(b"42") is None
    assert decode_json_object(b"not json") is None
    assert decode_json_object(b"\x00\xff\x10") is None


def test_decode_reply_matches_device_and_model() -> None:
    payload = json.dumps({"DeviceName": "Kitchen"}).encode()

    reply = decode_reply("stat/sonoff-1/RESULT", payload, "sonoff-1", DeviceNameReply)
    assert reply is not None
    assert reply.device_name == "Kitchen"


def test_decode_reply_rejects_other_device() -> None:
    payload = json.dumps({"DeviceName": "Kitchen"}).encode()
    assert decode_reply("stat/sonoff-2/RESULT", payload, "sonoff-1", DeviceNameReply) is None


def test_decode_reply_rejects_reply_to_other_command() -> None:
    payload = json.dumps({"DeviceName": "Kitchen"}).encode()
    assert decode_reply("stat/sonoff-1/RESULT", payload, "sonoff-1", IpAddressReply) is None


def test_decode_reply_rejects_malformed_payload() -> None:
    assert decode_reply("stat/sonoff-1/RESULT", b"{broken", "sonoff-1", DeviceNameReply) is None
    assert decode_reply("stat/sonoff-1/RESULT", b'"Kitchen"', "sonoff-1", DeviceNameReply) is None


def test_topic_matches_wildcards() -> None:
    assert topic_matches("stat/+/RESULT", "stat/dev/RESULT")
    assert topic_matches("stat/#", "stat/dev/FILEDOWNLOAD")
    assert not topic_matches("stat/dev/RESULT", "stat/other/RESULT")
