from __future__ import annotations

import asyncio
import random

import pytest

from pytasmota._mqtt import InboundMessage
from pytasmota.models.device import DeviceUpdate, DeviceUpdateKind
from pytasmota.presence import PresenceTracker


def _lwt(device: str, payload: bytes, *, retain: bool = True) -> InboundMessage:
    return InboundMessage(topic=f"tele/{device}/LWT", payload=payload, retain=retain)


def test_online_then_offline_emits_added_and_removed() -> None:
    tracker = PresenceTracker()

    assert tracker.apply(_lwt("sonoff-1", b"Online")) == DeviceUpdate.added("sonoff-1")
    assert tracker.current_devices() == ["sonoff-1"]
    assert tracker.apply(_lwt("sonoff-1", b"Offline")) == DeviceUpdate.removed("sonoff-1")
    assert tracker.current_devices() == []


def test_repeated_announcements_are_idempotent() -> None:
    tracker = PresenceTracker()

    tracker.apply(_lwt("sonoff-1", b"Online"))
    assert tracker.apply(_lwt("sonoff-1", b"Online")) is None
    # Offline for a device never seen online produces nothing.
    assert tracker.apply(_lwt("sonoff-2", b"Offline")) is None
    tracker.apply(_lwt("sonoff-1", b"Offline"))
    assert tracker.apply(_lwt("sonoff-1", b"Offline")) is None


def test_empty_retained_payload_counts_as_offline() -> None:
    tracker = PresenceTracker()
    tracker.apply(_lwt("sonoff-1", b"Online"))

    assert tracker.apply(_lwt("sonoff-1", b"")) == DeviceUpdate.removed("sonoff-1")


def test_non_presence_messages_are_ignored() -> None:
    tracker = PresenceTracker()

    assert tracker.apply(InboundMessage(topic="stat/sonoff-1/RESULT", payload=b'{"POWER":"ON"}')) is None
    assert tracker.apply(_lwt("sonoff-1", b"Booting")) is None
    assert tracker.current_devices() == []


@pytest.mark.asyncio
async def test_blank_device_id_is_dropped() -> None:
    tracker = PresenceTracker()

    assert tracker.apply(_lwt(" ", b"Online")) is None
    assert tracker.current_devices() == []

    tracker.apply(_lwt("sonoff-1", b"Online"))
    stream = tracker.updates()
    assert await anext(stream) == DeviceUpdate.added("sonoff-1")
    await stream.aclose()


def test_padded_device_id_is_kept_as_announced() -> None:
    tracker = PresenceTracker()

    update = tracker.apply(_lwt(" sonoff-1", b"Online"))
    assert update is not None
    assert update.device == " sonoff-1"
    assert tracker.current_devices() == [" sonoff-1"]
    assert tracker.apply(_lwt(" sonoff-1", b"Offline")) == DeviceUpdate.removed(" sonoff-1")


@pytest.mark.asyncio
async def test_reopen_after_close_streams_again() -> None:
    tracker = PresenceTracker()
    tracker.apply(_lwt("sonoff-1", b"Online"))
    tracker.close()
    tracker.reopen()

    assert tracker.current_devices() == []
    stream = tracker.updates()
    pending = asyncio.create_task(anext(stream))
    await asyncio.sleep(0)
    tracker.apply(_lwt("sonoff-1", b"Online"))
    assert await pending == DeviceUpdate.added("sonoff-1")
    await stream.aclose()


def test_random_sequences_keep_transitions_alternating() -> None:
    """Per device, emitted kinds alternate starting with ADDED, and the known
    set always matches the last announced state."""
    rng = random.Random(1234)
    devices = ["a", "b", "c"]
    tracker = PresenceTracker()
    emitted: dict[str, list[DeviceUpdateKind]] = {d: [] for d in devices}
    last_state: dict[str, bool] = {}

    for _ in range(500):
        device = rng.choice(devices)
        online = rng.random() < 0.5
        update = tracker.apply(_lwt(device, b"Online" if online else b"Offline"))
        if update is not None:
            emitted[device].append(update.kind)
        last_state[device] = online

    for device, kinds in emitted.items():
        for index, kind in enumerate(kinds):
            expected = DeviceUpdateKind.ADDED if index % 2 == 0 else DeviceUpdateKind.REMOVED
            assert kind == expected
        assert (device in tracker.current_devices()) == last_state.get(device, False)


@pytest.mark.asyncio
async def test_updates_replays_known_devices_then_streams() -> None:
    tracker = PresenceTracker()
    for device in ("sonoff-2", "sonoff-1", "sonoff-3"):
        tracker.apply(_lwt(device, b"Online"))

    stream = tracker.updates()
    replay = [await anext(stream) for _ in range(3)]
    assert replay == [DeviceUpdate.added(d) for d in ("sonoff-1", "sonoff-2", "sonoff-3")]

    tracker.apply(_lwt("sonoff-2", b"Offline"))
    assert await anext(stream) == DeviceUpdate.removed("sonoff-2")
    await stream.aclose()


@pytest.mark.asyncio
async def test_each_subscriber_receives_every_update() -> None:
    tracker = PresenceTracker()
    first = tracker.updates()
    second = tracker.updates()

    first_next = asyncio.create_task(anext(first))
    second_next = asyncio.create_task(anext(second))
    await asyncio.sleep(0)

    tracker.apply(_lwt("sonoff-1", b"Online"))
    assert await first_next == DeviceUpdate.added("sonoff-1")
    assert await second_next == DeviceUpdate.added("sonoff-1")
    await first.aclose()
    await second.aclose()


@pytest.mark.asyncio
async def test_close_ends_iteration() -> None:
    tracker = PresenceTracker()
    stream = tracker.updates()
    pending = asyncio.create_task(anext(stream))
    await asyncio.sleep(0)

    tracker.close()
    with pytest.raises(StopAsyncIteration):
        await pending

    # Iterating after close ends immediately.
    assert [update async for update in tracker.updates()] == []


@pytest.mark.asyncio
async def test_subscriber_is_removed_when_iteration_stops() -> None:
    tracker = PresenceTracker()
    tracker.apply(_lwt("sonoff-1", b"Online"))

    stream = tracker.updates()
    await anext(stream)
    assert len(tracker._subscribers) == 1  # type: ignore[attr-defined]

    await stream.aclose()
    assert tracker._subscribers == []  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_subscribe_context_collects_updates() -> None:
    tracker = PresenceTracker()
    queue: asyncio.Queue[DeviceUpdate] = asyncio.Queue()

    with tracker.subscribe(queue):
        tracker.apply(_lwt("sonoff-1", b"Online"))
    tracker.apply(_lwt("sonoff-1", b"Offline"))

    assert queue.get_nowait() == DeviceUpdate.added("sonoff-1")
    assert queue.empty()
