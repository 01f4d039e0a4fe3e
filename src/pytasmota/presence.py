"""Device presence tracking.

Turns the level-triggered retained ``LWT`` announcements into an
edge-triggered stream of :class:`DeviceUpdate` events. Re-announcements
of a state the tracker already holds produce nothing, so a retained
replay after a reconnect never duplicates events.

The tracker is fed from the client's dispatch callback on the event
loop thread and is its only writer.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Iterator
from typing import Any

from pytasmota._mqtt import InboundMessage
from pytasmota._topics import PresenceState, decode_presence
from pytasmota.models.device import DeviceUpdate

_logger = logging.getLogger(__name__)

# Queued to subscribers by close() to end their iteration.
_CLOSED = None


class PresenceTracker:
    """Known-device set plus fan-out of presence transitions."""

    def __init__(self) -> None:
        self._known: set[str] = set()
        self._subscribers: list[asyncio.Queue[Any]] = []
        self._closed = False

    def apply(self, message: InboundMessage) -> DeviceUpdate | None:
        """Apply one inbound message, returning the transition it caused (if any)."""
        decoded = decode_presence(message.topic, message.payload)
        if decoded is None:
            return None
        device, state = decoded
        _logger.debug("Processing discovery message device=%s state=%s retain=%s", device, state, message.retain)

        # Build the event before touching the known set.
        if state == PresenceState.ONLINE:
            if device in self._known:
                return None
            update = DeviceUpdate.added(device)
            self._known.add(device)
        else:
            if device not in self._known:
                return None
            update = DeviceUpdate.removed(device)
            self._known.discard(device)

        for queue in self._subscribers:
            queue.put_nowait(update)
        return update

    def current_devices(self) -> list[str]:
        """Get the list of known devices at this point in time.

        Right after connecting this is unlikely to hold every live device
        yet; use :meth:`updates` to follow discovery as it happens.
        """
        return sorted(self._known)

    @contextlib.contextmanager
    def subscribe(self, queue: asyncio.Queue[Any]) -> Iterator[asyncio.Queue[Any]]:
        """Deliver every future update into *queue* until the block exits."""
        self._subscribers.append(queue)
        try:
            yield queue
        finally:
            with contextlib.suppress(ValueError):
                self._subscribers.remove(queue)

    async def updates(self) -> AsyncIterator[DeviceUpdate]:
        """Yield ``ADDED`` for every known device, then live updates.

        Registration and the snapshot happen without yielding to the loop
        in between, so no transition can fall into the gap. Iteration ends
        once the tracker is closed.
        """
        queue: asyncio.Queue[Any] = asyncio.Queue()
        if self._closed:
            return
        with self.subscribe(queue):
            for device in self.current_devices():
                queue.put_nowait(DeviceUpdate.added(device))
            while True:
                update = await queue.get()
                if update is _CLOSED:
                    return
                yield update

    def reopen(self) -> None:
        """Start over with an empty known set after a previous :meth:`close`.

        The retained announcements redelivered on the new connection
        rebuild the set.
        """
        self._closed = False
        self._known.clear()

    def close(self) -> None:
        """End all running :meth:`updates` iterations."""
        self._closed = True
        for queue in self._subscribers:
            queue.put_nowait(_CLOSED)
