"""Request/response correlation over one-way MQTT topics.

Owns:
- the registry of pending single-shot queries (one future per query)
- multi-message listeners for flows that span several replies
- the fan-out of every inbound message to both

All registry mutations happen on the event loop thread: queries register
from the calling coroutine and complete from :meth:`QueryCorrelator.dispatch`,
which the transport schedules with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from pytasmota._mqtt import InboundMessage
from pytasmota._topics import command_topic, decode_reply, encode_command, topic_matches
from pytasmota.exceptions import TasmotaTimeoutError, TasmotaTransportError

_logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(slots=True, eq=False)
class PendingQuery(Generic[ModelT]):
    """An outstanding command waiting for its reply.

    Matching rule: the reply must arrive on *device*'s result topic and
    validate as *reply_model*.
    """

    device: str
    command: str
    reply_model: type[ModelT]
    future: asyncio.Future[ModelT]
    created_at: float = field(default_factory=time.monotonic)

    def try_complete(self, message: InboundMessage) -> bool:
        """Complete the query from *message* if it matches.

        Returns ``True`` when the message matched, even if the query had
        already completed; a second completion is ignored.
        """
        reply = decode_reply(message.topic, message.payload, self.device, self.reply_model)
        if reply is None:
            return False
        if not self.future.done():
            self.future.set_result(reply)
        return True


@dataclass(slots=True, eq=False)
class _Listener:
    topic_filter: str
    queue: asyncio.Queue[Any]


class QueryCorrelator:
    """Correlates published commands with the replies that answer them."""

    def __init__(self, publish: Callable[[str, bytes], None]) -> None:
        self._publish = publish
        self._pending: list[PendingQuery[Any]] = []
        self._listeners: list[_Listener] = []

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def dispatch(self, message: InboundMessage) -> None:
        """Offer *message* to every pending query and listener.

        A message matching nothing is dropped.
        """
        matched: list[PendingQuery[Any]] = []
        remaining: list[PendingQuery[Any]] = []
        for query in self._pending:
            if query.future.done():
                continue
            if query.try_complete(message):
                matched.append(query)
            else:
                remaining.append(query)
        self._pending = remaining
        for query in matched:
            _logger.debug(
                "Reply matched device=%s command=%s after %.3fs",
                query.device,
                query.command,
                time.monotonic() - query.created_at,
            )

        for listener in self._listeners:
            if topic_matches(listener.topic_filter, message.topic):
                listener.queue.put_nowait(message)

    async def ask(
        self,
        device: str,
        command: str,
        payload: str | bytes | Mapping[str, Any],
        reply_model: type[ModelT],
        timeout: float,
    ) -> ModelT:
        """Publish *command* to *device* and wait for the first matching reply.

        Raises
        ------
        TasmotaTransportError
            Publishing the command failed, or the correlator was closed
            before a reply arrived.
        TasmotaTimeoutError
            No matching reply arrived within *timeout* seconds.
        """
        loop = asyncio.get_running_loop()
        query: PendingQuery[ModelT] = PendingQuery(
            device=device,
            command=command,
            reply_model=reply_model,
            future=loop.create_future(),
        )
        # Register before publishing: a fast reply must find the query.
        self._pending.append(query)
        try:
            topic, body = encode_command(device, command, payload)
            self._publish(topic, body)
            try:
                return await asyncio.wait_for(query.future, timeout)
            except TimeoutError as exc:
                raise TasmotaTimeoutError(
                    f"Timeout while waiting for reply from {device} to {command}",
                    device=device,
                    command=command,
                    timeout=timeout,
                ) from exc
        finally:
            with contextlib.suppress(ValueError):
                self._pending.remove(query)

    @contextlib.contextmanager
    def listen(self, topic_filter: str, queue: asyncio.Queue[Any] | None = None) -> Iterator[asyncio.Queue[Any]]:
        """Collect every message matching *topic_filter* into a queue until exit."""
        listener = _Listener(topic_filter=topic_filter, queue=queue if queue is not None else asyncio.Queue())
        self._listeners.append(listener)
        try:
            yield listener.queue
        finally:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

    def close(self) -> None:
        """Fail every pending query so no caller hangs after shutdown."""
        for query in self._pending:
            if not query.future.done():
                query.future.set_exception(
                    TasmotaTransportError(
                        "MQTT client closed while waiting for a reply",
                        topic=command_topic(query.device, query.command),
                    )
                )
        self._pending.clear()
