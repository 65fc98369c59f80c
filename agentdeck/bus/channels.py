"""Per-session pub/sub channels for streamed engine output.

Each session id owns one SessionChannel. Publishers (adapters) push typed
events; consumers either register listeners (sync or async callables) or
iterate ``EventBus.stream(session_id)``, which is backed by an asyncio.Queue
and ends after the turn's CompleteEvent. Events on one channel are
delivered in publish order; channels are independent of one another.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections.abc import AsyncIterator, Awaitable, Callable

from loguru import logger

from agentdeck.bus.events import CompleteEvent, SessionEvent

SessionListener = Callable[[SessionEvent], Awaitable[None] | None]


class SessionChannel:
    """Listeners and stream queues for a single session."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self._listeners: list[SessionListener] = []
        self._queues: list[asyncio.Queue[SessionEvent]] = []

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: SessionListener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    def open_queue(self) -> asyncio.Queue[SessionEvent]:
        queue: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._queues.append(queue)
        return queue

    def close_queue(self, queue: asyncio.Queue[SessionEvent]) -> None:
        with contextlib.suppress(ValueError):
            self._queues.remove(queue)

    async def publish(self, event: SessionEvent) -> None:
        for queue in list(self._queues):
            queue.put_nowait(event)
        # Snapshot so one-shot listeners can unsubscribe themselves mid-delivery.
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.error("Listener error on session {}: {}", self.session_id, exc)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    @property
    def is_idle(self) -> bool:
        return not self._listeners and not self._queues


class EventBus:
    """Map of session id to its SessionChannel, created on first use."""

    def __init__(self) -> None:
        self._channels: dict[str, SessionChannel] = {}

    def channel(self, session_id: str) -> SessionChannel:
        channel = self._channels.get(session_id)
        if channel is None:
            channel = SessionChannel(session_id)
            self._channels[session_id] = channel
        return channel

    def subscribe(self, session_id: str, listener: SessionListener) -> None:
        self.channel(session_id).subscribe(listener)
        logger.debug("Listener subscribed to session {}", session_id)

    def unsubscribe(self, session_id: str, listener: SessionListener) -> None:
        channel = self._channels.get(session_id)
        if channel is None:
            return
        channel.unsubscribe(listener)
        if channel.is_idle:
            self._channels.pop(session_id, None)

    async def publish(self, event: SessionEvent) -> None:
        channel = self._channels.get(event.session_id)
        if channel is None:
            return
        await channel.publish(event)

    async def stream(self, session_id: str) -> AsyncIterator[SessionEvent]:
        """Yield events for ``session_id`` until the next CompleteEvent."""
        channel = self.channel(session_id)
        queue = channel.open_queue()
        try:
            while True:
                event = await queue.get()
                yield event
                if isinstance(event, CompleteEvent):
                    return
        finally:
            channel.close_queue(queue)
            if channel.is_idle:
                self._channels.pop(session_id, None)

    def close(self, session_id: str) -> None:
        self._channels.pop(session_id, None)

    def has_channel(self, session_id: str) -> bool:
        return session_id in self._channels
