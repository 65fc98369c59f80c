"""Tests for per-session event channels."""

from __future__ import annotations

import asyncio

import pytest

from agentdeck.bus.channels import EventBus
from agentdeck.bus.events import CompleteEvent, OutputEvent
from agentdeck.engines.types import CompletionResult, LogChannel, LogEntry


def _output(session_id: str, content: str) -> OutputEvent:
    return OutputEvent(session_id, LogEntry(session_id, LogChannel.STDOUT, content))


def _complete(session_id: str) -> CompleteEvent:
    return CompleteEvent(
        session_id,
        CompletionResult(
            session_id=session_id, success=True, logs=[], duration=0, start_time=0, end_time=0
        ),
    )


@pytest.mark.asyncio
async def test_listeners_receive_events_in_order():
    bus = EventBus()
    seen: list[str] = []

    async def async_listener(event):
        await asyncio.sleep(0)
        seen.append(f"async:{event.entry.content}")

    bus.subscribe("s1", lambda e: seen.append(f"sync:{e.entry.content}"))
    bus.subscribe("s1", async_listener)

    await bus.publish(_output("s1", "one"))
    await bus.publish(_output("s1", "two"))

    assert seen == ["sync:one", "async:one", "sync:two", "async:two"]


@pytest.mark.asyncio
async def test_channels_are_isolated():
    bus = EventBus()
    a: list = []
    b: list = []
    bus.subscribe("a", a.append)
    bus.subscribe("b", b.append)

    await bus.publish(_output("a", "for a"))

    assert len(a) == 1
    assert b == []


@pytest.mark.asyncio
async def test_listener_error_does_not_stop_delivery():
    bus = EventBus()
    received: list = []

    def broken(event):
        raise ValueError("listener bug")

    bus.subscribe("s1", broken)
    bus.subscribe("s1", received.append)

    await bus.publish(_output("s1", "x"))

    assert len(received) == 1


@pytest.mark.asyncio
async def test_publish_without_channel_is_noop():
    bus = EventBus()
    await bus.publish(_output("nobody", "x"))
    assert not bus.has_channel("nobody")


@pytest.mark.asyncio
async def test_unsubscribe_drops_idle_channel():
    bus = EventBus()
    received: list = []
    bus.subscribe("s1", received.append)
    bus.unsubscribe("s1", received.append)

    await bus.publish(_output("s1", "x"))

    assert received == []
    assert not bus.has_channel("s1")
    bus.unsubscribe("missing", received.append)


@pytest.mark.asyncio
async def test_one_shot_listener_can_unsubscribe_itself():
    bus = EventBus()
    calls: list = []

    def once(event):
        calls.append(event)
        bus.unsubscribe("s1", once)

    bus.subscribe("s1", once)
    await bus.publish(_output("s1", "a"))
    await bus.publish(_output("s1", "b"))

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_stream_ends_after_complete():
    bus = EventBus()

    async def produce():
        await bus.publish(_output("s1", "one"))
        await bus.publish(_output("s1", "two"))
        await bus.publish(_complete("s1"))
        await bus.publish(_output("s1", "next turn"))

    collected = []
    stream = bus.stream("s1")
    first = await asyncio.gather(stream.__anext__(), produce())
    collected.append(first[0])
    async for event in stream:
        collected.append(event)

    assert [type(e).__name__ for e in collected] == ["OutputEvent", "OutputEvent", "CompleteEvent"]
    assert collected[1].entry.content == "two"
    assert not bus.has_channel("s1")
