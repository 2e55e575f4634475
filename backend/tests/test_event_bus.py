"""
backend/tests/test_event_bus.py

Purpose:
    Unit tests for the in-memory event bus: fan-out by event type, per-match
    ordering across lanes, handler failure isolation and lane overflow.
"""

from __future__ import annotations

import asyncio
import sys

import pytest

sys.path.insert(0, "backend")

from ligalive.services.event_bus import InMemoryEventBus
from ligalive.services.event_models import LiveMatchEvent


def _event(**overrides) -> LiveMatchEvent:
    data = {"event_type": "scoreUpdated", "match_id": "m1", "tournament_id": "t1", "payload": {"score_a": 1}}
    data.update(overrides)
    return LiveMatchEvent(**data)


@pytest.mark.asyncio
async def test_fanout_respects_subscribed_event_types() -> None:
    bus = InMemoryEventBus(lane_maxsize=10, default_lanes=2)
    seen: list[tuple[str, str]] = []

    async def scores(event):
        seen.append(("scores", event.correlation_id))

    async def everything(event):
        seen.append(("all", event.correlation_id))

    bus.subscribe(scores, handler_name="scores", event_types=["scoreUpdated"])
    bus.subscribe(everything, handler_name="all")
    await bus.start()

    await bus.publish(_event(correlation_id="corr-1"))
    await bus.publish(_event(event_type="matchPaused", correlation_id="corr-2"))
    await bus.drain()
    await bus.stop()

    assert sorted(seen) == [("all", "corr-1"), ("all", "corr-2"), ("scores", "corr-1")]


@pytest.mark.asyncio
async def test_events_of_one_match_keep_their_order() -> None:
    bus = InMemoryEventBus(lane_maxsize=50, default_lanes=4)
    seen: dict[str, list[int]] = {"m1": [], "m2": []}

    async def slow_on_even(event):
        if event.payload["seq"] % 2 == 0:
            await asyncio.sleep(0.005)
        seen[event.match_id].append(event.payload["seq"])

    bus.subscribe(slow_on_even, handler_name="ordered")
    await bus.start()
    for seq in range(10):
        await bus.publish(_event(match_id="m1", payload={"seq": seq}))
        await bus.publish(_event(match_id="m2", payload={"seq": seq}))
    await bus.drain()
    await bus.stop()

    assert seen["m1"] == list(range(10))
    assert seen["m2"] == list(range(10))


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_its_lane_or_others(caplog) -> None:
    bus = InMemoryEventBus(lane_maxsize=10, default_lanes=1)
    flaky_seen: list[str] = []
    steady_seen: list[str] = []

    async def flaky(event):
        if event.event_type == "matchStarted":
            raise RuntimeError("boom")
        flaky_seen.append(event.event_type)

    async def steady(event):
        steady_seen.append(event.event_type)

    bus.subscribe(flaky, handler_name="flaky")
    bus.subscribe(steady, handler_name="steady")
    await bus.start()
    await bus.publish(_event(event_type="matchStarted", correlation_id="corr-3"))
    await bus.publish(_event(event_type="matchPaused"))
    await bus.drain()
    await bus.stop()

    assert flaky_seen == ["matchPaused"]
    assert steady_seen == ["matchStarted", "matchPaused"]
    assert any("flaky" in r.getMessage() and "corr-3" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_full_lane_drops_new_events() -> None:
    bus = InMemoryEventBus(lane_maxsize=1, default_lanes=1)
    seen: list[str] = []

    async def record(event):
        seen.append(event.event_id)

    bus.subscribe(record, handler_name="record")
    first = _event()
    await bus.publish(first)
    await bus.publish(_event())

    await bus.start()
    await bus.drain()
    await bus.stop()

    assert seen == [first.event_id]


@pytest.mark.asyncio
async def test_subscribe_after_start_and_unknown_types() -> None:
    bus = InMemoryEventBus(lane_maxsize=10, default_lanes=1)
    seen: list[str] = []

    async def late(event):
        seen.append(event.event_type)

    await bus.start()
    bus.subscribe(late, handler_name="late", event_types=["matchDeleted"])
    await bus.publish(_event(event_type="matchDeleted", payload={"match_id": "m1"}))
    await bus.drain()
    await bus.stop()

    assert seen == ["matchDeleted"]
    assert bus.running is False
    with pytest.raises(ValueError):
        bus.subscribe(late, handler_name="bad", event_types=["goalScored"])
