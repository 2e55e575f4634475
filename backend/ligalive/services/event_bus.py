"""
backend/ligalive/services/event_bus.py

Purpose:
    In-process bus between the live-match state machine and notification
    delivery. Publishing never waits on a handler: every subscription owns a
    few lanes (queue + worker) and each event is routed to a lane by its
    match id, so one match's events reach a handler in the order they were
    published while different matches are handled side by side.

Dependencies:
    - asyncio
    - ligalive.config
    - ligalive.services.event_models
"""

from __future__ import annotations

import asyncio
import logging
import zlib
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from ligalive.config import settings
from ligalive.services.event_models import LIVE_MATCH_EVENT_TYPES, LiveMatchEvent, normalize_event_time

logger = logging.getLogger("ligalive.event_bus")

EventHandler = Callable[[LiveMatchEvent], Awaitable[None]]


@dataclass
class _Subscription:
    handler_name: str
    handler: EventHandler
    event_types: frozenset[str]
    lanes: list[asyncio.Queue[LiveMatchEvent]]
    workers: list[asyncio.Task] = field(default_factory=list)

    def lane_for(self, match_id: str) -> asyncio.Queue[LiveMatchEvent]:
        return self.lanes[zlib.crc32(match_id.encode()) % len(self.lanes)]


class InMemoryEventBus:
    def __init__(self, *, lane_maxsize: int, default_lanes: int) -> None:
        self._lane_maxsize = max(1, int(lane_maxsize))
        self._default_lanes = max(1, int(default_lanes))
        self._subscriptions: list[_Subscription] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def subscribe(
        self,
        handler: EventHandler,
        *,
        handler_name: str,
        event_types: Iterable[str] | None = None,
        lanes: int | None = None,
    ) -> None:
        """Register a handler for some (default: all) live-match event types."""
        wanted = frozenset(event_types or LIVE_MATCH_EVENT_TYPES)
        unknown = wanted.difference(LIVE_MATCH_EVENT_TYPES)
        if unknown:
            raise ValueError(f"Unknown event types: {sorted(unknown)}")

        lane_count = max(1, int(lanes or self._default_lanes))
        sub = _Subscription(
            handler_name=handler_name,
            handler=handler,
            event_types=wanted,
            lanes=[asyncio.Queue(maxsize=self._lane_maxsize) for _ in range(lane_count)],
        )
        self._subscriptions.append(sub)
        if self._running:
            self._spawn_workers(sub)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for sub in self._subscriptions:
            self._spawn_workers(sub)
        logger.info("Event bus started with %d subscriptions", len(self._subscriptions))

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        workers = [task for sub in self._subscriptions for task in sub.workers]
        for sub in self._subscriptions:
            sub.workers.clear()
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        logger.info("Event bus stopped")

    async def publish(self, event: LiveMatchEvent) -> None:
        event = normalize_event_time(event)
        for sub in self._subscriptions:
            if event.event_type not in sub.event_types:
                continue
            try:
                sub.lane_for(event.match_id).put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    "Lane full, dropping %s for live match %s (handler=%s)",
                    event.event_type, event.match_id, sub.handler_name,
                )

    async def drain(self) -> None:
        """Wait until every queued event has been handled. Only meaningful while running."""
        await asyncio.gather(*(lane.join() for sub in self._subscriptions for lane in sub.lanes))

    def _spawn_workers(self, sub: _Subscription) -> None:
        for idx, lane in enumerate(sub.lanes):
            sub.workers.append(
                asyncio.create_task(self._run_lane(sub, lane), name=f"event_bus_{sub.handler_name}_{idx}")
            )

    async def _run_lane(self, sub: _Subscription, lane: asyncio.Queue[LiveMatchEvent]) -> None:
        while True:
            event = await lane.get()
            try:
                await sub.handler(event)
            except Exception:
                # The lane keeps running after a failed delivery.
                logger.exception(
                    "Handler %s failed on %s for live match %s (event_id=%s correlation_id=%s)",
                    sub.handler_name, event.event_type, event.match_id, event.event_id, event.correlation_id,
                )
            finally:
                lane.task_done()


event_bus = InMemoryEventBus(
    lane_maxsize=settings.EVENT_BUS_LANE_MAXSIZE,
    default_lanes=settings.EVENT_BUS_HANDLER_LANES,
)
