"""
backend/ligalive/services/websocket_manager.py

Purpose:
    Registry of WebSocket observers following live matches. Each observer
    narrows its feed with ObserverFilters (match ids, tournament ids, event
    types); broadcast hands one LiveMatchEvent to every observer whose
    filters accept it. A heartbeat pings observers and drops dead sockets.

Dependencies:
    - fastapi.WebSocket
    - ligalive.config
    - ligalive.services.event_models
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi import WebSocket

from ligalive.config import settings
from ligalive.services.event_models import LiveMatchEvent
from ligalive.utils import utcnow

logger = logging.getLogger("ligalive.websocket_manager")

FILTER_COMMANDS = ("subscribe", "unsubscribe", "replace_subscriptions")


class TooManyConnections(RuntimeError):
    pass


def _id_set(values: Any) -> set[str]:
    if isinstance(values, str):
        values = values.split(",")
    if not isinstance(values, (list, tuple, set)):
        return set()
    return {str(v).strip() for v in values if v is not None and str(v).strip()}


@dataclass
class ObserverFilters:
    """What an observer follows.

    No match ids and no tournament ids means every match; no event types
    means every event. When both id sets are empty only the event type
    narrows the feed; otherwise a match id OR tournament id hit is enough.
    """

    match_ids: set[str] = field(default_factory=set)
    tournament_ids: set[str] = field(default_factory=set)
    event_types: set[str] = field(default_factory=set)

    @classmethod
    def from_payload(cls, payload: Any) -> ObserverFilters:
        if not isinstance(payload, dict):
            return cls()
        return cls(
            match_ids=_id_set(payload.get("match_ids")),
            tournament_ids=_id_set(payload.get("tournament_ids")),
            event_types=_id_set(payload.get("event_types")),
        )

    def merge(self, other: ObserverFilters) -> None:
        self.match_ids |= other.match_ids
        self.tournament_ids |= other.tournament_ids
        self.event_types |= other.event_types

    def remove(self, other: ObserverFilters) -> None:
        self.match_ids -= other.match_ids
        self.tournament_ids -= other.tournament_ids
        self.event_types -= other.event_types

    def wants(self, event: LiveMatchEvent) -> bool:
        if self.event_types and event.event_type not in self.event_types:
            return False
        if not self.match_ids and not self.tournament_ids:
            return True
        if event.match_id in self.match_ids:
            return True
        return event.tournament_id is not None and event.tournament_id in self.tournament_ids

    def as_dict(self) -> dict[str, list[str]]:
        return {
            "match_ids": sorted(self.match_ids),
            "tournament_ids": sorted(self.tournament_ids),
            "event_types": sorted(self.event_types),
        }


@dataclass
class Observer:
    websocket: WebSocket
    filters: ObserverFilters
    observer_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    last_seen_at: datetime = field(default_factory=utcnow)


def event_message(event: LiveMatchEvent) -> dict[str, Any]:
    return {
        "type": event.event_type,
        "data": event.payload,
        "meta": {
            "event_id": event.event_id,
            "correlation_id": event.correlation_id,
            "occurred_at": event.occurred_at.isoformat(),
        },
    }


class WebSocketManager:
    def __init__(self, *, max_connections: int, heartbeat_seconds: int) -> None:
        self._max_connections = max(1, int(max_connections))
        self._heartbeat_seconds = max(1, int(heartbeat_seconds))
        self._observers: dict[str, Observer] = {}
        self._lock = asyncio.Lock()
        self._heartbeat_task: asyncio.Task | None = None

    @property
    def active_connections(self) -> int:
        return len(self._observers)

    async def start(self) -> None:
        if self._heartbeat_task is not None:
            return
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(), name="ws_heartbeat")
        logger.info("WebSocket manager started (heartbeat every %ss)", self._heartbeat_seconds)

    async def stop(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        async with self._lock:
            self._observers.clear()
        logger.info("WebSocket manager stopped")

    async def connect(self, websocket: WebSocket, *, initial_filters: dict[str, Any] | None = None) -> str:
        if len(self._observers) >= self._max_connections:
            raise TooManyConnections(f"limit of {self._max_connections} observers reached")
        await websocket.accept()
        observer = Observer(websocket=websocket, filters=ObserverFilters.from_payload(initial_filters or {}))
        async with self._lock:
            self._observers[observer.observer_id] = observer
        logger.info("WS observer %s connected (%d total)", observer.observer_id, len(self._observers))
        return observer.observer_id

    async def disconnect(self, observer_id: str) -> None:
        async with self._lock:
            self._observers.pop(observer_id, None)

    async def touch(self, observer_id: str) -> None:
        observer = self._observers.get(observer_id)
        if observer is not None:
            observer.last_seen_at = utcnow()

    async def update_filters(self, observer_id: str, command_type: str, payload: Any) -> dict[str, list[str]]:
        """Apply a subscribe / unsubscribe / replace_subscriptions command."""
        if command_type not in FILTER_COMMANDS:
            raise ValueError("unsupported_command")
        incoming = ObserverFilters.from_payload(payload)
        async with self._lock:
            observer = self._observers.get(observer_id)
            if observer is None:
                raise KeyError(observer_id)
            if command_type == "replace_subscriptions":
                observer.filters = incoming
            elif command_type == "subscribe":
                observer.filters.merge(incoming)
            else:
                observer.filters.remove(incoming)
            observer.last_seen_at = utcnow()
            return observer.filters.as_dict()

    async def broadcast(self, event: LiveMatchEvent) -> int:
        """Deliver one live-match event; returns how many observers got it."""
        async with self._lock:
            targets = [o for o in self._observers.values() if o.filters.wants(event)]
        message = event_message(event)
        delivered = 0
        for observer in targets:
            if await self._send(observer, message):
                delivered += 1
        return delivered

    async def _send(self, observer: Observer, message: dict[str, Any]) -> bool:
        try:
            await observer.websocket.send_json(message)
        except Exception as exc:
            logger.info("Dropping WS observer %s after failed send: %s", observer.observer_id, exc)
            await self.disconnect(observer.observer_id)
            return False
        return True

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_seconds)
            async with self._lock:
                observers = list(self._observers.values())
            ping = {"type": "ping", "data": {"ts": utcnow().isoformat()}}
            for observer in observers:
                await self._send(observer, ping)


websocket_manager = WebSocketManager(
    max_connections=settings.WS_MAX_CONNECTIONS,
    heartbeat_seconds=settings.WS_HEARTBEAT_SECONDS,
)
