"""
backend/ligalive/services/event_handlers/__init__.py

Purpose:
    Central registration entrypoint for event bus subscribers.

Dependencies:
    - ligalive.services.event_bus
    - ligalive.services.event_handlers.websocket_handlers
"""

from __future__ import annotations

from ligalive.config import settings
from ligalive.services.event_bus import InMemoryEventBus
from ligalive.services.event_handlers.websocket_handlers import handle_live_match_event_ws


def register_event_handlers(bus: InMemoryEventBus) -> None:
    if settings.EVENT_HANDLER_WS_BROADCAST_ENABLED:
        bus.subscribe(handle_live_match_event_ws, handler_name="ws_broadcast")
