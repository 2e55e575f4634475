"""
backend/ligalive/services/event_handlers/websocket_handlers.py

Purpose:
    Event bus subscriber that pushes live-match events to connected
    WebSocket observers.

Dependencies:
    - ligalive.services.event_models
    - ligalive.services.websocket_manager
"""

from __future__ import annotations

import logging

from ligalive.config import settings
from ligalive.services.event_models import BaseEvent, LiveMatchEvent
from ligalive.services.websocket_manager import websocket_manager

logger = logging.getLogger("ligalive.event_handlers.websocket")


async def handle_live_match_event_ws(event: BaseEvent) -> None:
    if not settings.WS_EVENTS_ENABLED:
        return
    if not isinstance(event, LiveMatchEvent):
        return

    delivered = await websocket_manager.broadcast(event)
    logger.debug("Broadcast %s for match %s to %d observers", event.event_type, event.match_id, delivered)
