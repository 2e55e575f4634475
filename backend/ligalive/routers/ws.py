"""
backend/ligalive/routers/ws.py

Purpose:
    WebSocket endpoint for live-match observers. Clients connect, optionally
    narrow what they receive by match, tournament or event type, and then get
    every matching state-machine event pushed as {type, data, meta}.

Dependencies:
    - ligalive.services.websocket_manager
"""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ligalive.services.websocket_manager import FILTER_COMMANDS, TooManyConnections, websocket_manager

logger = logging.getLogger("ligalive.ws")

router = APIRouter()


def _initial_filters(ws: WebSocket) -> dict[str, list[str]]:
    # ?match_ids=a,b&tournament_ids=c
    out: dict[str, list[str]] = {}
    for key in ("match_ids", "tournament_ids", "event_types"):
        raw = ws.query_params.get(key)
        if raw:
            out[key] = [part for part in raw.split(",") if part.strip()]
    return out


@router.websocket("/ws/live-matches")
async def websocket_live_matches(ws: WebSocket):
    try:
        connection_id = await websocket_manager.connect(ws, initial_filters=_initial_filters(ws))
    except TooManyConnections:
        await ws.close(code=4002, reason="Too many connections")
        return

    try:
        while True:
            raw = await ws.receive_text()
            await websocket_manager.touch(connection_id)
            if raw == "ping":
                await ws.send_text("pong")
                continue
            try:
                command = json.loads(raw)
            except json.JSONDecodeError:
                await ws.send_json({"type": "error", "data": {"detail": "invalid_json"}})
                continue
            if not isinstance(command, dict):
                await ws.send_json({"type": "error", "data": {"detail": "invalid_command"}})
                continue

            command_type = str(command.get("type") or "")
            if command_type == "ping":
                await ws.send_json({"type": "pong", "data": {}})
            elif command_type in FILTER_COMMANDS:
                filters = await websocket_manager.update_filters(
                    connection_id, command_type, command.get("data") or {},
                )
                await ws.send_json({"type": "subscriptions", "data": filters})
            else:
                await ws.send_json({"type": "error", "data": {"detail": "unsupported_command"}})
    except WebSocketDisconnect as exc:
        logger.info("WS observer disconnected (code=%s)", exc.code)
    finally:
        await websocket_manager.disconnect(connection_id)
