"""
backend/ligalive/routers/live_matches.py

Purpose:
    HTTP surface of the live-match state machine: creation, clock transitions,
    stage changes, score adjustments, finish and delete. Every handler is a
    thin call into LiveMatchService; typed failures are mapped to status codes
    by the exception handlers in main.

Dependencies:
    - ligalive.services.live_match_service
    - ligalive.models.live_match
"""

import logging

from fastapi import APIRouter, Query, status

from ligalive.models.live_match import (
    LiveMatchCreate,
    LiveMatchResponse,
    ScoreChange,
    StageChange,
)
from ligalive.models.match import MatchResponse
from ligalive.services.live_match_service import live_match_service

logger = logging.getLogger("ligalive.routers.live_matches")

router = APIRouter(prefix="/api/live-matches", tags=["live-matches"])


@router.get("/", response_model=list[LiveMatchResponse])
async def list_live_matches(limit: int = Query(50, ge=1, le=200)):
    """All live matches, newest first, with teams, tournament and goals resolved."""
    return await live_match_service.list(limit=limit)


@router.get("/{match_id}", response_model=LiveMatchResponse)
async def get_live_match(match_id: str):
    return await live_match_service.get(match_id)


@router.post("/", response_model=LiveMatchResponse, status_code=status.HTTP_201_CREATED)
async def create_live_match(body: LiveMatchCreate):
    return await live_match_service.create(body)


@router.post("/{match_id}/start", response_model=LiveMatchResponse)
async def start_live_match(match_id: str):
    return await live_match_service.start(match_id)


@router.post("/{match_id}/pause", response_model=LiveMatchResponse)
async def pause_live_match(match_id: str):
    return await live_match_service.pause(match_id)


@router.post("/{match_id}/resume", response_model=LiveMatchResponse)
async def resume_live_match(match_id: str):
    return await live_match_service.resume(match_id)


@router.post("/{match_id}/suspend", response_model=LiveMatchResponse)
async def suspend_live_match(match_id: str):
    return await live_match_service.suspend(match_id)


@router.post("/{match_id}/stage", response_model=LiveMatchResponse)
async def change_stage(match_id: str, body: StageChange):
    return await live_match_service.set_stage(match_id, body.stage)


@router.put("/{match_id}/score", response_model=LiveMatchResponse)
async def adjust_score(match_id: str, body: ScoreChange):
    """Add or correct goals for one side.

    A positive delta needs a scorer: either an existing player
    (`{"kind": "reference", "player_id": ...}`) or a new one
    (`{"kind": "new", "first_name": ..., "last_name": ...}`).
    """
    return await live_match_service.adjust_score(
        match_id,
        body.team,
        body.delta,
        scorer=body.scorer,
        assist=body.assist,
    )


@router.post("/{match_id}/finish", response_model=MatchResponse)
async def finish_live_match(match_id: str):
    """Finish the match; returns the permanent match it was transcribed into."""
    return await live_match_service.finish(match_id)


@router.delete("/{match_id}")
async def delete_live_match(match_id: str):
    await live_match_service.delete(match_id)
    return {"message": "Live match deleted.", "match_id": match_id}
