"""
backend/ligalive/services/event_models.py

Purpose:
    Event contracts for live-match notifications. Every state-machine
    transition and score change is published as one LiveMatchEvent carrying
    the populated match (or, for deletions, just its id).

Dependencies:
    - pydantic
    - ligalive.utils
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal, get_args

from pydantic import BaseModel, Field

from ligalive.utils import ensure_utc, utcnow

EventType = Literal[
    "matchCreated",
    "matchStarted",
    "matchPaused",
    "matchResumed",
    "matchSuspended",
    "matchFinished",
    "matchStageChanged",
    "scoreUpdated",
    "matchDeleted",
]

LIVE_MATCH_EVENT_TYPES: tuple[str, ...] = get_args(EventType)


def make_event_id() -> str:
    return str(uuid.uuid4())


def make_correlation_id() -> str:
    return str(uuid.uuid4())


class BaseEvent(BaseModel):
    event_id: str = Field(default_factory=make_event_id)
    event_type: EventType
    occurred_at: datetime = Field(default_factory=utcnow)
    correlation_id: str = Field(default_factory=make_correlation_id)
    source: str = "live_match_service"


class LiveMatchEvent(BaseEvent):
    match_id: str
    tournament_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


def normalize_event_time(event: BaseEvent) -> BaseEvent:
    event.occurred_at = ensure_utc(event.occurred_at)
    return event
