"""
backend/ligalive/models/match.py

Purpose:
    Permanent (finished) match record: request body for direct historical
    creation and the populated response shape.

Dependencies:
    - pydantic
    - ligalive.models.live_match
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ligalive.models.live_match import GoalResponse, TeamRef, TournamentRef


class HistoricalGoalIn(BaseModel):
    """Goal of a historical match, identified by names as typed by the operator."""
    player: str
    team: str  # team abbreviation
    assist: str | None = None
    minute: int | None = None


class MatchCreate(BaseModel):
    date: datetime | None = None
    team_a: str  # team abbreviation
    team_b: str
    tournament_id: str | None = None
    score_a: int = 0
    score_b: int = 0
    goals: list[HistoricalGoalIn] = Field(default_factory=list)


class MatchResponse(BaseModel):
    id: str
    date: datetime | None = None
    team_a: TeamRef
    team_b: TeamRef
    tournament: TournamentRef | None = None
    score_a: int = 0
    score_b: int = 0
    goals: list[GoalResponse] = Field(default_factory=list)
    source_live_match_id: str | None = None


class MatchCreatedResponse(BaseModel):
    match: MatchResponse
    player_stats: dict[str, dict[str, int]] = Field(default_factory=dict)
