"""
backend/ligalive/models/live_match.py

Purpose:
    Live match domain vocabulary (status, stage, scoring side), the tagged
    scorer input accepted by the goal recorder, request bodies for the
    live-match routes and the populated response shape broadcast to clients.

Dependencies:
    - pydantic
    - ligalive.models.common
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from ligalive.models.common import PyObjectId


class LiveMatchStatus(str, Enum):
    NOT_STARTED = "not_started"
    LIVE = "live"
    PAUSED = "paused"
    SUSPENDED = "suspended"
    FINISHED = "finished"


class MatchStage(str, Enum):
    REGULAR = "regular"
    EXTRA_TIME = "extra_time"
    PENALTIES = "penalties"


class TeamSide(str, Enum):
    A = "A"
    B = "B"


# Source states accepted by each transition.
START_FROM = (LiveMatchStatus.NOT_STARTED, LiveMatchStatus.PAUSED, LiveMatchStatus.SUSPENDED)
PAUSE_FROM = (LiveMatchStatus.LIVE,)
RESUME_FROM = (LiveMatchStatus.PAUSED,)
SUSPEND_FROM = (LiveMatchStatus.LIVE,)
SCORE_FROM = (LiveMatchStatus.LIVE, LiveMatchStatus.PAUSED, LiveMatchStatus.SUSPENDED)
FINISH_FROM = (
    LiveMatchStatus.LIVE,
    LiveMatchStatus.PAUSED,
    LiveMatchStatus.SUSPENDED,
    LiveMatchStatus.FINISHED,  # retry of an interrupted finalization
)
NON_TERMINAL = (
    LiveMatchStatus.NOT_STARTED,
    LiveMatchStatus.LIVE,
    LiveMatchStatus.PAUSED,
    LiveMatchStatus.SUSPENDED,
)


# ---- Scorer / assist identity ----

class PlayerReference(BaseModel):
    """An existing roster entry."""
    kind: Literal["reference"] = "reference"
    player_id: PyObjectId


class NewPlayer(BaseModel):
    """Free-text identity promoted to a minimal player record on the fly."""
    kind: Literal["new"] = "new"
    first_name: str = ""
    last_name: str = ""
    number: int | None = None
    position: str | None = None

    def is_usable(self) -> bool:
        return bool(self.first_name.strip() or self.last_name.strip())


ScorerInput = Annotated[Union[PlayerReference, NewPlayer], Field(discriminator="kind")]


# ---- Request bodies ----

class LiveMatchCreate(BaseModel):
    team_a_id: str | None = None
    team_b_id: str | None = None
    tournament_id: str | None = None
    score_a: int = 0
    score_b: int = 0
    date: datetime | None = None


class StageChange(BaseModel):
    stage: str


class ScoreChange(BaseModel):
    team: str
    delta: int
    scorer: ScorerInput | None = None
    assist: ScorerInput | None = None


# ---- Responses ----

class TeamRef(BaseModel):
    id: str
    name: str | None = None
    abbreviation: str | None = None


class TournamentRef(BaseModel):
    id: str
    name: str | None = None
    type: str | None = None
    season: str | None = None


class PlayerRef(BaseModel):
    id: str
    first_name: str | None = None
    last_name: str | None = None
    number: int | None = None


class GoalResponse(BaseModel):
    id: str
    team_id: str
    player: PlayerRef | None = None
    assist: PlayerRef | None = None
    minute: int | None = None
    time: str | None = None
    live_match_id: str | None = None
    match_id: str | None = None


class LiveMatchResponse(BaseModel):
    id: str
    date: datetime | None = None
    team_a: TeamRef
    team_b: TeamRef
    tournament: TournamentRef | None = None
    score_a: int = 0
    score_b: int = 0
    goals: list[GoalResponse] = Field(default_factory=list)
    status: LiveMatchStatus
    current_stage: MatchStage = MatchStage.REGULAR
    start_time: datetime | None = None
    paused_time: datetime | None = None
    resume_offset_ms: int = 0
    created_at: datetime | None = None
