"""
backend/ligalive/services/goal_service.py

Purpose:
    Goal recorder for live matches: resolves the scorer and the optional
    assist (existing roster entry or quick player), persists one goal owned by
    the live match, and exposes goal listings per team and per player.

Dependencies:
    - ligalive.database
    - ligalive.services.roster_service
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from bson import ObjectId
from pymongo.errors import PyMongoError

import ligalive.database as _db
from ligalive.errors import LigaLiveError, ServerError, ValidationError
from ligalive.models.live_match import NewPlayer, PlayerReference, TeamSide
from ligalive.services import roster_service
from ligalive.services.roster_service import PlayerRole
from ligalive.utils import to_object_id

logger = logging.getLogger("ligalive.goal_service")


@dataclass
class RecordedGoal:
    goal: dict
    created_player_ids: list[ObjectId] = field(default_factory=list)


def team_for_side(live_match: dict, side: TeamSide) -> ObjectId:
    return live_match["team_a_id"] if side == TeamSide.A else live_match["team_b_id"]


async def _resolve_player(
    identity: PlayerReference | NewPlayer,
    team_id: ObjectId,
    role: PlayerRole,
    created: list[ObjectId],
) -> ObjectId:
    if isinstance(identity, PlayerReference):
        player = await roster_service.get_player(identity.player_id)
        return player["_id"]
    if isinstance(identity, NewPlayer):
        player = await roster_service.create_quick_player(identity, team_id, role=role)
        created.append(player["_id"])
        return player["_id"]
    raise ValidationError(f"Unsupported {role} identity.")


async def record_goal(
    live_match: dict,
    side: TeamSide,
    *,
    scorer: PlayerReference | NewPlayer | None,
    assist: PlayerReference | NewPlayer | None,
    minute: int,
    now: datetime,
) -> RecordedGoal:
    """Persist one goal for a live match. The caller appends it to the match."""
    if scorer is None or (isinstance(scorer, NewPlayer) and not scorer.is_usable()):
        raise ValidationError("A goal needs a scorer.")

    team_id = team_for_side(live_match, side)
    created: list[ObjectId] = []
    try:
        player_id = await _resolve_player(scorer, team_id, "scorer", created)

        assist_id = None
        if assist is not None:
            try:
                assist_id = await _resolve_player(assist, team_id, "assist", created)
            except LigaLiveError as exc:
                logger.warning(
                    "Assist not resolved for live match %s, recording goal without it: %s",
                    live_match["_id"], exc.message,
                )

        goal = {
            "player_id": player_id,
            "team_id": team_id,
            "assist_id": assist_id,
            "minute": max(0, int(minute)),
            "time": now.strftime("%H:%M"),
            "live_match_id": live_match["_id"],
            "tournament_id": live_match.get("tournament_id"),
            "created_at": now,
        }
        result = await _db.db.goals.insert_one(goal)
    except PyMongoError as exc:
        await roster_service.delete_quick_players(created)
        logger.error("Goal for live match %s not recorded: %s", live_match["_id"], exc)
        raise ServerError("Goal could not be recorded.") from exc
    except Exception:
        await roster_service.delete_quick_players(created)
        raise
    goal["_id"] = result.inserted_id
    return RecordedGoal(goal=goal, created_player_ids=created)


async def discard_goal(recorded: RecordedGoal) -> None:
    """Undo a recorded goal whose live match update did not go through."""
    await _db.db.goals.delete_one({"_id": recorded.goal["_id"]})
    await roster_service.delete_quick_players(recorded.created_player_ids)


async def list_goals_by_team(team_id: str) -> list[dict]:
    oid = to_object_id(team_id, "team")
    return await _db.db.goals.find({"team_id": oid}).sort("created_at", -1).to_list(length=None)


async def list_goals_by_player(player_id: str) -> list[dict]:
    oid = to_object_id(player_id, "player")
    return await _db.db.goals.find({"player_id": oid}).sort("created_at", -1).to_list(length=None)


async def list_goals(limit: int = 200) -> list[dict]:
    return await _db.db.goals.find({}).sort("created_at", -1).limit(limit).to_list(length=limit)
