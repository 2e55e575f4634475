"""
backend/ligalive/services/roster_service.py

Purpose:
    Read access to teams, tournaments and players for the live-match core,
    plus the two player writes the core owns: quick player creation for
    unregistered scorers and per-match stat increments.

Dependencies:
    - ligalive.database
    - ligalive.config
"""

from __future__ import annotations

import logging
import random
from typing import Any, Literal

from bson import ObjectId

import ligalive.database as _db
from ligalive.config import settings
from ligalive.errors import NotFoundError, ValidationError
from ligalive.models.live_match import NewPlayer
from ligalive.utils import to_object_id, utcnow

logger = logging.getLogger("ligalive.roster_service")

PlayerRole = Literal["scorer", "assist"]

TEAM_PROJECTION = {"name": 1, "abbreviation": 1}
TOURNAMENT_PROJECTION = {"name": 1, "type": 1, "season": 1}
PLAYER_PROJECTION = {"first_name": 1, "last_name": 1, "number": 1, "team_id": 1}


async def get_team(team_id: Any, *, field: str = "team") -> dict:
    if team_id in (None, ""):
        raise ValidationError(f"{field} is required.")
    oid = to_object_id(team_id, field)
    team = await _db.db.teams.find_one({"_id": oid})
    if not team:
        raise NotFoundError(f"Team {oid} not found.")
    return team


async def get_team_by_abbreviation(abbreviation: str) -> dict | None:
    return await _db.db.teams.find_one({"abbreviation": abbreviation})


async def get_team_by_name(name: str) -> dict | None:
    return await _db.db.teams.find_one({"name": name})


async def resolve_team(identifier: str) -> dict:
    """Resolve a team by abbreviation first, then by full name."""
    team = await get_team_by_abbreviation(identifier) or await get_team_by_name(identifier)
    if not team:
        raise NotFoundError(f"Team '{identifier}' not found.")
    return team


async def get_tournament(tournament_id: Any) -> dict:
    if tournament_id in (None, ""):
        raise ValidationError("tournament is required.")
    oid = to_object_id(tournament_id, "tournament")
    tournament = await _db.db.tournaments.find_one({"_id": oid})
    if not tournament:
        raise NotFoundError(f"Tournament {oid} not found.")
    return tournament


async def get_player(player_id: Any) -> dict:
    oid = to_object_id(player_id, "player")
    player = await _db.db.players.find_one({"_id": oid})
    if not player:
        raise NotFoundError(f"Player {oid} not found.")
    return player


async def get_player_by_name(first_name: str) -> dict:
    player = await _db.db.players.find_one({"first_name": first_name})
    if not player:
        raise NotFoundError(f"Player '{first_name}' not found.")
    return player


async def list_players_by_team(team_ids: list[ObjectId]) -> list[dict]:
    if not team_ids:
        return []
    return await _db.db.players.find(
        {"team_id": {"$in": list(team_ids)}},
        {"_id": 1, "team_id": 1},
    ).to_list(length=None)


async def create_quick_player(new_player: NewPlayer, team_id: ObjectId, *, role: PlayerRole) -> dict:
    """Promote a free-text scorer/assist into a minimal roster entry."""
    if not new_player.is_usable():
        raise ValidationError("Player name is required.")

    number = new_player.number
    if number is None:
        number = random.randint(settings.QUICK_PLAYER_NUMBER_MIN, settings.QUICK_PLAYER_NUMBER_MAX)
    position = new_player.position or (
        settings.QUICK_SCORER_POSITION if role == "scorer" else settings.QUICK_ASSIST_POSITION
    )

    doc = {
        "first_name": new_player.first_name.strip(),
        "last_name": new_player.last_name.strip(),
        "number": int(number),
        "position": position,
        "team_id": team_id,
        "goals": 0,
        "assists": 0,
        "matches_played": 0,
        "stats_match_ids": [],
        "created_at": utcnow(),
    }
    result = await _db.db.players.insert_one(doc)
    doc["_id"] = result.inserted_id
    try:
        await _db.db.teams.update_one({"_id": team_id}, {"$addToSet": {"player_ids": doc["_id"]}})
    except Exception:
        await _db.db.players.delete_one({"_id": doc["_id"]})
        raise

    logger.info(
        "Quick player created: id=%s team=%s role=%s number=%s",
        doc["_id"], team_id, role, doc["number"],
    )
    return doc


async def delete_quick_players(player_ids: list[ObjectId]) -> None:
    for player_id in player_ids:
        await _db.db.players.delete_one({"_id": player_id})
        await _db.db.teams.update_many({"player_ids": player_id}, {"$pull": {"player_ids": player_id}})


async def add_stats_to_player(
    player_id: ObjectId,
    *,
    match_id: ObjectId,
    goals: int = 0,
    assists: int = 0,
    matches_played: int = 0,
) -> bool:
    """Apply one match's contribution to a player. Returns False if already applied."""
    result = await _db.db.players.update_one(
        {"_id": player_id, "stats_match_ids": {"$ne": match_id}},
        {
            "$inc": {"goals": goals, "assists": assists, "matches_played": matches_played},
            "$addToSet": {"stats_match_ids": match_id},
        },
    )
    return bool(result.modified_count)
