"""
backend/ligalive/services/standing_service.py

Purpose:
    Per-(team, tournament) cumulative standings. Applies one finished match to
    one team's row and serves the sorted tournament table.

    When called with a match_id the update is keyed on it and a repeated
    application is a no-op. Without a match_id every call counts, so callers
    must not replay it.

Dependencies:
    - ligalive.database
    - pymongo
"""

from __future__ import annotations

import logging

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

import ligalive.database as _db
from ligalive.errors import ConflictError, ValidationError
from ligalive.models.standing import StandingResponse, standing_to_response
from ligalive.utils import to_object_id, utcnow

logger = logging.getLogger("ligalive.standing_service")

POINTS_WIN = 3
POINTS_DRAW = 1
_UPSERT_ATTEMPTS = 2


def _increments(*, is_win: bool, is_draw: bool, goals_for: int, goals_against: int) -> dict[str, int]:
    # Every counter is listed so a freshly upserted row starts with all fields at zero.
    return {
        "matches_played": 1,
        "goals_for": int(goals_for),
        "goals_against": int(goals_against),
        "wins": 1 if is_win else 0,
        "draws": 1 if is_draw else 0,
        "losses": 0 if (is_win or is_draw) else 1,
        "points": POINTS_WIN if is_win else POINTS_DRAW if is_draw else 0,
    }


async def update_standing(
    team_id: ObjectId,
    tournament_id: ObjectId,
    *,
    is_win: bool,
    is_draw: bool,
    goals_for: int,
    goals_against: int,
    match_id: ObjectId | None = None,
) -> dict:
    """Apply one match result to a team's tournament row (find-or-create)."""
    if is_win and is_draw:
        raise ValidationError("A result cannot be both a win and a draw.")
    if goals_for < 0 or goals_against < 0:
        raise ValidationError("Goal counts must be non-negative.")

    key = {"team_id": team_id, "tournament_id": tournament_id}
    query = dict(key)
    update: dict = {
        "$inc": _increments(
            is_win=is_win, is_draw=is_draw, goals_for=goals_for, goals_against=goals_against,
        ),
        "$set": {"updated_at": utcnow()},
        "$setOnInsert": {"created_at": utcnow()},
    }
    if match_id is not None:
        query["applied_match_ids"] = {"$ne": match_id}
        update["$addToSet"] = {"applied_match_ids": match_id}

    standing = None
    for attempt in range(_UPSERT_ATTEMPTS):
        try:
            standing = await _db.db.team_tournament_standings.find_one_and_update(
                query, update, upsert=True, return_document=ReturnDocument.AFTER,
            )
            break
        except DuplicateKeyError:
            # Either another writer created the row first, or this match was
            # already applied and the upsert tried to insert a second row.
            if match_id is not None:
                existing = await _db.db.team_tournament_standings.find_one(key)
                if existing and match_id in (existing.get("applied_match_ids") or []):
                    logger.info(
                        "Standing already applied: team=%s tournament=%s match=%s",
                        team_id, tournament_id, match_id,
                    )
                    return existing
            logger.warning(
                "Standing upsert collided (attempt %d): team=%s tournament=%s",
                attempt + 1, team_id, tournament_id,
            )
    if standing is None:
        raise ConflictError("Standing row could not be created.")

    goal_difference = int(standing.get("goals_for", 0)) - int(standing.get("goals_against", 0))
    # CAS on the totals: a concurrent writer that moved them sets its own value.
    await _db.db.team_tournament_standings.update_one(
        {
            "_id": standing["_id"],
            "goals_for": standing.get("goals_for", 0),
            "goals_against": standing.get("goals_against", 0),
        },
        {"$set": {"goal_difference": goal_difference}},
    )
    standing["goal_difference"] = goal_difference
    return standing


async def apply_match_result(
    *,
    tournament_id: ObjectId,
    team_a_id: ObjectId,
    team_b_id: ObjectId,
    score_a: int,
    score_b: int,
    match_id: ObjectId | None = None,
) -> tuple[dict, dict]:
    is_draw = score_a == score_b
    row_a = await update_standing(
        team_a_id, tournament_id,
        is_win=score_a > score_b, is_draw=is_draw,
        goals_for=score_a, goals_against=score_b, match_id=match_id,
    )
    row_b = await update_standing(
        team_b_id, tournament_id,
        is_win=score_b > score_a, is_draw=is_draw,
        goals_for=score_b, goals_against=score_a, match_id=match_id,
    )
    return row_a, row_b


async def get_tournament_standings(tournament_id: str) -> list[StandingResponse]:
    """Tournament table ordered by points, goal difference, goals for."""
    oid = to_object_id(tournament_id, "tournament")
    rows = await _db.db.team_tournament_standings.find(
        {"tournament_id": oid}
    ).sort([("points", -1), ("goal_difference", -1), ("goals_for", -1)]).to_list(length=None)

    team_ids = [row["team_id"] for row in rows]
    names: dict[ObjectId, str] = {}
    if team_ids:
        teams = await _db.db.teams.find({"_id": {"$in": team_ids}}, {"name": 1}).to_list(length=None)
        names = {t["_id"]: t.get("name") for t in teams}
    return [standing_to_response(row, names.get(row["team_id"])) for row in rows]
