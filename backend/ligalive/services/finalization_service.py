"""
backend/ligalive/services/finalization_service.py

Purpose:
    Turns a finished live match into a permanent match record and applies the
    derived statistics: goal ownership transfer, player goals/assists/matches
    played and both teams' tournament standings. Also creates historical
    matches entered directly with their goal list.

    Every write is keyed so a retried finalization of the same live match
    converges instead of double counting:
      - matches.source_live_match_id (unique)
      - players.stats_match_ids
      - team_tournament_standings.applied_match_ids

Dependencies:
    - ligalive.database
    - ligalive.services.roster_service
    - ligalive.services.standing_service
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

import ligalive.database as _db
from ligalive.errors import NotFoundError, ServerError, ValidationError
from ligalive.models.match import MatchCreate
from ligalive.services import roster_service, standing_service

logger = logging.getLogger("ligalive.finalization_service")


def _tally_player_stats(goals: list[dict]) -> dict[ObjectId, dict[str, int]]:
    stats: dict[ObjectId, dict[str, int]] = defaultdict(lambda: {"goals": 0, "assists": 0})
    for goal in goals:
        if goal.get("player_id") is not None:
            stats[goal["player_id"]]["goals"] += 1
        if goal.get("assist_id") is not None:
            stats[goal["assist_id"]]["assists"] += 1
    return stats


async def _apply_match_effects(match: dict, goals: list[dict]) -> dict[str, dict[str, int]]:
    """Player stats and standings for one permanent match. Returns the per-player tally."""
    match_id = match["_id"]
    stats = _tally_player_stats(goals)

    roster = await roster_service.list_players_by_team([match["team_a_id"], match["team_b_id"]])
    rostered = [p["_id"] for p in roster]
    rostered_set = set(rostered)

    player_ids = list(rostered) + [pid for pid in stats if pid not in rostered_set]
    for player_id in player_ids:
        tally = stats.get(player_id, {"goals": 0, "assists": 0})
        await roster_service.add_stats_to_player(
            player_id,
            match_id=match_id,
            goals=tally["goals"],
            assists=tally["assists"],
            matches_played=1 if player_id in rostered_set else 0,
        )

    if match.get("tournament_id") is not None:
        await standing_service.apply_match_result(
            tournament_id=match["tournament_id"],
            team_a_id=match["team_a_id"],
            team_b_id=match["team_b_id"],
            score_a=int(match.get("score_a") or 0),
            score_b=int(match.get("score_b") or 0),
            match_id=match_id,
        )
    else:
        logger.warning("Match %s has no tournament; standings not updated", match_id)

    return {str(pid): dict(tally) for pid, tally in stats.items()}


async def finalize_live_match(live_match: dict, *, now: datetime) -> dict:
    """Create the permanent match for a finished live match and apply its effects."""
    live_id = live_match["_id"]
    goal_ids = list(live_match.get("goal_ids") or [])
    try:
        match = await _db.db.matches.find_one_and_update(
            {"source_live_match_id": live_id},
            {
                "$setOnInsert": {
                    "date": live_match.get("date") or now,
                    "team_a_id": live_match["team_a_id"],
                    "team_b_id": live_match["team_b_id"],
                    "score_a": int(live_match.get("score_a") or 0),
                    "score_b": int(live_match.get("score_b") or 0),
                    "tournament_id": live_match.get("tournament_id"),
                    "goal_ids": [],
                    "created_at": now,
                },
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        match_id = match["_id"]

        if goal_ids:
            await _db.db.goals.update_many(
                {"_id": {"$in": goal_ids}},
                {"$set": {"match_id": match_id}, "$unset": {"live_match_id": ""}},
            )
        await _db.db.matches.update_one({"_id": match_id}, {"$set": {"goal_ids": goal_ids}})
        match["goal_ids"] = goal_ids

        goals = await _db.db.goals.find({"_id": {"$in": goal_ids}}).to_list(length=None) if goal_ids else []
        await _apply_match_effects(match, goals)
    except PyMongoError as exc:
        logger.error("Finalization of live match %s failed: %s", live_id, exc)
        raise ServerError("Match finalization failed; retry finishing the match.") from exc

    logger.info(
        "Live match %s finalized as match %s (%d-%d, %d goals)",
        live_id, match["_id"], match.get("score_a", 0), match.get("score_b", 0), len(goal_ids),
    )
    return match


async def create_match_record(body: MatchCreate, *, now: datetime) -> tuple[dict, dict[str, dict[str, int]]]:
    """Create a historical match with its goals in one request."""
    team_a = await roster_service.resolve_team(body.team_a)
    team_b = await roster_service.resolve_team(body.team_b)
    if team_a["_id"] == team_b["_id"]:
        raise ValidationError("Teams must be different.")
    if body.tournament_id is None:
        raise ValidationError("tournament_id is required.")
    tournament = await roster_service.get_tournament(body.tournament_id)
    if body.score_a < 0 or body.score_b < 0:
        raise ValidationError("Scores must be non-negative.")

    # Resolve every goal before writing anything.
    team_by_abbreviation = {team_a.get("abbreviation"): team_a["_id"], team_b.get("abbreviation"): team_b["_id"]}
    resolved_goals: list[dict] = []
    for item in body.goals:
        team_id = team_by_abbreviation.get(item.team)
        if team_id is None:
            raise ValidationError(f"Goal team '{item.team}' is not playing this match.")
        player = await roster_service.get_player_by_name(item.player)
        assist_id = None
        if item.assist:
            try:
                assist_id = (await roster_service.get_player_by_name(item.assist))["_id"]
            except NotFoundError:
                logger.warning("Assist '%s' not found; goal recorded without it", item.assist)
        resolved_goals.append(
            {
                "player_id": player["_id"],
                "team_id": team_id,
                "assist_id": assist_id,
                "minute": item.minute,
                "time": now.strftime("%H:%M"),
                "tournament_id": tournament["_id"],
                "created_at": now,
            }
        )

    try:
        match = {
            "date": body.date or now,
            "team_a_id": team_a["_id"],
            "team_b_id": team_b["_id"],
            "score_a": body.score_a,
            "score_b": body.score_b,
            "tournament_id": tournament["_id"],
            "goal_ids": [],
            "created_at": now,
        }
        result = await _db.db.matches.insert_one(match)
        match["_id"] = result.inserted_id

        for goal in resolved_goals:
            goal["match_id"] = match["_id"]
            inserted = await _db.db.goals.insert_one(goal)
            goal["_id"] = inserted.inserted_id
            match["goal_ids"].append(goal["_id"])
        await _db.db.matches.update_one({"_id": match["_id"]}, {"$set": {"goal_ids": match["goal_ids"]}})

        player_stats = await _apply_match_effects(match, resolved_goals)
    except PyMongoError as exc:
        logger.error("Historical match creation failed: %s", exc)
        raise ServerError("Match creation failed.") from exc

    logger.info("Historical match %s created with %d goals", match["_id"], len(resolved_goals))
    return match, player_stats

