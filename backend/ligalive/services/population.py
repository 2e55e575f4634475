"""
backend/ligalive/services/population.py

Purpose:
    Resolve the reference fields of live and permanent match documents into
    the populated response models (teams, tournament, goals with scorer and
    assist), with one batched lookup per collection.

Dependencies:
    - ligalive.database
    - ligalive.models.live_match
    - ligalive.models.match
"""

from __future__ import annotations

from typing import Any

from bson import ObjectId

import ligalive.database as _db
from ligalive.models.common import str_id, utc_or_none
from ligalive.models.live_match import (
    GoalResponse,
    LiveMatchResponse,
    MatchStage,
    PlayerRef,
    TeamRef,
    TournamentRef,
)
from ligalive.models.match import MatchResponse
from ligalive.services.roster_service import (
    PLAYER_PROJECTION,
    TEAM_PROJECTION,
    TOURNAMENT_PROJECTION,
)


async def _load_by_ids(collection: str, ids: set, projection: dict | None) -> dict[ObjectId, dict]:
    ids = {i for i in ids if i is not None}
    if not ids:
        return {}
    rows = await _db.db[collection].find({"_id": {"$in": list(ids)}}, projection).to_list(length=None)
    return {row["_id"]: row for row in rows}


def _team_ref(team_id: Any, teams: dict[ObjectId, dict]) -> TeamRef:
    team = teams.get(team_id) or {}
    return TeamRef(id=str(team_id), name=team.get("name"), abbreviation=team.get("abbreviation"))


def _tournament_ref(tournament_id: Any, tournaments: dict[ObjectId, dict]) -> TournamentRef | None:
    if tournament_id is None:
        return None
    row = tournaments.get(tournament_id) or {}
    season = row.get("season")
    return TournamentRef(
        id=str(tournament_id),
        name=row.get("name"),
        type=row.get("type"),
        season=str(season) if season is not None else None,
    )


def _player_ref(player_id: Any, players: dict[ObjectId, dict]) -> PlayerRef | None:
    if player_id is None:
        return None
    row = players.get(player_id) or {}
    return PlayerRef(
        id=str(player_id),
        first_name=row.get("first_name"),
        last_name=row.get("last_name"),
        number=row.get("number"),
    )


async def populate_goals(goal_ids: list[ObjectId]) -> list[GoalResponse]:
    if not goal_ids:
        return []
    goals = await _load_by_ids("goals", set(goal_ids), None)
    player_ids = {g.get("player_id") for g in goals.values()} | {g.get("assist_id") for g in goals.values()}
    players = await _load_by_ids("players", player_ids, PLAYER_PROJECTION)

    out: list[GoalResponse] = []
    for goal_id in goal_ids:
        goal = goals.get(goal_id)
        if goal is None:
            continue
        out.append(
            GoalResponse(
                id=str(goal["_id"]),
                team_id=str(goal["team_id"]),
                player=_player_ref(goal.get("player_id"), players),
                assist=_player_ref(goal.get("assist_id"), players),
                minute=goal.get("minute"),
                time=goal.get("time"),
                live_match_id=str_id(goal.get("live_match_id")),
                match_id=str_id(goal.get("match_id")),
            )
        )
    return out


async def _load_refs(docs: list[dict]) -> tuple[dict, dict]:
    team_ids = {d.get("team_a_id") for d in docs} | {d.get("team_b_id") for d in docs}
    tournament_ids = {d.get("tournament_id") for d in docs}
    teams = await _load_by_ids("teams", team_ids, TEAM_PROJECTION)
    tournaments = await _load_by_ids("tournaments", tournament_ids, TOURNAMENT_PROJECTION)
    return teams, tournaments


async def populate_live_matches(docs: list[dict], *, with_goals: bool = True) -> list[LiveMatchResponse]:
    teams, tournaments = await _load_refs(docs)
    out: list[LiveMatchResponse] = []
    for doc in docs:
        goals = await populate_goals(list(doc.get("goal_ids") or [])) if with_goals else []
        out.append(
            LiveMatchResponse(
                id=str(doc["_id"]),
                date=utc_or_none(doc.get("date")),
                team_a=_team_ref(doc["team_a_id"], teams),
                team_b=_team_ref(doc["team_b_id"], teams),
                tournament=_tournament_ref(doc.get("tournament_id"), tournaments),
                score_a=int(doc.get("score_a") or 0),
                score_b=int(doc.get("score_b") or 0),
                goals=goals,
                status=doc["status"],
                current_stage=doc.get("current_stage") or MatchStage.REGULAR.value,
                start_time=utc_or_none(doc.get("start_time")),
                paused_time=utc_or_none(doc.get("paused_time")),
                resume_offset_ms=int(doc.get("resume_offset_ms") or 0),
                created_at=utc_or_none(doc.get("created_at")),
            )
        )
    return out


async def populate_live_match(doc: dict, *, with_goals: bool = True) -> LiveMatchResponse:
    return (await populate_live_matches([doc], with_goals=with_goals))[0]


async def populate_matches(docs: list[dict]) -> list[MatchResponse]:
    teams, tournaments = await _load_refs(docs)
    out: list[MatchResponse] = []
    for doc in docs:
        out.append(
            MatchResponse(
                id=str(doc["_id"]),
                date=utc_or_none(doc.get("date")),
                team_a=_team_ref(doc["team_a_id"], teams),
                team_b=_team_ref(doc["team_b_id"], teams),
                tournament=_tournament_ref(doc.get("tournament_id"), tournaments),
                score_a=int(doc.get("score_a") or 0),
                score_b=int(doc.get("score_b") or 0),
                goals=await populate_goals(list(doc.get("goal_ids") or [])),
                source_live_match_id=str_id(doc.get("source_live_match_id")),
            )
        )
    return out


async def populate_match(doc: dict) -> MatchResponse:
    return (await populate_matches([doc]))[0]
