"""
backend/tests/test_standing_service.py

Purpose:
    Standing aggregation: points/win/draw/loss bookkeeping, goal difference
    recompute, keyed vs. unkeyed replays, upsert collisions and table order.
"""

from __future__ import annotations

import sys

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

sys.path.insert(0, "backend")

from fake_mongo import league_db
from ligalive.errors import ConflictError, ValidationError
from ligalive.services import standing_service


@pytest.fixture
def fake_db(monkeypatch):
    db = league_db()
    monkeypatch.setattr(standing_service._db, "db", db, raising=False)
    return db


def _row(db, team_id, tournament_id):
    for doc in db.team_tournament_standings.docs:
        if doc["team_id"] == team_id and doc["tournament_id"] == tournament_id:
            return doc
    return None


@pytest.mark.asyncio
async def test_win_and_loss_rows_created_from_zero(fake_db):
    tournament, team_a, team_b = ObjectId(), ObjectId(), ObjectId()

    await standing_service.apply_match_result(
        tournament_id=tournament, team_a_id=team_a, team_b_id=team_b, score_a=2, score_b=1,
    )

    winner = _row(fake_db, team_a, tournament)
    loser = _row(fake_db, team_b, tournament)
    assert (winner["points"], winner["wins"], winner["draws"], winner["losses"]) == (3, 1, 0, 0)
    assert (winner["goals_for"], winner["goals_against"], winner["goal_difference"]) == (2, 1, 1)
    assert (loser["points"], loser["wins"], loser["draws"], loser["losses"]) == (0, 0, 0, 1)
    assert loser["goal_difference"] == -1
    assert winner["matches_played"] == loser["matches_played"] == 1


@pytest.mark.asyncio
async def test_draw_gives_one_point_each(fake_db):
    tournament, team_a, team_b = ObjectId(), ObjectId(), ObjectId()

    await standing_service.apply_match_result(
        tournament_id=tournament, team_a_id=team_a, team_b_id=team_b, score_a=1, score_b=1,
    )

    for team in (team_a, team_b):
        row = _row(fake_db, team, tournament)
        assert row["points"] == 1
        assert row["draws"] == 1
        assert row["goal_difference"] == 0


@pytest.mark.asyncio
async def test_goal_difference_is_recomputed_from_totals(fake_db):
    tournament, team = ObjectId(), ObjectId()
    await fake_db.team_tournament_standings.insert_one(
        {
            "team_id": team, "tournament_id": tournament, "points": 0, "wins": 0, "draws": 0,
            "losses": 1, "goals_for": 0, "goals_against": 3, "goal_difference": 99, "matches_played": 1,
        }
    )

    row = await standing_service.update_standing(
        team, tournament, is_win=True, is_draw=False, goals_for=4, goals_against=0,
    )

    assert row["goal_difference"] == 1
    assert _row(fake_db, team, tournament)["goal_difference"] == 1


@pytest.mark.asyncio
async def test_unkeyed_replay_double_counts(fake_db):
    tournament, team = ObjectId(), ObjectId()

    for _ in range(2):
        await standing_service.update_standing(
            team, tournament, is_win=True, is_draw=False, goals_for=2, goals_against=0,
        )

    row = _row(fake_db, team, tournament)
    assert row["matches_played"] == 2
    assert row["points"] == 6
    assert row["goal_difference"] == 4


@pytest.mark.asyncio
async def test_keyed_replay_is_a_noop(fake_db):
    tournament, team, match_id = ObjectId(), ObjectId(), ObjectId()

    for _ in range(2):
        await standing_service.update_standing(
            team, tournament, is_win=False, is_draw=True, goals_for=1, goals_against=1, match_id=match_id,
        )

    row = _row(fake_db, team, tournament)
    assert row["matches_played"] == 1
    assert row["points"] == 1
    assert row["applied_match_ids"] == [match_id]
    assert len(fake_db.team_tournament_standings.docs) == 1


@pytest.mark.asyncio
async def test_win_and_draw_together_is_rejected(fake_db):
    with pytest.raises(ValidationError):
        await standing_service.update_standing(
            ObjectId(), ObjectId(), is_win=True, is_draw=True, goals_for=1, goals_against=1,
        )
    assert fake_db.team_tournament_standings.docs == []


@pytest.mark.asyncio
async def test_concurrent_creation_collision_is_retried(fake_db):
    tournament, team = ObjectId(), ObjectId()
    fake_db.team_tournament_standings.fail_next("find_one_and_update", DuplicateKeyError("E11000"))

    row = await standing_service.update_standing(
        team, tournament, is_win=False, is_draw=False, goals_for=0, goals_against=2,
    )

    assert row["losses"] == 1
    assert _row(fake_db, team, tournament)["matches_played"] == 1


@pytest.mark.asyncio
async def test_repeated_collision_raises_conflict(fake_db):
    coll = fake_db.team_tournament_standings
    coll.fail_next("find_one_and_update", DuplicateKeyError("E11000"))
    coll.fail_next("find_one_and_update", DuplicateKeyError("E11000"))

    with pytest.raises(ConflictError):
        await standing_service.update_standing(
            ObjectId(), ObjectId(), is_win=True, is_draw=False, goals_for=1, goals_against=0,
        )


@pytest.mark.asyncio
async def test_tournament_table_sorted_with_team_names(fake_db):
    tournament = ObjectId()
    leaders, chasers, bottom = ObjectId(), ObjectId(), ObjectId()
    fake_db.teams.docs.extend(
        [
            {"_id": leaders, "name": "Leones"},
            {"_id": chasers, "name": "Halcones"},
            {"_id": bottom, "name": "Tortugas"},
        ]
    )
    # Same points for the first two; goal difference decides.
    await standing_service.update_standing(chasers, tournament, is_win=True, is_draw=False, goals_for=1, goals_against=0)
    await standing_service.update_standing(leaders, tournament, is_win=True, is_draw=False, goals_for=5, goals_against=0)
    await standing_service.update_standing(bottom, tournament, is_win=False, is_draw=False, goals_for=0, goals_against=5)

    table = await standing_service.get_tournament_standings(str(tournament))

    assert [row.team_name for row in table] == ["Leones", "Halcones", "Tortugas"]
    assert table[0].goal_difference == 5


@pytest.mark.asyncio
async def test_tournament_table_rejects_malformed_id(fake_db):
    with pytest.raises(ValidationError):
        await standing_service.get_tournament_standings("not-an-id")
