"""
backend/ligalive/database.py

Purpose:
    MongoDB connection bootstrap and index management for the league,
    live-match and standings collections.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - ligalive.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, OperationFailure

from ligalive.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("ligalive.database")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=5,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()


async def close_db() -> None:
    global client
    if client:
        client.close()


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent."""

    # ---- Reference data ----

    await db.teams.create_index("abbreviation")
    await db.teams.create_index("name")
    await db.players.create_index("team_id")
    await db.players.create_index("first_name")

    # ---- Live matches ----

    await db.live_matches.create_index([("created_at", -1)])
    await db.live_matches.create_index([("status", 1), ("tournament_id", 1)])

    # ---- Goals (owned by exactly one of live match / match) ----

    await db.goals.create_index("live_match_id", sparse=True)
    await db.goals.create_index("match_id", sparse=True)
    await db.goals.create_index([("team_id", 1), ("created_at", -1)])
    await db.goals.create_index([("player_id", 1), ("created_at", -1)])

    # ---- Permanent matches ----

    await db.matches.create_index([("date", -1)])
    await db.matches.create_index([("tournament_id", 1), ("date", -1)])
    # Re-entrant finalization key: one permanent match per live match.
    await db.matches.create_index("source_live_match_id", unique=True, sparse=True)

    # ---- Standings ----

    try:
        await db.team_tournament_standings.create_index(
            [("team_id", 1), ("tournament_id", 1)], unique=True,
        )
    except (DuplicateKeyError, OperationFailure) as exc:
        logger.warning(
            "Skipped unique standings index due to duplicate data: %s",
            exc,
        )
        await db.team_tournament_standings.create_index(
            [("team_id", 1), ("tournament_id", 1)],
            name="standing_key_lookup",
            unique=False,
        )
    await db.team_tournament_standings.create_index(
        [("tournament_id", 1), ("points", -1), ("goal_difference", -1), ("goals_for", -1)]
    )
