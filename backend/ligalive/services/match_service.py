"""Permanent match queries and the historical-entry entrypoint."""

import logging

import ligalive.database as _db
from ligalive.config import settings
from ligalive.errors import NotFoundError
from ligalive.models.match import MatchCreate, MatchCreatedResponse, MatchResponse
from ligalive.services.finalization_service import create_match_record
from ligalive.services.population import populate_match, populate_matches
from ligalive.utils import Clock, to_object_id, utcnow

logger = logging.getLogger("ligalive.match_service")


async def get_matches(limit: int | None = None) -> list[MatchResponse]:
    """Permanent matches, most recent first."""
    limit = min(limit or settings.MATCH_LIST_LIMIT, settings.MATCH_LIST_LIMIT)
    docs = await _db.db.matches.find({}).sort("date", -1).to_list(length=limit)
    return await populate_matches(docs)


async def get_match_by_id(match_id: str) -> MatchResponse:
    doc = await _db.db.matches.find_one({"_id": to_object_id(match_id, "match id")})
    if not doc:
        raise NotFoundError("Match not found.")
    return await populate_match(doc)


async def create_historical_match(body: MatchCreate, *, clock: Clock = utcnow) -> MatchCreatedResponse:
    match, player_stats = await create_match_record(body, now=clock())
    return MatchCreatedResponse(match=await populate_match(match), player_stats=player_stats)
