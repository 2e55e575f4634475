from fastapi import APIRouter, Query, status

from ligalive.models.match import MatchCreate, MatchCreatedResponse, MatchResponse
from ligalive.services.match_service import (
    create_historical_match,
    get_match_by_id,
    get_matches,
)

router = APIRouter(prefix="/api/matches", tags=["matches"])


@router.get("/", response_model=list[MatchResponse])
async def list_matches(limit: int = Query(100, ge=1, le=500)):
    """Permanent match records, most recent first."""
    return await get_matches(limit=limit)


@router.get("/{match_id}", response_model=MatchResponse)
async def get_match(match_id: str):
    return await get_match_by_id(match_id)


@router.post("/", response_model=MatchCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_match(body: MatchCreate):
    """Enter a historical match with its goals.

    Teams are given by abbreviation; goal scorers and assists by first name.
    Player statistics and standings are updated as for a finished live match.
    """
    return await create_historical_match(body)
