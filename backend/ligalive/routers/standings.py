from fastapi import APIRouter

from ligalive.models.standing import StandingResponse
from ligalive.services.standing_service import get_tournament_standings

router = APIRouter(prefix="/api/standings", tags=["standings"])


@router.get("/{tournament_id}", response_model=list[StandingResponse])
async def tournament_table(tournament_id: str):
    """Standings of one tournament, sorted by points, goal difference and goals scored."""
    return await get_tournament_standings(tournament_id)
