from fastapi import APIRouter, Query

from ligalive.models.live_match import GoalResponse
from ligalive.services.goal_service import list_goals, list_goals_by_player, list_goals_by_team
from ligalive.services.population import populate_goals

router = APIRouter(prefix="/api/goals", tags=["goals"])


@router.get("/", response_model=list[GoalResponse])
async def all_goals(limit: int = Query(200, ge=1, le=1000)):
    """Every recorded goal, newest first, live-match goals included."""
    goals = await list_goals(limit=limit)
    return await populate_goals([g["_id"] for g in goals])


@router.get("/team/{team_id}", response_model=list[GoalResponse])
async def goals_of_team(team_id: str):
    goals = await list_goals_by_team(team_id)
    return await populate_goals([g["_id"] for g in goals])


@router.get("/player/{player_id}", response_model=list[GoalResponse])
async def goals_of_player(player_id: str):
    goals = await list_goals_by_player(player_id)
    return await populate_goals([g["_id"] for g in goals])
