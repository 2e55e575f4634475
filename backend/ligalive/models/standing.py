from pydantic import BaseModel


class StandingResponse(BaseModel):
    """One row of a tournament table."""
    team_id: str
    team_name: str | None = None
    tournament_id: str
    points: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    matches_played: int = 0


def standing_to_response(doc: dict, team_name: str | None = None) -> StandingResponse:
    return StandingResponse(
        team_id=str(doc["team_id"]),
        team_name=team_name,
        tournament_id=str(doc["tournament_id"]),
        points=int(doc.get("points") or 0),
        wins=int(doc.get("wins") or 0),
        draws=int(doc.get("draws") or 0),
        losses=int(doc.get("losses") or 0),
        goals_for=int(doc.get("goals_for") or 0),
        goals_against=int(doc.get("goals_against") or 0),
        goal_difference=int(doc.get("goal_difference") or 0),
        matches_played=int(doc.get("matches_played") or 0),
    )
