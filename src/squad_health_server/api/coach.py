"""Coach endpoints: squad overview and read-only player drill-down."""

from typing import Any

from litestar import Router, get
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.auth import require_roles
from squad_health_server.models.user import Role, User
from squad_health_server.services.dashboard import DashboardService, profile_payload
from squad_health_server.services.metrics import MetricService, metric_card, player_summary
from squad_health_server.services.roster import RosterService
from squad_health_server.services.training_programs import TrainingProgramService


@get("/dashboard", status_code=HTTP_200_OK)
async def coach_dashboard(session: AsyncSession) -> dict[str, Any]:
    """Share of players in each health status."""
    return await DashboardService(session).status_overview()


@get("/profile", status_code=HTTP_200_OK, sync_to_thread=False)
def coach_profile(current_user: User) -> dict[str, Any]:
    return profile_payload(current_user)


@get("/list-all-players", status_code=HTTP_200_OK)
async def coach_list_players(session: AsyncSession) -> list[dict[str, Any]]:
    return await DashboardService(session).players()


@get("/players/{player_id:int}/program", status_code=HTTP_200_OK)
async def coach_player_program(player_id: int, session: AsyncSession) -> dict[str, Any]:
    """Latest program for a player, whatever its review status."""
    player = await RosterService(session).get_player(player_id)
    program = await TrainingProgramService(session).latest_for(player)
    if program is None:
        return {"player": player_summary(player), "program": None, "message": "No training program found"}

    return {
        "player": player_summary(player),
        "program": {
            "id": program.id,
            "exercises": program.exercises,
            "focus_area": program.focus_area,
            "created_at": program.created_at,
        },
    }


@get("/players/{player_id:int}/metrics", status_code=HTTP_200_OK)
async def coach_player_metrics(player_id: int, session: AsyncSession) -> dict[str, Any]:
    player = await RosterService(session).get_player(player_id)
    history = await MetricService(session).history(player)
    return {"player": player_summary(player), "metrics": [metric_card(m) for m in history]}


@get("/players/{player_id:int}/metrics/details/{metric_type:str}", status_code=HTTP_200_OK)
async def coach_player_metric_detail(
    player_id: int,
    metric_type: str,
    session: AsyncSession,
    period: str | None = None,
) -> dict[str, Any]:
    """Chart and trend for one of a player's metrics (periods D, W, M, 6M)."""
    player = await RosterService(session).get_player(player_id)
    return await MetricService(session).detail(player, metric_type, period)


coach_router = Router(
    path="/coach",
    guards=[require_roles(Role.COACH)],
    route_handlers=[
        coach_dashboard,
        coach_profile,
        coach_list_players,
        coach_player_program,
        coach_player_metrics,
        coach_player_metric_detail,
    ],
    tags=["coach"],
)
