"""Player self-service endpoints."""

from typing import Any

from litestar import Router, get, post
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.auth import require_roles
from squad_health_server.models.user import Role, User
from squad_health_server.schemas.requests import AssessmentCreate
from squad_health_server.services.assessments import AssessmentService
from squad_health_server.services.dashboard import profile_payload
from squad_health_server.services.metric_analysis import METRIC_UNITS
from squad_health_server.services.metrics import DASHBOARD_METRICS, MetricService, metric_card
from squad_health_server.services.realtime import ChannelsEventPublisher
from squad_health_server.services.training_programs import TrainingProgramService, program_payload


@get("/dashboard", status_code=HTTP_200_OK)
async def player_dashboard(current_user: User, session: AsyncSession) -> dict[str, Any]:
    """Latest heart-rate and fitness readings for the signed-in player."""
    latest = await MetricService(session).latest(current_user)
    if latest is None:
        # Keep the card layout stable for players without samples
        metrics = {m.value: {"value": None, "unit": METRIC_UNITS[m], "time": None} for m in DASHBOARD_METRICS}
    else:
        metrics = metric_card(latest, DASHBOARD_METRICS)
        metrics.pop("id")
    return {"metrics": metrics}


@get("/profile", status_code=HTTP_200_OK, sync_to_thread=False)
def player_profile(current_user: User) -> dict[str, Any]:
    return profile_payload(current_user)


@get("/metrics", status_code=HTTP_200_OK)
async def player_metrics(current_user: User, session: AsyncSession) -> dict[str, Any]:
    """Every recorded sample, newest first."""
    history = await MetricService(session).history(current_user)
    return {"metrics": [metric_card(m) for m in history]}


@get("/metrics/details/{metric_type:str}", status_code=HTTP_200_OK)
async def player_metric_detail(
    metric_type: str,
    current_user: User,
    session: AsyncSession,
    period: str | None = None,
) -> dict[str, Any]:
    """Chart and trend for one metric.

    Query params:
        period: D (last 7 days, default), W (4 weeks), M (1 month), 6M (6 months)
    """
    return await MetricService(session).detail(current_user, metric_type, period)


@post("/assessments/request", status_code=HTTP_201_CREATED)
async def request_assessment(
    data: AssessmentCreate,
    current_user: User,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
) -> dict[str, Any]:
    """Ask the assigned doctor for an assessment slot."""
    service = AssessmentService(session, publisher)
    assessment = await service.request(
        current_user,
        issue_type=data.issue_type,
        message=data.message,
        day=data.date,
        hour=data.hour,
    )
    return {
        "message": "Assessment request created successfully",
        "assessment": {
            "id": assessment.id,
            "player_id": assessment.player_id,
            "doctor_id": assessment.doctor_id,
            "issue_type": assessment.issue_type,
            "message": assessment.message,
            "requested_at": assessment.requested_at,
            "status": assessment.status,
        },
    }


@get("/training-program/current", status_code=HTTP_200_OK)
async def current_training_program(current_user: User, session: AsyncSession) -> dict[str, Any]:
    program = await TrainingProgramService(session).current_for(current_user)
    return {"program": program_payload(program)}


player_router = Router(
    path="/player",
    guards=[require_roles(Role.PLAYER)],
    route_handlers=[
        player_dashboard,
        player_profile,
        player_metrics,
        player_metric_detail,
        request_assessment,
        current_training_program,
    ],
    tags=["player"],
)
