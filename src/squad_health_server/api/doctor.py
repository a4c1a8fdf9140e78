"""Doctor endpoints: player review, training programs and assessments."""

from typing import Any

from litestar import Router, get, post, put
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.auth import require_roles
from squad_health_server.models.user import Role, User
from squad_health_server.schemas.requests import AssessmentReschedule, ProgramEdit
from squad_health_server.services.assessments import AssessmentService
from squad_health_server.services.dashboard import DashboardService, profile_payload
from squad_health_server.services.metric_analysis import ReportPeriod
from squad_health_server.services.metrics import (
    DOCTOR_PERIODS,
    MetricService,
    metric_card,
    player_summary,
)
from squad_health_server.services.realtime import ChannelsEventPublisher
from squad_health_server.services.roster import RosterService
from squad_health_server.services.training_programs import TrainingProgramService, program_payload


@get("/dashboard", status_code=HTTP_200_OK)
async def doctor_dashboard(session: AsyncSession) -> dict[str, Any]:
    return await DashboardService(session).status_overview()


@get("/profile", status_code=HTTP_200_OK, sync_to_thread=False)
def doctor_profile(current_user: User) -> dict[str, Any]:
    return profile_payload(current_user)


@get("/list-all-players", status_code=HTTP_200_OK)
async def doctor_list_players(session: AsyncSession) -> list[dict[str, Any]]:
    return await DashboardService(session).players()


@get("/players/{player_id:int}/metrics", status_code=HTTP_200_OK)
async def doctor_player_metrics(player_id: int, session: AsyncSession) -> dict[str, Any]:
    """Latest sample for a player."""
    player = await RosterService(session).get_player(player_id)
    latest = await MetricService(session).latest(player)
    if latest is None:
        return {"player": player_summary(player), "metric": None, "message": "No metrics found for the player."}
    return {"player": player_summary(player), "metric": metric_card(latest)}


@get("/players/{player_id:int}/metrics/{metric_type:str}", status_code=HTTP_200_OK)
async def doctor_player_metric_detail(
    player_id: int,
    metric_type: str,
    session: AsyncSession,
    period: str | None = None,
) -> dict[str, Any]:
    """Chart and trend for one metric.

    Query params:
        period: W (4 weeks, default), M (1 month), 6M (6 months)
    """
    player = await RosterService(session).get_player(player_id)
    return await MetricService(session).detail(
        player,
        metric_type,
        period,
        allowed_periods=DOCTOR_PERIODS,
        default_period=ReportPeriod.WEEKLY,
    )


@get("/players/{player_id:int}/program", status_code=HTTP_200_OK)
async def doctor_player_program(player_id: int, session: AsyncSession) -> dict[str, Any]:
    """Approved program for a player.

    Shows the latest program when it is approved, otherwise the previous
    approved one so the doctor never reviews against an unvetted draft.
    """
    player = await RosterService(session).get_player(player_id)
    service = TrainingProgramService(session)
    if await service.latest_for(player) is None:
        return {"player": player_summary(player), "program": None, "message": "No training program found"}

    program = await service.reviewed_for(player)
    if program is None:
        return {
            "player": player_summary(player),
            "program": None,
            "message": "No approved training program available",
        }

    payload = program_payload(program, exercise_list=True)
    return {
        "player": player_summary(player),
        "program": {k: payload[k] for k in ("id", "focus_area", "exercises", "status", "created_at")},
    }


@put("/players/{player_id:int}/program/edit", status_code=HTTP_200_OK)
async def edit_player_program(
    player_id: int,
    data: ProgramEdit,
    current_user: User,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
) -> dict[str, Any]:
    player = await RosterService(session).get_player(player_id)
    program = await TrainingProgramService(session, publisher).edit(
        player,
        current_user,
        focus_area=data.focus_area,
        exercises=data.exercises,
        status=data.status,
    )
    return {"message": "Training program updated successfully", "program": program_payload(program)}


@post("/players/{player_id:int}/ai-program", status_code=HTTP_201_CREATED)
async def generate_ai_program(
    player_id: int,
    current_user: User,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
) -> dict[str, Any]:
    """Generate a program from the player's latest sample for review."""
    player = await RosterService(session).get_player(player_id)
    program = await TrainingProgramService(session, publisher).generate(player, current_user)
    return {
        "message": "AI-generated training program created and pending review.",
        "program": program_payload(program),
    }


@post("/programs/{program_id:int}/approve", status_code=HTTP_200_OK)
async def approve_program(
    program_id: int,
    current_user: User,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
) -> dict[str, Any]:
    program = await TrainingProgramService(session, publisher).approve(program_id, current_user)
    return {"message": "Training program approved.", "program": program_payload(program)}


@get("/assessments", status_code=HTTP_200_OK)
async def list_assessments(current_user: User, session: AsyncSession) -> dict[str, Any]:
    """Pending requests assigned to the signed-in doctor."""
    assessments = await AssessmentService(session).pending_for(current_user)
    message = "Assessment requests fetched successfully" if assessments else "No pending assessment requests found"
    return {"message": message, "assessments": assessments}


@get("/assessments/{assessment_id:int}", status_code=HTTP_200_OK)
async def show_assessment(assessment_id: int, session: AsyncSession) -> dict[str, Any]:
    return await AssessmentService(session).detail(assessment_id)


@post("/assessments/{assessment_id:int}/approve", status_code=HTTP_200_OK)
async def approve_assessment(
    assessment_id: int,
    current_user: User,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
) -> dict[str, Any]:
    assessment = await AssessmentService(session, publisher).approve(assessment_id, current_user)
    return {"message": "Assessment approved successfully", "id": assessment.id, "status": assessment.status}


@post("/assessments/{assessment_id:int}/reschedule", status_code=HTTP_200_OK)
async def reschedule_assessment(
    assessment_id: int,
    data: AssessmentReschedule,
    current_user: User,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
) -> dict[str, Any]:
    assessment = await AssessmentService(session, publisher).reschedule(
        assessment_id, current_user, data.new_date, data.new_time
    )
    return {
        "message": "Assessment rescheduled successfully",
        "id": assessment.id,
        "requested_at": assessment.requested_at,
        "status": assessment.status,
    }


doctor_router = Router(
    path="/doctor",
    guards=[require_roles(Role.DOCTOR)],
    route_handlers=[
        doctor_dashboard,
        doctor_profile,
        doctor_list_players,
        doctor_player_metrics,
        doctor_player_metric_detail,
        doctor_player_program,
        edit_player_program,
        generate_ai_program,
        approve_program,
        list_assessments,
        show_assessment,
        approve_assessment,
        reschedule_assessment,
    ],
    tags=["doctor"],
)
