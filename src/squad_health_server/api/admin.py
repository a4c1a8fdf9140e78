"""Administration endpoints: overview, listings and data entry."""

from typing import Any

from litestar import Router, get, post
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.auth import require_roles
from squad_health_server.core.errors import InvalidRequest, RecordNotFound
from squad_health_server.models.user import Role, User
from squad_health_server.schemas.requests import MetricCreate, ProgramCreate, StaffAssignmentCreate
from squad_health_server.services.dashboard import DashboardService
from squad_health_server.services.metrics import MetricService, metric_card
from squad_health_server.services.realtime import ChannelsEventPublisher
from squad_health_server.services.roster import RosterService
from squad_health_server.services.training_programs import TrainingProgramService, program_payload


async def _get_staff(session: AsyncSession, user_id: int, *roles: Role) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise RecordNotFound("User not found", user_id=user_id)
    if user.role not in roles:
        raise InvalidRequest("The selected user has the wrong role.", user_id=user_id, role=user.role.value)
    return user


@get("/dashboard", status_code=HTTP_200_OK)
async def admin_dashboard(session: AsyncSession) -> dict[str, Any]:
    return await DashboardService(session).admin_dashboard()


@get("/users", status_code=HTTP_200_OK)
async def list_users(
    session: AsyncSession,
    role: Role | None = None,
    search: str | None = None,
    page: int = 1,
) -> dict[str, Any]:
    """Paginated users, optionally filtered by role and name/email."""
    return await DashboardService(session).users(role=role, search=search, page=page)


@get("/teams", status_code=HTTP_200_OK)
async def list_teams(session: AsyncSession, search: str | None = None, page: int = 1) -> dict[str, Any]:
    return await DashboardService(session).teams(search=search, page=page)


@get("/stats", status_code=HTTP_200_OK)
async def system_stats(session: AsyncSession) -> dict[str, Any]:
    return await DashboardService(session).system_stats()


@post("/players/{player_id:int}/metrics", status_code=HTTP_201_CREATED)
async def record_metric(
    player_id: int,
    data: MetricCreate,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
) -> dict[str, Any]:
    """Record a metric sample; risky readings alert the player's coach."""
    player = await RosterService(session).get_player(player_id)
    metric = await MetricService(session, publisher).record(player, data.model_dump())
    return {"metric": metric_card(metric), "alerts": metric.risk_flags()}


@post("/programs", status_code=HTTP_201_CREATED)
async def create_program(
    data: ProgramCreate,
    session: AsyncSession,
    publisher: ChannelsEventPublisher,
) -> dict[str, Any]:
    player = await RosterService(session).get_player(data.player_id)
    doctor = await _get_staff(session, data.doctor_id, Role.DOCTOR)
    program = await TrainingProgramService(session, publisher).create(
        player, doctor, data.exercises, focus_area=data.focus_area
    )
    return {"program": program_payload(program)}


@post("/players/{player_id:int}/staff", status_code=HTTP_201_CREATED)
async def assign_staff(
    player_id: int,
    data: StaffAssignmentCreate,
    session: AsyncSession,
) -> dict[str, Any]:
    """Assign the coach or doctor responsible for a player."""
    roster = RosterService(session)
    player = await roster.get_player(player_id)
    staff = await _get_staff(session, data.staff_id, Role.COACH, Role.DOCTOR)
    assignment = await roster.assign(player, staff)
    await session.commit()
    return {
        "player_id": assignment.player_id,
        "staff_id": assignment.staff_id,
        "role": assignment.role,
    }


admin_router = Router(
    path="/admin",
    guards=[require_roles(Role.ADMIN)],
    route_handlers=[
        admin_dashboard,
        list_users,
        list_teams,
        system_stats,
        record_metric,
        create_program,
        assign_staff,
    ],
    tags=["admin"],
)
