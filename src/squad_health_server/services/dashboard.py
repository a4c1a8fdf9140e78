"""Dashboard and administration read models."""

from datetime import datetime, timedelta
from typing import Any

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.models.assessment import AssessmentRequest, AssessmentStatus
from squad_health_server.models.base import utcnow
from squad_health_server.models.team import Team
from squad_health_server.models.training_program import ProgramStatus, TrainingProgram
from squad_health_server.models.user import PlayerStatus, Profile, Role, User

logger = structlog.get_logger()

ACTIVE_WINDOW = timedelta(days=7)
RECENT_LIMIT = 5
PAGE_SIZE = 10


def profile_payload(user: User, today: datetime | None = None) -> dict[str, Any]:
    """Personal details shown on a user's own profile page."""
    profile = user.profile
    born = profile.date_of_birth if profile else None
    date_of_birth = None
    if born is not None:
        today_date = (today or utcnow()).date()
        age = today_date.year - born.year - ((today_date.month, today_date.day) < (born.month, born.day))
        date_of_birth = f"{born.day:02d} {born:%B %Y} ({age})"

    return {
        "first_name": profile.first_name if profile else None,
        "last_name": profile.last_name if profile else None,
        "date_of_birth": date_of_birth,
        "sex": profile.sex if profile else None,
        "status": user.status,
        "position": profile.position if profile else None,
        "blood_type": profile.blood_type if profile else None,
        "email": user.email,
    }


def user_payload(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "status": user.status,
        "last_login_at": user.last_login_at,
        "first_name": user.profile.first_name if user.profile else None,
        "last_name": user.profile.last_name if user.profile else None,
    }


class DashboardService:
    """Aggregates for coach, doctor and admin dashboards."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize dashboard service.

        Args:
            session: Database session
        """
        self.session = session
        self.logger = logger.bind(service="dashboard")

    async def status_overview(self) -> dict[str, Any]:
        """Share of players in each health status.

        Players without a recognized status count towards the total only.
        """
        stmt = select(User.status, func.count()).where(User.role == Role.PLAYER).group_by(User.status)
        counts = dict((await self.session.execute(stmt)).all())
        total = sum(counts.values())

        overview: dict[str, Any] = {}
        for status in PlayerStatus:
            count = counts.get(status.value, 0)
            percentage = round(count / total * 100) if total else 0
            overview[status.value] = {
                "percentage": percentage,
                "count": count,
                "label": f"{status.value}: {percentage}% ({count} players)",
            }

        return {"status_overview": overview, "total_players": total}

    async def players(self) -> list[dict[str, Any]]:
        """Every player with position and status."""
        stmt = (
            select(User.id, User.name, User.status, Profile.position)
            .outerjoin(Profile, Profile.user_id == User.id)
            .where(User.role == Role.PLAYER)
            .order_by(User.id)
        )
        rows = (await self.session.execute(stmt)).all()
        return [
            {"id": row.id, "name": row.name, "position": row.position, "status": row.status}
            for row in rows
        ]

    async def admin_dashboard(self, now: datetime | None = None) -> dict[str, Any]:
        """Totals, role breakdown, recent activity and system health."""
        now = now or utcnow()
        total_users = await self._count(select(func.count()).select_from(User))
        total_teams = await self._count(select(func.count()).select_from(Team))
        total_assessments = await self._count(select(func.count()).select_from(AssessmentRequest))
        total_programs = await self._count(select(func.count()).select_from(TrainingProgram))

        recent_assessments = (
            await self.session.execute(
                select(AssessmentRequest)
                .order_by(AssessmentRequest.created_at.desc(), AssessmentRequest.id.desc())
                .limit(RECENT_LIMIT)
            )
        ).scalars()
        recent_programs = (
            await self.session.execute(
                select(TrainingProgram)
                .order_by(TrainingProgram.created_at.desc(), TrainingProgram.id.desc())
                .limit(RECENT_LIMIT)
            )
        ).scalars()

        return {
            "overview": {
                "total_users": total_users,
                "total_teams": total_teams,
                "total_assessments": total_assessments,
                "total_programs": total_programs,
            },
            "users_by_role": await self._users_by_role(),
            "recent_activities": {
                "assessments": [
                    {
                        "id": a.id,
                        "player_id": a.player_id,
                        "doctor_id": a.doctor_id,
                        "issue_type": a.issue_type,
                        "status": a.status,
                        "requested_at": a.requested_at,
                    }
                    for a in recent_assessments
                ],
                "programs": [
                    {
                        "id": p.id,
                        "player_id": p.player_id,
                        "doctor_id": p.doctor_id,
                        "focus_area": p.focus_area,
                        "status": p.status,
                        "created_at": p.created_at,
                    }
                    for p in recent_programs
                ],
            },
            "system_health": {
                "active_users": await self._active_users(now),
                "pending_assessments": await self._count(
                    select(func.count())
                    .select_from(AssessmentRequest)
                    .where(AssessmentRequest.status == AssessmentStatus.PENDING.value)
                ),
                "active_programs": await self._count(
                    select(func.count())
                    .select_from(TrainingProgram)
                    .where(TrainingProgram.status == ProgramStatus.ACTIVE.value)
                ),
                "total_teams": total_teams,
            },
        }

    async def users(
        self,
        role: Role | None = None,
        search: str | None = None,
        page: int = 1,
    ) -> dict[str, Any]:
        """Paginated user list filtered by role and email/name search."""
        stmt = select(User).outerjoin(Profile, Profile.user_id == User.id)
        if role is not None:
            stmt = stmt.where(User.role == role)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    User.email.ilike(pattern),
                    Profile.first_name.ilike(pattern),
                    Profile.last_name.ilike(pattern),
                )
            )

        total = await self._count(select(func.count()).select_from(stmt.subquery()))
        page = max(page, 1)
        rows = (
            await self.session.execute(
                stmt.order_by(User.id)
                .offset((page - 1) * PAGE_SIZE)
                .limit(PAGE_SIZE)
                .execution_options(populate_existing=True)
            )
        ).scalars()
        return {
            "items": [user_payload(u) for u in rows],
            "total": total,
            "page": page,
            "per_page": PAGE_SIZE,
        }

    async def teams(self, search: str | None = None, page: int = 1) -> dict[str, Any]:
        """Paginated team list with coach and players."""
        stmt = select(Team)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(Team.name.ilike(pattern), Team.location.ilike(pattern)))

        total = await self._count(select(func.count()).select_from(stmt.subquery()))
        page = max(page, 1)
        teams = (
            await self.session.execute(
                stmt.order_by(Team.id)
                .offset((page - 1) * PAGE_SIZE)
                .limit(PAGE_SIZE)
                .execution_options(populate_existing=True)
            )
        ).scalars()
        return {
            "items": [
                {
                    "id": team.id,
                    "name": team.name,
                    "location": team.location,
                    "status": team.status,
                    "coach": {"id": team.coach.id, "name": team.coach.name} if team.coach else None,
                    "players": [{"id": p.id, "name": p.name, "status": p.status} for p in team.players],
                }
                for team in teams
            ],
            "total": total,
            "page": page,
            "per_page": PAGE_SIZE,
        }

    async def system_stats(self, now: datetime | None = None) -> dict[str, Any]:
        """Counts per entity and status."""
        now = now or utcnow()

        async def count_where(model: Any, *clauses: Any) -> int:
            return await self._count(select(func.count()).select_from(model).where(*clauses))

        return {
            "users": {
                "total": await count_where(User),
                "active": await self._active_users(now),
                "by_role": await self._users_by_role(),
            },
            "assessments": {
                "total": await count_where(AssessmentRequest),
                "pending": await count_where(
                    AssessmentRequest, AssessmentRequest.status == AssessmentStatus.PENDING.value
                ),
                "approved": await count_where(
                    AssessmentRequest, AssessmentRequest.status == AssessmentStatus.APPROVED.value
                ),
                "postponed": await count_where(
                    AssessmentRequest, AssessmentRequest.status == AssessmentStatus.POSTPONED.value
                ),
            },
            "programs": {
                "total": await count_where(TrainingProgram),
                "active": await count_where(
                    TrainingProgram, TrainingProgram.status == ProgramStatus.ACTIVE.value
                ),
                "pending": await count_where(
                    TrainingProgram, TrainingProgram.status == ProgramStatus.PENDING.value
                ),
            },
            "teams": {
                "total": await count_where(Team),
                "active": await count_where(Team, Team.status == "active"),
            },
        }

    async def _users_by_role(self) -> list[dict[str, Any]]:
        stmt = select(User.role, func.count()).group_by(User.role).order_by(User.role)
        rows = (await self.session.execute(stmt)).all()
        return [{"role": role.value, "count": count} for role, count in rows]

    async def _active_users(self, now: datetime) -> int:
        return await self._count(
            select(func.count()).select_from(User).where(User.last_login_at >= now - ACTIVE_WINDOW)
        )

    async def _count(self, stmt: Any) -> int:
        return (await self.session.execute(stmt)).scalar_one()
