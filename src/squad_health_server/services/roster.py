"""Resolution of the staff responsible for a player."""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.config import settings
from squad_health_server.core.errors import InvalidRequest, RecordNotFound
from squad_health_server.models.team import StaffAssignment, Team, team_players
from squad_health_server.models.user import Role, User

logger = structlog.get_logger()


class RosterService:
    """Find the coach or doctor assigned to a player.

    Lookup order:
    1. Explicit ``StaffAssignment`` row for the player and role
    2. (coach only) Coach of a team the player belongs to
    3. First user holding the role, when ``legacy_role_fallback`` is enabled
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize roster service.

        Args:
            session: Database session
        """
        self.session = session
        self.logger = logger.bind(service="roster")

    async def coach_for(self, player: User) -> User | None:
        """Resolve the coach responsible for a player."""
        return await self._resolve(player, Role.COACH)

    async def doctor_for(self, player: User) -> User | None:
        """Resolve the doctor responsible for a player."""
        return await self._resolve(player, Role.DOCTOR)

    async def get_player(self, player_id: int) -> User:
        """Load a user that must hold the player role.

        Raises:
            RecordNotFound: If no such user exists
            InvalidRequest: If the user is not a player
        """
        user = await self.session.get(User, player_id)
        if user is None:
            raise RecordNotFound("Player not found", player_id=player_id)
        if user.role != Role.PLAYER:
            raise InvalidRequest("Invalid player selected", player_id=player_id)
        return user

    async def assign(self, player: User, staff: User) -> StaffAssignment:
        """Assign a coach or doctor to a player, replacing any previous one."""
        role = Role(staff.role)
        match role:
            case Role.COACH | Role.DOCTOR:
                pass
            case Role.PLAYER | Role.ADMIN:
                raise InvalidRequest(f"Cannot assign a {role.value} as player staff")

        stmt = select(StaffAssignment).where(
            StaffAssignment.player_id == player.id,
            StaffAssignment.role == role.value,
        )
        assignment = (await self.session.execute(stmt)).scalar_one_or_none()
        if assignment is None:
            assignment = StaffAssignment(player_id=player.id, role=role.value)
            self.session.add(assignment)

        assignment.staff_id = staff.id
        await self.session.flush()
        return assignment

    async def _resolve(self, player: User, role: Role) -> User | None:
        stmt = (
            select(User)
            .join(StaffAssignment, StaffAssignment.staff_id == User.id)
            .where(StaffAssignment.player_id == player.id)
            .where(StaffAssignment.role == role.value)
        )
        staff = (await self.session.execute(stmt)).scalars().first()
        if staff is not None:
            return staff

        if role == Role.COACH:
            stmt = (
                select(User)
                .join(Team, Team.coach_id == User.id)
                .join(team_players, team_players.c.team_id == Team.id)
                .where(team_players.c.player_id == player.id)
                .order_by(Team.id)
            )
            staff = (await self.session.execute(stmt)).scalars().first()
            if staff is not None:
                return staff

        if not settings.legacy_role_fallback:
            return None

        staff = await self.first_with_role(role)
        if staff is not None:
            self.logger.warning(
                "No roster entry, using first user with role",
                player_id=player.id,
                role=role.value,
                staff_id=staff.id,
            )
        return staff

    async def first_with_role(self, role: Role) -> User | None:
        """First user (by id) holding ``role``."""
        stmt = select(User).where(User.role == role).order_by(User.id).limit(1)
        return (await self.session.execute(stmt)).scalar_one_or_none()
