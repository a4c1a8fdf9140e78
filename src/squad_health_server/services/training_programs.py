"""Training program lifecycle."""

from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.errors import ActionForbidden, InvalidRequest, RecordNotFound
from squad_health_server.models.base import utcnow
from squad_health_server.models.training_program import ProgramStatus, TrainingProgram
from squad_health_server.models.user import User
from squad_health_server.services.ai_model import AIModelService
from squad_health_server.services.metrics import MetricService
from squad_health_server.services.notifications import NotificationService
from squad_health_server.services.realtime import EventPublisher

logger = structlog.get_logger()

# Statuses a doctor may set when editing
EDITABLE_STATUSES = (ProgramStatus.PENDING.value, ProgramStatus.APPROVED.value)


def program_payload(program: TrainingProgram, *, exercise_list: bool = False) -> dict[str, Any]:
    """Serialize a program for API responses.

    Args:
        program: Program to serialize
        exercise_list: Return only the exercise lines instead of the stored document
    """
    return {
        "id": program.id,
        "focus_area": program.focus_area,
        "exercises": program.exercise_list if exercise_list else program.exercises,
        "status": program.status,
        "ai_generated": program.ai_generated,
        "approved_at": program.approved_at,
        "created_at": program.created_at,
        "updated_at": program.updated_at,
    }


class TrainingProgramService:
    """Create, review and present training programs."""

    def __init__(self, session: AsyncSession, publisher: EventPublisher | None = None) -> None:
        """Initialize training program service.

        Args:
            session: Database session
            publisher: Realtime publisher passed on to notifications
        """
        self.session = session
        self.publisher = publisher
        self.notifications = NotificationService(session, publisher)
        self.logger = logger.bind(service="training_programs")

    async def create(
        self,
        player: User,
        doctor: User,
        exercises: list[str],
        focus_area: str | None = None,
        ai_generated: bool = False,
    ) -> TrainingProgram:
        """Create a pending program and tell the player's coach."""
        program = TrainingProgram(
            player_id=player.id,
            doctor_id=doctor.id,
            exercises={"focus_area": focus_area, "program": list(exercises)},
            focus_area=focus_area,
            status=ProgramStatus.PENDING.value,
            ai_generated=ai_generated,
        )
        self.session.add(program)
        await self.session.flush()

        await self.notifications.program_created(program, player)
        await self.session.commit()

        self.logger.info("Training program created", program_id=program.id, player_id=player.id)
        return program

    async def get(self, program_id: int) -> TrainingProgram:
        """Load a program.

        Raises:
            RecordNotFound: If it does not exist
        """
        stmt = (
            select(TrainingProgram)
            .where(TrainingProgram.id == program_id)
            .execution_options(populate_existing=True)
        )
        program = (await self.session.execute(stmt)).scalar_one_or_none()
        if program is None:
            raise RecordNotFound("Training program not found", program_id=program_id)
        return program

    async def latest_for(self, player: User) -> TrainingProgram | None:
        """Most recent program for a player, whatever its status."""
        stmt = (
            select(TrainingProgram)
            .where(TrainingProgram.player_id == player.id)
            .order_by(TrainingProgram.created_at.desc(), TrainingProgram.id.desc())
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def current_for(self, player: User) -> TrainingProgram:
        """Program shown to the player themselves.

        Raises:
            RecordNotFound: If the player has no program
        """
        program = await self.latest_for(player)
        if program is None:
            raise RecordNotFound("No training program found")
        return program

    async def reviewed_for(self, player: User) -> TrainingProgram | None:
        """Program a doctor should see.

        The latest program when it is approved, otherwise the most recent
        earlier approved one.
        """
        latest = await self.latest_for(player)
        if latest is None or latest.is_approved():
            return latest

        stmt = (
            select(TrainingProgram)
            .where(TrainingProgram.player_id == player.id)
            .where(TrainingProgram.status == ProgramStatus.APPROVED.value)
            .where(TrainingProgram.id != latest.id)
            .order_by(TrainingProgram.created_at.desc(), TrainingProgram.id.desc())
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def edit(
        self,
        player: User,
        doctor: User,
        *,
        focus_area: str | None = None,
        exercises: list[str] | None = None,
        status: str | None = None,
    ) -> TrainingProgram:
        """Apply a doctor's edits to the player's latest program.

        Edited programs are no longer considered AI-generated. The player is
        told about the edit; the coach is told when the status changes.

        Raises:
            RecordNotFound: If the player has no program
            InvalidRequest: If ``status`` is not pending or approved
        """
        program = await self.latest_for(player)
        if program is None:
            raise RecordNotFound("No training program found for this player")

        if status is not None and status not in EDITABLE_STATUSES:
            raise InvalidRequest("The selected status is invalid.", status=status)

        previous_status = program.status
        document = dict(program.exercises or {})
        if focus_area is not None:
            program.focus_area = focus_area
            document["focus_area"] = focus_area
        if exercises is not None:
            document["program"] = list(exercises)
        program.exercises = document
        if status is not None:
            program.status = status
            if status == ProgramStatus.APPROVED.value and program.approved_at is None:
                program.approved_at = utcnow()
        program.ai_generated = False
        await self.session.flush()

        await self.notifications.program_updated(program, player, doctor)
        if program.status != previous_status:
            await self.notifications.program_status_changed(program, player)
        await self.session.commit()

        self.logger.info(
            "Training program edited",
            program_id=program.id,
            doctor_id=doctor.id,
            status=program.status,
        )
        return program

    async def approve(self, program_id: int, doctor: User) -> TrainingProgram:
        """Approve a program awaiting review.

        Raises:
            RecordNotFound: If the program does not exist
            ActionForbidden: If another doctor is reviewing it
            InvalidRequest: If it is not pending
        """
        program = await self.get(program_id)
        if program.doctor_id != doctor.id:
            raise ActionForbidden("You are not authorized to approve this program.")
        if not program.is_pending():
            raise InvalidRequest("This program cannot be approved.")

        program.status = ProgramStatus.APPROVED.value
        program.approved_at = utcnow()
        await self.session.flush()

        await self.notifications.program_status_changed(program, program.player)
        await self.session.commit()

        self.logger.info("Training program approved", program_id=program.id, doctor_id=doctor.id)
        return program

    async def generate(
        self,
        player: User,
        doctor: User,
        actor: User | None = None,
        ai: AIModelService | None = None,
    ) -> TrainingProgram:
        """Generate a program from the player's latest metric sample.

        Raises:
            RecordNotFound: If the player has no metric samples
        """
        metric = await MetricService(self.session).latest(player)
        if metric is None:
            raise RecordNotFound("No metrics found for the player.")

        ai = ai or AIModelService(self.session, self.publisher)
        return await ai.generate_training_program(player, metric, doctor, actor or doctor)
