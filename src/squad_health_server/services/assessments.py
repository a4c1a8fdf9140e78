"""Assessment request scheduling."""

from datetime import UTC, date, datetime
from typing import Any

import structlog
from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.errors import (
    ActionForbidden,
    InvalidRequest,
    RecipientUnavailable,
    RecordNotFound,
    SchedulingConflict,
)
from squad_health_server.models.assessment import AssessmentRequest, AssessmentStatus, IssueType
from squad_health_server.models.base import utcnow
from squad_health_server.models.user import Profile, User
from squad_health_server.services.notifications import NotificationService
from squad_health_server.services.realtime import EventPublisher

logger = structlog.get_logger()

MAX_MESSAGE_LENGTH = 500

# Statuses that occupy a slot when rescheduling
BOOKED_STATUSES = (AssessmentStatus.PENDING.value, AssessmentStatus.APPROVED.value)


def ordinal(day: int) -> str:
    """Day of month with its English suffix (1st, 2nd, 11th, 23rd)."""
    if 11 <= day % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def hour_label(moment: datetime) -> str:
    """Hour as ``2 PM``."""
    return f"{moment.hour % 12 or 12} {'AM' if moment.hour < 12 else 'PM'}"


def parse_slot(day: date, hour: str) -> datetime:
    """Combine a date and an ``HH:MM`` string into a UTC timestamp.

    Raises:
        InvalidRequest: If the time is not in 24-hour ``HH:MM`` format
    """
    try:
        slot_time = datetime.strptime(hour, "%H:%M").time()
    except ValueError:
        raise InvalidRequest("The time must be in 24-hour format (e.g., 14:30)") from None
    return datetime.combine(day, slot_time, tzinfo=UTC)


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return moment if moment.tzinfo else moment.replace(tzinfo=UTC)


class AssessmentService:
    """Players request assessments; doctors review, approve or reschedule them."""

    def __init__(self, session: AsyncSession, publisher: EventPublisher | None = None) -> None:
        """Initialize assessment service.

        Args:
            session: Database session
            publisher: Realtime publisher passed on to notifications
        """
        self.session = session
        self.notifications = NotificationService(session, publisher)
        self.logger = logger.bind(service="assessments")

    async def request(
        self,
        player: User,
        issue_type: str,
        message: str,
        day: date,
        hour: str,
        now: datetime | None = None,
    ) -> AssessmentRequest:
        """Create a pending assessment request and notify the doctor and coach.

        Args:
            player: Requesting player
            issue_type: ``injury``, ``illness`` or ``other``
            message: Free-text description (at most 500 characters)
            day: Requested date
            hour: Requested time as ``HH:MM``
            now: Reference time for the future-slot check

        Returns:
            The persisted request

        Raises:
            InvalidRequest: If any field fails validation
            RecipientUnavailable: If no doctor can be resolved for the player
        """
        try:
            issue = IssueType(issue_type)
        except ValueError:
            raise InvalidRequest("The selected issue type is invalid.", issue_type=issue_type) from None

        if not message or not message.strip():
            raise InvalidRequest("The message field is required.")
        if len(message) > MAX_MESSAGE_LENGTH:
            raise InvalidRequest("The message may not be greater than 500 characters.")

        requested_at = parse_slot(day, hour)
        if requested_at <= (now or utcnow()):
            raise InvalidRequest("The appointment time must be in the future.")

        doctor = await self.notifications.roster.doctor_for(player)
        if doctor is None:
            raise RecipientUnavailable("No doctor available")

        assessment = AssessmentRequest(
            player_id=player.id,
            doctor_id=doctor.id,
            issue_type=issue.value,
            message=message,
            requested_at=requested_at,
            status=AssessmentStatus.PENDING.value,
        )
        self.session.add(assessment)
        await self.session.flush()

        await self.notifications.assessment_requested(assessment, player, doctor)
        await self.session.commit()

        self.logger.info(
            "Assessment requested",
            assessment_id=assessment.id,
            player_id=player.id,
            doctor_id=doctor.id,
        )
        return assessment

    async def get(self, assessment_id: int) -> AssessmentRequest:
        """Load an assessment request.

        Raises:
            RecordNotFound: If it does not exist
        """
        stmt = (
            select(AssessmentRequest)
            .where(AssessmentRequest.id == assessment_id)
            .execution_options(populate_existing=True)
        )
        assessment = (await self.session.execute(stmt)).scalar_one_or_none()
        if assessment is None:
            raise RecordNotFound("Assessment not found", assessment_id=assessment_id)
        return assessment

    async def pending_for(self, doctor: User) -> list[dict[str, Any]]:
        """Pending requests assigned to a doctor, newest first."""
        stmt = (
            select(AssessmentRequest, Profile.first_name, Profile.last_name)
            .outerjoin(Profile, Profile.user_id == AssessmentRequest.player_id)
            .where(AssessmentRequest.doctor_id == doctor.id)
            .where(AssessmentRequest.status == AssessmentStatus.PENDING.value)
            .order_by(AssessmentRequest.created_at.desc(), AssessmentRequest.id.desc())
        )
        rows = (await self.session.execute(stmt)).all()

        return [
            {
                "id": assessment.id,
                "player_id": assessment.player_id,
                "first_name": first_name,
                "last_name": last_name,
                "requested_at": assessment.requested_at.strftime("%Y-%m-%d %H:%M:%S"),
                "message": (
                    f"Requesting an assessment on {ordinal(assessment.requested_at.day)} "
                    f"{assessment.requested_at:%b} at {hour_label(assessment.requested_at)}"
                ),
                "status": assessment.status,
            }
            for assessment, first_name, last_name in rows
        ]

    async def detail(self, assessment_id: int) -> dict[str, Any]:
        """Display fields for one request."""
        assessment = await self.get(assessment_id)
        when = assessment.requested_at
        return {
            "issue_type": assessment.issue_type,
            "date": f"{ordinal(when.day)} {when:%b %Y}",
            "hour": hour_label(when),
            "message": assessment.message,
        }

    async def approve(self, assessment_id: int, doctor: User) -> AssessmentRequest:
        """Approve a pending request unless the doctor is already booked.

        The conflict check and the status write share one transaction; the
        partial unique index on approved slots rejects a concurrent approval
        that slips past the check.

        Raises:
            RecordNotFound: If the request does not exist
            ActionForbidden: If the request is assigned to another doctor
            InvalidRequest: If the request is no longer pending
            SchedulingConflict: If the doctor has another approved request at that time
        """
        assessment = await self.get(assessment_id)
        if assessment.doctor_id != doctor.id:
            raise ActionForbidden("You are not authorized to approve this assessment.")
        if assessment.status != AssessmentStatus.PENDING.value:
            raise InvalidRequest("This assessment cannot be approved.")

        conflict_message = "You already have another assessment at this time."
        if await self._slot_taken(
            AssessmentRequest.doctor_id == doctor.id,
            requested_at=assessment.requested_at,
            exclude_id=assessment.id,
            statuses=(AssessmentStatus.APPROVED.value,),
        ):
            raise SchedulingConflict(conflict_message)

        assessment.status = AssessmentStatus.APPROVED.value
        assessment.approved_at = utcnow()
        assessment.approved_by = doctor.id
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            self.logger.warning("Concurrent approval rejected", assessment_id=assessment_id)
            raise SchedulingConflict(conflict_message) from None

        await self.notifications.assessment_approved(assessment, doctor)
        await self.session.commit()

        self.logger.info("Assessment approved", assessment_id=assessment.id, doctor_id=doctor.id)
        return assessment

    async def reschedule(
        self, assessment_id: int, doctor: User, new_date: date, new_time: str
    ) -> AssessmentRequest:
        """Move a request to a new slot and mark it postponed.

        Raises:
            RecordNotFound: If the request does not exist
            ActionForbidden: If the request is assigned to another doctor
            InvalidRequest: If the new time is malformed
            SchedulingConflict: If the doctor or the player is already booked then
        """
        assessment = await self.get(assessment_id)
        if assessment.doctor_id != doctor.id:
            raise ActionForbidden("You are not authorized to reschedule this assessment.")

        new_slot = parse_slot(new_date, new_time)

        if await self._slot_taken(
            AssessmentRequest.doctor_id == doctor.id,
            requested_at=new_slot,
            exclude_id=assessment.id,
            statuses=BOOKED_STATUSES,
        ):
            raise SchedulingConflict("You already have an assessment scheduled at this time.")

        if await self._slot_taken(
            AssessmentRequest.player_id == assessment.player_id,
            requested_at=new_slot,
            exclude_id=assessment.id,
            statuses=BOOKED_STATUSES,
        ):
            raise SchedulingConflict("This player already has an assessment scheduled at this time.")

        assessment.requested_at = new_slot
        assessment.status = AssessmentStatus.POSTPONED.value
        await self.session.flush()

        await self.notifications.assessment_postponed(assessment, doctor)
        await self.session.commit()

        self.logger.info(
            "Assessment rescheduled",
            assessment_id=assessment.id,
            requested_at=_as_utc(new_slot).isoformat(),
        )
        return assessment

    async def _slot_taken(
        self,
        owner_clause: Any,
        *,
        requested_at: datetime,
        exclude_id: int,
        statuses: tuple[str, ...],
    ) -> bool:
        stmt = select(
            exists().where(
                owner_clause,
                AssessmentRequest.requested_at == requested_at,
                AssessmentRequest.id != exclude_id,
                AssessmentRequest.status.in_(statuses),
            )
        )
        return bool(await self.session.scalar(stmt))
