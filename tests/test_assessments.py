"""Tests for assessment requests, approval and rescheduling."""

from datetime import UTC, date, datetime

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.config import settings
from squad_health_server.core.errors import (
    ActionForbidden,
    InvalidRequest,
    RecipientUnavailable,
    SchedulingConflict,
)
from squad_health_server.models import AssessmentStatus, Notification, NotificationType, Role, User
from squad_health_server.services.assessments import AssessmentService, hour_label, ordinal

SLOT_DAY = date(2030, 10, 5)
NOW = datetime(2030, 10, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def service(async_session: AsyncSession) -> AssessmentService:
    return AssessmentService(async_session)


def test_ordinal() -> None:
    assert [ordinal(d) for d in (1, 2, 3, 4, 11, 12, 13, 21, 22, 23, 31)] == [
        "1st", "2nd", "3rd", "4th", "11th", "12th", "13th", "21st", "22nd", "23rd", "31st",
    ]  # fmt: skip


def test_hour_label() -> None:
    assert hour_label(datetime(2030, 1, 1, 0, 30)) == "12 AM"
    assert hour_label(datetime(2030, 1, 1, 12, 0)) == "12 PM"
    assert hour_label(datetime(2030, 1, 1, 14, 0)) == "2 PM"


class TestRequest:
    """Tests for creating assessment requests."""

    async def test_creates_pending_request_and_notifies_staff(
        self, service: AssessmentService, async_session: AsyncSession, player: User, doctor: User, coach: User
    ) -> None:
        assessment = await service.request(player, "injury", "Sore hamstring", SLOT_DAY, "14:00", now=NOW)

        assert assessment.status == AssessmentStatus.PENDING.value
        assert assessment.doctor_id == doctor.id

        stmt = select(Notification).where(Notification.related_assessment_id == assessment.id)
        notifications = {n.user_id: n for n in (await async_session.execute(stmt)).scalars()}
        assert set(notifications) == {doctor.id, coach.id}
        assert notifications[doctor.id].type == NotificationType.ASSESSMENT_REQUEST.value
        assert notifications[doctor.id].body == "Tom has requested an assessment."
        assert notifications[coach.id].body == "Tom Hart has requested an assessment for injury"

    @pytest.mark.parametrize(
        ("issue_type", "message", "hour", "error"),
        [
            ("broken", "Sore hamstring", "14:00", "The selected issue type is invalid."),
            ("injury", "   ", "14:00", "The message field is required."),
            ("injury", "x" * 501, "14:00", "The message may not be greater than 500 characters."),
            ("illness", "Fever", "2pm", "The time must be in 24-hour format (e.g., 14:30)"),
            ("other", "Checkup", "25:00", "The time must be in 24-hour format (e.g., 14:30)"),
        ],
    )
    async def test_validation(
        self, service: AssessmentService, player: User, issue_type: str, message: str, hour: str, error: str
    ) -> None:
        with pytest.raises(InvalidRequest) as exc_info:
            await service.request(player, issue_type, message, SLOT_DAY, hour, now=NOW)
        assert exc_info.value.message == error

    async def test_message_at_limit_is_accepted(self, service: AssessmentService, player: User) -> None:
        assessment = await service.request(player, "other", "x" * 500, SLOT_DAY, "09:30", now=NOW)
        assert len(assessment.message) == 500

    async def test_slot_must_be_in_future(self, service: AssessmentService, player: User) -> None:
        with pytest.raises(InvalidRequest, match="must be in the future"):
            await service.request(player, "injury", "Knee", date(2030, 9, 30), "10:00", now=NOW)

    async def test_no_doctor_available(
        self, service: AssessmentService, make_user, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "legacy_role_fallback", True)
        lone = await make_user(Role.PLAYER, "Solo Player", "solo@club.test")

        with pytest.raises(RecipientUnavailable):
            await service.request(lone, "injury", "Ankle", SLOT_DAY, "10:00", now=NOW)


class TestDoctorReview:
    """Tests for listing, approving and rescheduling."""

    async def test_pending_for_formats_message(
        self, service: AssessmentService, player: User, doctor: User
    ) -> None:
        assessment = await service.request(player, "illness", "Flu", SLOT_DAY, "14:00", now=NOW)

        pending = await service.pending_for(doctor)

        assert pending == [
            {
                "id": assessment.id,
                "player_id": player.id,
                "first_name": "Tom",
                "last_name": "Hart",
                "requested_at": "2030-10-05 14:00:00",
                "message": "Requesting an assessment on 5th Oct at 2 PM",
                "status": "pending",
            }
        ]

    async def test_detail(self, service: AssessmentService, player: User) -> None:
        assessment = await service.request(player, "illness", "Flu", SLOT_DAY, "09:00", now=NOW)

        assert await service.detail(assessment.id) == {
            "issue_type": "illness",
            "date": "5th Oct 2030",
            "hour": "9 AM",
            "message": "Flu",
        }

    async def test_approve_notifies_player(
        self, service: AssessmentService, async_session: AsyncSession, player: User, doctor: User
    ) -> None:
        assessment = await service.request(player, "injury", "Knee", SLOT_DAY, "10:00", now=NOW)

        approved = await service.approve(assessment.id, doctor)

        assert approved.status == AssessmentStatus.APPROVED.value
        assert approved.approved_by == doctor.id
        assert approved.approved_at is not None
        stmt = select(Notification).where(Notification.user_id == player.id)
        bodies = [n.body for n in (await async_session.execute(stmt)).scalars()]
        assert bodies == ["Your assessment request has been approved."]

    async def test_approve_conflicting_slot(
        self, service: AssessmentService, player: User, doctor: User
    ) -> None:
        first = await service.request(player, "injury", "Knee", SLOT_DAY, "10:00", now=NOW)
        second = await service.request(player, "illness", "Cough", SLOT_DAY, "10:00", now=NOW)
        await service.approve(first.id, doctor)

        with pytest.raises(SchedulingConflict, match="another assessment at this time"):
            await service.approve(second.id, doctor)

        assert (await service.get(second.id)).status == AssessmentStatus.PENDING.value

    async def test_unique_index_rejects_double_booking(
        self,
        service: AssessmentService,
        player: User,
        doctor: User,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        first = await service.request(player, "injury", "Knee", SLOT_DAY, "10:00", now=NOW)
        second = await service.request(player, "illness", "Cough", SLOT_DAY, "10:00", now=NOW)
        # Keep plain ids: the rollback inside approve() expires loaded instances
        first_id, second_id = first.id, second.id
        await service.approve(first_id, doctor)

        # Simulate a concurrent approval that slipped past the slot check
        async def slot_free(*args, **kwargs) -> bool:
            return False

        monkeypatch.setattr(AssessmentService, "_slot_taken", slot_free)

        with pytest.raises(SchedulingConflict, match="another assessment at this time"):
            await service.approve(second_id, doctor)

        assert (await service.get(second_id)).status == AssessmentStatus.PENDING.value
        assert (await service.get(first_id)).status == AssessmentStatus.APPROVED.value

    async def test_approve_only_pending(self, service: AssessmentService, player: User, doctor: User) -> None:
        assessment = await service.request(player, "injury", "Knee", SLOT_DAY, "10:00", now=NOW)
        await service.approve(assessment.id, doctor)

        with pytest.raises(InvalidRequest):
            await service.approve(assessment.id, doctor)

    async def test_other_doctor_cannot_approve(
        self, service: AssessmentService, make_user, player: User
    ) -> None:
        assessment = await service.request(player, "injury", "Knee", SLOT_DAY, "10:00", now=NOW)
        other = await make_user(Role.DOCTOR, "Nina Park", "nina.park@club.test")

        with pytest.raises(ActionForbidden):
            await service.approve(assessment.id, other)
        with pytest.raises(ActionForbidden):
            await service.reschedule(assessment.id, other, SLOT_DAY, "11:00")

    async def test_reschedule_postpones_and_notifies(
        self, service: AssessmentService, async_session: AsyncSession, player: User, doctor: User
    ) -> None:
        assessment = await service.request(player, "injury", "Knee", SLOT_DAY, "10:00", now=NOW)

        moved = await service.reschedule(assessment.id, doctor, SLOT_DAY, "14:00")

        assert moved.status == AssessmentStatus.POSTPONED.value
        stmt = select(Notification).where(Notification.user_id == player.id)
        bodies = [n.body for n in (await async_session.execute(stmt)).scalars()]
        assert bodies == ["Your assessment request has been postponed to Oct 05, 2030 14:00"]

    async def test_reschedule_into_booked_slot(
        self, service: AssessmentService, player: User, doctor: User
    ) -> None:
        await service.request(player, "injury", "Knee", SLOT_DAY, "14:00", now=NOW)
        other = await service.request(player, "illness", "Cough", SLOT_DAY, "10:00", now=NOW)

        with pytest.raises(SchedulingConflict, match="You already have an assessment scheduled"):
            await service.reschedule(other.id, doctor, SLOT_DAY, "14:00")

    async def test_reschedule_rejects_bad_time(
        self, service: AssessmentService, player: User, doctor: User
    ) -> None:
        assessment = await service.request(player, "injury", "Knee", SLOT_DAY, "10:00", now=NOW)

        with pytest.raises(InvalidRequest):
            await service.reschedule(assessment.id, doctor, SLOT_DAY, "afternoon")
