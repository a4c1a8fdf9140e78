"""Tests for notification fan-out, formatting and the inbox."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.config import settings
from squad_health_server.core.errors import RecordNotFound
from squad_health_server.models import (
    AssessmentRequest,
    Message,
    Notification,
    NotificationType,
    PlayerMetric,
    Role,
    StaffAssignment,
    Team,
    User,
)
from squad_health_server.services.notifications import (
    NotificationService,
    format_notification,
    message_preview,
)
from squad_health_server.services.roster import RosterService


async def _notifications_for(session: AsyncSession, user: User) -> list[Notification]:
    stmt = select(Notification).where(Notification.user_id == user.id).order_by(Notification.id)
    return list((await session.execute(stmt)).scalars().all())


def _metric(player: User, **scores: float) -> PlayerMetric:
    return PlayerMetric(
        player_id=player.id,
        resting_hr=60,
        max_hr=180,
        hrv=55.0,
        vo2_max=50.0,
        weight=75.0,
        reaction_time=210.0,
        recorded_at=datetime.now(UTC).date(),
        **scores,
    )


class TestFormatting:
    """Tests for preview and payload formatting."""

    def test_text_preview_is_truncated(self) -> None:
        message = Message(type="text", content="x" * 60)
        assert message_preview(message) == "x" * 50

    def test_short_text_preview(self) -> None:
        assert message_preview(Message(type="text", content="See you at training")) == "See you at training"

    def test_attachment_previews(self) -> None:
        assert message_preview(Message(type="voice")) == "Sent a voice message"
        assert message_preview(Message(type="photo")) == "Sent a photo"
        assert message_preview(Message(type="sticker")) == "Sent a message"

    def test_sender_name_and_username(self) -> None:
        notification = Notification(
            id=1,
            type=NotificationType.MESSAGE.value,
            title="Sarah Lee sent you a message",
            body="hello",
            sender_id=7,
            is_pinned=False,
        )
        notification.sender = User(id=7, name="Sarah Lee", email="sarah.lee@club.test", role=Role.DOCTOR)

        payload = format_notification(notification)

        assert payload["sender"] == {"name": "DR. Sarah Lee", "username": "@sarah.lee"}
        assert payload["navigate_to"] == "/messages/conversation/7"

    def test_malformed_email_keeps_whole_address(self) -> None:
        notification = Notification(id=2, type="assessment", title="t", body="b", is_pinned=False)
        notification.sender = User(name="Nobody", email="no-at-sign", role=Role.COACH)

        assert format_notification(notification)["sender"]["username"] == "@no-at-sign"

    def test_missing_sender(self) -> None:
        notification = Notification(id=3, type="metric_alert", title="t", body="b", is_pinned=False)

        payload = format_notification(notification)

        assert payload["sender"] == {"name": None, "username": None}
        assert payload["navigate_to"] == "No action available for this notification."


class TestFanOut:
    """Tests for trigger methods."""

    async def test_assessment_request_notifies_doctor_and_coach(
        self, async_session: AsyncSession, player: User, doctor: User, coach: User
    ) -> None:
        assessment = AssessmentRequest(
            player_id=player.id,
            doctor_id=doctor.id,
            issue_type="injury",
            message="Knee pain",
            requested_at=datetime.now(UTC) + timedelta(days=1),
        )
        async_session.add(assessment)
        await async_session.flush()

        created = await NotificationService(async_session).assessment_requested(assessment, player, doctor)
        await async_session.commit()

        assert len(created) == 2
        (to_doctor,) = await _notifications_for(async_session, doctor)
        assert to_doctor.type == NotificationType.ASSESSMENT_REQUEST.value
        assert to_doctor.body == "Tom has requested an assessment."
        assert to_doctor.related_assessment_id == assessment.id

        (to_coach,) = await _notifications_for(async_session, coach)
        assert to_coach.type == NotificationType.ASSESSMENT.value
        assert to_coach.body == "Tom Hart has requested an assessment for injury"
        assert to_coach.sender_id == player.id

    async def test_metric_without_risk_is_silent(
        self, async_session: AsyncSession, player: User, coach: User
    ) -> None:
        metric = _metric(player, fatigue_score=70, injury_risk=10)
        async_session.add(metric)
        await async_session.flush()

        assert await NotificationService(async_session).metric_recorded(metric, player) == []

    async def test_metric_alert_lists_every_flag(
        self, async_session: AsyncSession, player: User, coach: User
    ) -> None:
        metric = _metric(player, fatigue_score=85, injury_risk=71)
        async_session.add(metric)
        await async_session.flush()

        (alert,) = await NotificationService(async_session).metric_recorded(metric, player)

        assert alert.user_id == coach.id
        assert alert.type == NotificationType.METRIC_ALERT.value
        assert alert.body == "Tom Hart shows high fatigue and elevated injury risk"


class TestRoster:
    """Tests for staff resolution."""

    async def test_assignment_beats_fallback(
        self, async_session: AsyncSession, make_user, player: User, coach: User
    ) -> None:
        other_coach = await make_user(Role.COACH, "Ann Vale", "ann.vale@club.test")
        async_session.add(
            StaffAssignment(player_id=player.id, staff_id=other_coach.id, role=Role.COACH.value)
        )
        await async_session.commit()

        assert (await RosterService(async_session).coach_for(player)).id == other_coach.id

    async def test_team_coach(
        self, async_session: AsyncSession, make_user, player: User, coach: User
    ) -> None:
        team_coach = await make_user(Role.COACH, "Ben Ross", "ben.ross@club.test")
        team = Team(name="First XI", coach_id=team_coach.id)
        team.players.append(player)
        async_session.add(team)
        await async_session.commit()

        assert (await RosterService(async_session).coach_for(player)).id == team_coach.id

    async def test_fallback_can_be_disabled(
        self, async_session: AsyncSession, player: User, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "legacy_role_fallback", False)

        assert await RosterService(async_session).doctor_for(player) is None

    async def test_fallback_uses_first_user_with_role(
        self, async_session: AsyncSession, player: User, doctor: User
    ) -> None:
        assert (await RosterService(async_session).doctor_for(player)).id == doctor.id


class TestInbox:
    """Tests for inbox operations."""

    @pytest.fixture
    async def inbox(self, async_session: AsyncSession, player: User, doctor: User) -> list[Notification]:
        notifications = [
            Notification(user_id=player.id, type="assessment", title=f"n{i}", body="b", sender_id=doctor.id)
            for i in range(3)
        ]
        async_session.add_all(notifications)
        await async_session.commit()
        return notifications

    async def test_mark_read_broadcasts_to_others(
        self,
        async_session: AsyncSession,
        player: User,
        inbox: list[Notification],
        publisher,
    ) -> None:
        service = NotificationService(async_session, publisher)

        notification = await service.mark_read(player, inbox[0].id, socket_id="sock-1")

        assert notification.read_at is not None
        assert await service.unread_count(player) == 2
        assert publisher.events == [
            (f"user.{player.id}", {"type": "notification_read", "notification_id": inbox[0].id}, "sock-1")
        ]

    async def test_mark_all_read(
        self, async_session: AsyncSession, player: User, inbox: list[Notification]
    ) -> None:
        service = NotificationService(async_session)

        assert await service.mark_all_read(player) == 3
        assert await service.unread_count(player) == 0
        assert len(await service.list_for(player, unread_only=True)) == 0

    async def test_pin_and_list(
        self, async_session: AsyncSession, player: User, inbox: list[Notification]
    ) -> None:
        service = NotificationService(async_session)

        await service.set_pinned(player, inbox[1].id, True)

        pinned = await service.list_for(player, pinned_only=True)
        assert [n.id for n in pinned] == [inbox[1].id]

    async def test_other_users_notifications_are_hidden(
        self, async_session: AsyncSession, coach: User, inbox: list[Notification]
    ) -> None:
        service = NotificationService(async_session)

        with pytest.raises(RecordNotFound):
            await service.delete_for(coach, inbox[0].id)

    async def test_delete(
        self, async_session: AsyncSession, player: User, inbox: list[Notification]
    ) -> None:
        service = NotificationService(async_session)

        await service.delete_for(player, inbox[2].id)

        assert [n.id for n in await service.list_for(player)] == [inbox[1].id, inbox[0].id]
