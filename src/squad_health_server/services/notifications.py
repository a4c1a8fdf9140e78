"""Notification fan-out and notification inbox operations.

Every domain write that should tell somebody about itself calls one of the
trigger methods below explicitly, right after performing the write. Trigger
methods insert inside a SAVEPOINT so a failing notification insert is logged
and rolled back on its own while the surrounding write still commits.

Duplicate triggers produce duplicate notifications; there is no dedup key.
"""

from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.errors import RecordNotFound
from squad_health_server.models.assessment import AssessmentRequest
from squad_health_server.models.base import utcnow
from squad_health_server.models.message import Message, MessageType
from squad_health_server.models.metric import PlayerMetric
from squad_health_server.models.notification import Notification, NotificationType
from squad_health_server.models.training_program import TrainingProgram
from squad_health_server.models.user import Profile, User
from squad_health_server.services.realtime import EventPublisher, NullEventPublisher, user_channel
from squad_health_server.services.roster import RosterService

logger = structlog.get_logger()

PREVIEW_LENGTH = 50
RESCHEDULE_FORMAT = "%b %d, %Y %H:%M"


def message_preview(message: Message) -> str:
    """Short description of a message for notification bodies."""
    match message.type:
        case MessageType.TEXT.value:
            return (message.content or "")[:PREVIEW_LENGTH]
        case MessageType.VOICE.value:
            return "Sent a voice message"
        case MessageType.PHOTO.value:
            return "Sent a photo"
        case _:
            return "Sent a message"


def format_notification(notification: Any) -> dict[str, Any]:
    """Shape a notification for API responses.

    Sender names carry a ``DR.`` prefix; the username is the local part of
    the sender's email.
    """
    sender = notification.sender
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "body": notification.body,
        "sender": {
            "name": f"DR. {sender.name}" if sender else None,
            "username": "@" + sender.email.split("@")[0] if sender and sender.email else None,
        },
        "read_at": notification.read_at,
        "created_at": notification.created_at,
        "is_pinned": notification.is_pinned,
        "navigate_to": notification.navigate_to,
        "metadata": {
            "related_program_id": getattr(notification, "related_program_id", None),
            "related_assessment_id": getattr(notification, "related_assessment_id", None),
            "related_message_id": getattr(notification, "related_message_id", None),
        },
    }


class NotificationService:
    """Creates notifications for domain events and manages a user's inbox."""

    def __init__(self, session: AsyncSession, publisher: EventPublisher | None = None) -> None:
        """Initialize notification service.

        Args:
            session: Database session
            publisher: Realtime publisher for inbox state changes
        """
        self.session = session
        self.publisher = publisher or NullEventPublisher()
        self.roster = RosterService(session)
        self.logger = logger.bind(service="notifications")

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def assessment_requested(
        self, assessment: AssessmentRequest, player: User, doctor: User
    ) -> list[Notification]:
        """Tell the assigned doctor and the player's coach about a new request."""
        first_name = await self.session.scalar(
            select(Profile.first_name).where(Profile.user_id == player.id)
        )
        created = [
            await self._create(
                recipient=doctor,
                type=NotificationType.ASSESSMENT_REQUEST,
                title="New Assessment Request",
                body=f"{first_name or player.name} has requested an assessment.",
                sender=player,
                related_assessment_id=assessment.id,
            )
        ]

        coach = await self.roster.coach_for(player)
        if coach is None:
            self.logger.warning("No coach to notify", player_id=player.id, event="assessment")
        else:
            created.append(
                await self._create(
                    recipient=coach,
                    type=NotificationType.ASSESSMENT,
                    title="New Assessment Request",
                    body=f"{player.name} has requested an assessment for {assessment.issue_type}",
                    sender=player,
                    related_assessment_id=assessment.id,
                )
            )
        return [n for n in created if n is not None]

    async def metric_recorded(self, metric: PlayerMetric, player: User) -> list[Notification]:
        """Alert the coach when a new sample crosses a risk threshold."""
        flags = metric.risk_flags()
        if not flags:
            return []

        coach = await self.roster.coach_for(player)
        if coach is None:
            self.logger.warning("No coach to notify", player_id=player.id, event="metric_alert")
            return []

        notification = await self._create(
            recipient=coach,
            type=NotificationType.METRIC_ALERT,
            title="Player Metric Alert",
            body=f"{player.name} shows {' and '.join(flags)}",
            sender=player,
        )
        return [notification] if notification else []

    async def program_created(self, program: TrainingProgram, player: User) -> list[Notification]:
        """Tell the coach a program was created for their player."""
        return await self._notify_coach(
            player,
            type=NotificationType.PROGRAM_CREATED,
            title="New Training Program",
            body=f"A new training program has been created for {player.name}",
            related_program_id=program.id,
        )

    async def program_status_changed(
        self, program: TrainingProgram, player: User
    ) -> list[Notification]:
        """Tell the coach a program moved to a new status."""
        return await self._notify_coach(
            player,
            type=NotificationType.PROGRAM_UPDATE,
            title="Training Program Update",
            body=f"{player.name}'s training program status: {program.status}",
            related_program_id=program.id,
        )

    async def program_generated(
        self,
        program: TrainingProgram,
        player: User,
        doctor: User,
        actor: User | None = None,
    ) -> list[Notification]:
        """Fan out an AI-generated program to its reviewer, the coach and the player."""
        created = [
            await self._create(
                recipient=doctor,
                type=NotificationType.TRAINING_PROGRAM,
                title="Training Program Requires Review",
                body=(
                    f"A new training program has been generated for player {player.name}. "
                    "Please review and approve."
                ),
                sender=actor,
                related_program_id=program.id,
            )
        ]

        coach = await self.roster.coach_for(player)
        if coach is None:
            self.logger.warning("No coach to notify", player_id=player.id, event="program")
        else:
            created.append(
                await self._create(
                    recipient=coach,
                    type=NotificationType.TRAINING_PROGRAM,
                    title="Training Program Generated",
                    body=(
                        f"A training program has been set for player {player.name} "
                        "and is pending doctor approval."
                    ),
                    sender=actor,
                    related_program_id=program.id,
                )
            )

        created.append(
            await self._create(
                recipient=player,
                type=NotificationType.TRAINING_PROGRAM,
                title="Training Program Generated",
                body=(
                    "A new training program has been generated for you. "
                    "It is currently pending doctor approval."
                ),
                sender=actor,
                related_program_id=program.id,
            )
        )
        return [n for n in created if n is not None]

    async def program_updated(
        self, program: TrainingProgram, player: User, doctor: User
    ) -> list[Notification]:
        """Tell the player their program was edited by the doctor."""
        notification = await self._create(
            recipient=player,
            type=NotificationType.TRAINING_PROGRAM,
            title="Training Program Updated",
            body="Your training program has been updated by the doctor.",
            sender=doctor,
            related_program_id=program.id,
        )
        return [notification] if notification else []

    async def assessment_approved(
        self, assessment: AssessmentRequest, doctor: User
    ) -> list[Notification]:
        """Tell the requesting player their assessment was approved."""
        notification = await self._create(
            recipient=assessment.player,
            type=NotificationType.ASSESSMENT,
            title="Assessment Request Approved",
            body="Your assessment request has been approved.",
            sender=doctor,
            related_assessment_id=assessment.id,
        )
        return [notification] if notification else []

    async def assessment_postponed(
        self, assessment: AssessmentRequest, doctor: User
    ) -> list[Notification]:
        """Tell the requesting player their assessment moved to a new slot."""
        when = assessment.requested_at.strftime(RESCHEDULE_FORMAT)
        notification = await self._create(
            recipient=assessment.player,
            type=NotificationType.ASSESSMENT,
            title="Assessment Request Postponed",
            body=f"Your assessment request has been postponed to {when}",
            sender=doctor,
            related_assessment_id=assessment.id,
        )
        return [notification] if notification else []

    async def message_sent(self, message: Message, sender: User, recipient: User) -> list[Notification]:
        """Tell the addressee about a new message."""
        notification = await self._create(
            recipient=recipient,
            type=NotificationType.MESSAGE,
            title=f"{sender.name} sent you a message",
            body=message_preview(message),
            sender=sender,
            related_message_id=message.id,
        )
        return [notification] if notification else []

    async def reaction_added(
        self, message: Message, reactor: User, reaction: str
    ) -> list[Notification]:
        """Tell the original sender somebody reacted to their message."""
        if message.sender_id == reactor.id:
            return []

        notification = await self._create(
            recipient=message.sender,
            type=NotificationType.REACTION,
            title=f"{reactor.name} reacted to your message",
            body=f"{reactor.name} added reaction {reaction}",
            sender=reactor,
            related_message_id=message.id,
        )
        return [notification] if notification else []

    async def _notify_coach(self, player: User, **fields: Any) -> list[Notification]:
        coach = await self.roster.coach_for(player)
        if coach is None:
            self.logger.warning("No coach to notify", player_id=player.id, type=fields["type"].value)
            return []

        notification = await self._create(recipient=coach, sender=player, **fields)
        return [notification] if notification else []

    async def _create(
        self,
        *,
        recipient: User,
        type: NotificationType,
        title: str,
        body: str,
        sender: User | None = None,
        related_program_id: int | None = None,
        related_assessment_id: int | None = None,
        related_message_id: int | None = None,
    ) -> Notification | None:
        """Insert one notification inside a savepoint.

        Returns None (after logging) when the insert fails.
        """
        notification = Notification(
            user_id=recipient.id,
            type=type.value,
            title=title,
            body=body,
            sender_id=sender.id if sender else None,
            related_program_id=related_program_id,
            related_assessment_id=related_assessment_id,
            related_message_id=related_message_id,
            read_at=None,
            is_pinned=False,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(notification)
        except SQLAlchemyError as e:
            self.logger.error(
                "Failed to create notification",
                recipient_id=recipient.id,
                type=type.value,
                error=str(e),
            )
            return None

        # Attach the already-loaded sender so callers can format without a lazy load
        notification.sender = sender
        self.logger.debug(
            "Notification created",
            notification_id=notification.id,
            recipient_id=recipient.id,
            type=type.value,
        )
        return notification

    # ------------------------------------------------------------------
    # Inbox
    # ------------------------------------------------------------------

    async def list_for(
        self,
        user: User,
        *,
        unread_only: bool = False,
        pinned_only: bool = False,
        types: list[str] | None = None,
        limit: int | None = None,
    ) -> list[Notification]:
        """Notifications addressed to a user, newest first."""
        stmt = select(Notification).where(Notification.user_id == user.id)
        if unread_only:
            stmt = stmt.where(Notification.read_at.is_(None))
        if pinned_only:
            stmt = stmt.where(Notification.is_pinned.is_(True))
        if types:
            stmt = stmt.where(Notification.type.in_(types))
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
        if limit:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def unread_count(self, user: User, types: list[str] | None = None) -> int:
        """Number of unread notifications for a user."""
        stmt = (
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user.id)
            .where(Notification.read_at.is_(None))
        )
        if types:
            stmt = stmt.where(Notification.type.in_(types))
        return (await self.session.execute(stmt)).scalar_one()

    async def get_for(self, user: User, notification_id: int) -> Notification:
        """Fetch one of the user's notifications.

        Raises:
            RecordNotFound: If the notification does not exist or belongs to someone else
        """
        stmt = select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user.id,
        )
        notification = (await self.session.execute(stmt)).scalar_one_or_none()
        if notification is None:
            raise RecordNotFound("Notification not found", notification_id=notification_id)
        return notification

    async def mark_read(
        self, user: User, notification_id: int, socket_id: str | None = None
    ) -> Notification:
        """Mark one notification as read."""
        notification = await self.get_for(user, notification_id)
        notification.read_at = utcnow()
        await self.session.commit()

        self._broadcast(user, "notification_read", socket_id, notification_id=notification_id)
        return notification

    async def mark_all_read(self, user: User, socket_id: str | None = None) -> int:
        """Mark every unread notification as read.

        Returns:
            Number of notifications updated
        """
        now: datetime = utcnow()
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user.id)
            .where(Notification.read_at.is_(None))
            .values(read_at=now)
        )
        await self.session.commit()

        self._broadcast(user, "all_notifications_read", socket_id, user_id=user.id)
        return result.rowcount or 0

    async def set_pinned(
        self, user: User, notification_id: int, pinned: bool, socket_id: str | None = None
    ) -> Notification:
        """Pin or unpin a notification."""
        notification = await self.get_for(user, notification_id)
        notification.is_pinned = pinned
        await self.session.commit()

        event_type = "notification_pinned" if pinned else "notification_unpinned"
        self._broadcast(user, event_type, socket_id, notification_id=notification_id)
        return notification

    async def delete_for(
        self, user: User, notification_id: int, socket_id: str | None = None
    ) -> None:
        """Delete one of the user's notifications."""
        await self.get_for(user, notification_id)
        await self.session.execute(delete(Notification).where(Notification.id == notification_id))
        await self.session.commit()

        self._broadcast(user, "notification_deleted", socket_id, notification_id=notification_id)

    def _broadcast(self, user: User, event_type: str, socket_id: str | None, **data: Any) -> None:
        self.publisher.publish(user_channel(user.id), {"type": event_type, **data}, origin=socket_id)
