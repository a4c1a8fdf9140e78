"""Notification model."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from squad_health_server.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from squad_health_server.models.user import User


class NotificationType(str, Enum):
    """Closed set of notification kinds."""

    REACTION = "reaction"
    MESSAGE = "message"
    ASSESSMENT = "assessment"
    ASSESSMENT_REQUEST = "assessment_request"
    TRAINING_PROGRAM = "training_program"
    METRIC_ALERT = "metric_alert"
    PROGRAM_CREATED = "program_created"
    PROGRAM_UPDATE = "program_update"
    STATS_UPDATE = "stats_update"


class Notification(Base, TimestampMixin):
    """One addressed message to a user.

    Exactly one recipient (``user_id``) and at most one sender. Only the
    read/pinned state changes after creation.
    """

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    sender_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    related_program_id: Mapped[int | None] = mapped_column(
        ForeignKey("training_programs.id", ondelete="SET NULL")
    )
    related_assessment_id: Mapped[int | None] = mapped_column(
        ForeignKey("assessment_requests.id", ondelete="SET NULL")
    )
    related_message_id: Mapped[int | None] = mapped_column(
        ForeignKey("messages.id", ondelete="SET NULL")
    )
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    sender: Mapped["User | None"] = relationship(foreign_keys=[sender_id], lazy="joined")

    def __repr__(self) -> str:
        """String representation."""
        return f"<Notification(id={self.id}, user_id={self.user_id}, type={self.type})>"

    @property
    def navigate_to(self) -> str | None:
        """Client route the notification should open."""
        match self.type:
            case NotificationType.MESSAGE.value | NotificationType.REACTION.value:
                return f"/messages/conversation/{self.sender_id}" if self.sender_id else None
            case NotificationType.TRAINING_PROGRAM.value:
                return "/training-program/current"
            case _:
                return "No action available for this notification."
