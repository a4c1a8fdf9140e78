"""Conversation and message models."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from squad_health_server.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from squad_health_server.models.user import User


class MessageType(str, Enum):
    """Kind of message payload."""

    TEXT = "text"
    VOICE = "voice"
    PHOTO = "photo"


class MessageStatus(str, Enum):
    """Delivery state of a message."""

    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


class Conversation(Base, TimestampMixin):
    """Direct conversation between two users."""

    __tablename__ = "conversations"
    __table_args__ = (UniqueConstraint("user_id", "participant_id", name="uq_conversation_pair"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participant_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    last_message_id: Mapped[int | None] = mapped_column(
        ForeignKey("messages.id", ondelete="SET NULL", use_alter=True),
    )
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    user: Mapped["User"] = relationship(foreign_keys=[user_id], lazy="joined")
    participant: Mapped["User"] = relationship(foreign_keys=[participant_id], lazy="joined")
    last_message: Mapped["Message | None"] = relationship(
        foreign_keys=[last_message_id],
        post_update=True,
        lazy="joined",
    )

    def other_participant(self, user_id: int) -> "User":
        """Return the member of the conversation that is not ``user_id``."""
        return self.participant if self.user_id == user_id else self.user


class Message(Base, TimestampMixin):
    """A single message inside a conversation."""

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(primary_key=True)
    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    recipient_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    content: Mapped[str | None] = mapped_column(Text)
    file_url: Mapped[str | None] = mapped_column(String(500))
    reaction: Mapped[str | None] = mapped_column(String(16))
    status: Mapped[str] = mapped_column(
        String(20),
        default=MessageStatus.SENT.value,
        nullable=False,
    )
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    sender: Mapped["User"] = relationship(foreign_keys=[sender_id], lazy="joined")
    recipient: Mapped["User"] = relationship(foreign_keys=[recipient_id], lazy="joined")

    def __repr__(self) -> str:
        """String representation."""
        return f"<Message(id={self.id}, type={self.type}, sender_id={self.sender_id})>"
