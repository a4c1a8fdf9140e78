"""Training program model."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from squad_health_server.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from squad_health_server.models.user import User


class ProgramStatus(str, Enum):
    """Lifecycle of a training program."""

    PENDING = "pending"  # Awaiting doctor review
    APPROVED = "approved"
    ACTIVE = "active"


class TrainingProgram(Base, TimestampMixin):
    """Training program prescribed to a player and reviewed by a doctor.

    ``exercises`` holds ``{"focus_area": str, "program": [str, ...]}``.
    """

    __tablename__ = "training_programs"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    doctor_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    exercises: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    focus_area: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(
        String(20),
        default=ProgramStatus.PENDING.value,
        nullable=False,
    )
    ai_generated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    player: Mapped["User"] = relationship(foreign_keys=[player_id], lazy="joined")
    doctor: Mapped["User"] = relationship(foreign_keys=[doctor_id], lazy="joined")

    def __repr__(self) -> str:
        """String representation."""
        return f"<TrainingProgram(id={self.id}, player_id={self.player_id}, status={self.status})>"

    @property
    def exercise_list(self) -> list[str]:
        """Exercise lines of the program."""
        return list((self.exercises or {}).get("program") or [])

    def is_pending(self) -> bool:
        """Check whether the program still awaits review."""
        return self.status == ProgramStatus.PENDING.value

    def is_approved(self) -> bool:
        """Check whether a doctor approved the program."""
        return self.status == ProgramStatus.APPROVED.value
