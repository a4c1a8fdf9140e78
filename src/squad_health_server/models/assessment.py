"""Assessment request model."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from squad_health_server.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from squad_health_server.models.user import User


class AssessmentStatus(str, Enum):
    """Status of an assessment request."""

    PENDING = "pending"
    APPROVED = "approved"
    POSTPONED = "postponed"


class IssueType(str, Enum):
    """Reason a player asks for an assessment."""

    INJURY = "injury"
    ILLNESS = "illness"
    OTHER = "other"


class AssessmentRequest(Base, TimestampMixin):
    """A player's request for a doctor assessment at a given time.

    A doctor can hold only one approved assessment per time slot; the partial
    unique index enforces this inside the approving transaction.
    """

    __tablename__ = "assessment_requests"
    __table_args__ = (
        Index(
            "uq_assessment_doctor_slot_approved",
            "doctor_id",
            "requested_at",
            unique=True,
            postgresql_where=text("status = 'approved'"),
            sqlite_where=text("status = 'approved'"),
        ),
    )

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
    issue_type: Mapped[str] = mapped_column(String(20), nullable=False)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=AssessmentStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    player: Mapped["User"] = relationship(foreign_keys=[player_id], lazy="joined")
    doctor: Mapped["User"] = relationship(foreign_keys=[doctor_id], lazy="joined")

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<AssessmentRequest(id={self.id}, player_id={self.player_id}, "
            f"doctor_id={self.doctor_id}, status={self.status})>"
        )
