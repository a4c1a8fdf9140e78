"""Team and roster models."""

from sqlalchemy import Column, ForeignKey, String, Table, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from squad_health_server.models.base import Base, TimestampMixin
from squad_health_server.models.user import User

team_players = Table(
    "team_players",
    Base.metadata,
    Column("team_id", ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True),
    Column("player_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Team(Base, TimestampMixin):
    """A squad with one coach and many players."""

    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    coach_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
    )
    location: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(String(1000))
    status: Mapped[str] = mapped_column(String(20), default="active")

    coach: Mapped[User | None] = relationship(foreign_keys=[coach_id], lazy="selectin")
    players: Mapped[list[User]] = relationship(
        secondary=team_players,
        back_populates="teams",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Team(id={self.id}, name={self.name}, coach_id={self.coach_id})>"


class StaffAssignment(Base, TimestampMixin):
    """Explicit player -> coach / player -> doctor assignment.

    At most one staff member per role per player.
    """

    __tablename__ = "staff_assignments"
    __table_args__ = (
        UniqueConstraint("player_id", "role", name="uq_staff_assignment_player_role"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    staff_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, comment="coach or doctor")

    staff: Mapped[User] = relationship(foreign_keys=[staff_id], lazy="joined")
