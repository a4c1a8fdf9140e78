"""User, profile and role models."""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, ForeignKey, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from squad_health_server.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from squad_health_server.models.team import Team


class Role(str, Enum):
    """Closed set of user roles."""

    PLAYER = "player"
    COACH = "coach"
    DOCTOR = "doctor"
    ADMIN = "admin"

    @property
    def label(self) -> str:
        """Display name for the role."""
        return self.value.capitalize()


class PlayerStatus(str, Enum):
    """Health status labels shown on coach and doctor dashboards."""

    OPTIMAL = "Optimal"
    AT_RISK = "At Risk"
    UNDERPERFORMING = "Underperforming"
    RECOVERING = "Recovering"


class User(Base, TimestampMixin):
    """Application user.

    The role decides which dashboards and actions are available. Players
    additionally carry a health status label.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    role: Mapped[Role] = mapped_column(
        SAEnum(Role, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )
    status: Mapped[str | None] = mapped_column(String(50))
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    profile: Mapped["Profile | None"] = relationship(
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    teams: Mapped[list["Team"]] = relationship(
        secondary="team_players",
        back_populates="players",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    @property
    def username(self) -> str:
        """Handle derived from the local part of the email address."""
        return "@" + self.email.split("@")[0]

    def has_role(self, *roles: Role) -> bool:
        """Check whether the user holds one of the given roles."""
        return self.role in roles


class Profile(Base, TimestampMixin):
    """Personal details for a user."""

    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    date_of_birth: Mapped[date | None] = mapped_column(Date)
    sex: Mapped[str | None] = mapped_column(String(20))
    position: Mapped[str | None] = mapped_column(String(100))
    blood_type: Mapped[str | None] = mapped_column(String(5))
    avatar_url: Mapped[str | None] = mapped_column(String(500))

    user: Mapped[User] = relationship(back_populates="profile")
