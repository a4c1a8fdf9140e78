"""Player metric sample model."""

from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import Date, Float, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from squad_health_server.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from squad_health_server.models.user import User

# Scores above this on the 0-100 scale alert the coach
RISK_THRESHOLD = 70


class PlayerMetric(Base, TimestampMixin):
    """One recorded physiological/performance observation for a player.

    Rows are immutable once written and go away only with their player.
    """

    __tablename__ = "player_metrics"
    __table_args__ = (Index("ix_player_metrics_player_recorded", "player_id", "recorded_at"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Core readings
    resting_hr: Mapped[int] = mapped_column(Integer, nullable=False, comment="bpm")
    max_hr: Mapped[int] = mapped_column(Integer, nullable=False, comment="bpm")
    hrv: Mapped[float] = mapped_column(Float, nullable=False, comment="ms")
    vo2_max: Mapped[float] = mapped_column(Float, nullable=False, comment="ml/kg/min")
    weight: Mapped[float] = mapped_column(Float, nullable=False, comment="kg")
    reaction_time: Mapped[float] = mapped_column(Float, nullable=False, comment="ms")

    # Performance context
    match_consistency: Mapped[float | None] = mapped_column(Float, comment="0-100 scale")
    minutes_played: Mapped[int | None] = mapped_column(Integer)
    training_hours: Mapped[int | None] = mapped_column(Integer, comment="Weekly training hours")
    injury_frequency: Mapped[float | None] = mapped_column(
        Float, comment="Injuries per 1000 mins"
    )
    recovery_time: Mapped[float | None] = mapped_column(Float, comment="0-100 scale")

    # Derived scores
    fatigue_score: Mapped[float | None] = mapped_column(Float, comment="0-100 scale")
    injury_risk: Mapped[float | None] = mapped_column(Float, comment="0-100%")
    readiness_score: Mapped[float | None] = mapped_column(Float, comment="0-100 scale")

    recorded_at: Mapped[date] = mapped_column(Date, nullable=False)

    player: Mapped["User"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        """String representation."""
        return f"<PlayerMetric(player_id={self.player_id}, recorded_at={self.recorded_at})>"

    def risk_flags(self) -> list[str]:
        """Phrases describing which risk scores crossed the alert threshold."""
        flags = []
        if self.fatigue_score is not None and self.fatigue_score > RISK_THRESHOLD:
            flags.append("high fatigue")
        if self.injury_risk is not None and self.injury_risk > RISK_THRESHOLD:
            flags.append("elevated injury risk")
        return flags
