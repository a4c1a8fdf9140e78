"""Pydantic schemas for request bodies."""

import datetime

from pydantic import BaseModel, Field


class MetricCreate(BaseModel):
    """A new metric sample for a player."""

    resting_hr: int = Field(ge=20, le=250, description="Resting heart rate (bpm)")
    max_hr: int = Field(ge=40, le=250, description="Maximum heart rate (bpm)")
    hrv: float = Field(ge=0, description="Heart rate variability (ms)")
    vo2_max: float = Field(ge=0, description="VO2 max (ml/kg/min)")
    weight: float = Field(gt=0, description="Body weight (kg)")
    reaction_time: float = Field(gt=0, description="Reaction time (ms)")

    match_consistency: float | None = Field(default=None, ge=0, le=100)
    minutes_played: int | None = Field(default=None, ge=0)
    training_hours: int | None = Field(default=None, ge=0, description="Weekly training hours")
    injury_frequency: float | None = Field(default=None, ge=0, description="Injuries per 1000 mins")
    recovery_time: float | None = Field(default=None, ge=0, le=100)

    fatigue_score: float | None = Field(default=None, ge=0, le=100)
    injury_risk: float | None = Field(default=None, ge=0, le=100)
    readiness_score: float | None = Field(default=None, ge=0, le=100)

    recorded_at: datetime.date | None = Field(
        default=None, description="Observation date (defaults to today)"
    )


class AssessmentCreate(BaseModel):
    """A player's assessment request."""

    issue_type: str = Field(description="injury, illness or other")
    message: str = Field(description="What the player wants assessed")
    date: datetime.date
    hour: str = Field(description="24-hour time, e.g. 14:30")


class AssessmentReschedule(BaseModel):
    """New slot for an assessment."""

    new_date: datetime.date
    new_time: str = Field(description="24-hour time, e.g. 14:30")


class ProgramCreate(BaseModel):
    """A manually written training program."""

    player_id: int
    doctor_id: int
    exercises: list[str] = Field(min_length=1)
    focus_area: str | None = Field(default=None, max_length=255)


class ProgramEdit(BaseModel):
    """Doctor edits to a player's latest program; omitted fields stay unchanged."""

    focus_area: str | None = Field(default=None, max_length=255)
    exercises: list[str] | None = None
    status: str | None = Field(default=None, description="pending or approved")


class ReactionUpdate(BaseModel):
    """Reaction to set on a message; empty clears it."""

    reaction: str | None = None


class StaffAssignmentCreate(BaseModel):
    """Coach or doctor to assign to a player."""

    staff_id: int
