"""Pydantic schemas for API requests and analysis results."""

from squad_health_server.schemas.analysis import Extreme, TrendResult
from squad_health_server.schemas.requests import (
    AssessmentCreate,
    AssessmentReschedule,
    MetricCreate,
    ProgramCreate,
    ProgramEdit,
    ReactionUpdate,
    StaffAssignmentCreate,
)
from squad_health_server.schemas.training import ProgramPrediction

__all__ = [
    "AssessmentCreate",
    "AssessmentReschedule",
    "Extreme",
    "MetricCreate",
    "ProgramCreate",
    "ProgramEdit",
    "ProgramPrediction",
    "ReactionUpdate",
    "StaffAssignmentCreate",
    "TrendResult",
]
