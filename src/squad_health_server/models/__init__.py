"""Database models."""

from squad_health_server.models.assessment import AssessmentRequest, AssessmentStatus, IssueType
from squad_health_server.models.base import Base
from squad_health_server.models.message import Conversation, Message, MessageStatus, MessageType
from squad_health_server.models.metric import PlayerMetric
from squad_health_server.models.notification import Notification, NotificationType
from squad_health_server.models.team import StaffAssignment, Team, team_players
from squad_health_server.models.training_program import ProgramStatus, TrainingProgram
from squad_health_server.models.user import PlayerStatus, Profile, Role, User

__all__ = [
    "Base",
    "AssessmentRequest",
    "AssessmentStatus",
    "Conversation",
    "IssueType",
    "Message",
    "MessageStatus",
    "MessageType",
    "Notification",
    "NotificationType",
    "PlayerMetric",
    "PlayerStatus",
    "Profile",
    "ProgramStatus",
    "Role",
    "StaffAssignment",
    "Team",
    "TrainingProgram",
    "User",
    "team_players",
]
