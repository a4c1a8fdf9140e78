"""Application services."""

from squad_health_server.services.ai_model import AIModelService
from squad_health_server.services.assessments import AssessmentService
from squad_health_server.services.dashboard import DashboardService
from squad_health_server.services.messaging import MessagingService
from squad_health_server.services.metric_analysis import MetricAnalysisService
from squad_health_server.services.metrics import MetricService
from squad_health_server.services.notifications import NotificationService
from squad_health_server.services.roster import RosterService
from squad_health_server.services.storage import FileStorage
from squad_health_server.services.training_programs import TrainingProgramService

__all__ = [
    "AIModelService",
    "AssessmentService",
    "DashboardService",
    "FileStorage",
    "MessagingService",
    "MetricAnalysisService",
    "MetricService",
    "NotificationService",
    "RosterService",
    "TrainingProgramService",
]
