"""AI-assisted training program generation.

The classifier is an external HTTP service. It is the only outbound call in
the system; any failure (non-2xx, transport error, timeout, incomplete
payload) degrades to a deterministic program derived from the metric.
"""

from typing import Any

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.config import settings
from squad_health_server.models.metric import RISK_THRESHOLD, PlayerMetric
from squad_health_server.models.training_program import ProgramStatus, TrainingProgram
from squad_health_server.models.user import PlayerStatus, User
from squad_health_server.schemas.training import ProgramPrediction
from squad_health_server.services.notifications import NotificationService
from squad_health_server.services.realtime import EventPublisher

logger = structlog.get_logger()

LOW_READINESS = 30


def fallback_focus_area(metric: PlayerMetric) -> str:
    """Pick the focus area from the metric's derived scores.

    First match wins: fatigue, then injury risk, then readiness.
    """
    if (metric.fatigue_score or 0) > RISK_THRESHOLD:
        return "Recovery and Rest"
    if (metric.injury_risk or 0) > RISK_THRESHOLD:
        return "Injury Prevention"
    if metric.readiness_score is not None and metric.readiness_score < LOW_READINESS:
        return "Low Intensity Training"
    return "General Fitness"


def fallback_prediction(metric: PlayerMetric) -> ProgramPrediction:
    """Default program used whenever the classifier cannot be consulted."""
    focus_area = fallback_focus_area(metric)
    return ProgramPrediction(
        status=PlayerStatus.OPTIMAL.value,
        focus_area=focus_area,
        training_program=[
            "Warm-up: 10 minutes light cardio",
            "Main session: 30 minutes moderate intensity training",
            "Cool-down: 10 minutes stretching",
            f"Focus on: {focus_area}",
        ],
        fallback=True,
    )


class AIModelService:
    """Classify players and turn the verdict into a pending training program."""

    def __init__(
        self,
        session: AsyncSession,
        publisher: EventPublisher | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize AI model service.

        Args:
            session: Database session
            publisher: Realtime publisher passed on to notifications
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)
            url: Classifier endpoint (defaults to config)
            timeout: Classifier timeout in seconds (defaults to config)
        """
        self.session = session
        self.notifications = NotificationService(session, publisher)
        self.transport = transport
        self.url = url or settings.ai_classifier_url
        self.timeout = timeout if timeout is not None else settings.ai_timeout_seconds
        self.logger = logger.bind(service="ai_model")

    async def classify_player(self, metric: PlayerMetric) -> ProgramPrediction:
        """Ask the classifier for a status, focus area and program.

        Args:
            metric: Metric sample providing fatigue, injury risk and readiness

        Returns:
            Classifier prediction, or the fallback program on any failure
        """
        payload = {
            "fatigue_score": metric.fatigue_score,
            "injury_risk": metric.injury_risk,
            "readiness_score": metric.readiness_score,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
                data: dict[str, Any] = response.json()
        except httpx.TimeoutException:
            self.logger.warning("Classifier timed out, using fallback", player_id=metric.player_id)
            return fallback_prediction(metric)
        except httpx.HTTPStatusError as e:
            self.logger.warning(
                "Classifier returned an error, using fallback",
                player_id=metric.player_id,
                status_code=e.response.status_code,
            )
            return fallback_prediction(metric)
        except (httpx.HTTPError, ValueError) as e:
            self.logger.warning(
                "Classifier unavailable, using fallback",
                player_id=metric.player_id,
                error=str(e),
            )
            return fallback_prediction(metric)

        focus_area = data.get("Focus Area") if isinstance(data, dict) else None
        program = data.get("Training Program") if isinstance(data, dict) else None
        if not focus_area or not program:
            self.logger.warning("Classifier response incomplete, using fallback", player_id=metric.player_id)
            return fallback_prediction(metric)

        if isinstance(program, str):
            program = [program]

        return ProgramPrediction(
            status=data.get("Predicted Status"),
            focus_area=str(focus_area),
            training_program=[str(line) for line in program],
        )

    async def generate_training_program(
        self,
        player: User,
        metric: PlayerMetric,
        doctor: User,
        actor: User | None = None,
    ) -> TrainingProgram:
        """Create a pending AI-generated program and notify its reviewers.

        The program and the doctor/coach/player notifications commit together.

        Args:
            player: Player the program is for
            metric: Metric sample to classify
            doctor: Doctor who must review the program
            actor: User who triggered generation (notification sender)

        Returns:
            The persisted training program
        """
        prediction = await self.classify_player(metric)

        try:
            program = TrainingProgram(
                player_id=player.id,
                doctor_id=doctor.id,
                exercises=prediction.to_exercises(),
                focus_area=prediction.focus_area,
                status=ProgramStatus.PENDING.value,
                ai_generated=True,
            )
            self.session.add(program)
            await self.session.flush()

            await self.notifications.program_generated(program, player, doctor, actor)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            self.logger.exception("Failed to generate training program", player_id=player.id)
            raise

        self.logger.info(
            "Training program generated",
            program_id=program.id,
            player_id=player.id,
            doctor_id=doctor.id,
            focus_area=prediction.focus_area,
            fallback=prediction.fallback,
        )
        return program
