"""Tests for the AI classifier client and program generation."""

import json
from datetime import UTC, datetime

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.models import Notification, NotificationType, PlayerMetric, User
from squad_health_server.services.ai_model import (
    AIModelService,
    fallback_focus_area,
    fallback_prediction,
)

CLASSIFIER_URL = "http://classifier.test/predict"


def _metric(player_id: int = 1, **scores: float | None) -> PlayerMetric:
    return PlayerMetric(
        player_id=player_id,
        resting_hr=58,
        max_hr=185,
        hrv=62.0,
        vo2_max=52.0,
        weight=74.0,
        reaction_time=205.0,
        recorded_at=datetime.now(UTC).date(),
        **scores,
    )


def _service(session: AsyncSession, handler) -> AIModelService:
    return AIModelService(
        session,
        transport=httpx.MockTransport(handler),
        url=CLASSIFIER_URL,
        timeout=1.0,
    )


class TestFallback:
    """Tests for the deterministic fallback program."""

    @pytest.mark.parametrize(
        ("scores", "expected"),
        [
            ({"fatigue_score": 90, "injury_risk": 90, "readiness_score": 10}, "Recovery and Rest"),
            ({"fatigue_score": 70, "injury_risk": 75, "readiness_score": 10}, "Injury Prevention"),
            ({"fatigue_score": 20, "injury_risk": 70, "readiness_score": 29}, "Low Intensity Training"),
            ({"fatigue_score": 20, "injury_risk": 20, "readiness_score": 30}, "General Fitness"),
            ({}, "General Fitness"),
        ],
    )
    def test_focus_area_order(self, scores: dict, expected: str) -> None:
        assert fallback_focus_area(_metric(**scores)) == expected

    def test_fallback_program(self) -> None:
        prediction = fallback_prediction(_metric(fatigue_score=95))

        assert prediction.fallback
        assert prediction.status == "Optimal"
        assert prediction.training_program == [
            "Warm-up: 10 minutes light cardio",
            "Main session: 30 minutes moderate intensity training",
            "Cool-down: 10 minutes stretching",
            "Focus on: Recovery and Rest",
        ]


class TestClassifyPlayer:
    """Tests for the classifier call."""

    async def test_successful_prediction(self, async_session: AsyncSession) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(
                200,
                json={
                    "Predicted Status": "At Risk",
                    "Focus Area": "Mobility",
                    "Training Program": ["Hip openers", "Foam rolling"],
                },
            )

        metric = _metric(fatigue_score=40, injury_risk=55, readiness_score=60)
        prediction = await _service(async_session, handler).classify_player(metric)

        assert seen == [{"fatigue_score": 40, "injury_risk": 55, "readiness_score": 60}]
        assert prediction.status == "At Risk"
        assert prediction.focus_area == "Mobility"
        assert prediction.training_program == ["Hip openers", "Foam rolling"]
        assert not prediction.fallback

    async def test_single_line_program_is_wrapped(self, async_session: AsyncSession) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"Focus Area": "Speed", "Training Program": "Sprints"})

        prediction = await _service(async_session, handler).classify_player(_metric())

        assert prediction.training_program == ["Sprints"]
        assert prediction.status is None

    async def test_timeout_falls_back(self, async_session: AsyncSession) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        prediction = await _service(async_session, handler).classify_player(_metric(injury_risk=80))

        assert prediction.fallback
        assert prediction.focus_area == "Injury Prevention"

    async def test_error_status_falls_back(self, async_session: AsyncSession) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, json={"detail": "unavailable"})

        prediction = await _service(async_session, handler).classify_player(_metric())

        assert prediction.fallback

    async def test_connection_error_falls_back(self, async_session: AsyncSession) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert (await _service(async_session, handler).classify_player(_metric())).fallback

    async def test_invalid_json_falls_back(self, async_session: AsyncSession) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops</html>")

        assert (await _service(async_session, handler).classify_player(_metric())).fallback

    async def test_incomplete_payload_falls_back(self, async_session: AsyncSession) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"Predicted Status": "Optimal", "Focus Area": "Speed"})

        assert (await _service(async_session, handler).classify_player(_metric())).fallback


class TestGenerateTrainingProgram:
    """Tests for persisting generated programs."""

    async def test_program_and_notifications_commit_together(
        self, async_session: AsyncSession, player: User, doctor: User, coach: User
    ) -> None:
        metric = _metric(player.id, fatigue_score=80)
        async_session.add(metric)
        await async_session.commit()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        program = await _service(async_session, handler).generate_training_program(
            player, metric, doctor, actor=doctor
        )

        assert program.status == "pending"
        assert program.ai_generated
        assert program.focus_area == "Recovery and Rest"
        assert program.exercises["program"][-1] == "Focus on: Recovery and Rest"

        stmt = select(Notification).where(Notification.related_program_id == program.id)
        notifications = (await async_session.execute(stmt)).scalars().all()
        assert {n.user_id for n in notifications} == {doctor.id, coach.id, player.id}
        assert {n.type for n in notifications} == {NotificationType.TRAINING_PROGRAM.value}
        assert all(n.sender_id == doctor.id for n in notifications)
