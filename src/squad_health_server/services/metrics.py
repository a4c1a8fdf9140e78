"""Metric ingestion and reporting."""

from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from squad_health_server.core.errors import InvalidRequest
from squad_health_server.models.base import utcnow
from squad_health_server.models.metric import PlayerMetric
from squad_health_server.models.user import User
from squad_health_server.services.metric_analysis import (
    METRIC_UNITS,
    MetricAnalysisService,
    MetricType,
    ReportPeriod,
)
from squad_health_server.services.notifications import NotificationService
from squad_health_server.services.realtime import EventPublisher

logger = structlog.get_logger()

# Metrics shown on the player dashboard card
DASHBOARD_METRICS = (
    MetricType.RESTING_HR,
    MetricType.MAX_HR,
    MetricType.HRV,
    MetricType.VO2_MAX,
)

# Periods a doctor may request; coaches may also use daily
DOCTOR_PERIODS = (ReportPeriod.WEEKLY, ReportPeriod.MONTHLY, ReportPeriod.HALF_YEAR)


def clock_time(moment: datetime) -> str:
    """Format a time as ``9:05 am``."""
    hour = moment.hour % 12 or 12
    return f"{hour}:{moment:%M} {'am' if moment.hour < 12 else 'pm'}"


def metric_card(
    metric: PlayerMetric,
    metrics: tuple[MetricType, ...] = tuple(MetricType),
) -> dict[str, Any]:
    """Value, unit and time for each requested metric of a sample."""
    time = clock_time(metric.created_at)
    card: dict[str, Any] = {"id": metric.id}
    for metric_type in metrics:
        card[metric_type.value] = {
            "value": getattr(metric, metric_type.value),
            "unit": METRIC_UNITS[metric_type],
            "time": time,
        }
    return card


def player_summary(player: User, with_status: bool = True) -> dict[str, Any]:
    """Compact player reference used in staff responses."""
    summary: dict[str, Any] = {"id": player.id, "name": player.name}
    if with_status:
        summary["status"] = player.status
    return summary


class MetricService:
    """Record metric samples and build metric reports for a player."""

    def __init__(self, session: AsyncSession, publisher: EventPublisher | None = None) -> None:
        """Initialize metric service.

        Args:
            session: Database session
            publisher: Realtime publisher passed on to notifications
        """
        self.session = session
        self.notifications = NotificationService(session, publisher)
        self.analyzer = MetricAnalysisService()
        self.logger = logger.bind(service="metrics")

    async def record(self, player: User, readings: dict[str, Any]) -> PlayerMetric:
        """Store a new sample and alert the coach when it crosses a risk threshold.

        Args:
            player: Player the sample belongs to
            readings: Column values for ``PlayerMetric``

        Returns:
            The persisted sample
        """
        readings = dict(readings)
        if readings.get("recorded_at") is None:
            readings["recorded_at"] = utcnow().date()
        metric = PlayerMetric(player_id=player.id, **readings)
        self.session.add(metric)
        await self.session.flush()

        await self.notifications.metric_recorded(metric, player)
        await self.session.commit()

        self.logger.info(
            "Metric recorded",
            player_id=player.id,
            metric_id=metric.id,
            alerts=metric.risk_flags(),
        )
        return metric

    async def latest(self, player: User) -> PlayerMetric | None:
        """Most recent sample for a player."""
        stmt = (
            select(PlayerMetric)
            .where(PlayerMetric.player_id == player.id)
            .order_by(PlayerMetric.created_at.desc(), PlayerMetric.id.desc())
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def history(self, player: User) -> list[PlayerMetric]:
        """All samples for a player, newest first."""
        stmt = (
            select(PlayerMetric)
            .where(PlayerMetric.player_id == player.id)
            .order_by(PlayerMetric.created_at.desc(), PlayerMetric.id.desc())
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def detail(
        self,
        player: User,
        metric_type: str,
        period: str | None = None,
        *,
        allowed_periods: tuple[ReportPeriod, ...] = tuple(ReportPeriod),
        default_period: ReportPeriod = ReportPeriod.DAILY,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Chart data and trend analysis for one metric over a period.

        Args:
            player: Player to report on
            metric_type: Metric column name
            period: Period code (``D``, ``W``, ``M``, ``6M``)
            allowed_periods: Periods this caller may request
            default_period: Period used when ``period`` is missing or not allowed
            now: End of the window (defaults to the current time)

        Returns:
            Player reference, period, graph data, highlights and trend

        Raises:
            InvalidRequest: If the metric type is unknown
        """
        try:
            metric = MetricType(metric_type)
        except ValueError:
            raise InvalidRequest(f"Invalid metric type: '{metric_type}'.") from None

        report_period = ReportPeriod.parse(period, default_period)
        if report_period not in allowed_periods:
            report_period = default_period

        start = report_period.window_start(now or utcnow())
        column = getattr(PlayerMetric, metric.value)
        stmt = (
            select(column, PlayerMetric.created_at)
            .where(PlayerMetric.player_id == player.id)
            .where(PlayerMetric.created_at >= start)
            .order_by(PlayerMetric.created_at.asc(), PlayerMetric.id.asc())
        )
        rows = (await self.session.execute(stmt)).all()

        graph_data = [{"date": created_at.strftime("%a"), "value": value} for value, created_at in rows]
        analysis = self.analyzer.analyze([row[0] for row in rows], metric.value)

        return {
            "player": player_summary(player, with_status=False),
            "metric_type": metric.value,
            "period": report_period.value,
            "graph_data": graph_data,
            "highlights": analysis.highlights,
            "trend": analysis.trend,
        }
