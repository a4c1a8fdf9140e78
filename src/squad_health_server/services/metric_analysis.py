"""Metric trend analysis.

Turns an ordered series of metric samples (oldest first) into a
least-squares trend, peak/lowest markers and metric-specific highlights.
Pure computation: no I/O and no state between calls.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta
from enum import Enum

from squad_health_server.schemas.analysis import Extreme, TrendResult

NO_DATA_MESSAGE = "No metrics data available for the specified period."

# Fixed clinical thresholds
RESTING_HR_ALERT = 70  # bpm
MAX_HR_ALERT = 190  # bpm
WEIGHT_SWING_ALERT = 2  # kg
REACTION_WINDOW_DAYS = 2


class MetricType(str, Enum):
    """Metrics that can be charted and analyzed."""

    RESTING_HR = "resting_hr"
    MAX_HR = "max_hr"
    HRV = "hrv"
    VO2_MAX = "vo2_max"
    WEIGHT = "weight"
    REACTION_TIME = "reaction_time"


METRIC_UNITS: dict[MetricType, str] = {
    MetricType.RESTING_HR: "bpm",
    MetricType.MAX_HR: "bpm",
    MetricType.HRV: "ms",
    MetricType.VO2_MAX: "ml/kg/min",
    MetricType.WEIGHT: "kg",
    MetricType.REACTION_TIME: "ms",
}


class ReportPeriod(str, Enum):
    """Reporting windows for metric detail charts."""

    DAILY = "D"
    WEEKLY = "W"
    MONTHLY = "M"
    HALF_YEAR = "6M"

    @classmethod
    def parse(cls, value: str | None, default: "ReportPeriod") -> "ReportPeriod":
        """Parse a period code, falling back to ``default`` when unknown."""
        try:
            return cls((value or "").upper())
        except ValueError:
            return default

    def window_start(self, now: datetime) -> datetime:
        """Earliest timestamp included in the window ending at ``now``."""
        match self:
            case ReportPeriod.DAILY:
                return now - timedelta(days=7)
            case ReportPeriod.WEEKLY:
                return now - timedelta(weeks=4)
            case ReportPeriod.MONTHLY:
                return _months_before(now, 1)
            case ReportPeriod.HALF_YEAR:
                return _months_before(now, 6)


def _months_before(now: datetime, months: int) -> datetime:
    month_index = now.month - 1 - months
    year = now.year + month_index // 12
    month = month_index % 12 + 1
    # Clamp the day so Mar 31 - 1 month lands on Feb 28/29
    for day in range(now.day, 0, -1):
        try:
            return now.replace(year=year, month=month, day=day)
        except ValueError:
            continue
    raise ValueError(f"Cannot shift {now} back {months} months")


def format_number(value: float) -> str:
    """Render a sample without float noise or a trailing ``.0``.

    Very small or very large magnitudes stay in fixed-point notation.
    """
    text = f"{value:.14g}"
    if "e" not in text:
        return text
    fixed = f"{value:.10f}".rstrip("0").rstrip(".")
    return fixed if fixed not in ("", "-", "0", "-0") else text


class MetricAnalysisService:
    """Analyze a metric series and describe its trend."""

    def analyze(self, values: Sequence[float], metric_type: str) -> TrendResult:
        """Analyze an ordered series of samples for one metric.

        Args:
            values: Samples, oldest first, one per observation period
            metric_type: Metric identifier (see ``MetricType``)

        Returns:
            Trend, peak/lowest markers and highlights. An empty series gives
            only the "no data" highlight.
        """
        if not values:
            return TrendResult(highlights=[NO_DATA_MESSAGE])

        trend = self.calculate_trend(values)
        peak, peak_day = self.get_peak(values)
        lowest, lowest_day = self.get_lowest(values)

        return TrendResult(
            highlights=self._highlights(metric_type, trend, peak, peak_day, lowest, lowest_day),
            trend=trend,
            peak=Extreme(value=peak, day=peak_day),
            lowest=Extreme(value=lowest, day=lowest_day),
        )

    @staticmethod
    def calculate_trend(values: Sequence[float]) -> float:
        """Least-squares slope of the samples against their 1-based index."""
        n = len(values)
        if n < 2:
            return 0.0

        mean_x = (n + 1) / 2
        mean_y = sum(values) / n

        numerator = 0.0
        denominator = 0.0
        for i, y in enumerate(values, start=1):
            dx = i - mean_x
            numerator += dx * (y - mean_y)
            denominator += dx * dx

        return numerator / denominator if denominator else 0.0

    @staticmethod
    def get_peak(values: Sequence[float]) -> tuple[float, int]:
        """Highest sample and the 1-based day of its first occurrence."""
        peak = max(values)
        return peak, list(values).index(peak) + 1

    @staticmethod
    def get_lowest(values: Sequence[float]) -> tuple[float, int]:
        """Lowest sample and the 1-based day of its first occurrence."""
        lowest = min(values)
        return lowest, list(values).index(lowest) + 1

    def _highlights(
        self,
        metric_type: str,
        trend: float,
        peak: float,
        peak_day: int,
        lowest: float,
        lowest_day: int,
    ) -> list[str]:
        try:
            metric = MetricType(metric_type)
        except ValueError:
            return [f"Metric type '{metric_type}' is not recognized."]

        hi, lo = format_number(peak), format_number(lowest)
        rising = trend > 0

        match metric:
            case MetricType.REACTION_TIME:
                highlights = [
                    f"Day {peak_day} had the slowest reaction time ({hi} ms), "
                    "possibly due to fatigue or stress.",
                    f"Day {lowest_day} had the fastest reaction time ({lo} ms).",
                    "Reaction time worsens over time, indicating rising fatigue or external stressors."
                    if rising
                    else "Reaction time improves over the period, showing good adaptation.",
                ]
                if abs(peak_day - lowest_day) <= REACTION_WINDOW_DAYS:
                    highlights.append("Notable fluctuation occurred in a short window.")

            case MetricType.WEIGHT:
                change = abs(peak - lowest)
                direction = "increase" if trend > 0 else "decrease" if trend < 0 else "stable"
                highlights = [
                    f"Weight {direction} of {format_number(change)} kg observed.",
                    f"Heaviest on Day {peak_day} ({hi} kg), lightest on Day {lowest_day} ({lo} kg).",
                ]
                if change > WEIGHT_SWING_ALERT:
                    highlights.append(
                        "Significant fluctuation may reflect changes in hydration, diet, or training."
                    )

            case MetricType.MAX_HR:
                highlights = [
                    f"Highest Max HR on Day {peak_day} ({hi} bpm), "
                    f"lowest on Day {lowest_day} ({lo} bpm).",
                    "Increasing trend may indicate higher training intensity or stress."
                    if rising
                    else "Decreasing trend suggests potential fatigue or better recovery.",
                ]
                if peak > MAX_HR_ALERT:
                    highlights.append("HR above 190 bpm may signal intense effort or stress.")

            case MetricType.RESTING_HR:
                highlights = [
                    f"Resting HR peaked at {hi} bpm (Day {peak_day}), "
                    f"lowest was {lo} bpm (Day {lowest_day}).",
                    "Rising resting HR may indicate poor recovery or stress."
                    if rising
                    else "Decreasing trend points to improved recovery.",
                ]
                if peak > RESTING_HR_ALERT:
                    highlights.append(
                        "Elevated resting HR might be due to overtraining, illness, or poor sleep."
                    )

            case MetricType.HRV:
                highlights = [
                    f"HRV ranged from {lo} ms (Day {lowest_day}) to {hi} ms (Day {peak_day}).",
                    "Increasing HRV trend suggests improved recovery and nervous system balance."
                    if rising
                    else "Declining HRV could indicate fatigue, stress, or overtraining.",
                ]

            case MetricType.VO2_MAX:
                highlights = [
                    f"VO2 Max was highest on Day {peak_day} ({hi} ml/kg/min), "
                    f"lowest on Day {lowest_day} ({lo} ml/kg/min).",
                    "VO2 Max improvement implies better aerobic capacity."
                    if rising
                    else "Decline may indicate fatigue or inadequate training stimulus.",
                ]

        return highlights
