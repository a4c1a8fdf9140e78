"""Pydantic schemas for metric trend analysis."""

from pydantic import BaseModel, Field


class Extreme(BaseModel):
    """Peak or lowest sample of a series."""

    value: float = Field(description="Sample value")
    day: int = Field(description="1-based position of the first occurrence in the series")


class TrendResult(BaseModel):
    """Derived insights for one metric over a reporting window.

    When the series is empty only ``highlights`` is populated.
    """

    highlights: list[str] = Field(description="Human-readable findings")
    trend: float | None = Field(default=None, description="Least-squares slope per sample")
    peak: Extreme | None = Field(default=None, description="Highest sample")
    lowest: Extreme | None = Field(default=None, description="Lowest sample")

    @property
    def has_data(self) -> bool:
        """Whether numeric fields were computed."""
        return self.trend is not None

    def to_dict(self) -> dict:
        """Serialize, omitting numeric fields for empty series."""
        return self.model_dump(exclude_none=True)
