"""Pydantic schemas for training program generation."""

from pydantic import BaseModel, Field


class ProgramPrediction(BaseModel):
    """Classifier verdict for a player, or the fallback derived locally."""

    status: str | None = Field(default=None, description="Predicted player status")
    focus_area: str = Field(description="Main focus of the program")
    training_program: list[str] = Field(description="Exercise lines")
    fallback: bool = Field(default=False, description="True when produced without the classifier")

    def to_exercises(self) -> dict[str, object]:
        """Shape stored in ``TrainingProgram.exercises``."""
        return {"focus_area": self.focus_area, "program": list(self.training_program)}
