"""
Pipeline result models.

Structured record of what a successful run executed. Failures are reported
by raising a PipelineError subclass instead (see errors.py), so a result
always describes steps that completed.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StepResult(BaseModel):
    """Outcome of one successfully executed step."""

    model_config = ConfigDict(extra="forbid")

    name: str
    """Step name."""

    command: str
    """Rendered command text, before tokenizing."""

    executable: str
    args: List[str] = Field(default_factory=list)

    returncode: int = 0
    output: str = ""
    """Captured standard output."""

    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    def duration_seconds(self) -> Optional[float]:
        """Execution duration in seconds, if completed."""
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()


class PipelineResult(BaseModel):
    """Outcome of a successful pipeline run."""

    model_config = ConfigDict(extra="forbid")

    steps: List[StepResult] = Field(default_factory=list)

    @property
    def output(self) -> str:
        """Concatenated standard output of all steps."""
        return "".join(step.output for step in self.steps)

    def summary(self) -> str:
        names = ", ".join(step.name for step in self.steps) or "no steps"
        return f"{len(self.steps)} step(s) completed: {names}"
