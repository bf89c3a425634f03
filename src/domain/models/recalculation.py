"""Recalculation plan and outcome models.

RecalculationStep      — one progress-trackable unit of a recalculation plan
RecalculationProgress  — advisory snapshot passed to progress callbacks
RecalculationResult    — the single outcome returned to the caller
RecalculationPreview   — plan, affected set and estimate, without side effects

Steps are created fresh for every request and never persisted.  Unlike the
other domain models they are mutable: the orchestrator advances each step's
status in place as it executes the plan.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .enums import StepKind, StepStatus


class RecalculationStep(BaseModel):
    """A step of a recalculation plan.

    depends_on is informational (for progress UIs); execution order is the
    order of the plan list.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str
    name: str
    kind: StepKind
    description: str = ""
    formula: str | None = None
    depends_on: list[str] = Field(default_factory=list)
    status: StepStatus = StepStatus.PENDING
    duration_ms: int | None = Field(default=None, ge=0)


class RecalculationProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_step: str
    completed_steps: int = Field(ge=0)
    total_steps: int = Field(ge=0)
    percentage: float = Field(ge=0.0, le=100.0)
    estimated_time_remaining_ms: int = Field(ge=0)
    steps: list[RecalculationStep]


class RecalculationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    affected_assets: list[str]
    execution_time_ms: int = Field(ge=0)
    external_sync_triggered: bool = False
    steps: list[RecalculationStep]

    @property
    def failed_step(self) -> RecalculationStep | None:
        return next((s for s in self.steps if s.status is StepStatus.ERROR), None)


class RecalculationPreview(BaseModel):
    model_config = ConfigDict(frozen=True)

    edited_assets: list[str]
    affected_assets: list[str]
    calculation_order: list[str]
    estimated_duration_ms: int = Field(ge=0)
    steps: list[RecalculationStep]
