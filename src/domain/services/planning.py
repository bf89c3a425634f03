"""Step plan generation for recalculation requests.

A plan is the fixed, ordered list of steps one recalculation walks through:

    validation
    base_update_<id>          one per edited asset, in caller order
    index_calculation_<id>    one per dependent asset, in calculation order
    external_sync             only when a webhook is configured
    cache_invalidation

Each step carries a depends_on list for progress displays.  Execution order
is always the list order; depends_on never reorders anything.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date

from src.domain.models.enums import CalculationKind, StepKind
from src.domain.models.quotes import format_store_date
from src.domain.models.recalculation import RecalculationStep
from src.domain.services.dependency_graph import DependencyGraph

VALIDATION_STEP_ID = "validation"
EXTERNAL_SYNC_STEP_ID = "external_sync"
CACHE_INVALIDATION_STEP_ID = "cache_invalidation"

# Coarse per-asset cost (ms) used for progress estimates only.
STEP_COST_MS: dict[CalculationKind, int] = {
    CalculationKind.BASE: 300,
    CalculationKind.CALCULATED: 400,
    CalculationKind.SUB_INDEX: 500,
    CalculationKind.INDEX: 700,
}
VALIDATION_COST_MS = 500
EXTERNAL_SYNC_COST_MS = 2000


def base_update_step_id(asset_id: str) -> str:
    return f"base_update_{asset_id}"


def index_calculation_step_id(asset_id: str) -> str:
    return f"index_calculation_{asset_id}"


class StepPlanner:
    """Builds recalculation plans and duration estimates.

    external_sync_enabled mirrors whether an external webhook is configured;
    it decides whether plans contain an external_sync step.
    """

    def __init__(self, graph: DependencyGraph, external_sync_enabled: bool = False) -> None:
        self._graph = graph
        self._external_sync_enabled = external_sync_enabled

    @property
    def external_sync_enabled(self) -> bool:
        return self._external_sync_enabled

    def generate_plan(
        self, edited_ids: Sequence[str], target_date: date
    ) -> list[RecalculationStep]:
        registry = self._graph.registry
        edited = list(dict.fromkeys(edited_ids))
        targets = self._graph.recalculation_targets(edited)
        day = format_store_date(target_date)

        step_ids: dict[str, str] = {a: base_update_step_id(a) for a in edited}
        step_ids.update({a: index_calculation_step_id(a) for a in targets})

        def display_deps(asset_id: str) -> list[str]:
            asset = registry.get_dependency(asset_id)
            if asset is None:
                return []
            return [step_ids[d] for d in asset.depends_on if d in step_ids]

        steps = [
            RecalculationStep(
                id=VALIDATION_STEP_ID,
                name="Validate edited values",
                kind=StepKind.VALIDATION,
                description=f"Checking that {len(edited)} edited asset(s) may be changed",
            )
        ]
        for asset_id in edited:
            asset = registry.get_dependency(asset_id)
            name = registry.display_name(asset_id)
            steps.append(
                RecalculationStep(
                    id=step_ids[asset_id],
                    name=f"Update {name}",
                    kind=StepKind.BASE_UPDATE,
                    description=f"Applying the new value of {name} for {day}",
                    formula=asset.formula if asset is not None else None,
                    depends_on=[VALIDATION_STEP_ID] + display_deps(asset_id),
                )
            )
        for asset_id in targets:
            asset = registry.get_dependency(asset_id)
            name = registry.display_name(asset_id)
            steps.append(
                RecalculationStep(
                    id=step_ids[asset_id],
                    name=f"Recalculate {name}",
                    kind=StepKind.INDEX_CALCULATION,
                    description=f"Recalculating {name} for {day}",
                    formula=asset.formula if asset is not None else None,
                    depends_on=display_deps(asset_id),
                )
            )

        last_step_id = steps[-1].id
        if self._external_sync_enabled:
            steps.append(
                RecalculationStep(
                    id=EXTERNAL_SYNC_STEP_ID,
                    name="Trigger external automation",
                    kind=StepKind.EXTERNAL_SYNC,
                    description="Notifying the N8N workflow of the manual adjustments",
                    depends_on=[step_ids[a] for a in targets] or [last_step_id],
                )
            )
            last_step_id = EXTERNAL_SYNC_STEP_ID
        steps.append(
            RecalculationStep(
                id=CACHE_INVALIDATION_STEP_ID,
                name="Invalidate cached values",
                kind=StepKind.CACHE_INVALIDATION,
                description="Dropping cached values of the affected assets",
                depends_on=[last_step_id],
            )
        )
        return steps

    def estimate_duration(self, ids: Iterable[str]) -> int:
        """Rough wall-clock estimate (ms) for recalculating ids and their dependents."""
        registry = self._graph.registry
        edited = set(ids)
        total = VALIDATION_COST_MS
        for asset_id in edited | self._graph.affected_set(edited):
            asset = registry.get_dependency(asset_id)
            kind = asset.calculation_kind if asset is not None else CalculationKind.BASE
            total += STEP_COST_MS[kind]
        if self._external_sync_enabled:
            total += EXTERNAL_SYNC_COST_MS
        return total
