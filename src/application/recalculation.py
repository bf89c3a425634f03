"""Recalculation orchestrator.

One execute() call walks a freshly generated plan through

    validating -> updating_base -> calculating_dependents
               -> syncing_external (when configured) -> updating_cache -> done

with ERROR reachable from every phase.  Base updates and dependent
recalculations run inside a single unit of work, so either the whole cascade
is stored or none of it is.  External sync, the audit batch and cache
invalidation happen after the commit; their failures are logged and do not
undo the recalculation.
"""

from __future__ import annotations

import inspect
import logging
import math
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import date, datetime, timezone
from typing import Protocol

from src.application.audit import AuditService, EditedAsset
from src.domain.errors import (
    ExternalSyncError,
    InvalidEditError,
    TransactionConflictError,
)
from src.domain.models.enums import QuoteStatus, RecalculationPhase, StepKind, StepStatus
from src.domain.models.quotes import Quote
from src.domain.models.recalculation import (
    RecalculationPreview,
    RecalculationProgress,
    RecalculationResult,
    RecalculationStep,
)
from src.domain.registry import DependencyRegistry
from src.domain.repositories.unit_of_work import UnitOfWork, UnitOfWorkFactory
from src.domain.services.dependency_graph import DependencyGraph
from src.domain.services.planning import (
    CACHE_INVALIDATION_STEP_ID,
    EXTERNAL_SYNC_STEP_ID,
    VALIDATION_STEP_ID,
    StepPlanner,
    base_update_step_id,
    index_calculation_step_id,
)
from src.domain.services.valuation import valuate
from src.infrastructure.cache import QuoteCache

logger = logging.getLogger(__name__)

DEFAULT_USER = "Sistema"
AUTO_CALCULATED_SOURCE = "Recálculo Avançado via Auditoria"

ProgressCallback = Callable[[RecalculationProgress], Awaitable[None] | None]

_TRANSACTION_STEP_KINDS = (StepKind.BASE_UPDATE, StepKind.INDEX_CALCULATION)
_TRANSACTION_PHASES = (
    RecalculationPhase.UPDATING_BASE,
    RecalculationPhase.CALCULATING_DEPENDENTS,
)


def manual_edit_source(user: str) -> str:
    return f"Edição Manual - {user}"


class ExternalSync(Protocol):
    async def trigger(self, target_date: date, edited_values: Mapping[str, float]) -> str: ...


class _PlanRun:
    """Step bookkeeping and progress reporting for one execute() call."""

    def __init__(
        self,
        steps: list[RecalculationStep],
        estimated_ms: int,
        on_progress: ProgressCallback | None,
    ) -> None:
        self.steps = steps
        self.phase = RecalculationPhase.VALIDATING
        self.active: str | None = None
        self._by_id = {step.id: step for step in steps}
        self._estimated_ms = estimated_ms
        self._on_progress = on_progress
        self._started = time.perf_counter()
        self._step_started: dict[str, float] = {}

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self._started) * 1000)

    def enter(self, phase: RecalculationPhase) -> None:
        logger.debug("Recalculation phase %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    async def start(self, step_id: str) -> None:
        step = self._by_id.get(step_id)
        if step is None:
            return
        step.status = StepStatus.IN_PROGRESS
        self.active = step_id
        self._step_started[step_id] = time.perf_counter()
        await self._report(step_id)

    async def finish(self, step_id: str, status: StepStatus = StepStatus.COMPLETED) -> None:
        step = self._by_id.get(step_id)
        if step is None:
            return
        step.status = status
        started = self._step_started.get(step_id, self._started)
        step.duration_ms = int((time.perf_counter() - started) * 1000)
        if self.active == step_id:
            self.active = None
        await self._report(step_id)

    def reset_transaction_steps(self) -> None:
        """Return base-update and index steps to PENDING before a new attempt."""
        for step in self.steps:
            if step.kind in _TRANSACTION_STEP_KINDS:
                step.status = StepStatus.PENDING
                step.duration_ms = None
                self._step_started.pop(step.id, None)

    def fail(self) -> None:
        failed_phase = self.phase
        self.enter(RecalculationPhase.ERROR)
        culprit = self.active
        if culprit is None and failed_phase in _TRANSACTION_PHASES:
            culprit = self._last_transaction_step()
        if culprit is not None:
            self._by_id[culprit].status = StepStatus.ERROR

    def _last_transaction_step(self) -> str | None:
        # Failures between steps (reads before the first write, commit) are
        # charged to the last step that ran, or the first one if none ran.
        transactional = [s for s in self.steps if s.kind in _TRANSACTION_STEP_KINDS]
        started = [s for s in transactional if s.status is not StepStatus.PENDING]
        if started:
            return started[-1].id
        return transactional[0].id if transactional else None

    async def _report(self, step_id: str) -> None:
        if self._on_progress is None:
            return
        completed = sum(1 for s in self.steps if s.status is StepStatus.COMPLETED)
        progress = RecalculationProgress(
            current_step=step_id,
            completed_steps=completed,
            total_steps=len(self.steps),
            percentage=100.0 * completed / len(self.steps),
            estimated_time_remaining_ms=max(0, self._estimated_ms - self.elapsed_ms()),
            steps=[s.model_copy() for s in self.steps],
        )
        try:
            outcome = self._on_progress(progress)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            # Progress is advisory; a broken listener must not abort the cascade.
            logger.exception("Progress callback failed on step %s", step_id)


class RecalculationService:
    """Applies manual edits to base assets and recomputes every dependent.

    Args:
        registry: Asset dependency registry (immutable).
        unit_of_work_factory: Returns a fresh UnitOfWork per transaction.
        external_sync: Webhook client; None disables the external_sync step.
        audit: Audit service receiving one batch per successful recalculation.
        cache: Read cache whose entries for the affected assets are dropped.
        max_attempts: Transaction attempts before a conflict becomes a failure.
    """

    def __init__(
        self,
        registry: DependencyRegistry,
        unit_of_work_factory: UnitOfWorkFactory,
        external_sync: ExternalSync | None = None,
        audit: AuditService | None = None,
        cache: QuoteCache | None = None,
        max_attempts: int = 3,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._registry = registry
        self._graph = DependencyGraph(registry)
        self._planner = StepPlanner(self._graph, external_sync_enabled=external_sync is not None)
        self._uow_factory = unit_of_work_factory
        self._external_sync = external_sync
        self._audit = audit
        self._cache = cache
        self._max_attempts = max_attempts

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    @property
    def planner(self) -> StepPlanner:
        return self._planner

    # ------------------------------------------------------------------ #
    # Validation                                                           #
    # ------------------------------------------------------------------ #

    def validate_edits(self, edited_values: Mapping[str, float]) -> dict[str, float]:
        """Return the edits as floats, or raise InvalidEditError naming the first bad id."""
        if not edited_values:
            raise InvalidEditError("", "No edited values were provided")
        edits: dict[str, float] = {}
        for asset_id, raw in edited_values.items():
            if not self._registry.can_edit(asset_id):
                if asset_id in self._registry:
                    raise InvalidEditError(asset_id)
                raise InvalidEditError(asset_id, f"Unknown asset {asset_id!r} cannot be edited")
            try:
                value = float(raw)
            except (TypeError, ValueError):
                raise InvalidEditError(
                    asset_id, f"Value for {asset_id!r} is not a number: {raw!r}"
                ) from None
            if not math.isfinite(value):
                raise InvalidEditError(asset_id, f"Value for {asset_id!r} must be finite")
            edits[asset_id] = value
        return edits

    # ------------------------------------------------------------------ #
    # Preview                                                              #
    # ------------------------------------------------------------------ #

    def preview(
        self, edited_values: Mapping[str, float], target_date: date | None = None
    ) -> RecalculationPreview:
        """Plan and estimate for the edits, without touching the store.

        Raises:
            InvalidEditError: same rules as execute().
        """
        edits = self.validate_edits(edited_values)
        edited_ids = list(edits)
        target_date = target_date or datetime.now(timezone.utc).date()
        return RecalculationPreview(
            edited_assets=edited_ids,
            affected_assets=self._registry.sort_ids(self._graph.affected_set(edited_ids)),
            calculation_order=self._graph.recalculation_targets(edited_ids),
            estimated_duration_ms=self._planner.estimate_duration(edited_ids),
            steps=self._planner.generate_plan(edited_ids, target_date),
        )

    # ------------------------------------------------------------------ #
    # Execution                                                            #
    # ------------------------------------------------------------------ #

    async def execute(
        self,
        target_date: date,
        edited_values: Mapping[str, float],
        user: str = DEFAULT_USER,
        on_progress: ProgressCallback | None = None,
    ) -> RecalculationResult:
        edited_ids = list(edited_values)
        targets = self._graph.recalculation_targets(edited_ids)
        run = _PlanRun(
            self._planner.generate_plan(edited_ids, target_date),
            self._planner.estimate_duration(edited_ids),
            on_progress,
        )
        logger.info(
            "Recalculating %s for %s: %d edited, %d dependent",
            ", ".join(edited_ids) or "nothing",
            target_date.isoformat(),
            len(edited_ids),
            len(targets),
        )
        sync_triggered = False

        try:
            await run.start(VALIDATION_STEP_ID)
            edits = self.validate_edits(edited_values)
            await run.finish(VALIDATION_STEP_ID)

            run.enter(RecalculationPhase.UPDATING_BASE)
            changes = await self._apply_with_retries(run, target_date, edits, targets, user)

            if self._external_sync is not None:
                run.enter(RecalculationPhase.SYNCING_EXTERNAL)
                sync_triggered = await self._trigger_external_sync(run, target_date, edits)

            run.enter(RecalculationPhase.UPDATING_CACHE)
            await run.start(CACHE_INVALIDATION_STEP_ID)
            await self._record_audit(target_date, changes, targets, user)
            if self._cache is not None:
                dropped = self._cache.invalidate(edited_ids + targets, target_date)
                logger.debug("Dropped %d cached quotes", dropped)
            await run.finish(CACHE_INVALIDATION_STEP_ID)
        except InvalidEditError as exc:
            run.fail()
            logger.warning("Rejected recalculation for %s: %s", target_date.isoformat(), exc)
            return self._result(False, f"Recalculation failed: {exc}", [], run, sync_triggered)
        except Exception as exc:
            failed_phase = run.phase
            run.fail()
            logger.exception(
                "Recalculation for %s failed while %s", target_date.isoformat(), failed_phase.value
            )
            return self._result(False, f"Recalculation failed: {exc}", targets, run, sync_triggered)

        run.enter(RecalculationPhase.DONE)
        logger.info(
            "Recalculation for %s done in %d ms (external sync: %s)",
            target_date.isoformat(),
            run.elapsed_ms(),
            sync_triggered,
        )
        return self._result(
            True,
            f"Recalculation completed successfully. {len(targets)} assets updated.",
            targets,
            run,
            sync_triggered,
        )

    @staticmethod
    def _result(
        success: bool,
        message: str,
        targets: Sequence[str],
        run: _PlanRun,
        sync_triggered: bool,
    ) -> RecalculationResult:
        return RecalculationResult(
            success=success,
            message=message,
            affected_assets=list(targets),
            execution_time_ms=run.elapsed_ms(),
            external_sync_triggered=sync_triggered,
            steps=run.steps,
        )

    async def _apply_with_retries(
        self,
        run: _PlanRun,
        target_date: date,
        edits: dict[str, float],
        targets: Sequence[str],
        user: str,
    ) -> dict[str, EditedAsset]:
        for attempt in range(1, self._max_attempts + 1):
            try:
                async with self._uow_factory() as uow:
                    return await self._apply(uow, run, target_date, edits, targets, user)
            except TransactionConflictError:
                if attempt == self._max_attempts:
                    raise
                logger.warning(
                    "Transaction conflict for %s (attempt %d/%d), retrying",
                    target_date.isoformat(),
                    attempt,
                    self._max_attempts,
                )
                run.enter(RecalculationPhase.UPDATING_BASE)
                run.reset_transaction_steps()
        raise AssertionError("unreachable")

    def _read_set(self, edits: Mapping[str, float], targets: Sequence[str]) -> list[str]:
        ids = set(edits) | set(targets)
        for asset_id in targets:
            asset = self._registry.get_dependency(asset_id)
            if asset is not None:
                ids.update(asset.depends_on)
        # Registry order keeps the row-lock order stable across transactions.
        return self._registry.sort_ids(ids)

    async def _apply(
        self,
        uow: UnitOfWork,
        run: _PlanRun,
        target_date: date,
        edits: dict[str, float],
        targets: Sequence[str],
        user: str,
    ) -> dict[str, EditedAsset]:
        quotes: dict[str, Quote] = {}
        for asset_id in self._read_set(edits, targets):
            quotes[asset_id] = await uow.quotes.get_or_create(asset_id, target_date)
        values = {asset_id: quote.value for asset_id, quote in quotes.items()}

        changes: dict[str, EditedAsset] = {}
        for asset_id, new_value in edits.items():
            step_id = base_update_step_id(asset_id)
            await run.start(step_id)
            quote = quotes[asset_id]
            changes[asset_id] = EditedAsset(
                name=self._registry.display_name(asset_id),
                old_value=quote.value,
                new_value=new_value,
            )
            await uow.quotes.save(
                quote.model_copy(
                    update={
                        "value": new_value,
                        "status": QuoteStatus.MANUAL_EDIT,
                        "source": manual_edit_source(user),
                        "timestamp": datetime.now(timezone.utc),
                    }
                )
            )
            values[asset_id] = new_value
            await run.finish(step_id)

        run.enter(RecalculationPhase.CALCULATING_DEPENDENTS)
        for asset_id in targets:
            step_id = index_calculation_step_id(asset_id)
            await run.start(step_id)
            result = valuate(asset_id, values)
            await uow.quotes.save(
                quotes[asset_id].model_copy(
                    update={
                        "value": result.value,
                        "status": QuoteStatus.AUTO_CALCULATED,
                        "source": AUTO_CALCULATED_SOURCE,
                        "components": dict(result.components),
                        "conversions": dict(result.conversions),
                        "timestamp": datetime.now(timezone.utc),
                    }
                )
            )
            values[asset_id] = result.value
            await run.finish(step_id)
        return changes

    async def _trigger_external_sync(
        self, run: _PlanRun, target_date: date, edits: Mapping[str, float]
    ) -> bool:
        await run.start(EXTERNAL_SYNC_STEP_ID)
        try:
            message = await self._external_sync.trigger(target_date, edits)
        except ExternalSyncError as exc:
            logger.warning("External sync failed for %s: %s", target_date.isoformat(), exc)
            await run.finish(EXTERNAL_SYNC_STEP_ID, StepStatus.ERROR)
            return False
        except Exception:
            logger.exception("External sync raised for %s", target_date.isoformat())
            await run.finish(EXTERNAL_SYNC_STEP_ID, StepStatus.ERROR)
            return False
        logger.info("External sync triggered for %s: %s", target_date.isoformat(), message)
        await run.finish(EXTERNAL_SYNC_STEP_ID)
        return True

    async def _record_audit(
        self,
        target_date: date,
        changes: Mapping[str, EditedAsset],
        targets: Sequence[str],
        user: str,
    ) -> None:
        if self._audit is None or not changes:
            return
        try:
            await self._audit.record_recalculation(target_date, changes, targets, user)
        except Exception:
            # The quotes are already committed; a lost audit batch is reported, not undone.
            logger.exception("Could not write audit entries for %s", target_date.isoformat())
