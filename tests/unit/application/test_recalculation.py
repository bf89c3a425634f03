"""Tests for RecalculationService against the in-memory store in conftest.py."""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from src.application.audit import AuditService
from src.application.recalculation import (
    AUTO_CALCULATED_SOURCE,
    RecalculationService,
    manual_edit_source,
)
from src.domain.errors import ExternalSyncError, InvalidEditError
from src.domain.models.assets import AssetDependency
from src.domain.models.enums import CalculationKind, QuoteStatus, StepKind, StepStatus
from src.domain.registry import DependencyRegistry
from src.domain.services.valuation import valuate
from src.infrastructure.cache import QuoteCache

DAY = date(2025, 3, 12)

BOI_GORDO_TARGETS = [
    "ch2o_agua",
    "custo_agua",
    "vus",
    "Agua_CRS",
    "valor_uso_solo",
    "pdm",
    "ucs",
    "ucs_ase",
]


@pytest.fixture()
def seeded(store):
    store.seed(
        DAY,
        usd=5.0,
        eur=6.0,
        milho=60.0,
        soja=120.0,
        boi_gordo=300.0,
        madeira=100.0,
        carbono=10.0,
        vmad=900.0,
        carbono_crs=3800.0,
    )
    return store


@pytest.fixture()
def service(registry, uow_factory):
    return RecalculationService(registry, uow_factory)


def _sync_client(**kwargs):
    client = AsyncMock()
    client.trigger = AsyncMock(**kwargs)
    return client


# --- cascade ---

async def test_boi_gordo_edit_recalculates_its_dependents_in_order(seeded, service):
    result = await service.execute(DAY, {"boi_gordo": 310.0}, user="ana")

    assert result.success is True
    assert result.affected_assets == BOI_GORDO_TARGETS
    assert result.affected_assets.index("vus") < result.affected_assets.index("valor_uso_solo")


async def test_boi_gordo_edit_writes_manual_edit_quote(seeded, service):
    await service.execute(DAY, {"boi_gordo": 310.0}, user="ana")

    quote = seeded.quotes[("boi_gordo", DAY)]
    assert quote.value == 310.0
    assert quote.status == QuoteStatus.MANUAL_EDIT
    assert quote.source == manual_edit_source("ana")


async def test_dependents_are_written_as_auto_calculated(seeded, service):
    await service.execute(DAY, {"boi_gordo": 310.0})

    for asset_id in BOI_GORDO_TARGETS:
        quote = seeded.quotes[(asset_id, DAY)]
        assert quote.status == QuoteStatus.AUTO_CALCULATED
        assert quote.source == AUTO_CALCULATED_SOURCE


async def test_dependent_values_use_the_edited_input(seeded, service):
    await service.execute(DAY, {"boi_gordo": 310.0})

    values = seeded.values(DAY)
    expected_vus = valuate("vus", {**values, "boi_gordo": 310.0})
    assert values["vus"] == expected_vus.value
    assert seeded.quotes[("vus", DAY)].components == expected_vus.components


async def test_chained_dependents_read_freshly_computed_values(seeded, service):
    await service.execute(DAY, {"boi_gordo": 310.0})

    values = seeded.values(DAY)
    assert values["pdm"] == valuate("pdm", values).value
    assert values["ucs"] == valuate("ucs", values).value
    assert values["valor_uso_solo"] == valuate("valor_uso_solo", values).value


async def test_unaffected_assets_keep_their_values(seeded, service):
    await service.execute(DAY, {"boi_gordo": 310.0})

    assert seeded.quotes[("vmad", DAY)].value == 900.0
    assert seeded.quotes[("carbono_crs", DAY)].value == 3800.0


async def test_first_run_for_a_new_date_seeds_zero_quotes(store, service):
    result = await service.execute(DAY, {"milho": 60.0})

    assert result.success is True
    assert store.quotes[("usd", DAY)].value == 0.0
    assert store.quotes[("milho", DAY)].value == 60.0


async def test_execute_is_idempotent(seeded, service):
    await service.execute(DAY, {"boi_gordo": 310.0, "usd": 5.2})
    first = seeded.values(DAY)
    await service.execute(DAY, {"boi_gordo": 310.0, "usd": 5.2})

    assert seeded.values(DAY) == first


async def test_steps_all_complete_on_success(seeded, service):
    result = await service.execute(DAY, {"boi_gordo": 310.0})

    assert all(step.status == StepStatus.COMPLETED for step in result.steps)
    assert result.failed_step is None


# --- validation ---

async def test_editing_an_index_fails_without_writes(seeded, service):
    before = dict(seeded.quotes)

    result = await service.execute(DAY, {"pdm": 1234.0})

    assert result.success is False
    assert "pdm" in result.message
    assert result.failed_step.id == "validation"
    assert result.affected_assets == []
    assert seeded.quotes == before
    assert seeded.commits == 0


async def test_editing_an_unknown_asset_fails_validation(seeded, service):
    result = await service.execute(DAY, {"bitcoin": 1.0})

    assert result.success is False
    assert "bitcoin" in result.message
    assert seeded.commits == 0


async def test_non_finite_value_fails_validation(seeded, service):
    result = await service.execute(DAY, {"milho": float("nan")})

    assert result.success is False
    assert result.failed_step.id == "validation"


def test_validate_edits_rejects_empty_mapping(service):
    with pytest.raises(InvalidEditError):
        service.validate_edits({})


def test_validate_edits_coerces_to_float(service):
    assert service.validate_edits({"milho": 61}) == {"milho": 61.0}


# --- atomicity ---

async def test_failure_mid_cascade_leaves_store_unchanged(seeded, service):
    before = dict(seeded.quotes)
    seeded.fail_on_asset = "valor_uso_solo"

    result = await service.execute(DAY, {"boi_gordo": 310.0})

    assert result.success is False
    assert seeded.quotes == before
    assert seeded.rollbacks == 1


async def test_failure_marks_the_active_step_as_error(seeded, service):
    seeded.fail_on_asset = "valor_uso_solo"

    result = await service.execute(DAY, {"boi_gordo": 310.0})

    assert result.failed_step.id == "index_calculation_valor_uso_solo"
    statuses = {s.id: s.status for s in result.steps}
    assert statuses["index_calculation_vus"] == StepStatus.COMPLETED
    assert statuses["index_calculation_pdm"] == StepStatus.PENDING


async def test_missing_valuation_function_fails_the_transaction(store, uow_factory):
    registry = DependencyRegistry(
        [
            AssetDependency(id="a", name="A", calculation_kind=CalculationKind.BASE),
            AssetDependency(
                id="b", name="B", calculation_kind=CalculationKind.INDEX, depends_on=("a",)
            ),
        ]
    )
    service = RecalculationService(registry, uow_factory)

    result = await service.execute(DAY, {"a": 1.0})

    assert result.success is False
    assert store.quotes == {}


# --- transaction retries ---

async def test_conflict_is_retried(seeded, registry, uow_factory):
    seeded.conflicts_remaining = 1
    service = RecalculationService(registry, uow_factory, max_attempts=3)

    result = await service.execute(DAY, {"boi_gordo": 310.0})

    assert result.success is True
    assert seeded.commits == 1
    assert seeded.quotes[("boi_gordo", DAY)].value == 310.0


async def test_conflicts_beyond_max_attempts_fail(seeded, registry, uow_factory):
    seeded.conflicts_remaining = 5
    service = RecalculationService(registry, uow_factory, max_attempts=2)

    result = await service.execute(DAY, {"boi_gordo": 310.0})

    assert result.success is False
    assert seeded.quotes[("boi_gordo", DAY)].value == 300.0


async def test_exhausted_conflicts_mark_the_last_step_as_error(seeded, registry, uow_factory):
    seeded.conflicts_remaining = 5
    service = RecalculationService(registry, uow_factory, max_attempts=2)

    result = await service.execute(DAY, {"boi_gordo": 310.0})

    assert result.failed_step is not None
    assert result.failed_step.id == "index_calculation_ucs_ase"
    errors = [s.id for s in result.steps if s.status == StepStatus.ERROR]
    assert errors == ["index_calculation_ucs_ase"]


async def test_read_failure_marks_the_first_base_update_as_error(seeded, registry, uow_factory):
    def failing_reads():
        uow = uow_factory()
        begin = uow._begin

        async def begin_then_break_reads():
            await begin()
            uow.quotes.get_or_create = AsyncMock(side_effect=RuntimeError("connection reset"))

        uow._begin = begin_then_break_reads
        return uow

    service = RecalculationService(registry, failing_reads)

    result = await service.execute(DAY, {"boi_gordo": 310.0})

    assert result.success is False
    assert result.failed_step.id == "base_update_boi_gordo"
    assert seeded.commits == 0


async def test_retry_resets_steps_of_the_failed_attempt(seeded, registry, uow_factory):
    seeded.conflicts_remaining = 1
    service = RecalculationService(registry, uow_factory, max_attempts=3)
    seen = []

    await service.execute(DAY, {"boi_gordo": 310.0}, on_progress=seen.append)

    restarted = [p for p in seen if p.current_step == "base_update_boi_gordo"]
    # Two attempts, each reporting start and finish.
    assert len(restarted) == 4
    assert restarted[2].completed_steps == 1


def test_max_attempts_must_be_positive(registry, uow_factory):
    with pytest.raises(ValueError):
        RecalculationService(registry, uow_factory, max_attempts=0)


# --- external sync ---

async def test_sync_disabled_has_no_step_and_flag_false(seeded, service):
    result = await service.execute(DAY, {"boi_gordo": 310.0})

    assert result.external_sync_triggered is False
    assert all(step.kind != StepKind.EXTERNAL_SYNC for step in result.steps)


async def test_sync_success_sets_flag(seeded, registry, uow_factory):
    client = _sync_client(return_value="ok")
    service = RecalculationService(registry, uow_factory, external_sync=client)

    result = await service.execute(DAY, {"boi_gordo": 310.0})

    assert result.external_sync_triggered is True
    client.trigger.assert_awaited_once_with(DAY, {"boi_gordo": 310.0})


async def test_sync_failure_is_not_fatal(seeded, registry, uow_factory):
    client = _sync_client(side_effect=ExternalSyncError("timeout"))
    service = RecalculationService(registry, uow_factory, external_sync=client)

    result = await service.execute(DAY, {"boi_gordo": 310.0})

    assert result.success is True
    assert result.external_sync_triggered is False
    assert seeded.quotes[("boi_gordo", DAY)].value == 310.0
    sync_step = next(s for s in result.steps if s.kind == StepKind.EXTERNAL_SYNC)
    assert sync_step.status == StepStatus.ERROR


async def test_unexpected_sync_error_is_not_fatal(seeded, registry, uow_factory):
    client = _sync_client(side_effect=RuntimeError("malformed webhook url"))
    service = RecalculationService(registry, uow_factory, external_sync=client)

    result = await service.execute(DAY, {"boi_gordo": 310.0})

    assert result.success is True
    assert result.external_sync_triggered is False
    assert result.failed_step.kind == StepKind.EXTERNAL_SYNC
    assert seeded.commits == 1


async def test_sync_is_not_called_when_validation_fails(seeded, registry, uow_factory):
    client = _sync_client(return_value="ok")
    service = RecalculationService(registry, uow_factory, external_sync=client)

    await service.execute(DAY, {"ucs": 1.0})

    client.trigger.assert_not_awaited()


# --- audit and cache ---

async def test_one_audit_entry_per_edited_asset(seeded, registry, uow_factory):
    audit = AuditService(uow_factory)
    service = RecalculationService(registry, uow_factory, audit=audit)

    await service.execute(DAY, {"boi_gordo": 310.0, "milho": 62.0}, user="ana")

    by_asset = {e.asset_id: e for e in seeded.audit_logs}
    assert set(by_asset) == {"boi_gordo", "milho"}
    assert by_asset["boi_gordo"].old_value == 300.0
    assert by_asset["boi_gordo"].new_value == 310.0
    assert by_asset["boi_gordo"].user == "ana"
    assert by_asset["milho"].target_date == DAY
    assert "vus" in by_asset["milho"].affected_assets


async def test_audit_failure_is_not_fatal(seeded, registry, uow_factory):
    audit = AsyncMock(spec=AuditService)
    audit.record_recalculation.side_effect = RuntimeError("audit store down")
    service = RecalculationService(registry, uow_factory, audit=audit)

    result = await service.execute(DAY, {"boi_gordo": 310.0})

    assert result.success is True
    assert seeded.quotes[("boi_gordo", DAY)].value == 310.0


async def test_no_audit_entries_when_validation_fails(seeded, registry, uow_factory):
    service = RecalculationService(registry, uow_factory, audit=AuditService(uow_factory))

    await service.execute(DAY, {"pdm": 1.0})

    assert seeded.audit_logs == []


async def test_cache_entries_of_affected_assets_are_dropped(seeded, registry, uow_factory):
    cache = QuoteCache()
    cache.set("vus", DAY, 1.0)
    cache.set("boi_gordo", DAY, 1.0)
    cache.set("vmad", DAY, 1.0)
    service = RecalculationService(registry, uow_factory, cache=cache)

    await service.execute(DAY, {"boi_gordo": 310.0})

    assert cache.get("vus", DAY) is None
    assert cache.get("boi_gordo", DAY) is None
    assert cache.get("vmad", DAY) == 1.0


# --- progress ---

async def test_progress_callback_reaches_one_hundred_percent(seeded, service):
    seen = []

    await service.execute(DAY, {"boi_gordo": 310.0}, on_progress=seen.append)

    assert seen[0].current_step == "validation"
    assert seen[-1].percentage == 100.0
    assert seen[-1].completed_steps == seen[-1].total_steps


async def test_async_progress_callback_is_awaited(seeded, service):
    callback = AsyncMock()

    await service.execute(DAY, {"milho": 61.0}, on_progress=callback)

    assert callback.await_count > 0


async def test_broken_progress_callback_does_not_abort(seeded, service):
    def explode(_progress):
        raise RuntimeError("listener gone")

    result = await service.execute(DAY, {"milho": 61.0}, on_progress=explode)

    assert result.success is True


# --- preview ---

def test_preview_lists_calculation_order(service):
    preview = service.preview({"madeira": 100.0}, DAY)

    assert preview.edited_assets == ["madeira"]
    assert preview.calculation_order.index("vmad") < preview.calculation_order.index(
        "valor_uso_solo"
    )
    assert set(preview.affected_assets) == set(preview.calculation_order)
    assert preview.estimated_duration_ms > 0


def test_preview_does_not_touch_the_store(store, service):
    service.preview({"madeira": 100.0}, DAY)

    assert store.quotes == {}


def test_preview_rejects_derived_assets(service):
    with pytest.raises(InvalidEditError):
        service.preview({"vus": 1.0})
