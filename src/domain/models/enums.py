"""Domain enumerations for the UCS index engine.

All string-valued enums use str mixin so they serialize cleanly to JSON
and remain comparable to plain strings (FastAPI / Pydantic default behaviour).
"""

from enum import Enum


class CalculationKind(str, Enum):
    """How an asset's value is obtained.

    Only BASE assets are quoted externally and may be edited by a user;
    every other kind is derived from other assets.
    """

    BASE = "base"
    CALCULATED = "calculated"
    SUB_INDEX = "sub-index"
    INDEX = "index"

    @property
    def is_derived(self) -> bool:
        return self is not CalculationKind.BASE


class QuoteStatus(str, Enum):
    MANUAL_EDIT = "manual_edit"
    AUTO_CALCULATED = "auto_calculated"
    RECALCULATED = "recalculated"


class StepKind(str, Enum):
    VALIDATION = "validation"
    BASE_UPDATE = "base_update"
    INDEX_CALCULATION = "index_calculation"
    EXTERNAL_SYNC = "external_sync"
    CACHE_INVALIDATION = "cache_invalidation"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.COMPLETED, StepStatus.ERROR)


class AuditAction(str, Enum):
    EDIT = "edit"
    RECALCULATE = "recalculate"
    CREATE = "create"
    DELETE = "delete"


class RecalculationPhase(str, Enum):
    """States of one orchestrator invocation; ERROR is absorbing."""

    VALIDATING = "validating"
    UPDATING_BASE = "updating_base"
    CALCULATING_DEPENDENTS = "calculating_dependents"
    SYNCING_EXTERNAL = "syncing_external"
    UPDATING_CACHE = "updating_cache"
    DONE = "done"
    ERROR = "error"
