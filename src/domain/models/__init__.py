"""Domain model package.

All domain objects are pure Python / Pydantic models with no ORM or
infrastructure dependencies.  Import from this package to avoid coupling
application code to individual module paths.
"""

from .assets import AssetDependency, RegistryDocument
from .audit import AuditLogEntry
from .enums import (
    AuditAction,
    CalculationKind,
    QuoteStatus,
    RecalculationPhase,
    StepKind,
    StepStatus,
)
from .quotes import Quote, format_store_date, parse_store_date
from .recalculation import (
    RecalculationPreview,
    RecalculationProgress,
    RecalculationResult,
    RecalculationStep,
)

__all__ = [
    # enums
    "AuditAction",
    "CalculationKind",
    "QuoteStatus",
    "RecalculationPhase",
    "StepKind",
    "StepStatus",
    # assets
    "AssetDependency",
    "RegistryDocument",
    # quotes
    "Quote",
    "format_store_date",
    "parse_store_date",
    # audit
    "AuditLogEntry",
    # recalculation
    "RecalculationStep",
    "RecalculationProgress",
    "RecalculationResult",
    "RecalculationPreview",
]
