"""Asset dependency domain model.

These are pure domain objects — no ORM or persistence concerns.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .enums import CalculationKind


class AssetDependency(BaseModel):
    """One node of the asset dependency graph.

    id doubles as the storage key of the asset's quotes and is stable across
    the system.  depends_on is ordered and must be empty for BASE assets.
    formula is a human-readable description only; the executable formula
    lives in src/domain/services/valuation.py.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    name: str
    depends_on: tuple[str, ...] = Field(default=(), alias="dependsOn")
    calculation_kind: CalculationKind = Field(alias="calculationKind")
    formula: str | None = None
    description: str | None = None

    @field_validator("depends_on")
    @classmethod
    def _no_duplicates(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if len(set(value)) != len(value):
            raise ValueError("depends_on must not contain duplicates")
        return value

    @model_validator(mode="after")
    def _base_has_no_inputs(self) -> AssetDependency:
        if self.calculation_kind is CalculationKind.BASE and self.depends_on:
            raise ValueError(f"base asset {self.id!r} must not declare dependencies")
        if self.calculation_kind is not CalculationKind.BASE and not self.depends_on:
            raise ValueError(f"derived asset {self.id!r} must declare at least one dependency")
        return self

    @property
    def is_base(self) -> bool:
        return self.calculation_kind is CalculationKind.BASE

    @property
    def is_editable(self) -> bool:
        """Only base (externally quoted) assets may be edited directly."""
        return self.is_base


class RegistryDocument(BaseModel):
    """Versioned configuration document holding a full asset registry."""

    model_config = ConfigDict(frozen=True)

    version: str
    assets: list[AssetDependency]
