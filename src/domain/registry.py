"""Dependency Graph Registry.

The registry is configuration, not runtime state: it is built once (from the
built-in UCS definition or a versioned JSON document), validated eagerly and
never mutated afterwards.  Validation rejects references to unknown assets
and dependency cycles, so a bad configuration fails at startup rather than
at the first recalculation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from types import MappingProxyType

from pydantic import ValidationError

from src.domain.errors import ConfigurationError, CyclicDependencyError
from src.domain.models.assets import AssetDependency, RegistryDocument
from src.domain.models.enums import CalculationKind
from src.domain.services.dependency_graph import find_cycle

logger = logging.getLogger(__name__)

_BASE = CalculationKind.BASE
_CALCULATED = CalculationKind.CALCULATED
_SUB_INDEX = CalculationKind.SUB_INDEX
_INDEX = CalculationKind.INDEX


def _asset(id, name, kind, depends_on=(), formula=None, description=None):
    return AssetDependency(
        id=id,
        name=name,
        calculation_kind=kind,
        depends_on=tuple(depends_on),
        formula=formula,
        description=description,
    )


# Built-in UCS registry.  Every derived asset lists exactly the inputs its
# valuation function reads; currencies appear wherever a conversion applies.
UCS_ASSETS: tuple[AssetDependency, ...] = (
    # Currencies
    _asset("usd", "Dólar Americano", _BASE, description="Base currency for USD conversions"),
    _asset("eur", "Euro", _BASE, description="Base currency for EUR conversions"),
    # Agricultural commodities
    _asset("milho", "Milho", _BASE, formula="rent_media = (preco / 60 * 1000) * 7.20"),
    _asset("soja", "Soja", _BASE, formula="rent_media = (preco * usd / 60 * 1000) * 3.3"),
    _asset("boi_gordo", "Boi Gordo", _BASE, formula="rent_media = preco * 18"),
    # Material and environmental commodities
    _asset(
        "madeira",
        "Madeira",
        _BASE,
        formula="rent_media = (preco * 0.375620342 * usd) * 1196.54547720813 * 0.10",
    ),
    _asset("carbono", "Carbono", _BASE, formula="rent_media = preco * eur * 2.59"),
    # Water indices
    _asset(
        "ch2o_agua",
        "CH2O Água",
        _CALCULATED,
        ("boi_gordo", "milho", "soja", "madeira", "carbono", "usd", "eur"),
        "(Boi×35%) + (Milho×30%) + (Soja×35%) + Madeira + Carbono",
        "Water use index built from commodity yields",
    ),
    _asset(
        "custo_agua",
        "Custo Água",
        _CALCULATED,
        ("boi_gordo", "milho", "soja", "madeira", "carbono", "usd", "eur"),
        "((Boi×35%) + (Milho×30%) + (Soja×35%) + Madeira + Carbono) × 7%",
        "Cost of water use (7% of the unrounded CH2O yield base)",
    ),
    # Sub-indices and credits
    _asset(
        "vus",
        "VUS",
        _SUB_INDEX,
        ("boi_gordo", "milho", "soja", "usd"),
        "((Boi×25×35%) + (Milho×25×30%) + (Soja×25×35%)) × (1-4.8%)",
        "Sustainable land-use value (agricultural commodities)",
    ),
    _asset(
        "vmad",
        "Vmad",
        _SUB_INDEX,
        ("madeira", "usd"),
        "rent_media_madeira × 5",
        "Timber value",
    ),
    _asset(
        "carbono_crs",
        "Carbono CRS",
        _SUB_INDEX,
        ("carbono", "eur"),
        "rent_media_carbono × 25",
        "Carbon sustainability credit",
    ),
    _asset(
        "Agua_CRS",
        "Água CRS",
        _SUB_INDEX,
        ("ch2o_agua",),
        "valor_CH2O",
        "Water sustainability credit",
    ),
    # Indices
    _asset(
        "valor_uso_solo",
        "Valor Uso Solo",
        _INDEX,
        ("vus", "vmad", "carbono_crs", "Agua_CRS"),
        "VUS + Vmad + Carbono_CRS + Agua_CRS",
        "Total land-use value",
    ),
    _asset(
        "pdm",
        "PDM",
        _INDEX,
        ("boi_gordo", "milho", "soja", "madeira", "carbono", "usd", "eur", "custo_agua"),
        "(Boi×35%) + (Milho×30%) + (Soja×35%) + Madeira + Carbono + Custo_Água",
        "Monetised deforestation potential",
    ),
    _asset("ucs", "UCS", _INDEX, ("pdm",), "(PDM ÷ 900) ÷ 2", "Universal Carbon Sustainability"),
    _asset(
        "ucs_ase",
        "Índice UCS ASE",
        _INDEX,
        ("ucs", "usd", "eur"),
        "UCS × 2 (with USD and EUR conversions)",
        "Main sustainability credit unit index",
    ),
)


class DependencyRegistry:
    """Immutable, validated map of asset id → AssetDependency.

    Declaration order is preserved and used as the deterministic iteration
    order by the graph algorithms.

    Args:
        assets: Registry entries; ids must be unique.
        validate: When True (default), reject unknown dependency ids and
            cycles.  Only tests of the graph guards should pass False.

    Raises:
        ConfigurationError: duplicate ids or references to unknown assets.
        CyclicDependencyError: the dependency relation contains a cycle.
    """

    def __init__(self, assets: Iterable[AssetDependency], validate: bool = True) -> None:
        entries: dict[str, AssetDependency] = {}
        for asset in assets:
            if asset.id in entries:
                raise ConfigurationError(f"Duplicate asset id in registry: {asset.id!r}")
            entries[asset.id] = asset
        self._entries = MappingProxyType(entries)
        self._positions = {asset_id: i for i, asset_id in enumerate(entries)}

        dependents: dict[str, list[str]] = {asset_id: [] for asset_id in entries}
        for asset in entries.values():
            for dep_id in asset.depends_on:
                dependents.setdefault(dep_id, []).append(asset.id)
        self._dependents = {k: tuple(v) for k, v in dependents.items()}

        if validate:
            self._validate()

    def _validate(self) -> None:
        for asset in self._entries.values():
            unknown = [d for d in asset.depends_on if d not in self._entries]
            if unknown:
                raise ConfigurationError(
                    f"Asset {asset.id!r} depends on unknown asset(s): {', '.join(unknown)}"
                )
        cycle = find_cycle({a.id: a.depends_on for a in self._entries.values()})
        if cycle is not None:
            raise CyclicDependencyError(cycle)

    # ------------------------------------------------------------------ #
    # Lookup                                                               #
    # ------------------------------------------------------------------ #

    def get_dependency(self, asset_id: str) -> AssetDependency | None:
        return self._entries.get(asset_id)

    def all_dependencies(self) -> list[AssetDependency]:
        return list(self._entries.values())

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def can_edit(self, asset_id: str) -> bool:
        asset = self._entries.get(asset_id)
        return asset is not None and asset.is_editable

    def by_kind(self, kind: CalculationKind) -> list[AssetDependency]:
        return [a for a in self._entries.values() if a.calculation_kind is kind]

    def base_assets(self) -> list[AssetDependency]:
        return self.by_kind(CalculationKind.BASE)

    def derived_assets(self) -> list[AssetDependency]:
        return [a for a in self._entries.values() if not a.is_base]

    def dependents_of(self, asset_id: str) -> tuple[str, ...]:
        """Direct dependents of asset_id, in registry declaration order."""
        return self._dependents.get(asset_id, ())

    def display_name(self, asset_id: str) -> str:
        asset = self._entries.get(asset_id)
        return asset.name if asset is not None else asset_id

    def sort_ids(self, asset_ids: Iterable[str]) -> list[str]:
        """Registry declaration order; ids unknown to the registry last, sorted."""
        ids = set(asset_ids)
        known = sorted((i for i in ids if i in self._positions), key=self._positions.__getitem__)
        unknown = sorted(i for i in ids if i not in self._positions)
        return known + unknown

    # ------------------------------------------------------------------ #
    # Construction                                                         #
    # ------------------------------------------------------------------ #

    @classmethod
    def default(cls) -> DependencyRegistry:
        return cls(UCS_ASSETS)

    @classmethod
    def from_document(cls, document: RegistryDocument) -> DependencyRegistry:
        return cls(document.assets)


def load_registry(path: str | Path) -> DependencyRegistry:
    """Load and validate a registry from a versioned JSON document.

    Raises:
        ConfigurationError: unreadable file, malformed document, unknown
            references or cycles (CyclicDependencyError).
    """
    path = Path(path)
    try:
        document = RegistryDocument.model_validate_json(path.read_bytes())
    except OSError as exc:
        raise ConfigurationError(f"Cannot read asset registry {path}: {exc}") from exc
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid asset registry document {path}: {exc}") from exc
    registry = DependencyRegistry.from_document(document)
    logger.info(
        "Loaded asset registry version %s from %s (%d assets)",
        document.version,
        path,
        len(registry),
    )
    return registry


def build_registry(registry_path: str | None = None) -> DependencyRegistry:
    """Registry from registry_path when given, otherwise the built-in UCS registry."""
    if registry_path:
        return load_registry(registry_path)
    return DependencyRegistry.default()
