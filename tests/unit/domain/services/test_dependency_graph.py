"""Tests for src/domain/services/dependency_graph.py.

Covers the closure / exclusion properties of affected_set, topological
validity of calculation_order over every registry subset of a small graph,
and the cycle guards.
"""

from itertools import combinations

import pytest

from src.domain.errors import CyclicDependencyError
from src.domain.models.assets import AssetDependency
from src.domain.models.enums import CalculationKind
from src.domain.registry import DependencyRegistry
from src.domain.services.dependency_graph import DependencyGraph, find_cycle


def _index(asset_id, *depends_on):
    return AssetDependency(
        id=asset_id,
        name=asset_id,
        calculation_kind=CalculationKind.INDEX,
        depends_on=depends_on,
    )


@pytest.fixture()
def graph():
    return DependencyGraph(DependencyRegistry.default())


# --- affected_set ---

def test_affected_set_never_contains_changed_ids(graph):
    for asset in graph.registry.all_dependencies():
        assert asset.id not in graph.affected_set({asset.id})


def test_affected_set_is_closed_under_dependents(graph):
    for asset in graph.registry.all_dependencies():
        affected = graph.affected_set({asset.id})
        for member in affected:
            assert set(graph.registry.dependents_of(member)) <= affected


def test_affected_set_of_boi_gordo(graph):
    assert graph.affected_set({"boi_gordo"}) == {
        "vus",
        "valor_uso_solo",
        "ch2o_agua",
        "custo_agua",
        "Agua_CRS",
        "pdm",
        "ucs",
        "ucs_ase",
    }


def test_affected_set_of_top_index_is_empty(graph):
    assert graph.affected_set({"ucs_ase"}) == set()


def test_affected_set_of_unknown_id_is_empty(graph):
    assert graph.affected_set({"nope"}) == set()


def test_affected_set_excludes_changed_ids_that_depend_on_each_other(graph):
    assert "ucs" not in graph.affected_set({"pdm", "ucs"})


def test_affected_set_terminates_on_cyclic_registry():
    registry = DependencyRegistry([_index("a", "b"), _index("b", "a")], validate=False)
    assert DependencyGraph(registry).affected_set({"a"}) == {"b"}


# --- calculation_order ---

def test_calculation_order_is_topological_for_every_subset(graph):
    ids = [a.id for a in graph.registry.all_dependencies()]
    subsets = [set(c) for r in (1, 2, 3) for c in combinations(ids, r)]
    subsets.append(set(ids))
    for subset in subsets:
        order = graph.calculation_order(subset)
        assert sorted(order) == sorted(subset)
        position = {asset_id: i for i, asset_id in enumerate(order)}
        for asset_id in subset:
            for dep in graph.registry.get_dependency(asset_id).depends_on:
                if dep in subset:
                    assert position[dep] < position[asset_id]


def test_calculation_order_is_deterministic(graph):
    first = graph.calculation_order(["ucs_ase", "ucs", "pdm", "vus"])
    second = graph.calculation_order(["vus", "pdm", "ucs", "ucs_ase"])
    assert first == second


def test_calculation_order_vus_before_valor_uso_solo(graph):
    order = graph.calculation_order({"valor_uso_solo", "vus"})
    assert order == ["vus", "valor_uso_solo"]


def test_calculation_order_raises_on_cycle():
    registry = DependencyRegistry(
        [_index("a", "c"), _index("b", "a"), _index("c", "b")], validate=False
    )
    with pytest.raises(CyclicDependencyError) as exc_info:
        DependencyGraph(registry).calculation_order({"a", "b", "c"})
    assert exc_info.value.cycle[0] == exc_info.value.cycle[-1]
    assert len(exc_info.value.cycle) == 4


def test_calculation_order_ignores_cycle_outside_subset():
    registry = DependencyRegistry([_index("a", "b"), _index("b", "a")], validate=False)
    assert DependencyGraph(registry).calculation_order({"a"}) == ["a"]


# --- recalculation_targets ---

def test_recalculation_targets_for_boi_gordo(graph):
    assert graph.recalculation_targets(["boi_gordo"]) == [
        "ch2o_agua",
        "custo_agua",
        "vus",
        "Agua_CRS",
        "valor_uso_solo",
        "pdm",
        "ucs",
        "ucs_ase",
    ]


def test_recalculation_targets_exclude_edited_assets(graph):
    targets = graph.recalculation_targets(["usd", "eur"])
    assert "usd" not in targets and "eur" not in targets
    assert targets[-1] == "ucs_ase"


# --- find_cycle ---

def test_find_cycle_on_acyclic_graph():
    assert find_cycle({"a": ["b"], "b": []}) is None


def test_find_cycle_self_loop():
    assert find_cycle({"a": ["a"]}) == ["a", "a"]


def test_find_cycle_returns_closed_path():
    assert find_cycle({"a": ["b"], "b": ["c"], "c": ["a"]}) == ["a", "b", "c", "a"]
