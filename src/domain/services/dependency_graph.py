"""Graph algorithms over the asset dependency registry.

Two queries drive every recalculation:

    affected_set       — which assets change when some base assets change
    calculation_order  — in which order a subset must be recomputed

Both are guarded against malformed (cyclic) registries: affected_set
terminates via a visited set, calculation_order detects back-edges with a
three-state marker and raises CyclicDependencyError naming the cycle.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import TYPE_CHECKING

from src.domain.errors import CyclicDependencyError

if TYPE_CHECKING:
    from src.domain.registry import DependencyRegistry


class _Mark(Enum):
    VISITING = 1
    DONE = 2


def find_cycle(edges: Mapping[str, Sequence[str]]) -> list[str] | None:
    """Return one cycle of the graph as a closed path, or None if it is acyclic.

    edges maps each node to the nodes it depends on.  Nodes referenced only
    as dependencies are treated as leaves.
    """
    marks: dict[str, _Mark] = {}
    path: list[str] = []

    def visit(node: str) -> list[str] | None:
        mark = marks.get(node)
        if mark is _Mark.DONE:
            return None
        if mark is _Mark.VISITING:
            return path[path.index(node):] + [node]
        marks[node] = _Mark.VISITING
        path.append(node)
        for dep in edges.get(node, ()):
            cycle = visit(dep)
            if cycle is not None:
                return cycle
        path.pop()
        marks[node] = _Mark.DONE
        return None

    for node in edges:
        cycle = visit(node)
        if cycle is not None:
            return cycle
    return None


class DependencyGraph:
    """Read-only graph queries over one DependencyRegistry.

    The class holds no mutable state; the registry is immutable after load.
    """

    def __init__(self, registry: DependencyRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> DependencyRegistry:
        return self._registry

    def affected_set(self, changed_ids: Iterable[str]) -> set[str]:
        """Every asset that transitively depends on at least one changed asset.

        The changed ids themselves are never part of the result, even when a
        malformed registry routes a dependency back to one of them.
        """
        changed = set(changed_ids)
        affected: set[str] = set()
        visited: set[str] = set(changed)
        frontier = deque(changed)
        while frontier:
            current = frontier.popleft()
            for dependent in self._registry.dependents_of(current):
                if dependent in visited:
                    continue
                visited.add(dependent)
                affected.add(dependent)
                frontier.append(dependent)
        return affected

    def calculation_order(self, ids: Iterable[str]) -> list[str]:
        """Topological order of ids: each id after its dependencies within ids.

        Dependencies outside the requested subset are ignored (their values
        are taken as already current).  Ids are visited in registry
        declaration order, so the result is deterministic for a given
        subset regardless of the input's iteration order.

        Raises:
            CyclicDependencyError: if the subset contains a dependency cycle.
        """
        subset = set(ids)
        marks: dict[str, _Mark] = {}
        path: list[str] = []
        order: list[str] = []

        def visit(asset_id: str) -> None:
            mark = marks.get(asset_id)
            if mark is _Mark.DONE:
                return
            if mark is _Mark.VISITING:
                raise CyclicDependencyError(path[path.index(asset_id):] + [asset_id])
            marks[asset_id] = _Mark.VISITING
            path.append(asset_id)
            dependency = self._registry.get_dependency(asset_id)
            if dependency is not None:
                for dep_id in dependency.depends_on:
                    if dep_id in subset:
                        visit(dep_id)
            path.pop()
            marks[asset_id] = _Mark.DONE
            order.append(asset_id)

        for asset_id in self._registry.sort_ids(subset):
            visit(asset_id)
        return order

    def recalculation_targets(self, edited_ids: Iterable[str]) -> list[str]:
        """Derived assets to recompute after editing edited_ids, in calculation order."""
        edited = set(edited_ids)
        ordered = self.calculation_order(self.affected_set(edited) | edited)
        return [a for a in ordered if a not in edited]
