"""Error taxonomy for the recalculation engine.

Validation errors abort before any write.  Errors raised inside the store
transaction abort the whole transaction and surface as a failed
RecalculationResult.  ExternalSyncError is caught by the orchestrator and
downgraded to a flag on the result.
"""

from __future__ import annotations

from collections.abc import Sequence


class RecalculationError(Exception):
    """Root of every engine-specific error."""


class ConfigurationError(RecalculationError):
    """The asset registry (or its source document) is invalid."""


class CyclicDependencyError(ConfigurationError):
    """The dependency relation is not acyclic.

    ``cycle`` lists the asset ids along the offending path, with the first
    id repeated at the end (e.g. ``["a", "b", "a"]``).
    """

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Cyclic dependency detected: {' -> '.join(self.cycle)}")


class UnknownAssetError(RecalculationError):
    def __init__(self, asset_id: str) -> None:
        self.asset_id = asset_id
        super().__init__(f"Unknown asset: {asset_id!r}")


class InvalidEditError(RecalculationError):
    """An edit targeted an asset that is not a directly editable base asset."""

    def __init__(self, asset_id: str, reason: str | None = None) -> None:
        self.asset_id = asset_id
        super().__init__(
            reason or f"Asset {asset_id!r} cannot be edited manually (only base assets can)"
        )


class MissingInputError(RecalculationError):
    """A valuation function was called without one of its required inputs."""

    def __init__(self, asset_id: str, missing: Sequence[str]) -> None:
        self.asset_id = asset_id
        self.missing = list(missing)
        super().__init__(
            f"Cannot value {asset_id!r}: missing input(s) {', '.join(self.missing)}"
        )


class TransactionConflictError(RecalculationError):
    """The store rejected a transaction because of a concurrent write."""


class ExternalSyncError(RecalculationError):
    """The external automation webhook could not be triggered."""
