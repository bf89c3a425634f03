"""In-memory TTL cache for rendered quote reads.

Entries are keyed by (asset_id, quote_date).  The recalculation service
invalidates the affected keys once a cascade commits, so readers never see a
value older than the last recalculation for more than one request.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from datetime import date
from typing import Any


class QuoteCache:
    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, date], tuple[float, Any]] = {}

    def get(self, asset_id: str, quote_date: date) -> Any | None:
        key = (asset_id, quote_date)
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, asset_id: str, quote_date: date, value: Any) -> None:
        self._entries[(asset_id, quote_date)] = (self._clock() + self._ttl, value)

    def invalidate(self, asset_ids: Iterable[str], quote_date: date | None = None) -> int:
        """Drop entries of the given assets (only for quote_date, if given); return the count."""
        ids = set(asset_ids)
        doomed = [
            key
            for key in self._entries
            if key[0] in ids and (quote_date is None or key[1] == quote_date)
        ]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
