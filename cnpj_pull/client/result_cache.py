"""Short-lived client-side cache of completed discovery results."""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from cnpj_pull.config import settings
from cnpj_pull.models import FilterSet, ResolvedEntity, RunStats


@dataclass
class CachedResult:
    filters: FilterSet
    matches: list[ResolvedEntity]
    stats: RunStats
    stored_at: float

    def age(self, now: float) -> float:
        return now - self.stored_at


class ResultCache:
    """Bounded, time-limited cache keyed on exact filters.

    Oldest entries are evicted first once ``max_entries`` is exceeded.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.client_cache_ttl_minutes * 60
        self.max_entries = max_entries or settings.client_cache_max_entries
        self.clock = clock
        self._entries: OrderedDict[str, CachedResult] = OrderedDict()

    def get(self, filters: FilterSet) -> Optional[CachedResult]:
        key = filters.cache_key()
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.age(self.clock()) >= self.ttl_seconds:
            del self._entries[key]
            return None
        return entry

    def put(self, filters: FilterSet, matches: list[ResolvedEntity], stats: RunStats) -> None:
        key = filters.cache_key()
        self._entries.pop(key, None)
        self._entries[key] = CachedResult(
            filters=filters,
            matches=list(matches),
            stats=stats,
            stored_at=self.clock(),
        )
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
