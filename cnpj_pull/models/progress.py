"""Run progress counters."""

from pydantic import BaseModel


class ProgressSnapshot(BaseModel):
    """Point-in-time counters for a discovery run."""

    processed: int = 0
    total: int = 0
    matched: int = 0
    rejected_inactive: int = 0
    rejected_out_of_scope: int = 0
    unresolved: int = 0
    cache_hits: int = 0

    # Search phase
    queries_completed: int = 0
    total_queries: int = 0
    candidates_found: int = 0

    @property
    def rejected(self) -> int:
        return self.rejected_inactive + self.rejected_out_of_scope


class RunStats(ProgressSnapshot):
    """Final counters of a finished run."""

    processing_time_ms: int = 0
