"""Candidate validation pipeline."""

from .scope import FilterResult, Outcome, ScopeFilter, is_active_status, normalize_size_band
from .orchestrator import BatchOrchestrator, BatchCompleted, MatchFound, OrchestratorResult
from .discovery import DiscoveryResult, DiscoveryService

__all__ = [
    "FilterResult",
    "Outcome",
    "ScopeFilter",
    "is_active_status",
    "normalize_size_band",
    "BatchOrchestrator",
    "BatchCompleted",
    "MatchFound",
    "OrchestratorResult",
    "DiscoveryResult",
    "DiscoveryService",
]
