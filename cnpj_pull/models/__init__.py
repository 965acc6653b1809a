"""Data models for CNPJ discovery."""

from .filters import FilterSet
from .entity import Partner, ResolvedEntity
from .progress import ProgressSnapshot, RunStats
from .events import (
    StatusEvent,
    SearchProgressEvent,
    SearchCompleteEvent,
    MatchEvent,
    ProgressEvent,
    CompleteEvent,
    ErrorEvent,
    StreamEvent,
)

__all__ = [
    "FilterSet",
    "Partner",
    "ResolvedEntity",
    "ProgressSnapshot",
    "RunStats",
    "StatusEvent",
    "SearchProgressEvent",
    "SearchCompleteEvent",
    "MatchEvent",
    "ProgressEvent",
    "CompleteEvent",
    "ErrorEvent",
    "StreamEvent",
]
