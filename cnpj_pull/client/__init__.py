"""Client side of discovery: transport, result cache, run controller, batch lookup."""

from .transport import DiscoveryClient
from .result_cache import CachedResult, ResultCache
from .controller import BackgroundTask, BackgroundTaskController, TaskState
from .batch import BatchItem, BatchLookup, BatchResult, ItemStatus, read_identifiers

__all__ = [
    "DiscoveryClient",
    "CachedResult",
    "ResultCache",
    "BackgroundTask",
    "BackgroundTaskController",
    "TaskState",
    "BatchItem",
    "BatchLookup",
    "BatchResult",
    "ItemStatus",
    "read_identifiers",
]
