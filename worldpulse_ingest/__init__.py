"""WorldPulse ingestion - rate-limited country sentiment refresh."""

from .batch_fetcher import BatchFetcher
from .cache_manager import FreshnessCache, is_stale
from .coordinator import Selection, SelectionCoordinator
from .countries import normalize_country_name
from .models import PermissionDenied, QuotaExhausted, SchedulerSnapshot, SentimentRecord
from .scheduler import IngestionScheduler

__all__ = [
    "BatchFetcher",
    "FreshnessCache",
    "IngestionScheduler",
    "PermissionDenied",
    "QuotaExhausted",
    "SchedulerSnapshot",
    "Selection",
    "SelectionCoordinator",
    "SentimentRecord",
    "is_stale",
    "normalize_country_name",
]
