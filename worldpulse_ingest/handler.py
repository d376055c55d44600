"""Lambda handler for the WorldPulse daily sweep.

Triggered once a day by EventBridge (or invoked manually) to refresh every
stale country through the ingestion scheduler.
"""

import asyncio
from typing import Any

import boto3
from loguru import logger

from .batch_fetcher import BatchFetcher
from .cache_manager import FreshnessCache
from .config import get_dynamodb_config, get_genai_config, get_scheduler_config
from .countries import DEFAULT_COUNTRIES
from .genai_client import GenAIClient
from .models import PermissionDenied, SchedulerSnapshot
from .scheduler import IngestionScheduler


def _create_cache() -> FreshnessCache:
    """Create the FreshnessCache, in-memory only when no table is configured."""
    dynamodb_config = get_dynamodb_config()
    if not dynamodb_config.table_name:
        logger.warning("[handler] DYNAMODB_TABLE_NAME not set, using in-memory cache only")
        return FreshnessCache(None)

    resource = boto3.resource(
        "dynamodb",
        endpoint_url=dynamodb_config.endpoint_url,
        region_name=dynamodb_config.region_name or None,
    )
    return FreshnessCache(resource.Table(dynamodb_config.table_name))


def _create_scheduler() -> IngestionScheduler:
    """Create and configure the IngestionScheduler instance."""
    scheduler_config = get_scheduler_config()

    fetcher = BatchFetcher(
        GenAIClient(get_genai_config()),
        max_retries=scheduler_config.max_retries,
        initial_backoff=scheduler_config.initial_backoff_seconds,
    )
    return IngestionScheduler(
        cache=_create_cache(),
        fetcher=fetcher,
        batch_size=scheduler_config.batch_size,
        min_interval=scheduler_config.min_interval_seconds,
    )


# Global scheduler instance for Lambda warm starts
_scheduler: IngestionScheduler | None = None


def _get_scheduler() -> IngestionScheduler:
    """Get or create the IngestionScheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = _create_scheduler()
    return _scheduler


async def run_sweep(
    scheduler: IngestionScheduler,
    countries: list[str],
    force: bool = False,
) -> dict[str, Any]:
    """Run one sweep to completion and summarize it.

    Args:
        scheduler: Scheduler to drive
        countries: Countries to refresh
        force: Refresh even fresh countries

    Returns:
        Dictionary with status, processed, remaining and error_message
    """
    stored_before = scheduler.stored_total
    snapshots: list[SchedulerSnapshot] = []
    scheduler.set_callback(snapshots.append)
    try:
        await scheduler.start(countries, force=force)
        await scheduler.join()
    finally:
        scheduler.set_callback(None)

    final = snapshots[-1] if snapshots else None
    result = {
        "status": final.status if final else "COMPLETE",
        "processed": scheduler.stored_total - stored_before,
        "remaining": final.remaining if final else 0,
        "error_message": final.error_message if final else None,
    }
    logger.info(f"[handler] Sweep finished: {result}")
    return result


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Lambda entry point for the sweep.

    Args:
        event: Lambda event containing request parameters:
            - countries: Optional list of countries (default: all known)
            - force: Optional boolean to ignore freshness

    Returns:
        Sweep summary or error information
    """
    countries = event.get("countries") or DEFAULT_COUNTRIES
    force = bool(event.get("force", False))

    try:
        scheduler = _get_scheduler()
        if scheduler.cache.test_connection() == "permission_denied":
            raise PermissionDenied("DynamoDB access denied (connection test)")
        return asyncio.run(run_sweep(scheduler, countries, force))

    except PermissionDenied as e:
        logger.error(f"[handler] Store permission denied: {e.message}")
        return {
            "status": "ERROR",
            "processed": 0,
            "remaining": len(countries),
            "error_message": e.message,
            "error_type": "permission_denied",
        }
    except Exception as e:
        logger.exception("[handler] Sweep failed")
        return {
            "status": "ERROR",
            "processed": 0,
            "remaining": len(countries),
            "error_message": str(e),
            "error_type": "internal_error",
        }

