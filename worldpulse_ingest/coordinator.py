"""Selection coordinator: serve a user's country pick from cache or refresh.

Reads the cache first. A stale record asks the scheduler to prioritize the
country, then waits for the scheduler's per-key signal while re-reading the
cache each poll interval (another writer may refresh the same table),
falling back to the stale record after the timeout.
"""

import asyncio
from dataclasses import dataclass
from typing import Literal

from loguru import logger

from .cache_manager import FreshnessCache
from .config import POLL_INTERVAL_SECONDS, PRIORITY_WAIT_TIMEOUT_SECONDS
from .countries import normalize_country_name
from .models import SentimentRecord
from .scheduler import IngestionScheduler

SelectionStatus = Literal["fresh", "updated", "stale", "unavailable"]

QUOTA_STALE_WARNING = "Daily API limit reached. Displaying last available report."
QUOTA_UNAVAILABLE_WARNING = "Daily API quota exceeded. Cannot generate new report."
TIMEOUT_STALE_WARNING = "Live update timed out. Displaying last available report."
TIMEOUT_UNAVAILABLE_WARNING = "Analysis timed out or connection slow."


@dataclass
class Selection:
    """Outcome of a country selection.

    Attributes:
        key: Canonical country name
        record: Record to display, None if nothing is available
        status: fresh (cache hit), updated (refreshed now), stale or unavailable
        warning: Message to show next to a stale or missing record
    """

    key: str
    record: SentimentRecord | None
    status: SelectionStatus
    warning: str | None = None


class SelectionCoordinator:
    """Resolves user selections against the cache and the scheduler."""

    def __init__(
        self,
        cache: FreshnessCache,
        scheduler: IngestionScheduler,
        timeout: float = PRIORITY_WAIT_TIMEOUT_SECONDS,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ) -> None:
        self._cache = cache
        self._scheduler = scheduler
        self._timeout = timeout
        self._poll_interval = poll_interval

    async def select(self, raw_name: str) -> Selection:
        """Return the best available record for a selected country."""
        key = normalize_country_name(raw_name)
        cached = await asyncio.to_thread(self._cache.get, key)

        if not self._cache.is_stale(cached):
            return Selection(key=key, record=cached, status="fresh")

        if self._scheduler.is_locked_out():
            logger.warning(f"[coordinator] Quota exhausted, not refreshing {key}")
            return self._fallback(key, cached, QUOTA_STALE_WARNING, QUOTA_UNAVAILABLE_WARNING)

        baseline = cached.last_updated if cached else 0
        signal = self._scheduler.expect(key)
        self._scheduler.prioritize(key)

        fresh = await self._wait_for_newer(key, signal, baseline)
        if fresh is not None:
            return Selection(key=key, record=fresh, status="updated")

        if self._scheduler.is_locked_out():
            return self._fallback(key, cached, QUOTA_STALE_WARNING, QUOTA_UNAVAILABLE_WARNING)
        return self._fallback(key, cached, TIMEOUT_STALE_WARNING, TIMEOUT_UNAVAILABLE_WARNING)

    async def _wait_for_newer(
        self, key: str, signal: asyncio.Future, baseline: int
    ) -> SentimentRecord | None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    return None
                await asyncio.wait({signal}, timeout=min(self._poll_interval, remaining))

                settled = signal.done()
                if settled:
                    record = signal.result()
                    if record is not None and record.last_updated > baseline:
                        return record
                    # The batch that settled the signal may predate the
                    # priority insert; keep waiting while the key is pending.
                    if self._still_pending(key):
                        signal = self._scheduler.expect(key)
                        settled = False

                latest = await asyncio.to_thread(self._cache.get, key)
                if latest is not None and latest.last_updated > baseline:
                    return latest
                if settled:
                    return None
        finally:
            if not signal.done():
                signal.cancel()

    def _still_pending(self, key: str) -> bool:
        if self._scheduler.is_locked_out():
            return False
        return self._scheduler.is_running or key in self._scheduler.queue

    def _fallback(
        self,
        key: str,
        cached: SentimentRecord | None,
        stale_warning: str,
        unavailable_warning: str,
    ) -> Selection:
        if cached is not None:
            return Selection(key=key, record=cached, status="stale", warning=stale_warning)
        return Selection(key=key, record=None, status="unavailable", warning=unavailable_warning)
