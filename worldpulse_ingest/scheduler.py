"""Rate-limited ingestion scheduler.

The scheduler is the only component that calls the batch fetcher. It owns
a deduplicated work queue of country keys, drains it one batch at a time
on the running event loop, writes results to the freshness cache and
reports progress to an observer.

State machine: IDLE -> RUNNING -> (RUNNING | COMPLETE | ERROR) -> IDLE.
start() and prioritize() only ever touch the pending queue; a dispatched
batch is fixed until its fetch returns.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from loguru import logger

from .batch_fetcher import BatchFetcher
from .cache_manager import FreshnessCache
from .config import BATCH_SIZE, MIN_REQUEST_INTERVAL_SECONDS, QUOTA_COOLDOWN_SECONDS
from .countries import normalize_country_name
from .models import (
    PermissionDenied,
    QuotaExhausted,
    SchedulerSnapshot,
    SchedulerStatus,
    SentimentRecord,
)

Observer = Callable[[SchedulerSnapshot], None]

QUOTA_ERROR_MESSAGE = "Daily API quota exceeded."


def dedupe_keys(keys: Iterable[str]) -> list[str]:
    """Normalize keys and drop repeats, keeping first-seen order."""
    seen: set[str] = set()
    result = []
    for raw in keys:
        key = normalize_country_name(raw)
        if key and key not in seen:
            seen.add(key)
            result.append(key)
    return result


class IngestionScheduler:
    """Drains a country queue in fixed-size batches under a strict quota.

    Attributes:
        quota_exhausted_at: Epoch seconds of the last quota halt, if any
        resume_after: Epoch seconds before which the quota is assumed spent
        stored_total: Records written since the scheduler was created
    """

    def __init__(
        self,
        cache: FreshnessCache,
        fetcher: BatchFetcher,
        batch_size: int = BATCH_SIZE,
        min_interval: float = MIN_REQUEST_INTERVAL_SECONDS,
        quota_cooldown: float = QUOTA_COOLDOWN_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize IngestionScheduler.

        Args:
            cache: Freshness cache receiving fetched records
            fetcher: Batch fetcher, used by nothing else
            batch_size: Maximum keys per external call
            min_interval: Minimum seconds between two dispatches
            quota_cooldown: Seconds after a quota halt before resume_after
            sleep: Awaitable sleep used for request pacing
            clock: Source of epoch seconds
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._cache = cache
        self._fetcher = fetcher
        self._batch_size = batch_size
        self._min_interval = min_interval
        self._quota_cooldown = quota_cooldown
        self._sleep = sleep
        self._clock = clock

        self._queue: list[str] = []
        self._status: SchedulerStatus = "IDLE"
        self._current: str | None = None
        self._error_message: str | None = None
        self._observer: Observer | None = None
        self._task: asyncio.Task | None = None
        self._waiters: dict[str, list[asyncio.Future]] = {}
        self._last_dispatch: float | None = None
        self._stepping = False

        self.quota_exhausted_at: float | None = None
        self.resume_after: float | None = None
        self.stored_total = 0

    @property
    def cache(self) -> FreshnessCache:
        return self._cache

    @property
    def status(self) -> SchedulerStatus:
        return self._status

    @property
    def queue(self) -> tuple[str, ...]:
        return tuple(self._queue)

    @property
    def remaining(self) -> int:
        return len(self._queue)

    @property
    def error_message(self) -> str | None:
        return self._error_message

    @property
    def is_running(self) -> bool:
        return self._status == "RUNNING"

    def is_locked_out(self, now: float | None = None) -> bool:
        """True while a quota halt is in effect and not explicitly resumed."""
        if self.resume_after is None:
            return False
        current = self._clock() if now is None else now
        return current < self.resume_after

    def snapshot(self) -> SchedulerSnapshot:
        return SchedulerSnapshot(
            status=self._status,
            current=self._current,
            remaining=len(self._queue),
            error_message=self._error_message,
        )

    def set_callback(self, observer: Observer | None) -> None:
        """Register the single observer, replacing any previous one.

        Past snapshots are not replayed.
        """
        self._observer = observer

    async def start(self, keys: Iterable[str], force: bool = False) -> None:
        """Seed or extend the queue and begin draining it.

        Keys are normalized and deduplicated, and merged behind the keys
        already queued. Unless force is set, keys whose cached record is
        still fresh are skipped.

        Args:
            keys: Country names to refresh
            force: Enqueue even fresh keys

        Raises:
            PermissionDenied: If the freshness check is refused by the store
        """
        candidates = [key for key in dedupe_keys(keys) if key not in self._queue]
        if not force:
            candidates = [key for key in candidates if await self._needs_refresh(key)]

        new_keys = [key for key in candidates if key not in self._queue]
        if not new_keys and not self._queue:
            return

        self._resume()
        self._queue.extend(new_keys)

        logger.info(
            f"[scheduler] Queued {len(candidates)} new keys "
            f"({len(self._queue)} pending, force={force})"
        )
        self._ensure_running()

    def prioritize(self, key: str) -> None:
        """Move or insert a key at the front of the queue.

        The next dispatched batch contains the key. A batch already in
        flight is not changed.
        """
        key = normalize_country_name(key)
        self._resume()
        if key in self._queue:
            self._queue.remove(key)
        self._queue.insert(0, key)
        logger.info(f"[scheduler] Prioritized {key}")
        self._ensure_running()

    def stop(self, reason: str = "Stopped") -> None:
        """Discard the pending queue and report ERROR with the given reason.

        A batch in flight still completes and its records are stored.
        """
        self._halt(reason)

    def expect(self, key: str) -> asyncio.Future:
        """Register a one-shot signal for the next write of a key.

        The future resolves with the stored record, or with None when the
        key's batch is skipped or the run halts.
        """
        future = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(normalize_country_name(key), []).append(future)
        return future

    async def wait_for(
        self, key: str, timeout: float | None = None
    ) -> SentimentRecord | None:
        """Wait for the next write of a key; None on skip, halt or timeout."""
        future = self.expect(key)
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            return None

    async def join(self) -> None:
        """Wait until the queue is drained or the run halts."""
        while self._task is not None:
            await asyncio.shield(self._task)

    async def step(self) -> bool:
        """Dispatch one batch and store its results.

        Only one batch is ever in flight. While the drain task started by
        start() or prioritize() is alive, only that task may step.

        Returns:
            True if more work is queued and the scheduler is still running

        Raises:
            RuntimeError: If another step is in flight or the drain task owns the loop
        """
        if self._stepping or (
            self._task is not None and asyncio.current_task() is not self._task
        ):
            raise RuntimeError("A batch is already being dispatched by the scheduler")

        self._stepping = True
        try:
            return await self._step()
        finally:
            self._stepping = False

    async def _step(self) -> bool:
        if self._status != "RUNNING":
            return False
        if not self._queue:
            self._complete()
            return False

        batch = self._queue[: self._batch_size]
        del self._queue[: len(batch)]
        self._current = ", ".join(batch)
        self._last_dispatch = self._clock()
        logger.info(f"[scheduler] Dispatching batch: {self._current}")

        try:
            records = await self._fetcher.fetch_batch(batch)
        except QuotaExhausted as e:
            logger.error(f"[scheduler] Halting, quota exhausted: {e.message}")
            self._halt(QUOTA_ERROR_MESSAGE, quota=True)
            return False
        except Exception as e:
            logger.warning(f"[scheduler] Skipping batch ({self._current}): {e}")
            records = []

        try:
            stored = await self._store(batch, records)
        except PermissionDenied as e:
            self._halt(f"Document store permission denied: {e.message}")
            return False
        except Exception as e:
            logger.exception(f"[scheduler] Storing batch failed ({self._current})")
            self._halt(f"Storing results failed: {e}")
            return False

        self.stored_total += stored
        logger.info(f"[scheduler] Stored {stored}/{len(batch)} ({len(self._queue)} pending)")

        if self._status != "RUNNING":
            return False

        self._emit()
        if not self._queue:
            self._complete()
            return False
        return True

    async def _drain(self) -> None:
        try:
            while True:
                await self._pace()
                if not await self.step():
                    break
        finally:
            self._task = None

    async def _pace(self) -> None:
        if self._last_dispatch is None:
            return
        wait = self._last_dispatch + self._min_interval - self._clock()
        if wait > 0:
            await self._sleep(wait)

    async def _needs_refresh(self, key: str) -> bool:
        record = await asyncio.to_thread(self._cache.get, key)
        return self._cache.is_stale(record)

    async def _store(self, batch: list[str], records: list[SentimentRecord]) -> int:
        """Write records matching the batch; signal waiters for every key."""
        requested = set(batch)
        resolved: set[str] = set()
        stored = 0

        for record in records:
            key = normalize_country_name(record.country_name)
            if key not in requested:
                logger.warning(f"[scheduler] Ignoring unrequested record for {key}")
                continue
            if key in resolved:
                continue
            record.country_name = key
            accepted = await asyncio.to_thread(self._cache.put, record)
            resolved.add(key)
            if accepted:
                stored += 1
                self._resolve(key, record)
            else:
                self._resolve(key, None)

        for key in batch:
            if key not in resolved:
                self._resolve(key, None)
        return stored

    def _ensure_running(self) -> None:
        self._status = "RUNNING"
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._drain())

    def _resume(self) -> None:
        self._error_message = None
        self.resume_after = None

    def _complete(self) -> None:
        self._status = "COMPLETE"
        self._current = None
        logger.info("[scheduler] Queue drained")
        self._emit()
        self._status = "IDLE"

    def _halt(self, message: str, quota: bool = False) -> None:
        remaining = len(self._queue)
        self._queue.clear()
        self._status = "ERROR"
        self._error_message = message
        if quota:
            now = self._clock()
            self.quota_exhausted_at = now
            self.resume_after = now + self._quota_cooldown

        self._emit(remaining=remaining)
        for key in list(self._waiters):
            self._resolve(key, None)
        self._status = "IDLE"

    def _resolve(self, key: str, record: SentimentRecord | None) -> None:
        for future in self._waiters.pop(key, []):
            if not future.done():
                future.set_result(record)

    def _emit(self, remaining: int | None = None) -> None:
        if self._observer is None:
            return
        snapshot = SchedulerSnapshot(
            status=self._status,
            current=self._current,
            remaining=len(self._queue) if remaining is None else remaining,
            error_message=self._error_message,
        )
        try:
            self._observer(snapshot)
        except Exception:
            logger.exception("[scheduler] Observer raised")
