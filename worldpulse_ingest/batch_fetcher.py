"""Batch fetcher for country sentiment records.

One external call per batch of countries. Rate-limit failures are retried
with exponential backoff and escalate to QuotaExhausted; every other
failure degrades to an empty result so the sweep can move on.
"""

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from .config import INITIAL_BACKOFF_SECONDS, MAX_HEADLINES, MAX_RETRIES
from .countries import normalize_country_name
from .genai_client import GenAIClient
from .models import (
    GenerationError,
    Headline,
    MalformedResponse,
    QuotaExhausted,
    SentimentRecord,
)
from .prompts import BATCH_RESPONSE_SCHEMA, build_batch_prompt


class BatchFetcher:
    """Fetches sentiment records for a batch of countries in one call."""

    def __init__(
        self,
        client: GenAIClient,
        max_retries: int = MAX_RETRIES,
        initial_backoff: float = INITIAL_BACKOFF_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize BatchFetcher.

        Args:
            client: Text-generation client
            max_retries: Retries after the first attempt
            initial_backoff: First backoff delay in seconds, doubled per retry
            sleep: Awaitable sleep used between retries
            clock: Source of epoch seconds stamped on new records
        """
        self._client = client
        self._max_retries = max_retries
        self._initial_backoff = initial_backoff
        self._sleep = sleep
        self._clock = clock

    async def fetch_batch(self, keys: list[str]) -> list[SentimentRecord]:
        """Fetch records for a batch of countries.

        Args:
            keys: Canonical country names

        Returns:
            Parsed records, possibly fewer than requested and in any order.
            Empty on a malformed response or a non-quota failure.

        Raises:
            QuotaExhausted: If rate-limit retries are exhausted
        """
        if not keys:
            return []

        prompt = build_batch_prompt(keys)
        names = ", ".join(keys)
        delay = self._initial_backoff

        for attempt in range(self._max_retries + 1):
            try:
                text = await asyncio.to_thread(
                    self._client.generate, prompt, BATCH_RESPONSE_SCHEMA
                )
            except GenerationError as e:
                retryable = e.is_rate_limit or e.is_transient
                if not retryable:
                    logger.warning(f"[fetcher] Batch failed ({names}): {e.message}")
                    return []
                if attempt == self._max_retries:
                    if e.is_rate_limit:
                        logger.error(f"[fetcher] Quota exhausted after {attempt + 1} attempts")
                        raise QuotaExhausted("Daily API quota exceeded") from e
                    logger.warning(f"[fetcher] Giving up on batch ({names}): {e.message}")
                    return []
                logger.warning(
                    f"[fetcher] Attempt {attempt + 1} failed ({e.message}), "
                    f"retrying in {delay:.0f}s"
                )
                await self._sleep(delay)
                delay *= 2
                continue
            except Exception as e:
                logger.warning(f"[fetcher] Batch failed ({names}): {e}")
                return []

            try:
                return self.parse_response(text)
            except MalformedResponse as e:
                logger.warning(f"[fetcher] Malformed response for ({names}): {e.message}")
                return []

        return []

    def parse_response(self, text: str) -> list[SentimentRecord]:
        """Parse the model's JSON array into records.

        Entries missing a country name or a numeric score are dropped.

        Args:
            text: Raw JSON text

        Returns:
            List of SentimentRecord stamped with the current time

        Raises:
            MalformedResponse: If the text is not a JSON array
        """
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise MalformedResponse(f"Invalid JSON: {e}") from e

        if not isinstance(data, list):
            raise MalformedResponse(f"Expected an array, got {type(data).__name__}")

        now_ms = int(self._clock() * 1000)
        records = []
        for entry in data:
            record = self._parse_entry(entry, now_ms)
            if record is not None:
                records.append(record)
        return records

    def _parse_entry(self, entry: Any, now_ms: int) -> SentimentRecord | None:
        if not isinstance(entry, dict):
            return None
        name = entry.get("countryName")
        score = entry.get("sentimentScore")
        if not isinstance(name, str) or not name.strip():
            return None
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            return None

        headlines = []
        for item in entry.get("headlines") or []:
            if isinstance(item, dict) and item.get("title"):
                headlines.append(Headline.from_dict(item))

        return SentimentRecord(
            country_name=normalize_country_name(name),
            sentiment_score=score,
            state_summary=str(entry.get("stateSummary", "")),
            headlines=headlines[:MAX_HEADLINES],
            last_updated=now_ms,
        )
