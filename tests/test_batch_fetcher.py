"""Tests for BatchFetcher.

The text-generation client is mocked; backoff sleeps are recorded.
"""

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from worldpulse_ingest.batch_fetcher import BatchFetcher
from worldpulse_ingest.genai_client import GenAIClient
from worldpulse_ingest.models import GenerationError, QuotaExhausted


def create_entry(country: str, score: float = 0.3) -> dict:
    """Helper to create one model output entry."""
    return {
        "countryName": country,
        "sentimentScore": score,
        "stateSummary": f"{country} is calm.",
        "headlines": [
            {"title": f"{country} headline", "category": "GOOD", "snippet": "Context"}
        ],
    }


def create_fetcher(client: MagicMock, delays: list[float] | None = None) -> BatchFetcher:
    """Helper to create a fetcher that records backoff delays."""
    recorded = delays if delays is not None else []

    async def record_sleep(seconds: float) -> None:
        recorded.append(seconds)

    return BatchFetcher(client, max_retries=2, initial_backoff=15, sleep=record_sleep)


class TestBatchFetcherSuccess:
    """Test successful batch fetches."""

    def test_one_call_for_whole_batch(self) -> None:
        """All keys go into a single generate call."""
        client = MagicMock(spec=GenAIClient)
        client.generate.return_value = json.dumps(
            [create_entry("Iceland"), create_entry("Chile", -0.4)]
        )

        records = asyncio.run(create_fetcher(client).fetch_batch(["Iceland", "Chile"]))

        client.generate.assert_called_once()
        prompt = client.generate.call_args[0][0]
        assert "Iceland" in prompt and "Chile" in prompt
        assert {r.country_name for r in records} == {"Iceland", "Chile"}
        chile = next(r for r in records if r.country_name == "Chile")
        assert chile.sentiment_label == "NEGATIVE"
        assert chile.headlines[0].category == "GOOD"

    def test_returned_names_are_normalized(self) -> None:
        """Model spellings are mapped to canonical keys."""
        client = MagicMock(spec=GenAIClient)
        client.generate.return_value = json.dumps([create_entry("United States of America")])

        records = asyncio.run(create_fetcher(client).fetch_batch(["United States"]))

        assert records[0].country_name == "United States"

    def test_may_return_fewer_records(self) -> None:
        """Invalid entries are dropped, valid ones kept."""
        client = MagicMock(spec=GenAIClient)
        client.generate.return_value = json.dumps(
            [create_entry("Iceland"), {"countryName": "Chile"}, "junk"]
        )

        records = asyncio.run(create_fetcher(client).fetch_batch(["Iceland", "Chile"]))

        assert [r.country_name for r in records] == ["Iceland"]

    def test_empty_batch_makes_no_call(self) -> None:
        """An empty batch returns nothing without calling the client."""
        client = MagicMock(spec=GenAIClient)

        assert asyncio.run(create_fetcher(client).fetch_batch([])) == []
        client.generate.assert_not_called()


class TestBatchFetcherFailures:
    """Test retry, quota and degradation behaviour."""

    def test_malformed_json_returns_empty(self) -> None:
        """Unparseable model output skips the batch."""
        client = MagicMock(spec=GenAIClient)
        client.generate.return_value = "not json"

        assert asyncio.run(create_fetcher(client).fetch_batch(["Iceland"])) == []

    def test_non_array_returns_empty(self) -> None:
        """A top-level object instead of an array skips the batch."""
        client = MagicMock(spec=GenAIClient)
        client.generate.return_value = json.dumps(create_entry("Iceland"))

        assert asyncio.run(create_fetcher(client).fetch_batch(["Iceland"])) == []

    def test_rate_limit_retried_with_doubling_backoff(self) -> None:
        """429 responses back off 15s then 30s before succeeding."""
        client = MagicMock(spec=GenAIClient)
        client.generate.side_effect = [
            GenerationError("RESOURCE_EXHAUSTED: slow down", status_code=429),
            GenerationError("RESOURCE_EXHAUSTED: slow down", status_code=429),
            json.dumps([create_entry("Iceland")]),
        ]
        delays: list[float] = []

        records = asyncio.run(create_fetcher(client, delays).fetch_batch(["Iceland"]))

        assert delays == [15, 30]
        assert len(records) == 1

    def test_quota_exhausted_after_retries(self) -> None:
        """Exhausted rate-limit retries raise QuotaExhausted."""
        client = MagicMock(spec=GenAIClient)
        client.generate.side_effect = GenerationError("Quota exceeded for metric", status_code=400)
        delays: list[float] = []

        with pytest.raises(QuotaExhausted):
            asyncio.run(create_fetcher(client, delays).fetch_batch(["Iceland"]))

        assert client.generate.call_count == 3
        assert delays == [15, 30]

    def test_transient_failure_exhaustion_returns_empty(self) -> None:
        """5xx failures are retried, then the batch is skipped."""
        client = MagicMock(spec=GenAIClient)
        client.generate.side_effect = GenerationError("INTERNAL", status_code=503)

        records = asyncio.run(create_fetcher(client).fetch_batch(["Iceland"]))

        assert records == []
        assert client.generate.call_count == 3

    def test_client_error_not_retried(self) -> None:
        """A plain 4xx failure skips immediately."""
        client = MagicMock(spec=GenAIClient)
        client.generate.side_effect = GenerationError("INVALID_ARGUMENT", status_code=400)

        records = asyncio.run(create_fetcher(client).fetch_batch(["Iceland"]))

        assert records == []
        assert client.generate.call_count == 1

    def test_unexpected_exception_returns_empty(self) -> None:
        """Unexpected client errors skip the batch."""
        client = MagicMock(spec=GenAIClient)
        client.generate.side_effect = RuntimeError("boom")

        assert asyncio.run(create_fetcher(client).fetch_batch(["Iceland"])) == []
