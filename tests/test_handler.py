"""Tests for the Lambda sweep handler."""

import asyncio
import time
from unittest.mock import MagicMock, patch

from worldpulse_ingest import handler
from worldpulse_ingest.cache_manager import FreshnessCache
from worldpulse_ingest.models import QuotaExhausted, SentimentRecord
from worldpulse_ingest.scheduler import IngestionScheduler


class StubFetcher:
    """Answers with one record per key unless an error is set."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[list[str]] = []
        self.error = error

    async def fetch_batch(self, keys: list[str]) -> list[SentimentRecord]:
        self.calls.append(list(keys))
        if self.error is not None:
            raise self.error
        return [
            SentimentRecord(
                country_name=key,
                sentiment_score=0.1,
                state_summary="",
                headlines=[],
                last_updated=int(time.time() * 1000),
            )
            for key in keys
        ]


def create_scheduler(fetcher: StubFetcher, cache: FreshnessCache | None = None) -> IngestionScheduler:
    """Helper to create a scheduler without pacing."""
    return IngestionScheduler(
        cache=cache or FreshnessCache(None), fetcher=fetcher, batch_size=2, min_interval=0
    )


class TestRunSweep:
    """Test run_sweep()."""

    def test_sweep_completes(self) -> None:
        """A forced sweep writes every country and completes."""
        fetcher = StubFetcher()

        result = asyncio.run(
            handler.run_sweep(create_scheduler(fetcher), ["Iceland", "Chile", "Peru"], force=True)
        )

        assert result == {"status": "COMPLETE", "processed": 3, "remaining": 0, "error_message": None}
        assert fetcher.calls == [["Iceland", "Chile"], ["Peru"]]

    def test_sweep_reports_quota_error(self) -> None:
        """A quota halt is reported with the keys not attempted."""
        fetcher = StubFetcher(error=QuotaExhausted("quota"))

        result = asyncio.run(
            handler.run_sweep(create_scheduler(fetcher), ["Iceland", "Chile", "Peru"], force=True)
        )

        assert result["status"] == "ERROR"
        assert result["remaining"] == 1
        assert result["processed"] == 0
        assert result["error_message"]

    def test_sweep_with_everything_fresh(self) -> None:
        """Fresh countries are skipped and nothing is processed."""
        cache = FreshnessCache(None)
        fetcher = StubFetcher()
        asyncio.run(handler.run_sweep(create_scheduler(fetcher, cache), ["Iceland"], force=True))

        result = asyncio.run(handler.run_sweep(create_scheduler(fetcher, cache), ["Iceland"]))

        assert result["status"] == "COMPLETE"
        assert result["processed"] == 0
        assert fetcher.calls == [["Iceland"]]

    def test_processed_counts_only_this_sweep(self) -> None:
        """A reused scheduler reports the records stored by each sweep."""
        scheduler = create_scheduler(StubFetcher())

        first = asyncio.run(handler.run_sweep(scheduler, ["Iceland", "Chile"], force=True))
        second = asyncio.run(handler.run_sweep(scheduler, ["Peru"], force=True))

        assert first["processed"] == 2
        assert second["processed"] == 1
        assert scheduler.stored_total == 3


class TestLambdaHandler:
    """Test lambda_handler()."""

    def test_uses_event_parameters(self) -> None:
        """Countries and force are taken from the event."""
        fetcher = StubFetcher()
        scheduler = create_scheduler(fetcher)

        with patch.object(handler, "_get_scheduler", return_value=scheduler):
            result = handler.lambda_handler({"countries": ["USA"], "force": True}, None)

        assert result["status"] == "COMPLETE"
        assert fetcher.calls == [["United States"]]

    def test_permission_denied_surfaces_as_configuration_error(self) -> None:
        """A refused connection test returns a permission_denied payload."""
        scheduler = MagicMock()
        scheduler.cache.test_connection.return_value = "permission_denied"

        with patch.object(handler, "_get_scheduler", return_value=scheduler):
            result = handler.lambda_handler({"countries": ["Iceland"]}, None)

        assert result["status"] == "ERROR"
        assert result["error_type"] == "permission_denied"

    def test_unexpected_error_returns_error_payload(self) -> None:
        """Unexpected failures return an internal_error payload."""
        with patch.object(handler, "_get_scheduler", side_effect=ValueError("no key")):
            result = handler.lambda_handler({}, None)

        assert result["status"] == "ERROR"
        assert result["error_type"] == "internal_error"
        assert result["error_message"] == "no key"
