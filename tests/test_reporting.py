"""Tests for map coloring and aggregate summaries."""

from worldpulse_ingest.models import SentimentRecord
from worldpulse_ingest.reporting import build_sentiment_map, summarize


def create_record(country: str, score: float) -> SentimentRecord:
    """Helper to create a SentimentRecord."""
    return SentimentRecord(
        country_name=country,
        sentiment_score=score,
        state_summary="",
        headlines=[],
        last_updated=1,
    )


class TestBuildSentimentMap:
    def test_maps_country_to_score(self) -> None:
        """The map holds one score per country."""
        records = [create_record("Iceland", 0.3), create_record("Chile", -0.2)]

        assert build_sentiment_map(records) == {"Iceland": 0.3, "Chile": -0.2}


class TestSummarize:
    """Test summarize()."""

    def test_counts_and_extremes(self) -> None:
        """Label counts and extremes are computed."""
        records = [
            create_record("Iceland", 0.5),
            create_record("Norway", 0.1),
            create_record("Chile", -0.6),
            create_record("Peru", 0.0),
            create_record("Atlantis", -0.2),
        ]

        summary = summarize(records, top=2)

        assert summary.total == 5
        assert (summary.positive, summary.negative, summary.neutral) == (2, 2, 1)
        assert summary.most_negative == ["Chile", "Atlantis"]
        assert summary.most_positive == ["Iceland", "Norway"]

    def test_regional_averages_exclude_other(self) -> None:
        """Regional averages skip unlisted countries."""
        records = [
            create_record("Iceland", 0.4),
            create_record("Norway", 0.2),
            create_record("Chile", -0.6),
            create_record("Atlantis", 1.0),
        ]

        summary = summarize(records)

        names = [r.name for r in summary.regions]
        assert names == ["Europe", "South America"]
        assert abs(summary.regions[0].average - 0.3) < 1e-9
        assert summary.regions[0].count == 2

    def test_empty_input(self) -> None:
        """An empty record set gives an empty summary."""
        summary = summarize([])

        assert summary.total == 0
        assert summary.average == 0.0
        assert summary.regions == []
