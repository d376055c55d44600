"""Map coloring and aggregate summaries over cached records."""

from collections import defaultdict
from dataclasses import dataclass, field

from .countries import OTHER_REGION, region_for
from .models import SentimentRecord

EXTREMES_COUNT = 5


@dataclass
class RegionSummary:
    """Average sentiment of the analyzed countries in a region."""

    name: str
    average: float
    count: int


@dataclass
class GlobalSummary:
    """Aggregate view of every analyzed country.

    Attributes:
        total: Number of analyzed countries
        positive / negative / neutral: Label counts
        average: Mean score, 0.0 when nothing is analyzed
        most_negative / most_positive: Country names at the extremes
        regions: Regional averages, best first; "Other" excluded
    """

    total: int
    positive: int
    negative: int
    neutral: int
    average: float
    most_negative: list[str] = field(default_factory=list)
    most_positive: list[str] = field(default_factory=list)
    regions: list[RegionSummary] = field(default_factory=list)


def build_sentiment_map(records: list[SentimentRecord]) -> dict[str, float]:
    """Country -> score mapping consumed by the map renderer."""
    return {record.country_name: record.sentiment_score for record in records}


def summarize(records: list[SentimentRecord], top: int = EXTREMES_COUNT) -> GlobalSummary:
    """Compute label counts, extremes and regional averages."""
    labels = defaultdict(int)
    for record in records:
        labels[record.sentiment_label] += 1

    by_score = sorted(records, key=lambda r: r.sentiment_score)
    most_negative = [r.country_name for r in by_score[:top] if r.sentiment_score < 0]
    most_positive = [r.country_name for r in reversed(by_score[-top:]) if r.sentiment_score > 0]

    region_scores: dict[str, list[float]] = defaultdict(list)
    for record in records:
        region = region_for(record.country_name)
        if region != OTHER_REGION:
            region_scores[region].append(record.sentiment_score)

    regions = sorted(
        (
            RegionSummary(name=name, average=sum(scores) / len(scores), count=len(scores))
            for name, scores in region_scores.items()
        ),
        key=lambda r: r.average,
        reverse=True,
    )

    total = len(records)
    return GlobalSummary(
        total=total,
        positive=labels["POSITIVE"],
        negative=labels["NEGATIVE"],
        neutral=labels["NEUTRAL"],
        average=sum(r.sentiment_score for r in records) / total if total else 0.0,
        most_negative=most_negative,
        most_positive=most_positive,
        regions=regions,
    )
