"""Data models for WorldPulse ingestion.

This module defines the core data structures used throughout the service:
- Headline: A single news headline attached to a country record
- SentimentRecord: The cached per-country sentiment result
- HistoricalPoint: One archived daily score
- SchedulerSnapshot: Read-only progress state handed to observers
- WorldPulseError and subclasses: The error taxonomy
"""

from dataclasses import dataclass, field
from typing import Any, Literal

from .config import LABEL_THRESHOLD

SentimentLabel = Literal["POSITIVE", "NEGATIVE", "NEUTRAL"]
HeadlineCategory = Literal["GOOD", "BAD", "NEUTRAL"]
SchedulerStatus = Literal["IDLE", "RUNNING", "COMPLETE", "ERROR"]
ConnectionStatus = Literal["ok", "permission_denied", "unavailable", "not_configured"]

HEADLINE_CATEGORIES: tuple[str, ...] = ("GOOD", "BAD", "NEUTRAL")


def label_for_score(score: float) -> SentimentLabel:
    """Derive the sentiment label from a score.

    Args:
        score: Sentiment score in [-1.0, 1.0]

    Returns:
        POSITIVE above the threshold, NEGATIVE below its negation,
        NEUTRAL otherwise
    """
    if score > LABEL_THRESHOLD:
        return "POSITIVE"
    if score < -LABEL_THRESHOLD:
        return "NEGATIVE"
    return "NEUTRAL"


@dataclass
class Headline:
    """A news headline supporting a country's score.

    Attributes:
        title: Headline text
        category: GOOD, BAD or NEUTRAL
        snippet: Very brief context
        source: Publisher name, if known
        url: Link to the article, if known
    """

    title: str
    category: HeadlineCategory
    snippet: str
    source: str | None = None
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "title": self.title,
            "category": self.category,
            "snippet": self.snippet,
        }
        if self.source:
            data["source"] = self.source
        if self.url:
            data["url"] = self.url
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Headline":
        category = str(data.get("category", "NEUTRAL")).upper()
        if category not in HEADLINE_CATEGORIES:
            category = "NEUTRAL"
        return cls(
            title=str(data["title"]),
            category=category,  # type: ignore[arg-type]
            snippet=str(data.get("snippet", "")),
            source=data.get("source") or None,
            url=data.get("url") or None,
        )


@dataclass
class SentimentRecord:
    """Sentiment analysis result for one country.

    Attributes:
        country_name: Canonical country name (the entity key)
        sentiment_score: Score clamped to [-1.0, 1.0]
        state_summary: Short summary of the country's current state
        headlines: Ordered supporting headlines
        last_updated: Epoch milliseconds of the analysis
        sentiment_label: Derived from sentiment_score, never set directly
    """

    country_name: str
    sentiment_score: float
    state_summary: str
    headlines: list[Headline]
    last_updated: int
    sentiment_label: SentimentLabel = field(init=False)

    def __post_init__(self) -> None:
        self.sentiment_score = max(-1.0, min(1.0, float(self.sentiment_score)))
        self.sentiment_label = label_for_score(self.sentiment_score)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase field names the dashboard reads."""
        return {
            "countryName": self.country_name,
            "sentimentScore": self.sentiment_score,
            "sentimentLabel": self.sentiment_label,
            "stateSummary": self.state_summary,
            "headlines": [headline.to_dict() for headline in self.headlines],
            "lastUpdated": self.last_updated,
        }


@dataclass
class HistoricalPoint:
    """One archived daily score for a country.

    Attributes:
        date: Calendar day (YYYY-MM-DD, UTC)
        score: Sentiment score recorded that day
        timestamp: Epoch milliseconds of the archived record
    """

    date: str
    score: float
    timestamp: int


@dataclass(frozen=True)
class SchedulerSnapshot:
    """Read-only view of the scheduler state handed to observers.

    Attributes:
        status: RUNNING, COMPLETE or ERROR (IDLE is never emitted)
        current: Keys of the batch just processed, comma-joined
        remaining: Keys still queued
        error_message: Set only with status ERROR
    """

    status: SchedulerStatus
    current: str | None
    remaining: int
    error_message: str | None = None


class WorldPulseError(Exception):
    """Base error for the ingestion service.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class QuotaExhausted(WorldPulseError):
    """The external API allowance is used up; halts the current run."""


class GenerationError(WorldPulseError):
    """A text-generation call failed.

    Attributes:
        status_code: HTTP status code, None for transport failures
        message: Error body or exception text
    """

    RATE_LIMIT_MARKERS = ("quota", "resource_exhausted", "rate limit")

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_rate_limit(self) -> bool:
        """True for HTTP 429 or a quota/RESOURCE_EXHAUSTED indicator."""
        if self.status_code == 429:
            return True
        lowered = self.message.lower()
        return any(marker in lowered for marker in self.RATE_LIMIT_MARKERS)

    @property
    def is_transient(self) -> bool:
        """True for transport failures and 5xx responses."""
        return self.status_code is None or self.status_code >= 500


class MalformedResponse(WorldPulseError):
    """The generation response did not match the expected shape."""


class CacheError(WorldPulseError):
    """Base error for document store failures."""


class StoreUnavailable(CacheError):
    """The document store could not be reached."""


class PermissionDenied(CacheError):
    """The document store rejected our credentials or access rules."""
