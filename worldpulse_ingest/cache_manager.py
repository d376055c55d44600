"""Freshness cache for country sentiment records.

This module provides DynamoDB-backed storage of the latest record per
country plus a per-day archive, mirrored into an in-process map that
keeps serving reads and writes when the table is unreachable.
"""

import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from .config import (
    DYNAMODB_ARCHIVE_PREFIX,
    DYNAMODB_COUNTRY_PREFIX,
    DYNAMODB_DAY_PREFIX,
    DYNAMODB_LATEST_PK,
    DYNAMODB_PROBE_PK,
    DYNAMODB_PROBE_SK,
    FRESHNESS_WINDOW_SECONDS,
)
from .countries import normalize_country_name
from .models import (
    CacheError,
    ConnectionStatus,
    Headline,
    HistoricalPoint,
    PermissionDenied,
    SentimentRecord,
    StoreUnavailable,
)

PERMISSION_ERROR_CODES = frozenset(
    {"AccessDeniedException", "AccessDenied", "UnrecognizedClientException"}
)
CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"


def classify_store_error(error: Exception) -> CacheError:
    """Map a botocore failure onto PermissionDenied or StoreUnavailable."""
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        if code in PERMISSION_ERROR_CODES:
            return PermissionDenied(f"DynamoDB access denied ({code})")
        return StoreUnavailable(f"DynamoDB error ({code})")
    return StoreUnavailable(str(error))


def is_stale(
    record: SentimentRecord | None,
    now: float | None = None,
    window_seconds: float = FRESHNESS_WINDOW_SECONDS,
) -> bool:
    """Check whether a record is older than the freshness window.

    Args:
        record: Cached record; a missing record is always stale
        now: Current epoch seconds (defaults to time.time())
        window_seconds: Freshness window length

    Returns:
        True if the record should be refreshed
    """
    if record is None:
        return True
    current = time.time() if now is None else now
    return current * 1000 - record.last_updated > window_seconds * 1000


def _record_to_item(record: SentimentRecord) -> dict[str, Any]:
    return {
        "country_name": record.country_name,
        "sentiment_score": Decimal(str(record.sentiment_score)),
        "sentiment_label": record.sentiment_label,
        "state_summary": record.state_summary,
        "headlines": [headline.to_dict() for headline in record.headlines],
        "last_updated": record.last_updated,
    }


def _item_to_record(item: dict[str, Any]) -> SentimentRecord:
    return SentimentRecord(
        country_name=item["country_name"],
        sentiment_score=float(item["sentiment_score"]),
        state_summary=item.get("state_summary", ""),
        headlines=[Headline.from_dict(h) for h in item.get("headlines", [])],
        last_updated=int(item["last_updated"]),
    )


class FreshnessCache:
    """Keeps the latest sentiment record per country.

    Reads go to DynamoDB first and fall back to the in-memory mirror when
    the table is unavailable. Writes update the mirror first, then the
    table, and never replace a record with an older one.
    """

    def __init__(
        self,
        table: Any | None,
        window_seconds: float = FRESHNESS_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize FreshnessCache.

        Args:
            table: boto3 DynamoDB Table resource, or None for in-memory only
            window_seconds: Freshness window length
            clock: Source of epoch seconds
        """
        self._table = table
        self._window = window_seconds
        self._clock = clock
        self._memory: dict[str, SentimentRecord] = {}

    @property
    def is_configured(self) -> bool:
        return self._table is not None

    def is_stale(self, record: SentimentRecord | None, now: float | None = None) -> bool:
        """Staleness against this cache's window and clock."""
        return is_stale(record, self._clock() if now is None else now, self._window)

    def get(self, key: str) -> SentimentRecord | None:
        """Retrieve the latest record for a country.

        Args:
            key: Country name (normalized before lookup)

        Returns:
            The newest record known to the store or the mirror, None if absent

        Raises:
            PermissionDenied: If the table rejects our access
        """
        key = normalize_country_name(key)
        mirrored = self._memory.get(key)
        if self._table is None:
            return mirrored

        try:
            response = self._table.get_item(
                Key={"PK": DYNAMODB_LATEST_PK, "SK": f"{DYNAMODB_COUNTRY_PREFIX}{key}"}
            )
        except (ClientError, BotoCoreError) as e:
            self._degrade(e, f"read {key}")
            return mirrored

        item = response.get("Item")
        if item is None:
            return mirrored

        stored = _item_to_record(item)
        if mirrored is not None and mirrored.last_updated > stored.last_updated:
            return mirrored
        self._memory[key] = stored
        return stored

    def put(self, record: SentimentRecord) -> bool:
        """Store a record as the latest for its country and archive it.

        Args:
            record: Record to store (country_name normalized before writing)

        Returns:
            True if accepted, False if a newer record was already cached

        Raises:
            PermissionDenied: If the table rejects our access
        """
        key = normalize_country_name(record.country_name)
        record.country_name = key

        mirrored = self._memory.get(key)
        if mirrored is not None and mirrored.last_updated > record.last_updated:
            logger.warning(f"[cache] Rejected out-of-order write for {key}")
            return False
        self._memory[key] = record

        if self._table is None:
            return True

        item = _record_to_item(record)
        newer_or_absent = Attr("last_updated").not_exists() | Attr(
            "last_updated"
        ).lte(record.last_updated)
        day = datetime.fromtimestamp(record.last_updated / 1000, tz=timezone.utc)
        archived_date = day.strftime("%Y-%m-%d")

        try:
            self._table.put_item(
                Item={
                    "PK": DYNAMODB_LATEST_PK,
                    "SK": f"{DYNAMODB_COUNTRY_PREFIX}{key}",
                    **item,
                },
                ConditionExpression=newer_or_absent,
            )
            self._table.put_item(
                Item={
                    "PK": f"{DYNAMODB_ARCHIVE_PREFIX}{key}",
                    "SK": f"{DYNAMODB_DAY_PREFIX}{archived_date}",
                    "archived_date": archived_date,
                    **item,
                },
                ConditionExpression=newer_or_absent,
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == CONDITIONAL_CHECK_FAILED:
                logger.warning(f"[cache] Store holds a newer record for {key}")
                self._memory.pop(key, None)
                self.get(key)
                return False
            self._degrade(e, f"write {key}")
        except BotoCoreError as e:
            self._degrade(e, f"write {key}")

        return True

    def list_all(self) -> list[SentimentRecord]:
        """Return the latest record of every cached country.

        Falls back to the mirror when the table is unavailable.

        Raises:
            PermissionDenied: If the table rejects our access
        """
        if self._table is None:
            return list(self._memory.values())

        try:
            items = self._query_all(Key("PK").eq(DYNAMODB_LATEST_PK))
        except (ClientError, BotoCoreError) as e:
            self._degrade(e, "list")
            return list(self._memory.values())

        for item in items:
            stored = _item_to_record(item)
            mirrored = self._memory.get(stored.country_name)
            if mirrored is None or mirrored.last_updated <= stored.last_updated:
                self._memory[stored.country_name] = stored
        return list(self._memory.values())

    def history(self, key: str) -> list[HistoricalPoint]:
        """Return the archived daily scores of a country, oldest first.

        Raises:
            PermissionDenied: If the table rejects our access
        """
        if self._table is None:
            return []

        key = normalize_country_name(key)
        try:
            items = self._query_all(Key("PK").eq(f"{DYNAMODB_ARCHIVE_PREFIX}{key}"))
        except (ClientError, BotoCoreError) as e:
            self._degrade(e, f"history {key}")
            return []

        points = [
            HistoricalPoint(
                date=item["archived_date"],
                score=float(item["sentiment_score"]),
                timestamp=int(item["last_updated"]),
            )
            for item in items
        ]
        return sorted(points, key=lambda p: p.date)

    def test_connection(self) -> ConnectionStatus:
        """Write a probe document to check table access."""
        if self._table is None:
            return "not_configured"

        try:
            self._table.put_item(
                Item={
                    "PK": DYNAMODB_PROBE_PK,
                    "SK": DYNAMODB_PROBE_SK,
                    "status": "SUCCESS",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }
            )
        except (ClientError, BotoCoreError) as e:
            error = classify_store_error(e)
            logger.error(f"[cache] Connection test failed: {error.message}")
            if isinstance(error, PermissionDenied):
                return "permission_denied"
            return "unavailable"
        return "ok"

    def _query_all(self, condition: Any) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        kwargs: dict[str, Any] = {"KeyConditionExpression": condition}
        while True:
            response = self._table.query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def _degrade(self, error: Exception, operation: str) -> None:
        """Raise PermissionDenied; log and swallow anything else."""
        classified = classify_store_error(error)
        if isinstance(classified, PermissionDenied):
            logger.error(f"[cache] {operation} failed: {classified.message}")
            raise classified from error
        logger.warning(f"[cache] {operation} failed, using in-memory mirror: {classified.message}")
