"""전역 취약점 타임라인(Global vulnerability timeline).

Buckets dated vulnerabilities by day, ISO week or month and returns the most
recent populated buckets in chronological order. Periods without any
vulnerability are never emitted.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Tuple

from common_lib.errors import InvalidInputError
from common_lib.logger import get_logger

from .repository import SearchRepository

logger = get_logger(__name__)

BucketKey = Tuple[int, ...]


def _day_key(day: date) -> Tuple[BucketKey, str]:
    return (day.year, day.month, day.day), day.strftime("%Y-%m-%d")


def _week_key(day: date) -> Tuple[BucketKey, str]:
    iso_year, iso_week, _ = day.isocalendar()
    return (iso_year, iso_week), f"{iso_year:04d}-W{iso_week:02d}"


def _month_key(day: date) -> Tuple[BucketKey, str]:
    return (day.year, day.month), f"{day.year:04d}-{day.month:02d}"


PERIODS: Dict[str, Callable[[date], Tuple[BucketKey, str]]] = {
    "day": _day_key,
    "week": _week_key,
    "month": _month_key,
}


def rollup(day_rows: Iterable[Dict[str, Any]], period: str, limit: int) -> List[Dict[str, Any]]:
    """Fold per-day aggregates into ``period`` buckets.

    Sorts buckets newest first, keeps ``limit`` of them, then returns them
    oldest first. ``avgScore`` averages only scored vulnerabilities and is
    ``None`` for a bucket where none carries a score.
    """
    key_for = PERIODS[period]
    buckets: Dict[BucketKey, Dict[str, Any]] = {}
    for row in day_rows:
        key, label = key_for(row["day"])
        bucket = buckets.setdefault(key, {"period": label, "count": 0, "scoreTotal": 0.0, "scored": 0})
        bucket["count"] += row["count"]
        bucket["scoreTotal"] += row["scoreTotal"]
        bucket["scored"] += row["scored"]

    newest_first = sorted(buckets.items(), key=lambda item: item[0], reverse=True)[:limit]
    newest_first.reverse()

    return [
        {
            "period": bucket["period"],
            "count": bucket["count"],
            "avgScore": round(bucket["scoreTotal"] / bucket["scored"], 2) if bucket["scored"] else None,
        }
        for _, bucket in newest_first
    ]


class TimelineAggregator:
    """게시일 기준 집계기(Publish-date aggregator)."""

    def __init__(self, repository: SearchRepository) -> None:
        self._repository = repository

    async def timeline(self, period: str = "month", limit: int = 12) -> List[Dict[str, Any]]:
        if period not in PERIODS:
            raise InvalidInputError(field="period", reason=f"must be one of {', '.join(PERIODS)}")
        if limit < 1:
            raise InvalidInputError(field="limit", reason="must be >= 1")

        day_rows = await self._repository.daily_buckets()
        points = rollup(day_rows, period, limit)
        logger.debug("Timeline period=%s limit=%d produced %d buckets", period, limit, len(points))
        return points
