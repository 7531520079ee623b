"""Tests for the global publication timeline."""
from datetime import date, datetime

import pytest

from common_lib.errors import InvalidInputError
from search_api.app.timeline import TimelineAggregator, rollup
from tests.conftest import make_vulnerability


def _day(day, count=1, score_total=0.0, scored=0):
    return {"day": day, "count": count, "scoreTotal": score_total, "scored": scored}


class TestRollup:
    """Pure bucketing over per-day aggregates."""

    def test_month_buckets_skip_empty_months(self):
        rows = [_day(date(2024, 3, 5), 1, 5.0, 1), _day(date(2024, 7, 20), 1, 9.0, 1)]
        assert rollup(rows, "month", 12) == [
            {"period": "2024-03", "count": 1, "avgScore": 5.0},
            {"period": "2024-07", "count": 1, "avgScore": 9.0},
        ]

    def test_keeps_most_recent_buckets_in_ascending_order(self):
        rows = [_day(date(2024, month, 1)) for month in range(1, 13)]
        points = rollup(rows, "month", 3)
        assert [point["period"] for point in points] == ["2024-10", "2024-11", "2024-12"]

    def test_year_boundary_ordering(self):
        rows = [_day(date(2023, 12, 31)), _day(date(2024, 1, 1)), _day(date(2023, 11, 30))]
        assert [p["period"] for p in rollup(rows, "month", 2)] == ["2023-12", "2024-01"]

    def test_average_ignores_unscored_rows(self):
        rows = [
            _day(date(2024, 3, 1), count=3, score_total=15.0, scored=2),
            _day(date(2024, 3, 9), count=1, score_total=2.333, scored=1),
        ]
        [point] = rollup(rows, "month", 12)
        assert point["count"] == 4
        assert point["avgScore"] == round(17.333 / 3, 2)

    def test_bucket_without_scores_has_no_average(self):
        [point] = rollup([_day(date(2024, 3, 1), count=2)], "month", 12)
        assert point["avgScore"] is None

    def test_day_period(self):
        rows = [_day(date(2024, 3, 1)), _day(date(2024, 3, 3), 2)]
        assert rollup(rows, "day", 10) == [
            {"period": "2024-03-01", "count": 1, "avgScore": None},
            {"period": "2024-03-03", "count": 2, "avgScore": None},
        ]

    def test_week_period_uses_iso_weeks(self):
        # 2024-12-30 belongs to ISO week 1 of 2025, together with 2025-01-02
        rows = [_day(date(2024, 12, 30)), _day(date(2025, 1, 2)), _day(date(2024, 12, 27))]
        assert rollup(rows, "week", 10) == [
            {"period": "2024-W52", "count": 1, "avgScore": None},
            {"period": "2025-W01", "count": 2, "avgScore": None},
        ]


class TestTimelineAggregator:
    @pytest.mark.asyncio
    async def test_march_and_july_only(self, repository, seed):
        await seed(
            make_vulnerability(1, "CVE-2024-0001", 6.0, datetime(2024, 3, 14, 8, 0)),
            make_vulnerability(2, "CVE-2024-0002", 8.0, datetime(2024, 7, 2, 23, 59)),
            make_vulnerability(3, "CVE-2024-0003", 5.0, None),
        )

        points = await TimelineAggregator(repository).timeline("month", 12)

        assert points == [
            {"period": "2024-03", "count": 1, "avgScore": 6.0},
            {"period": "2024-07", "count": 1, "avgScore": 8.0},
        ]

    @pytest.mark.asyncio
    async def test_average_over_scored_records(self, repository, seed):
        await seed(
            make_vulnerability(1, "CVE-2024-0001", 7.0, datetime(2024, 5, 1)),
            make_vulnerability(2, "CVE-2024-0002", 8.0, datetime(2024, 5, 20)),
            make_vulnerability(3, "CVE-2024-0003", None, datetime(2024, 5, 21)),
        )

        [point] = await TimelineAggregator(repository).timeline()
        assert point == {"period": "2024-05", "count": 3, "avgScore": 7.5}

    @pytest.mark.asyncio
    async def test_empty_index(self, repository):
        assert await TimelineAggregator(repository).timeline("day", 5) == []

    @pytest.mark.asyncio
    async def test_unknown_period_is_invalid(self, repository):
        with pytest.raises(InvalidInputError):
            await TimelineAggregator(repository).timeline("year")
