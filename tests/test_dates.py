from datetime import date, datetime, timedelta, timezone

import pytest

from shopledger.dates import bucket_start, iter_buckets, parse_date_only, parse_date_or_datetime
from shopledger.errors import ValidationError


class TestBuckets:
    @pytest.mark.parametrize(
        "bucket,expected",
        [("day", date(2025, 3, 13)), ("week", date(2025, 3, 10)), ("month", date(2025, 3, 1))],
    )
    def test_bucket_start(self, bucket, expected):
        assert bucket_start(date(2025, 3, 13), bucket) == expected

    def test_datetimes_are_bucketed_in_utc(self):
        # 01:30 in UTC+3 is still the previous day in UTC
        moscow = timezone(timedelta(hours=3))
        assert bucket_start(datetime(2025, 3, 1, 1, 30, tzinfo=moscow), "month") == date(2025, 2, 1)

    def test_naive_datetimes_are_utc(self):
        assert bucket_start(datetime(2025, 3, 31, 23, 59), "day") == date(2025, 3, 31)

    def test_unknown_bucket(self):
        with pytest.raises(ValidationError):
            bucket_start(date(2025, 3, 1), "year")

    def test_single_day_range(self):
        assert iter_buckets(date(2025, 3, 5), date(2025, 3, 5), "month") == [date(2025, 3, 1)]

    def test_leap_february(self):
        days = iter_buckets(date(2024, 2, 27), date(2024, 3, 1), "day")
        assert days[-2:] == [date(2024, 2, 29), date(2024, 3, 1)]


class TestParsing:
    def test_date_only(self):
        assert parse_date_only(" 2025-03-01 ", "from") == date(2025, 3, 1)

    @pytest.mark.parametrize("value", ["", None, "2025-3-1", "2025-03-01T00:00:00Z", "2025-13-01"])
    def test_date_only_rejects(self, value):
        with pytest.raises(ValidationError) as exc:
            parse_date_only(value, "from")
        assert exc.value.issues[0]["field"] == "from"

    def test_date_means_midnight_utc(self):
        assert parse_date_or_datetime("2025-03-01", "expenseDate") == datetime(2025, 3, 1, tzinfo=timezone.utc)

    def test_datetime_is_normalised_to_utc(self):
        parsed = parse_date_or_datetime("2025-03-01T03:00:00+03:00", "expenseDate")
        assert parsed == datetime(2025, 3, 1, tzinfo=timezone.utc)
        assert parsed.utcoffset() == timedelta(0)
        assert parse_date_or_datetime("2025-03-01T10:00:00Z", "expenseDate").hour == 10

    def test_garbage(self):
        with pytest.raises(ValidationError):
            parse_date_or_datetime("yesterday", "expenseDate")
