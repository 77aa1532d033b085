from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone

from .errors import ValidationError

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # naive datetimes coming back from the store are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(value: date, days: int = 0) -> datetime:
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc) + timedelta(days=days)


def bucket_start(value: date | datetime, bucket: str) -> date:
    """First calendar day of the UTC bucket containing ``value``.

    Weeks start on Monday, months on the 1st.
    """
    if isinstance(value, datetime):
        value = as_utc(value).date()
    if bucket == "day":
        return value
    if bucket == "week":
        return value - timedelta(days=value.weekday())
    if bucket == "month":
        return value.replace(day=1)
    raise ValidationError(f"Unknown bucket: {bucket}")


def next_bucket(start: date, bucket: str) -> date:
    if bucket == "day":
        return start + timedelta(days=1)
    if bucket == "week":
        return start + timedelta(days=7)
    if bucket == "month":
        if start.month == 12:
            return date(start.year + 1, 1, 1)
        return date(start.year, start.month + 1, 1)
    raise ValidationError(f"Unknown bucket: {bucket}")


def iter_buckets(date_from: date, date_to: date, bucket: str) -> list[date]:
    """Every bucket start touching ``[date_from, date_to]``, in order, gaps included."""
    out: list[date] = []
    cur = bucket_start(date_from, bucket)
    last = bucket_start(date_to, bucket)
    while cur <= last:
        out.append(cur)
        cur = next_bucket(cur, bucket)
    return out


def parse_date_only(value: str, field: str) -> date:
    text = (value or "").strip()
    if not _DATE_ONLY.match(text):
        raise ValidationError(
            f"{field}: use the YYYY-MM-DD format",
            issues=[{"field": field, "message": "Use the YYYY-MM-DD format"}],
        )
    try:
        return date.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(
            f"{field}: invalid date",
            issues=[{"field": field, "message": "Invalid date"}],
        ) from e


def parse_date_or_datetime(value: str, field: str) -> datetime:
    """``YYYY-MM-DD`` means midnight UTC; anything else must be ISO-8601."""
    text = (value or "").strip()
    if _DATE_ONLY.match(text):
        return start_of_day(parse_date_only(text, field))
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError as e:
        raise ValidationError(
            f"{field}: invalid date",
            issues=[{"field": field, "message": "Invalid date"}],
        ) from e
