"""Paid-revenue analytics over UTC date ranges.

Read-only. Every series is continuous: one point per bucket from the bucket
containing ``date_from`` to the bucket containing ``date_to``, with empty
buckets reported as zeros.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from psycopg import Connection

from .audit import json_value
from .config import BUCKETS
from .db import Db
from .dates import bucket_start, iter_buckets, parse_date_only, utcnow
from .domain import Actor, DateRange
from .errors import Forbidden, ValidationError
from .money import line_total
from .repositories.analytics_repo import AnalyticsRepository

logger = logging.getLogger(__name__)


def parse_range(
    date_from: str | None,
    date_to: str | None,
    bucket: str | None,
    *,
    default_bucket: str = "month",
    today: date | None = None,
) -> DateRange:
    """Defaults to the current UTC month up to and including today."""
    today = today or utcnow().date()
    start = parse_date_only(date_from, "from") if date_from else today.replace(day=1)
    end = parse_date_only(date_to, "to") if date_to else today
    if start > end:
        raise ValidationError(
            "from: must not be after to",
            issues=[{"field": "from", "message": "must not be after to"}],
        )
    bucket = bucket or default_bucket
    if bucket not in BUCKETS:
        raise ValidationError(
            f"bucket: must be one of {list(BUCKETS)}",
            issues=[{"field": "bucket", "message": f"must be one of {list(BUCKETS)}"}],
        )
    return DateRange(date_from=start, date_to=end, bucket=bucket)


@dataclass(frozen=True)
class SeriesPoint:
    bucket_start: date
    labor_cents: int = 0
    commissions_cents: int = 0
    expenses_cents: int = 0

    @property
    def net_profit_cents(self) -> int:
        return self.labor_cents - self.commissions_cents - self.expenses_cents

    def to_dict(self) -> dict:
        return {
            "bucketStart": self.bucket_start.isoformat(),
            "laborRevenuePaidCents": self.labor_cents,
            "commissionsPaidCents": self.commissions_cents,
            "expensesCents": self.expenses_cents,
            "netProfitCents": self.net_profit_cents,
        }


@dataclass(frozen=True)
class PerformerRollup:
    performer_id: int
    name: str
    labor_cents: int
    commission_cents: int

    def to_dict(self) -> dict:
        return {
            "performerId": self.performer_id,
            "name": self.name,
            "laborCents": self.labor_cents,
            "commissionCents": self.commission_cents,
        }


def _range_dict(rng: DateRange) -> dict:
    return {"from": rng.date_from.isoformat(), "to": rng.date_to.isoformat(), "bucket": rng.bucket}


@dataclass(frozen=True)
class ShopReport:
    range: DateRange
    series: list[SeriesPoint]
    by_performer: list[PerformerRollup]

    @property
    def labor_cents(self) -> int:
        return sum(p.labor_cents for p in self.series)

    @property
    def commissions_cents(self) -> int:
        return sum(p.commissions_cents for p in self.series)

    @property
    def expenses_cents(self) -> int:
        return sum(p.expenses_cents for p in self.series)

    @property
    def net_profit_cents(self) -> int:
        return self.labor_cents - self.commissions_cents - self.expenses_cents

    def to_dict(self) -> dict:
        return {
            "range": _range_dict(self.range),
            "totals": {
                "laborRevenuePaidCents": self.labor_cents,
                "commissionsPaidCents": self.commissions_cents,
                "expensesCents": self.expenses_cents,
                "netProfitCents": self.net_profit_cents,
            },
            "series": [p.to_dict() for p in self.series],
            "byPerformer": [r.to_dict() for r in self.by_performer],
        }


@dataclass
class CommissionReport:
    range: DateRange
    labor_cents: int = 0
    commission_cents: int = 0
    series: list[dict] = field(default_factory=list)
    by_order: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "range": _range_dict(self.range),
            "totals": {"commissionCents": self.commission_cents, "laborCents": self.labor_cents},
            "series": [
                {
                    "bucketStart": p["bucket_start"].isoformat(),
                    "laborCents": p["labor_cents"],
                    "commissionCents": p["commission_cents"],
                }
                for p in self.series
            ],
            "byOrder": [
                {
                    "orderId": o["order_id"],
                    "title": o["title"],
                    "guitarSerial": o["guitar_serial"],
                    "paidAt": json_value(o["paid_at"]),
                    "laborCents": o["labor_cents"],
                    "commissionCents": o["commission_cents"],
                    "lines": [
                        {
                            "id": ln["id"],
                            "serviceName": ln["service_name"],
                            "unitPriceCents": ln["unit_price_cents"],
                            "quantity": ln["quantity"],
                            "lineTotalCents": ln["line_total_cents"],
                            "commissionPctSnapshot": ln["commission_pct_snapshot"],
                            "commissionCentsSnapshot": ln["commission_cents_snapshot"],
                        }
                        for ln in o["lines"]
                    ],
                }
                for o in self.by_order
            ],
        }


def fill_series(rng: DateRange, *columns: tuple[str, list[dict]]) -> list[dict]:
    """Merge ``(name, rows)`` bucket rows onto the full list of bucket starts.

    Rows are ``{"bucket_start": date, "cents": int}``; missing buckets get 0.
    """
    points = {start: {"bucket_start": start} for start in iter_buckets(rng.date_from, rng.date_to, rng.bucket)}
    for point in points.values():
        for name, _ in columns:
            point[name] = 0
    for name, rows in columns:
        for row in rows:
            key = bucket_start(row["bucket_start"], rng.bucket)
            if key in points:
                points[key][name] += int(row["cents"])
    return list(points.values())


def rollup_sort_key(r: PerformerRollup):
    return (-r.commission_cents, -r.labor_cents, r.name)


def aggregate(conn: Connection, repo: AnalyticsRepository, rng: DateRange) -> ShopReport:
    kw = {"start": rng.start, "end_exclusive": rng.end_exclusive}
    points = fill_series(
        rng,
        ("labor_cents", repo.labor_by_bucket(conn, bucket=rng.bucket, **kw)),
        ("commissions_cents", repo.commissions_by_bucket(conn, bucket=rng.bucket, **kw)),
        ("expenses_cents", repo.expenses_by_bucket(conn, bucket=rng.bucket, **kw)),
    )
    rollup = [
        PerformerRollup(
            performer_id=r["performer_id"],
            name=r["name"],
            labor_cents=int(r["labor_cents"]),
            commission_cents=int(r["commission_cents"]),
        )
        for r in repo.by_performer(conn, **kw)
    ]
    return ShopReport(
        range=rng,
        series=[SeriesPoint(**p) for p in points],
        by_performer=sorted(rollup, key=rollup_sort_key),
    )


def performer_commission(conn: Connection, repo: AnalyticsRepository, actor: Actor, rng: DateRange) -> CommissionReport:
    # admins never earn commission
    if actor.is_admin:
        return CommissionReport(range=rng)

    lines = repo.performer_lines(conn, performer_id=actor.id, start=rng.start, end_exclusive=rng.end_exclusive)

    by_order: dict[int, dict] = {}
    labor_rows, commission_rows = [], []
    for ln in lines:
        total = line_total(ln["unit_price_cents"], ln["quantity"])
        cents = int(ln["commission_cents_snapshot"])
        order = by_order.setdefault(
            ln["order_id"],
            {
                "order_id": ln["order_id"],
                "title": ln["order_title"],
                "guitar_serial": ln["guitar_serial"],
                "paid_at": ln["paid_at"],
                "labor_cents": 0,
                "commission_cents": 0,
                "lines": [],
            },
        )
        order["labor_cents"] += total
        order["commission_cents"] += cents
        order["lines"].append({**ln, "line_total_cents": total})
        labor_rows.append({"bucket_start": ln["paid_at"], "cents": total})
        commission_rows.append({"bucket_start": ln["paid_at"], "cents": cents})

    series = fill_series(rng, ("labor_cents", labor_rows), ("commission_cents", commission_rows))
    return CommissionReport(
        range=rng,
        labor_cents=sum(p["labor_cents"] for p in series),
        commission_cents=sum(p["commission_cents"] for p in series),
        series=series,
        by_order=list(by_order.values()),
    )


class AnalyticsService:
    def __init__(self, db: Db, *, analytics_repo: AnalyticsRepository, default_bucket: str = "month") -> None:
        self.db = db
        self.analytics_repo = analytics_repo
        self.default_bucket = default_bucket

    def shop_report(
        self,
        actor: Actor,
        date_from: str | None = None,
        date_to: str | None = None,
        bucket: str | None = None,
    ) -> ShopReport:
        if not actor.is_admin:
            raise Forbidden("Admin rights required")
        rng = parse_range(date_from, date_to, bucket, default_bucket=self.default_bucket)
        with self.db.session() as conn:
            report = aggregate(conn, self.analytics_repo, rng)
        logger.debug("shop report %s..%s by %s: %s points", rng.date_from, rng.date_to, rng.bucket, len(report.series))
        return report

    def my_commission(
        self,
        actor: Actor,
        date_from: str | None = None,
        date_to: str | None = None,
        bucket: str | None = None,
    ) -> CommissionReport:
        rng = parse_range(date_from, date_to, bucket, default_bucket=self.default_bucket)
        with self.db.session() as conn:
            return performer_commission(conn, self.analytics_repo, actor, rng)
