from __future__ import annotations

from datetime import datetime

from psycopg import Connection

from ..db import fetch_all

# Bucketing happens in UTC; date_trunc('week') is Monday-aligned in PostgreSQL.


class AnalyticsRepository:
    def labor_by_bucket(self, conn: Connection, *, start: datetime, end_exclusive: datetime, bucket: str) -> list[dict]:
        cur = conn.execute(
            """
            SELECT
              date_trunc(%s::text, o.paid_at AT TIME ZONE 'UTC')::date AS bucket_start,
              COALESCE(SUM(o.labor_subtotal_cents), 0)::bigint AS cents
            FROM shop_order o
            WHERE o.status = 'PAID'
              AND o.paid_at >= %s
              AND o.paid_at < %s
            GROUP BY 1
            ORDER BY 1;
            """,
            (bucket, start, end_exclusive),
        )
        return fetch_all(cur)

    def commissions_by_bucket(
        self, conn: Connection, *, start: datetime, end_exclusive: datetime, bucket: str
    ) -> list[dict]:
        cur = conn.execute(
            """
            SELECT
              date_trunc(%s::text, o.paid_at AT TIME ZONE 'UTC')::date AS bucket_start,
              COALESCE(SUM(w.commission_cents_snapshot), 0)::bigint AS cents
            FROM order_work w
            JOIN shop_order o ON o.id = w.order_id
            WHERE o.status = 'PAID'
              AND o.paid_at >= %s
              AND o.paid_at < %s
            GROUP BY 1
            ORDER BY 1;
            """,
            (bucket, start, end_exclusive),
        )
        return fetch_all(cur)

    def expenses_by_bucket(
        self, conn: Connection, *, start: datetime, end_exclusive: datetime, bucket: str
    ) -> list[dict]:
        cur = conn.execute(
            """
            SELECT
              date_trunc(%s::text, e.expense_date AT TIME ZONE 'UTC')::date AS bucket_start,
              COALESCE(SUM(e.amount_cents), 0)::bigint AS cents
            FROM expense e
            WHERE e.expense_date >= %s
              AND e.expense_date < %s
            GROUP BY 1
            ORDER BY 1;
            """,
            (bucket, start, end_exclusive),
        )
        return fetch_all(cur)

    def by_performer(self, conn: Connection, *, start: datetime, end_exclusive: datetime) -> list[dict]:
        cur = conn.execute(
            """
            SELECT
              w.performer_id,
              u.name,
              COALESCE(SUM(w.unit_price_cents::bigint * w.quantity), 0)::bigint AS labor_cents,
              COALESCE(SUM(w.commission_cents_snapshot), 0)::bigint AS commission_cents
            FROM order_work w
            JOIN shop_order o ON o.id = w.order_id
            JOIN app_user u ON u.id = w.performer_id
            WHERE o.status = 'PAID'
              AND o.paid_at >= %s
              AND o.paid_at < %s
            GROUP BY w.performer_id, u.name
            ORDER BY commission_cents DESC, labor_cents DESC, u.name ASC;
            """,
            (start, end_exclusive),
        )
        return fetch_all(cur)

    def performer_lines(
        self, conn: Connection, *, performer_id: int, start: datetime, end_exclusive: datetime
    ) -> list[dict]:
        cur = conn.execute(
            """
            SELECT
              w.id, w.service_name, w.unit_price_cents, w.quantity,
              w.commission_pct_snapshot, w.commission_cents_snapshot,
              o.id AS order_id, o.title AS order_title, o.guitar_serial, o.paid_at
            FROM order_work w
            JOIN shop_order o ON o.id = w.order_id
            WHERE w.performer_id = %s
              AND o.status = 'PAID'
              AND o.paid_at IS NOT NULL
              AND o.paid_at >= %s
              AND o.paid_at < %s
            ORDER BY o.paid_at DESC, w.created_at ASC, w.id ASC;
            """,
            (performer_id, start, end_exclusive),
        )
        return fetch_all(cur)
