from __future__ import annotations

from datetime import datetime

from psycopg import Connection

from ..db import fetch_all, fetch_one
from ..domain import OrderTotals

ORDER_COLUMNS = """
    id, title, guitar_serial, description, customer_name, customer_phone,
    status::text AS status, paid_at,
    labor_subtotal_cents, parts_subtotal_cents, invoice_total_cents, order_expenses_cents,
    created_by_id, created_at, updated_at
"""


class OrderRepository:
    def create(
        self,
        conn: Connection,
        *,
        title: str,
        guitar_serial: str | None,
        description: str | None,
        customer_name: str | None,
        customer_phone: str | None,
        created_by_id: int,
    ) -> dict:
        cur = conn.execute(
            f"""
            INSERT INTO shop_order(title, guitar_serial, description, customer_name, customer_phone, created_by_id)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING {ORDER_COLUMNS};
            """,
            (title, guitar_serial, description, customer_name, customer_phone, created_by_id),
        )
        return fetch_one(cur)

    def get(self, conn: Connection, order_id: int) -> dict | None:
        cur = conn.execute(f"SELECT {ORDER_COLUMNS} FROM shop_order WHERE id = %s;", (order_id,))
        return fetch_one(cur)

    def lock(self, conn: Connection, order_id: int) -> dict | None:
        """Fetch the order row and hold its row lock until the transaction ends."""
        cur = conn.execute(
            f"SELECT {ORDER_COLUMNS} FROM shop_order WHERE id = %s FOR UPDATE;",
            (order_id,),
        )
        return fetch_one(cur)

    def update_header(
        self,
        conn: Connection,
        *,
        order_id: int,
        title: str,
        guitar_serial: str | None,
        description: str | None,
        customer_name: str | None,
        customer_phone: str | None,
    ) -> dict:
        cur = conn.execute(
            f"""
            UPDATE shop_order
            SET title = %s, guitar_serial = %s, description = %s,
                customer_name = %s, customer_phone = %s, updated_at = now()
            WHERE id = %s
            RETURNING {ORDER_COLUMNS};
            """,
            (title, guitar_serial, description, customer_name, customer_phone, order_id),
        )
        return fetch_one(cur)

    def set_status(self, conn: Connection, *, order_id: int, status: str, paid_at: datetime | None) -> dict:
        cur = conn.execute(
            f"""
            UPDATE shop_order
            SET status = %s::order_status, paid_at = %s, updated_at = now()
            WHERE id = %s
            RETURNING {ORDER_COLUMNS};
            """,
            (status, paid_at, order_id),
        )
        return fetch_one(cur)

    def write_totals(self, conn: Connection, *, order_id: int, totals: OrderTotals) -> None:
        conn.execute(
            """
            UPDATE shop_order
            SET labor_subtotal_cents = %s,
                parts_subtotal_cents = %s,
                invoice_total_cents = %s,
                order_expenses_cents = %s,
                updated_at = now()
            WHERE id = %s;
            """,
            (
                totals.labor_subtotal_cents,
                totals.parts_subtotal_cents,
                totals.invoice_total_cents,
                totals.order_expenses_cents,
                order_id,
            ),
        )

    def list(
        self,
        conn: Connection,
        *,
        q: str | None = None,
        statuses: list[str] | None = None,
        performer_id: int | None = None,
        limit: int = 100,
    ) -> list[dict]:
        where = ["TRUE"]
        params: list = []
        if q:
            where.append("(o.title ILIKE %s OR o.guitar_serial ILIKE %s)")
            params += [f"%{q}%", f"%{q}%"]
        if statuses:
            where.append("o.status::text = ANY(%s)")
            params.append(list(statuses))
        if performer_id is not None:
            where.append("EXISTS (SELECT 1 FROM order_work w WHERE w.order_id = o.id AND w.performer_id = %s)")
            params.append(performer_id)
        params.append(limit)

        cur = conn.execute(
            f"""
            SELECT
              o.id, o.title, o.guitar_serial, o.status::text AS status, o.paid_at, o.updated_at,
              o.labor_subtotal_cents, o.parts_subtotal_cents, o.invoice_total_cents,
              lc.text AS last_comment_text,
              lc.author_name AS last_comment_author,
              lc.created_at AS last_comment_at
            FROM shop_order o
            LEFT JOIN LATERAL (
              SELECT c.text, u.name AS author_name, c.created_at
              FROM order_comment c
              JOIN app_user u ON u.id = c.author_id
              WHERE c.order_id = o.id
              ORDER BY c.created_at DESC
              LIMIT 1
            ) lc ON TRUE
            WHERE {" AND ".join(where)}
            ORDER BY o.updated_at DESC
            LIMIT %s;
            """,
            params,
        )
        return fetch_all(cur)
