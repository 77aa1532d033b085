from __future__ import annotations

from psycopg import Connection

from ..db import fetch_all, fetch_one

WORK_COLUMNS = """
    id, order_id, service_id, service_name, unit_price_cents, quantity, performer_id,
    commission_pct_snapshot, commission_cents_snapshot, created_at, updated_at
"""


class OrderWorkRepository:
    def create(
        self,
        conn: Connection,
        *,
        order_id: int,
        service_id: int | None,
        service_name: str,
        unit_price_cents: int,
        quantity: int,
        performer_id: int,
        commission_pct_snapshot: int,
        commission_cents_snapshot: int,
    ) -> dict:
        cur = conn.execute(
            f"""
            INSERT INTO order_work(order_id, service_id, service_name, unit_price_cents, quantity,
                                   performer_id, commission_pct_snapshot, commission_cents_snapshot)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {WORK_COLUMNS};
            """,
            (
                order_id,
                service_id,
                service_name,
                unit_price_cents,
                quantity,
                performer_id,
                commission_pct_snapshot,
                commission_cents_snapshot,
            ),
        )
        return fetch_one(cur)

    def get(self, conn: Connection, *, order_id: int, work_id: int) -> dict | None:
        cur = conn.execute(
            f"SELECT {WORK_COLUMNS} FROM order_work WHERE id = %s AND order_id = %s;",
            (work_id, order_id),
        )
        return fetch_one(cur)

    def update(
        self,
        conn: Connection,
        *,
        work_id: int,
        service_name: str,
        unit_price_cents: int,
        quantity: int,
        performer_id: int,
        commission_pct_snapshot: int,
        commission_cents_snapshot: int,
    ) -> dict:
        cur = conn.execute(
            f"""
            UPDATE order_work
            SET service_name = %s, unit_price_cents = %s, quantity = %s, performer_id = %s,
                commission_pct_snapshot = %s, commission_cents_snapshot = %s, updated_at = now()
            WHERE id = %s
            RETURNING {WORK_COLUMNS};
            """,
            (
                service_name,
                unit_price_cents,
                quantity,
                performer_id,
                commission_pct_snapshot,
                commission_cents_snapshot,
                work_id,
            ),
        )
        return fetch_one(cur)

    def delete(self, conn: Connection, *, work_id: int) -> None:
        conn.execute("DELETE FROM order_work WHERE id = %s;", (work_id,))

    def list_for_order(self, conn: Connection, order_id: int) -> list[dict]:
        cur = conn.execute(
            """
            SELECT w.id, w.order_id, w.service_id, w.service_name, w.unit_price_cents, w.quantity,
                   w.performer_id, u.name AS performer_name,
                   w.commission_pct_snapshot, w.commission_cents_snapshot, w.created_at, w.updated_at
            FROM order_work w
            JOIN app_user u ON u.id = w.performer_id
            WHERE w.order_id = %s
            ORDER BY w.created_at, w.id;
            """,
            (order_id,),
        )
        return fetch_all(cur)

    def sum_for_order(self, conn: Connection, order_id: int) -> int:
        cur = conn.execute(
            """
            SELECT COALESCE(SUM(unit_price_cents::bigint * quantity), 0)::bigint
            FROM order_work
            WHERE order_id = %s;
            """,
            (order_id,),
        )
        return int(cur.fetchone()[0])
