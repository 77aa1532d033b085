from __future__ import annotations

from psycopg import Connection

from ..db import fetch_all, fetch_one

PART_COLUMNS = "id, order_id, name, unit_price_cents, quantity, cost_cents, created_at, updated_at"


class OrderPartRepository:
    def create(
        self,
        conn: Connection,
        *,
        order_id: int,
        name: str,
        unit_price_cents: int,
        quantity: int,
        cost_cents: int | None,
    ) -> dict:
        cur = conn.execute(
            f"""
            INSERT INTO order_part(order_id, name, unit_price_cents, quantity, cost_cents)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING {PART_COLUMNS};
            """,
            (order_id, name, unit_price_cents, quantity, cost_cents),
        )
        return fetch_one(cur)

    def get(self, conn: Connection, *, order_id: int, part_id: int) -> dict | None:
        cur = conn.execute(
            f"SELECT {PART_COLUMNS} FROM order_part WHERE id = %s AND order_id = %s;",
            (part_id, order_id),
        )
        return fetch_one(cur)

    def update(
        self,
        conn: Connection,
        *,
        part_id: int,
        name: str,
        unit_price_cents: int,
        quantity: int,
        cost_cents: int | None,
    ) -> dict:
        cur = conn.execute(
            f"""
            UPDATE order_part
            SET name = %s, unit_price_cents = %s, quantity = %s, cost_cents = %s, updated_at = now()
            WHERE id = %s
            RETURNING {PART_COLUMNS};
            """,
            (name, unit_price_cents, quantity, cost_cents, part_id),
        )
        return fetch_one(cur)

    def delete(self, conn: Connection, *, part_id: int) -> None:
        conn.execute("DELETE FROM order_part WHERE id = %s;", (part_id,))

    def list_for_order(self, conn: Connection, order_id: int) -> list[dict]:
        cur = conn.execute(
            f"SELECT {PART_COLUMNS} FROM order_part WHERE order_id = %s ORDER BY created_at, id;",
            (order_id,),
        )
        return fetch_all(cur)

    def sum_for_order(self, conn: Connection, order_id: int) -> int:
        cur = conn.execute(
            """
            SELECT COALESCE(SUM(unit_price_cents::bigint * quantity), 0)::bigint
            FROM order_part
            WHERE order_id = %s;
            """,
            (order_id,),
        )
        return int(cur.fetchone()[0])
