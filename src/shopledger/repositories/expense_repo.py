from __future__ import annotations

from datetime import datetime

from psycopg import Connection

from ..db import fetch_all, fetch_one

EXPENSE_COLUMNS = "id, order_id, title, amount_cents, expense_date, created_by_id, created_at, updated_at"


class ExpenseRepository:
    def create(
        self,
        conn: Connection,
        *,
        order_id: int | None,
        title: str,
        amount_cents: int,
        expense_date: datetime,
        created_by_id: int,
    ) -> dict:
        cur = conn.execute(
            f"""
            INSERT INTO expense(order_id, title, amount_cents, expense_date, created_by_id)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING {EXPENSE_COLUMNS};
            """,
            (order_id, title, amount_cents, expense_date, created_by_id),
        )
        return fetch_one(cur)

    def get(self, conn: Connection, *, expense_id: int, order_id: int | None) -> dict | None:
        # order_id None selects only shop-wide rows
        cur = conn.execute(
            f"""
            SELECT {EXPENSE_COLUMNS}
            FROM expense
            WHERE id = %s AND order_id IS NOT DISTINCT FROM %s;
            """,
            (expense_id, order_id),
        )
        return fetch_one(cur)

    def update(
        self,
        conn: Connection,
        *,
        expense_id: int,
        title: str,
        amount_cents: int,
        expense_date: datetime,
    ) -> dict:
        cur = conn.execute(
            f"""
            UPDATE expense
            SET title = %s, amount_cents = %s, expense_date = %s, updated_at = now()
            WHERE id = %s
            RETURNING {EXPENSE_COLUMNS};
            """,
            (title, amount_cents, expense_date, expense_id),
        )
        return fetch_one(cur)

    def delete(self, conn: Connection, *, expense_id: int) -> None:
        conn.execute("DELETE FROM expense WHERE id = %s;", (expense_id,))

    def sum_for_order(self, conn: Connection, order_id: int) -> int:
        cur = conn.execute(
            "SELECT COALESCE(SUM(amount_cents), 0)::bigint FROM expense WHERE order_id = %s;",
            (order_id,),
        )
        return int(cur.fetchone()[0])

    def list_for_order(self, conn: Connection, order_id: int) -> list[dict]:
        cur = conn.execute(
            f"SELECT {EXPENSE_COLUMNS} FROM expense WHERE order_id = %s ORDER BY expense_date DESC, id DESC;",
            (order_id,),
        )
        return fetch_all(cur)

    def list_shop_wide(
        self,
        conn: Connection,
        *,
        start: datetime | None = None,
        end_exclusive: datetime | None = None,
    ) -> list[dict]:
        cur = conn.execute(
            """
            SELECT e.id, e.title, e.amount_cents, e.expense_date, e.created_by_id,
                   u.name AS created_by_name, e.created_at
            FROM expense e
            JOIN app_user u ON u.id = e.created_by_id
            WHERE e.order_id IS NULL
              AND (%s::timestamptz IS NULL OR e.expense_date >= %s::timestamptz)
              AND (%s::timestamptz IS NULL OR e.expense_date < %s::timestamptz)
            ORDER BY e.expense_date DESC, e.created_at DESC;
            """,
            (start, start, end_exclusive, end_exclusive),
        )
        return fetch_all(cur)
