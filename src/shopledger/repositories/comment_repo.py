from __future__ import annotations

from psycopg import Connection

from ..db import fetch_all, fetch_one


class CommentRepository:
    def create(self, conn: Connection, *, order_id: int, author_id: int, text: str) -> dict:
        cur = conn.execute(
            """
            INSERT INTO order_comment(order_id, author_id, text)
            VALUES (%s, %s, %s)
            RETURNING id, order_id, author_id, text, created_at, updated_at;
            """,
            (order_id, author_id, text),
        )
        return fetch_one(cur)

    def list_for_order(self, conn: Connection, order_id: int) -> list[dict]:
        cur = conn.execute(
            """
            SELECT c.id, c.order_id, c.author_id, u.name AS author_name, c.text, c.created_at, c.updated_at
            FROM order_comment c
            JOIN app_user u ON u.id = c.author_id
            WHERE c.order_id = %s
            ORDER BY c.created_at DESC, c.id DESC;
            """,
            (order_id,),
        )
        return fetch_all(cur)
