from __future__ import annotations

from psycopg import Connection
from psycopg.types.json import Jsonb

from ..db import fetch_all


class AuditRepository:
    """Append-only: rows are inserted and read, never updated or deleted."""

    def append(
        self,
        conn: Connection,
        *,
        actor_id: int,
        action: str,
        entity: str,
        entity_id: int,
        order_id: int | None,
        diff: dict | None,
    ) -> int:
        cur = conn.execute(
            """
            INSERT INTO audit_log(actor_id, action, entity, entity_id, order_id, diff)
            VALUES (%s, %s::audit_action, %s::audit_entity, %s, %s, %s)
            RETURNING id;
            """,
            (actor_id, action, entity, entity_id, order_id, Jsonb(diff) if diff is not None else None),
        )
        return int(cur.fetchone()[0])

    def list_for_order(
        self,
        conn: Connection,
        *,
        order_id: int,
        entity: str | None = None,
        action: str | None = None,
        limit: int = 200,
    ) -> list[dict]:
        cur = conn.execute(
            """
            SELECT a.id, a.actor_id, u.name AS actor_name, a.action::text AS action,
                   a.entity::text AS entity, a.entity_id, a.order_id, a.diff, a.created_at
            FROM audit_log a
            JOIN app_user u ON u.id = a.actor_id
            WHERE a.order_id = %s
              AND (%s::text IS NULL OR a.entity::text = %s::text)
              AND (%s::text IS NULL OR a.action::text = %s::text)
            ORDER BY a.created_at DESC, a.id DESC
            LIMIT %s;
            """,
            (order_id, entity, entity, action, action, limit),
        )
        return fetch_all(cur)
