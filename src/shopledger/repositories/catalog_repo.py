from __future__ import annotations

from psycopg import Connection

from ..db import fetch_all, fetch_one

SERVICE_COLUMNS = "id, name, default_price_cents, is_active, created_at, updated_at"


class CatalogRepository:
    def create(self, conn: Connection, *, name: str, default_price_cents: int, is_active: bool = True) -> dict:
        cur = conn.execute(
            f"""
            INSERT INTO catalog_service(name, default_price_cents, is_active)
            VALUES (%s, %s, %s)
            RETURNING {SERVICE_COLUMNS};
            """,
            (name, default_price_cents, is_active),
        )
        return fetch_one(cur)

    def get(self, conn: Connection, service_id: int) -> dict | None:
        cur = conn.execute(f"SELECT {SERVICE_COLUMNS} FROM catalog_service WHERE id = %s;", (service_id,))
        return fetch_one(cur)

    def get_by_name(self, conn: Connection, name: str) -> dict | None:
        cur = conn.execute(f"SELECT {SERVICE_COLUMNS} FROM catalog_service WHERE name = %s;", (name,))
        return fetch_one(cur)

    def update(
        self,
        conn: Connection,
        *,
        service_id: int,
        name: str,
        default_price_cents: int,
        is_active: bool,
    ) -> dict:
        cur = conn.execute(
            f"""
            UPDATE catalog_service
            SET name = %s, default_price_cents = %s, is_active = %s, updated_at = now()
            WHERE id = %s
            RETURNING {SERVICE_COLUMNS};
            """,
            (name, default_price_cents, is_active, service_id),
        )
        return fetch_one(cur)

    def list(self, conn: Connection, *, active_only: bool = False) -> list[dict]:
        cur = conn.execute(
            f"""
            SELECT {SERVICE_COLUMNS}
            FROM catalog_service
            WHERE (NOT %s OR is_active)
            ORDER BY name;
            """,
            (active_only,),
        )
        return fetch_all(cur)
