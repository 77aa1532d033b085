from __future__ import annotations

from psycopg import Connection

from ..db import fetch_all, fetch_one

USER_COLUMNS = "id, name, is_admin, is_active, commission_pct, created_at, updated_at"


class UserRepository:
    def create(
        self,
        conn: Connection,
        *,
        name: str,
        is_admin: bool,
        is_active: bool,
        commission_pct: int,
    ) -> dict:
        cur = conn.execute(
            f"""
            INSERT INTO app_user(name, is_admin, is_active, commission_pct)
            VALUES (%s, %s, %s, %s)
            RETURNING {USER_COLUMNS};
            """,
            (name, is_admin, is_active, commission_pct),
        )
        return fetch_one(cur)

    def get(self, conn: Connection, user_id: int) -> dict | None:
        cur = conn.execute(f"SELECT {USER_COLUMNS} FROM app_user WHERE id = %s;", (user_id,))
        return fetch_one(cur)

    def get_by_name(self, conn: Connection, name: str) -> dict | None:
        cur = conn.execute(f"SELECT {USER_COLUMNS} FROM app_user WHERE name = %s;", (name,))
        return fetch_one(cur)

    def update(
        self,
        conn: Connection,
        *,
        user_id: int,
        is_admin: bool,
        is_active: bool,
        commission_pct: int,
    ) -> dict:
        cur = conn.execute(
            f"""
            UPDATE app_user
            SET is_admin = %s, is_active = %s, commission_pct = %s, updated_at = now()
            WHERE id = %s
            RETURNING {USER_COLUMNS};
            """,
            (is_admin, is_active, commission_pct, user_id),
        )
        return fetch_one(cur)

    def count_active_admins(self, conn: Connection) -> int:
        cur = conn.execute("SELECT COUNT(*) FROM app_user WHERE is_admin AND is_active;")
        return int(cur.fetchone()[0])

    def list(self, conn: Connection, *, active_only: bool = False) -> list[dict]:
        cur = conn.execute(
            f"""
            SELECT {USER_COLUMNS}
            FROM app_user
            WHERE (NOT %s OR is_active)
            ORDER BY name;
            """,
            (active_only,),
        )
        return fetch_all(cur)
