from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import psycopg
from psycopg import Connection
from psycopg.errors import SerializationFailure

from .config import DbConfig
from .errors import Conflict

logger = logging.getLogger(__name__)


class DbError(Exception):
    pass


@dataclass(frozen=True)
class Db:
    cfg: DbConfig

    def connect(self) -> Connection:
        try:
            # autocommit so that BEGIN/COMMIT below own the transaction boundary
            if self.cfg.dsn:
                return psycopg.connect(self.cfg.dsn, autocommit=True)
            return psycopg.connect(
                host=self.cfg.host,
                port=self.cfg.port,
                dbname=self.cfg.name,
                user=self.cfg.user,
                password=self.cfg.password,
                sslmode=self.cfg.sslmode,
                autocommit=True,
            )
        except Exception as e:
            raise DbError(
                "Cannot connect to database. Check config.toml [db] and that PostgreSQL is running."
            ) from e

    @contextmanager
    def session(self) -> Iterator[Connection]:
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        conn = self.connect()
        try:
            conn.execute(f"BEGIN ISOLATION LEVEL {self.cfg.isolation_level};")
            yield conn
            conn.execute("COMMIT;")
        except SerializationFailure as e:
            # another transaction changed the same rows first
            logger.info("serialization failure, rolling back: %s", e)
            conn.execute("ROLLBACK;")
            raise Conflict("The order was changed by another request, retry") from e
        except Exception:
            logger.debug("rolling back transaction")
            conn.execute("ROLLBACK;")
            raise
        finally:
            conn.close()


def fetch_one(cur) -> dict | None:
    row = cur.fetchone()
    if not row:
        return None
    cols = [d.name for d in cur.description]
    return dict(zip(cols, row))


def fetch_all(cur) -> list[dict]:
    cols = [d.name for d in cur.description]
    return [dict(zip(cols, row)) for row in cur.fetchall()]
