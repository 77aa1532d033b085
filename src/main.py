from __future__ import annotations

import sys
from pathlib import Path

from shopledger.config import ConfigError, configure_logging, load_config
from shopledger.db import Db, DbError
from shopledger.domain import Actor
from shopledger.errors import LedgerError
from shopledger.ledger import build_ledger
from shopledger.money import format_rub

USAGE = """usage:
  python main.py init-db [schema.sql]
  python main.py import-catalog <services.json> <admin-user-id>"""


def init_db(db: Db, schema_path: str) -> None:
    sql = Path(schema_path).read_text(encoding="utf-8")
    with db.transaction() as conn:
        conn.execute(sql)
    print(f"Schema applied from {schema_path}")


def main(argv: list[str]) -> int:
    if not argv or argv[0] not in {"init-db", "import-catalog"}:
        print(USAGE)
        return 1
    try:
        cfg = load_config("config.toml")
        configure_logging(cfg.log_level)
        db = Db(cfg.db)

        if argv[0] == "init-db":
            init_db(db, argv[1] if len(argv) > 1 else "schema.sql")
            return 0

        if len(argv) != 3 or not argv[2].isdigit():
            print(USAGE)
            return 1
        ledger = build_ledger(db, cfg)
        # the CLI runs as the given admin
        rows = ledger.admin.import_catalog_json(Actor(id=int(argv[2]), is_admin=True), argv[1])
        print(f"Imported {len(rows)} services")
        for row in rows:
            print(f"  {row['name']}: {format_rub(row['default_price_cents'])}")
        return 0
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}")
        return 2
    except DbError as e:
        print(f"[DB ERROR] {e}")
        return 3
    except LedgerError as e:
        print(f"[ERROR] {e.message}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
