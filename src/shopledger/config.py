from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    tomllib = None


BUCKETS = ("day", "week", "month")
ISOLATION_LEVELS = ("READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DbConfig:
    host: str
    port: int
    name: str
    user: str
    password: str
    sslmode: str = "disable"
    isolation_level: str = "READ COMMITTED"
    dsn: str | None = None


@dataclass(frozen=True)
class LedgerConfig:
    default_bucket: str = "month"
    comment_preview_chars: int = 200
    audit_page_limit: int = 200


@dataclass(frozen=True)
class AppConfig:
    name: str
    log_level: str
    db: DbConfig
    ledger: LedgerConfig


def load_config(path: str | Path) -> AppConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p.resolve()}")

    if tomllib is None:
        raise ConfigError("tomllib not available. Use Python 3.11+.")

    try:
        data = tomllib.loads(p.read_text(encoding="utf-8"))
    except Exception as e:
        raise ConfigError(f"Failed to read config TOML: {e}") from e

    return parse_config(data)


def parse_config(data: dict) -> AppConfig:
    try:
        app = data["app"]
        db = data["db"]
        ledger = data.get("ledger", {})
        cfg = AppConfig(
            name=str(app.get("name", "ShopLedger")),
            log_level=str(app.get("log_level", "INFO")).upper(),
            db=DbConfig(
                host=str(db["host"]),
                port=int(db.get("port", 5432)),
                name=str(db["name"]),
                user=str(db["user"]),
                password=str(db["password"]),
                sslmode=str(db.get("sslmode", "disable")),
                isolation_level=str(db.get("isolation_level", "READ COMMITTED")).upper(),
                dsn=db.get("dsn"),
            ),
            ledger=LedgerConfig(
                default_bucket=str(ledger.get("default_bucket", "month")),
                comment_preview_chars=int(ledger.get("comment_preview_chars", 200)),
                audit_page_limit=int(ledger.get("audit_page_limit", 200)),
            ),
        )
    except KeyError as e:
        raise ConfigError(f"Missing config key: {e}") from e
    except Exception as e:
        raise ConfigError(f"Invalid config values: {e}") from e

    if cfg.ledger.default_bucket not in BUCKETS:
        raise ConfigError(f"Invalid config values: default_bucket must be one of {BUCKETS}")
    if cfg.db.isolation_level not in ISOLATION_LEVELS:
        raise ConfigError(f"Invalid config values: isolation_level must be one of {ISOLATION_LEVELS}")
    if cfg.ledger.comment_preview_chars < 1:
        raise ConfigError("Invalid config values: comment_preview_chars must be > 0")
    return cfg


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
