from __future__ import annotations

import json
from pathlib import Path

from psycopg import Connection

from .errors import ValidationError
from .money import parse_rub_to_cents
from .repositories.catalog_repo import CatalogRepository


class CatalogImportError(Exception):
    pass


def _price_cents(obj: dict) -> int | None:
    if "defaultPriceCents" not in obj and isinstance(obj.get("defaultPrice"), str):
        try:
            return parse_rub_to_cents(obj["defaultPrice"])
        except ValidationError:
            return None
    price = obj.get("defaultPriceCents", 0)
    if isinstance(price, bool) or not isinstance(price, int) or price < 0:
        return None
    return price


def read_catalog_json(path: str | Path) -> list[dict]:
    """Parse a JSON list of ``{name, defaultPriceCents, isActive}`` objects.

    ``defaultPrice`` (a typed-in amount such as ``"1 500 ₽"``) may stand in
    for ``defaultPriceCents``. Entries without a usable name or with a bad
    price are skipped.
    """
    p = Path(path)
    if not p.exists():
        raise CatalogImportError(f"File not found: {p}")

    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except Exception as e:
        raise CatalogImportError(f"Invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise CatalogImportError("JSON must be a list of objects")

    entries = []
    for obj in data:
        if not isinstance(obj, dict):
            continue
        name = str(obj.get("name", "")).strip()
        if not name or len(name) > 60:
            continue
        price = _price_cents(obj)
        if price is None:
            continue
        entries.append(
            {
                "name": name,
                "default_price_cents": price,
                "is_active": bool(obj.get("isActive", True)),
            }
        )
    return entries


def import_catalog(conn: Connection, entries: list[dict], catalog_repo: CatalogRepository) -> list[dict]:
    """Create the entries whose names are not in the catalog yet; returns the created rows."""
    created = []
    for entry in entries:
        if catalog_repo.get_by_name(conn, entry["name"]) is not None:
            continue
        created.append(catalog_repo.create(conn, **entry))
    return created
