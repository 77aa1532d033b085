from __future__ import annotations

from dataclasses import dataclass

from psycopg import Connection

from .errors import Conflict, NotFound
from .money import commission, line_total
from .repositories.user_repo import UserRepository


@dataclass(frozen=True)
class CommissionSnapshot:
    pct: int
    cents: int


def performer_rate(performer: dict) -> int:
    """The performer's rate right now. Admins never earn commission."""
    if performer["is_admin"]:
        return 0
    return int(performer["commission_pct"])


def snapshot_commission(performer: dict, unit_price_cents: int, quantity: int) -> CommissionSnapshot:
    pct = performer_rate(performer)
    return CommissionSnapshot(pct=pct, cents=commission(line_total(unit_price_cents, quantity), pct))


def recompute_commission(pct_snapshot: int, unit_price_cents: int, quantity: int) -> int:
    """Commission for an edited line that keeps its frozen percentage."""
    return commission(line_total(unit_price_cents, quantity), pct_snapshot)


def resolve_performer(conn: Connection, user_repo: UserRepository, performer_id: int) -> dict:
    performer = user_repo.get(conn, performer_id)
    if performer is None:
        raise NotFound("Performer not found")
    if not performer["is_active"]:
        raise Conflict("Performer is inactive")
    return performer
