from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..audit import AuditWriter, Created, Deleted, changed_fields
from ..db import Db
from ..domain import Actor, AuditAction, AuditEntity
from ..errors import NotFound
from ..locks import fetch_mutable_order
from ..recalc import OrderTotalsCalculator
from ..repositories.order_part_repo import OrderPartRepository
from ..repositories.order_repo import OrderRepository
from ..validation import UNSET, price, quantity, require_any, require_int, require_text

logger = logging.getLogger(__name__)


@dataclass
class CreatePartInput:
    name: Any
    unit_price_cents: Any
    quantity: Any = 1
    cost_cents: Any = None


@dataclass
class UpdatePartInput:
    name: Any = UNSET
    unit_price_cents: Any = UNSET
    quantity: Any = UNSET
    cost_cents: Any = UNSET  # None clears the cost


def _cost(value) -> int | None:
    return None if value is None else require_int(value, "costCents", min_value=0)


class PartService:
    def __init__(
        self,
        db: Db,
        *,
        order_repo: OrderRepository,
        part_repo: OrderPartRepository,
        totals: OrderTotalsCalculator,
        audit: AuditWriter,
    ) -> None:
        self.db = db
        self.order_repo = order_repo
        self.part_repo = part_repo
        self.totals = totals
        self.audit = audit

    def add_part(self, actor: Actor, order_id: int, inp: CreatePartInput) -> dict:
        name = require_text(inp.name, "name", max_len=120)
        unit_price = price(inp.unit_price_cents)
        qty = quantity(inp.quantity)
        cost = _cost(inp.cost_cents)

        with self.db.transaction() as conn:
            fetch_mutable_order(conn, self.order_repo, order_id)

            part = self.part_repo.create(
                conn,
                order_id=order_id,
                name=name,
                unit_price_cents=unit_price,
                quantity=qty,
                cost_cents=cost,
            )
            self.totals.recalc(conn, order_id)

            fields = {k: part[k] for k in ("id", "name", "unit_price_cents", "quantity")}
            if part["cost_cents"] is not None:
                fields["cost_cents"] = part["cost_cents"]
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.CREATE,
                entity=AuditEntity.ORDER_PART,
                entity_id=part["id"],
                order_id=order_id,
                diff=Created(fields),
            )
        logger.info("part %s added to order %s by user %s", part["id"], order_id, actor.id)
        return part

    def update_part(self, actor: Actor, order_id: int, part_id: int, inp: UpdatePartInput) -> dict:
        require_any(**vars(inp))
        requested = {
            "name": inp.name if inp.name is UNSET else require_text(inp.name, "name", max_len=120),
            "unit_price_cents": inp.unit_price_cents
            if inp.unit_price_cents is UNSET
            else price(inp.unit_price_cents),
            "quantity": inp.quantity if inp.quantity is UNSET else quantity(inp.quantity),
            "cost_cents": inp.cost_cents if inp.cost_cents is UNSET else _cost(inp.cost_cents),
        }

        with self.db.transaction() as conn:
            fetch_mutable_order(conn, self.order_repo, order_id)

            part = self.part_repo.get(conn, order_id=order_id, part_id=part_id)
            if part is None:
                raise NotFound("Part not found")

            target = {k: part[k] if v is UNSET else v for k, v in requested.items()}
            changes = changed_fields(part, target)
            if not changes:
                logger.debug("part %s update is a no-op", part_id)
                return part

            updated = self.part_repo.update(conn, part_id=part_id, **target)
            self.totals.recalc(conn, order_id)
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.UPDATE,
                entity=AuditEntity.ORDER_PART,
                entity_id=part_id,
                order_id=order_id,
                diff=changes,
            )
        logger.info("part %s on order %s updated: %s", part_id, order_id, sorted(changes.changes))
        return updated

    def delete_part(self, actor: Actor, order_id: int, part_id: int) -> None:
        with self.db.transaction() as conn:
            fetch_mutable_order(conn, self.order_repo, order_id)

            part = self.part_repo.get(conn, order_id=order_id, part_id=part_id)
            if part is None:
                raise NotFound("Part not found")

            self.part_repo.delete(conn, part_id=part_id)
            self.totals.recalc(conn, order_id)
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.DELETE,
                entity=AuditEntity.ORDER_PART,
                entity_id=part_id,
                order_id=order_id,
                diff=Deleted(part_id),
            )
        logger.info("part %s deleted from order %s by user %s", part_id, order_id, actor.id)
