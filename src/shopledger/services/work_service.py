from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..audit import AuditWriter, Deleted, changed_fields, created
from ..commission import performer_rate, recompute_commission, resolve_performer, snapshot_commission
from ..db import Db
from ..domain import Actor, AuditAction, AuditEntity, Catalog, Custom, WorkSource
from ..errors import Conflict, NotFound, ValidationError
from ..locks import fetch_mutable_order
from ..recalc import OrderTotalsCalculator
from ..repositories.catalog_repo import CatalogRepository
from ..repositories.order_repo import OrderRepository
from ..repositories.order_work_repo import OrderWorkRepository
from ..repositories.user_repo import UserRepository
from ..validation import UNSET, price, quantity, require_any, require_id, require_text

logger = logging.getLogger(__name__)

WORK_CREATED_FIELDS = (
    "id",
    "service_id",
    "service_name",
    "unit_price_cents",
    "quantity",
    "performer_id",
    "commission_pct_snapshot",
    "commission_cents_snapshot",
)


@dataclass
class CreateWorkInput:
    source: WorkSource
    performer_id: Any
    unit_price_cents: Any = None  # catalog lines fall back to the service default
    quantity: Any = 1


@dataclass
class UpdateWorkInput:
    service_name: Any = UNSET
    unit_price_cents: Any = UNSET
    quantity: Any = UNSET
    performer_id: Any = UNSET


class WorkService:
    def __init__(
        self,
        db: Db,
        *,
        order_repo: OrderRepository,
        work_repo: OrderWorkRepository,
        user_repo: UserRepository,
        catalog_repo: CatalogRepository,
        totals: OrderTotalsCalculator,
        audit: AuditWriter,
    ) -> None:
        self.db = db
        self.order_repo = order_repo
        self.work_repo = work_repo
        self.user_repo = user_repo
        self.catalog_repo = catalog_repo
        self.totals = totals
        self.audit = audit

    def add_work(self, actor: Actor, order_id: int, inp: CreateWorkInput) -> dict:
        performer_id = require_id(inp.performer_id, "performerId")
        qty = quantity(inp.quantity)
        if isinstance(inp.source, Custom):
            name = require_text(inp.source.name, "serviceName", max_len=80)
            unit_price = price(inp.unit_price_cents)
            service_id = None
        elif isinstance(inp.source, Catalog):
            service_id = require_id(inp.source.service_id, "serviceId")
            unit_price = None if inp.unit_price_cents is None else price(inp.unit_price_cents)
            name = None
        else:
            raise ValidationError("Unknown work source")

        with self.db.transaction() as conn:
            fetch_mutable_order(conn, self.order_repo, order_id)

            if service_id is not None:
                service = self.catalog_repo.get(conn, service_id)
                if service is None:
                    raise NotFound("Service not found")
                name = service["name"]
                if unit_price is None:
                    unit_price = int(service["default_price_cents"])

            performer = resolve_performer(conn, self.user_repo, performer_id)
            snap = snapshot_commission(performer, unit_price, qty)

            work = self.work_repo.create(
                conn,
                order_id=order_id,
                service_id=service_id,
                service_name=name,
                unit_price_cents=unit_price,
                quantity=qty,
                performer_id=performer["id"],
                commission_pct_snapshot=snap.pct,
                commission_cents_snapshot=snap.cents,
            )
            self.totals.recalc(conn, order_id)
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.CREATE,
                entity=AuditEntity.ORDER_WORK,
                entity_id=work["id"],
                order_id=order_id,
                diff=created(work, WORK_CREATED_FIELDS),
            )
        logger.info("work %s added to order %s (performer %s, %s%%)", work["id"], order_id, performer_id, snap.pct)
        return work

    def update_work(self, actor: Actor, order_id: int, work_id: int, inp: UpdateWorkInput) -> dict:
        require_any(**vars(inp))
        name = UNSET if inp.service_name is UNSET else require_text(inp.service_name, "serviceName", max_len=80)
        unit_price = UNSET if inp.unit_price_cents is UNSET else price(inp.unit_price_cents)
        qty = UNSET if inp.quantity is UNSET else quantity(inp.quantity)
        performer_id = UNSET if inp.performer_id is UNSET else require_id(inp.performer_id, "performerId")

        with self.db.transaction() as conn:
            fetch_mutable_order(conn, self.order_repo, order_id)

            work = self.work_repo.get(conn, order_id=order_id, work_id=work_id)
            if work is None:
                raise NotFound("Work not found")
            if name is not UNSET and work["service_id"] is not None:
                raise Conflict("Only custom work can be renamed")

            # the percentage is re-snapshotted only when the performer changes
            next_performer_id = work["performer_id"]
            next_pct = work["commission_pct_snapshot"]
            if performer_id is not UNSET and performer_id != work["performer_id"]:
                performer = resolve_performer(conn, self.user_repo, performer_id)
                next_performer_id = performer["id"]
                next_pct = performer_rate(performer)

            target = {
                "service_name": work["service_name"] if name is UNSET else name,
                "unit_price_cents": work["unit_price_cents"] if unit_price is UNSET else unit_price,
                "quantity": work["quantity"] if qty is UNSET else qty,
                "performer_id": next_performer_id,
                "commission_pct_snapshot": next_pct,
            }
            target["commission_cents_snapshot"] = recompute_commission(
                next_pct, target["unit_price_cents"], target["quantity"]
            )

            changes = changed_fields(work, target)
            if not changes:
                logger.debug("work %s update is a no-op", work_id)
                return work

            updated = self.work_repo.update(conn, work_id=work_id, **target)
            self.totals.recalc(conn, order_id)
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.UPDATE,
                entity=AuditEntity.ORDER_WORK,
                entity_id=work_id,
                order_id=order_id,
                diff=changes,
            )
        logger.info("work %s on order %s updated: %s", work_id, order_id, sorted(changes.changes))
        return updated

    def delete_work(self, actor: Actor, order_id: int, work_id: int) -> None:
        with self.db.transaction() as conn:
            fetch_mutable_order(conn, self.order_repo, order_id)

            work = self.work_repo.get(conn, order_id=order_id, work_id=work_id)
            if work is None:
                raise NotFound("Work not found")

            self.work_repo.delete(conn, work_id=work_id)
            self.totals.recalc(conn, order_id)
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.DELETE,
                entity=AuditEntity.ORDER_WORK,
                entity_id=work_id,
                order_id=order_id,
                diff=Deleted(work_id),
            )
        logger.info("work %s deleted from order %s by user %s", work_id, order_id, actor.id)
