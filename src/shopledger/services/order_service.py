from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from ..audit import AuditWriter, Changed, changed_fields, created, preview
from ..db import Db
from ..dates import utcnow
from ..domain import Actor, AuditAction, AuditEntity, OrderStatus
from ..errors import Forbidden, NotFound, ValidationError
from ..locks import assert_order_mutable, assert_status_change_allowed, fetch_order, next_paid_at
from ..repositories.audit_repo import AuditRepository
from ..repositories.comment_repo import CommentRepository
from ..repositories.expense_repo import ExpenseRepository
from ..repositories.order_part_repo import OrderPartRepository
from ..repositories.order_repo import OrderRepository
from ..repositories.order_work_repo import OrderWorkRepository
from ..validation import UNSET, optional_text, require_any, require_int, require_status, require_text

logger = logging.getLogger(__name__)

_PHONE = re.compile(r"^[0-9()+\-\s]+$")

ORDER_CREATED_FIELDS = ("id", "title", "guitar_serial", "description", "customer_name", "customer_phone", "status")
HEADER_FIELDS = ("title", "guitar_serial", "description", "customer_name", "customer_phone")


@dataclass
class CreateOrderInput:
    title: Any
    guitar_serial: Any = None
    description: Any = None
    customer_name: Any = None
    customer_phone: Any = None


@dataclass
class UpdateOrderInput:
    title: Any = UNSET
    guitar_serial: Any = UNSET
    description: Any = UNSET
    customer_name: Any = UNSET
    customer_phone: Any = UNSET


def _phone(value) -> str | None:
    phone = optional_text(value, "customerPhone", max_len=32)
    if phone is not None and not _PHONE.match(phone):
        raise ValidationError(
            "customerPhone: only digits and +() - are allowed",
            issues=[{"field": "customerPhone", "message": "Only digits and +() - are allowed"}],
        )
    return phone


class OrderService:
    def __init__(
        self,
        db: Db,
        *,
        order_repo: OrderRepository,
        work_repo: OrderWorkRepository,
        part_repo: OrderPartRepository,
        expense_repo: ExpenseRepository,
        comment_repo: CommentRepository,
        audit_repo: AuditRepository,
        audit: AuditWriter,
        comment_preview_chars: int = 200,
        audit_page_limit: int = 200,
    ) -> None:
        self.db = db
        self.order_repo = order_repo
        self.work_repo = work_repo
        self.part_repo = part_repo
        self.expense_repo = expense_repo
        self.comment_repo = comment_repo
        self.audit_repo = audit_repo
        self.audit = audit
        self.comment_preview_chars = comment_preview_chars
        self.audit_page_limit = audit_page_limit

    # --- mutations -------------------------------------------------------

    def create_order(self, actor: Actor, inp: CreateOrderInput) -> dict:
        title = require_text(inp.title, "title", max_len=80)
        guitar_serial = optional_text(inp.guitar_serial, "guitarSerial", max_len=80)
        description = optional_text(inp.description, "description", max_len=2000)
        customer_name = optional_text(inp.customer_name, "customerName", max_len=120)
        customer_phone = _phone(inp.customer_phone)

        with self.db.transaction() as conn:
            order = self.order_repo.create(
                conn,
                title=title,
                guitar_serial=guitar_serial,
                description=description,
                customer_name=customer_name,
                customer_phone=customer_phone,
                created_by_id=actor.id,
            )
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.CREATE,
                entity=AuditEntity.ORDER,
                entity_id=order["id"],
                order_id=order["id"],
                diff=created(order, ORDER_CREATED_FIELDS),
            )
        logger.info("order %s created by user %s", order["id"], actor.id)
        return order

    def update_order(self, actor: Actor, order_id: int, inp: UpdateOrderInput) -> dict:
        if not actor.is_admin:
            raise Forbidden("Admin rights required")
        require_any(**vars(inp))
        requested = {
            "title": inp.title if inp.title is UNSET else require_text(inp.title, "title", max_len=80),
            "guitar_serial": inp.guitar_serial
            if inp.guitar_serial is UNSET
            else optional_text(inp.guitar_serial, "guitarSerial", max_len=80),
            "description": inp.description
            if inp.description is UNSET
            else optional_text(inp.description, "description", max_len=2000),
            "customer_name": inp.customer_name
            if inp.customer_name is UNSET
            else optional_text(inp.customer_name, "customerName", max_len=120),
            "customer_phone": inp.customer_phone if inp.customer_phone is UNSET else _phone(inp.customer_phone),
        }

        with self.db.transaction() as conn:
            order = fetch_order(conn, self.order_repo, order_id)
            assert_order_mutable(order)

            target = {k: order[k] if v is UNSET else v for k, v in requested.items()}
            changes = changed_fields(order, target)
            if not changes:
                logger.debug("order %s header update is a no-op", order_id)
                return order

            updated = self.order_repo.update_header(conn, order_id=order_id, **target)
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.UPDATE,
                entity=AuditEntity.ORDER,
                entity_id=order_id,
                order_id=order_id,
                diff=changes,
            )
        logger.info("order %s header updated by user %s: %s", order_id, actor.id, sorted(changes.changes))
        return updated

    def change_status(self, actor: Actor, order_id: int, status: Any) -> dict:
        new_status = require_status(status)

        with self.db.transaction() as conn:
            order = fetch_order(conn, self.order_repo, order_id)
            current = OrderStatus(order["status"])
            assert_status_change_allowed(is_admin=actor.is_admin, current=current, new=new_status)
            if current is new_status:
                logger.debug("order %s already %s", order_id, current.value)
                return order

            paid_at = next_paid_at(new_status, utcnow())
            updated = self.order_repo.set_status(conn, order_id=order_id, status=new_status.value, paid_at=paid_at)
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.STATUS_CHANGE,
                entity=AuditEntity.ORDER,
                entity_id=order_id,
                order_id=order_id,
                diff=Changed(
                    {
                        "status": (current.value, new_status.value),
                        "paid_at": (order["paid_at"], updated["paid_at"]),
                    }
                ),
            )
        logger.info("order %s status %s -> %s by user %s", order_id, current.value, new_status.value, actor.id)
        return updated

    def add_comment(self, actor: Actor, order_id: int, text: Any) -> dict:
        body = require_text(text, "text", max_len=2000)

        with self.db.transaction() as conn:
            order = fetch_order(conn, self.order_repo, order_id)
            assert_order_mutable(order)

            comment = self.comment_repo.create(conn, order_id=order_id, author_id=actor.id, text=body)
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.CREATE,
                entity=AuditEntity.COMMENT,
                entity_id=comment["id"],
                order_id=order_id,
                diff=created(
                    {**comment, "text": preview(comment["text"], self.comment_preview_chars)},
                    ("id", "order_id", "author_id", "text"),
                ),
            )
        logger.info("comment %s added to order %s by user %s", comment["id"], order_id, actor.id)
        return comment

    # --- reads -----------------------------------------------------------

    def list_orders(
        self,
        actor: Actor,
        *,
        q: str | None = None,
        statuses: list[str] | None = None,
        mine: bool = False,
        limit: int = 100,
    ) -> list[dict]:
        limit = require_int(limit, "limit", min_value=1, max_value=500)
        parsed = [require_status(s).value for s in statuses or []]
        with self.db.session() as conn:
            return self.order_repo.list(
                conn,
                q=(q or "").strip() or None,
                statuses=parsed or None,
                performer_id=actor.id if mine else None,
                limit=limit,
            )

    def get_order(self, actor: Actor, order_id: int) -> dict:
        with self.db.session() as conn:
            order = self.order_repo.get(conn, order_id)
            if order is None:
                raise NotFound("Order not found")
            parts = self.part_repo.list_for_order(conn, order_id)
            if not actor.is_admin:
                parts = [{k: v for k, v in p.items() if k != "cost_cents"} for p in parts]
            return {
                **order,
                "works": self.work_repo.list_for_order(conn, order_id),
                "parts": parts,
                "expenses": self.expense_repo.list_for_order(conn, order_id),
                "comments": self.comment_repo.list_for_order(conn, order_id),
                "audit": self.audit_repo.list_for_order(conn, order_id=order_id, limit=50),
            }

    def list_comments(self, order_id: int) -> list[dict]:
        with self.db.session() as conn:
            if self.order_repo.get(conn, order_id) is None:
                raise NotFound("Order not found")
            return self.comment_repo.list_for_order(conn, order_id)

    def list_order_audit(
        self,
        order_id: int,
        *,
        entity: str | None = None,
        action: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        limit = self.audit_page_limit if limit is None else require_int(limit, "limit", min_value=1, max_value=500)
        if entity is not None and entity not in AuditEntity.__members__:
            raise ValidationError("entity: unknown audit entity", issues=[{"field": "entity", "message": "Unknown"}])
        if action is not None and action not in AuditAction.__members__:
            raise ValidationError("action: unknown audit action", issues=[{"field": "action", "message": "Unknown"}])

        with self.db.session() as conn:
            if self.order_repo.get(conn, order_id) is None:
                raise NotFound("Order not found")
            return self.audit_repo.list_for_order(conn, order_id=order_id, entity=entity, action=action, limit=limit)
