from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..audit import AuditWriter, Created, Deleted, changed_fields
from ..db import Db
from ..dates import parse_date_only, parse_date_or_datetime, start_of_day, utcnow
from ..domain import Actor, AuditAction, AuditEntity, ExpenseScope, OrderScoped, ShopWide, scope_order_id
from ..errors import Forbidden, NotFound, ValidationError
from ..locks import fetch_mutable_order
from ..recalc import OrderTotalsCalculator
from ..repositories.expense_repo import ExpenseRepository
from ..repositories.order_repo import OrderRepository
from ..validation import UNSET, require_any, require_int, require_text

logger = logging.getLogger(__name__)


@dataclass
class CreateExpenseInput:
    title: Any
    amount_cents: Any
    expense_date: Any = None  # defaults to now


@dataclass
class UpdateExpenseInput:
    title: Any = UNSET
    amount_cents: Any = UNSET
    expense_date: Any = UNSET


def _title(value) -> str:
    return require_text(value, "title", max_len=160)


def _amount(value) -> int:
    return require_int(value, "amountCents", min_value=1)


def _expense_date(value) -> datetime:
    if not isinstance(value, str):
        raise ValidationError(
            "expenseDate: must be a string",
            issues=[{"field": "expenseDate", "message": "must be a string"}],
        )
    return parse_date_or_datetime(value, "expenseDate")


def _check_scope(scope: ExpenseScope) -> None:
    if not isinstance(scope, (OrderScoped, ShopWide)):
        raise ValidationError("Unknown expense scope")


class ExpenseService:
    """Order-scoped and shop-wide expenses.

    Only order-scoped expenses touch an order: they obey the paid lock and
    trigger a totals recalculation. Shop-wide expenses feed analytics only.
    """

    def __init__(
        self,
        db: Db,
        *,
        order_repo: OrderRepository,
        expense_repo: ExpenseRepository,
        totals: OrderTotalsCalculator,
        audit: AuditWriter,
    ) -> None:
        self.db = db
        self.order_repo = order_repo
        self.expense_repo = expense_repo
        self.totals = totals
        self.audit = audit

    def create_expense(self, actor: Actor, scope: ExpenseScope, inp: CreateExpenseInput) -> dict:
        _check_scope(scope)
        if isinstance(scope, ShopWide) and not actor.is_admin:
            raise Forbidden("Admin rights required")
        title = _title(inp.title)
        amount = _amount(inp.amount_cents)
        expense_date = utcnow() if inp.expense_date is None else _expense_date(inp.expense_date)
        order_id = scope_order_id(scope)

        with self.db.transaction() as conn:
            if order_id is not None:
                fetch_mutable_order(conn, self.order_repo, order_id)

            expense = self.expense_repo.create(
                conn,
                order_id=order_id,
                title=title,
                amount_cents=amount,
                expense_date=expense_date,
                created_by_id=actor.id,
            )
            if order_id is not None:
                self.totals.recalc(conn, order_id)

            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.CREATE,
                entity=AuditEntity.EXPENSE,
                entity_id=expense["id"],
                order_id=order_id,
                diff=Created({k: expense[k] for k in ("id", "order_id", "title", "amount_cents", "expense_date")}),
            )
        logger.info("expense %s created (order %s) by user %s", expense["id"], order_id, actor.id)
        return expense

    def update_expense(self, actor: Actor, scope: ExpenseScope, expense_id: int, inp: UpdateExpenseInput) -> dict:
        _check_scope(scope)
        require_any(**vars(inp))
        requested = {
            "title": inp.title if inp.title is UNSET else _title(inp.title),
            "amount_cents": inp.amount_cents if inp.amount_cents is UNSET else _amount(inp.amount_cents),
            "expense_date": inp.expense_date if inp.expense_date is UNSET else _expense_date(inp.expense_date),
        }
        order_id = scope_order_id(scope)

        with self.db.transaction() as conn:
            expense = self._fetch_owned(conn, actor, expense_id, order_id)

            target = {k: expense[k] if v is UNSET else v for k, v in requested.items()}
            changes = changed_fields(expense, target)
            if not changes:
                logger.debug("expense %s update is a no-op", expense_id)
                return expense

            updated = self.expense_repo.update(conn, expense_id=expense_id, **target)
            if order_id is not None:
                self.totals.recalc(conn, order_id)
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.UPDATE,
                entity=AuditEntity.EXPENSE,
                entity_id=expense_id,
                order_id=order_id,
                diff=changes,
            )
        logger.info("expense %s (order %s) updated: %s", expense_id, order_id, sorted(changes.changes))
        return updated

    def delete_expense(self, actor: Actor, scope: ExpenseScope, expense_id: int) -> None:
        _check_scope(scope)
        order_id = scope_order_id(scope)

        with self.db.transaction() as conn:
            self._fetch_owned(conn, actor, expense_id, order_id)

            self.expense_repo.delete(conn, expense_id=expense_id)
            if order_id is not None:
                self.totals.recalc(conn, order_id)
            self.audit.record(
                conn,
                actor_id=actor.id,
                action=AuditAction.DELETE,
                entity=AuditEntity.EXPENSE,
                entity_id=expense_id,
                order_id=order_id,
                diff=Deleted(expense_id),
            )
        logger.info("expense %s (order %s) deleted by user %s", expense_id, order_id, actor.id)

    def list_shop_expenses(self, actor: Actor, date_from: str | None = None, date_to: str | None = None) -> list[dict]:
        if not actor.is_admin:
            raise Forbidden("Admin rights required")
        start = start_of_day(parse_date_only(date_from, "from")) if date_from else None
        end = start_of_day(parse_date_only(date_to, "to"), days=1) if date_to else None
        if start is not None and end is not None and start >= end:
            raise ValidationError(
                "from: must not be after to",
                issues=[{"field": "from", "message": "must not be after to"}],
            )

        with self.db.session() as conn:
            return self.expense_repo.list_shop_wide(conn, start=start, end_exclusive=end)

    def _fetch_owned(self, conn, actor: Actor, expense_id: int, order_id: int | None) -> dict:
        # lock first, then existence, then ownership
        if order_id is not None:
            fetch_mutable_order(conn, self.order_repo, order_id)

        expense = self.expense_repo.get(conn, expense_id=expense_id, order_id=order_id)
        if expense is None:
            raise NotFound("Expense not found")
        if not actor.is_admin and expense["created_by_id"] != actor.id:
            raise Forbidden("Only an admin or the author can change this expense")
        return expense
