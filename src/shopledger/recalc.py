from __future__ import annotations

import logging

from psycopg import Connection

from .domain import OrderTotals
from .repositories.expense_repo import ExpenseRepository
from .repositories.order_part_repo import OrderPartRepository
from .repositories.order_repo import OrderRepository
from .repositories.order_work_repo import OrderWorkRepository

logger = logging.getLogger(__name__)


class OrderTotalsCalculator:
    """Re-derives an order's denormalized totals from its current rows.

    Always a full re-sum inside the caller's transaction; totals are never
    adjusted incrementally.
    """

    def __init__(
        self,
        *,
        order_repo: OrderRepository,
        work_repo: OrderWorkRepository,
        part_repo: OrderPartRepository,
        expense_repo: ExpenseRepository,
    ) -> None:
        self.order_repo = order_repo
        self.work_repo = work_repo
        self.part_repo = part_repo
        self.expense_repo = expense_repo

    def compute(self, conn: Connection, order_id: int) -> OrderTotals:
        labor = self.work_repo.sum_for_order(conn, order_id)
        parts = self.part_repo.sum_for_order(conn, order_id)
        expenses = self.expense_repo.sum_for_order(conn, order_id)
        return OrderTotals(
            labor_subtotal_cents=labor,
            parts_subtotal_cents=parts,
            invoice_total_cents=labor + parts,
            order_expenses_cents=expenses,
        )

    def recalc(self, conn: Connection, order_id: int) -> OrderTotals:
        totals = self.compute(conn, order_id)
        self.order_repo.write_totals(conn, order_id=order_id, totals=totals)
        logger.debug("order %s totals recalculated: %s", order_id, totals)
        return totals
