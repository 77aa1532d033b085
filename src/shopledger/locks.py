"""Order lock rules.

A PAID order is locked: its lines, parts, expenses, comments and header
cannot change. Only an admin may move an order into or out of PAID, and
moving it out is what unlocks it again.
"""
from __future__ import annotations

from datetime import datetime

from psycopg import Connection

from .domain import OrderStatus
from .errors import Conflict, NotFound
from .repositories.order_repo import OrderRepository


def is_locked(order: dict) -> bool:
    return order["status"] == OrderStatus.PAID.value


def assert_order_mutable(order: dict) -> None:
    if is_locked(order):
        raise Conflict("Order is paid, changes are not allowed")


def assert_status_change_allowed(*, is_admin: bool, current: OrderStatus, new: OrderStatus) -> None:
    if is_admin:
        return
    if current is OrderStatus.PAID:
        raise Conflict("Only an admin can change the status of a paid order")
    if new is OrderStatus.PAID:
        raise Conflict("Only an admin can mark an order as paid")


def next_paid_at(new: OrderStatus, now: datetime) -> datetime | None:
    return now if new is OrderStatus.PAID else None


def fetch_order(conn: Connection, order_repo: OrderRepository, order_id: int) -> dict:
    order = order_repo.lock(conn, order_id)
    if order is None:
        raise NotFound("Order not found")
    return order


def fetch_mutable_order(conn: Connection, order_repo: OrderRepository, order_id: int) -> dict:
    """Lock the order row and refuse to continue if the order is paid.

    Every mutating operation on an order's children starts here, before any
    other lookup or check.
    """
    order = fetch_order(conn, order_repo, order_id)
    assert_order_mutable(order)
    return order
