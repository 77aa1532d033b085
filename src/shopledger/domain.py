from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Literal, Optional, Union

from .dates import start_of_day

Bucket = Literal["day", "week", "month"]


class OrderStatus(str, Enum):
    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING_PARTS = "WAITING_PARTS"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    PAID = "PAID"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    STATUS_CHANGE = "STATUS_CHANGE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"


class AuditEntity(str, Enum):
    ORDER = "ORDER"
    ORDER_WORK = "ORDER_WORK"
    ORDER_PART = "ORDER_PART"
    EXPENSE = "EXPENSE"
    COMMENT = "COMMENT"
    USER = "USER"
    SERVICE = "SERVICE"
    AUTH = "AUTH"


@dataclass(frozen=True)
class Actor:
    """Caller identity as resolved by the authenticating transport."""

    id: int
    is_admin: bool


# Where a work line comes from: a catalog service or a free-text custom name.
@dataclass(frozen=True)
class Catalog:
    service_id: int


@dataclass(frozen=True)
class Custom:
    name: str


WorkSource = Union[Catalog, Custom]


# Which ledger an expense belongs to.
@dataclass(frozen=True)
class OrderScoped:
    order_id: int


@dataclass(frozen=True)
class ShopWide:
    pass


ExpenseScope = Union[OrderScoped, ShopWide]


def scope_order_id(scope: ExpenseScope) -> Optional[int]:
    return scope.order_id if isinstance(scope, OrderScoped) else None


@dataclass(frozen=True)
class OrderTotals:
    labor_subtotal_cents: int
    parts_subtotal_cents: int
    invoice_total_cents: int
    order_expenses_cents: int


@dataclass(frozen=True)
class DateRange:
    date_from: date
    date_to: date
    bucket: Bucket

    @property
    def start(self) -> datetime:
        return start_of_day(self.date_from)

    @property
    def end_exclusive(self) -> datetime:
        return start_of_day(self.date_to, days=1)
