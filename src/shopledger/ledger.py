from __future__ import annotations

from dataclasses import dataclass, field

from .analytics import AnalyticsService
from .audit import AuditWriter
from .config import AppConfig
from .db import Db
from .recalc import OrderTotalsCalculator
from .repositories.analytics_repo import AnalyticsRepository
from .repositories.audit_repo import AuditRepository
from .repositories.catalog_repo import CatalogRepository
from .repositories.comment_repo import CommentRepository
from .repositories.expense_repo import ExpenseRepository
from .repositories.order_part_repo import OrderPartRepository
from .repositories.order_repo import OrderRepository
from .repositories.order_work_repo import OrderWorkRepository
from .repositories.user_repo import UserRepository
from .services.admin_service import AdminService
from .services.expense_service import ExpenseService
from .services.order_service import OrderService
from .services.part_service import PartService
from .services.work_service import WorkService


@dataclass
class Repositories:
    orders: OrderRepository = field(default_factory=OrderRepository)
    works: OrderWorkRepository = field(default_factory=OrderWorkRepository)
    parts: OrderPartRepository = field(default_factory=OrderPartRepository)
    expenses: ExpenseRepository = field(default_factory=ExpenseRepository)
    users: UserRepository = field(default_factory=UserRepository)
    catalog: CatalogRepository = field(default_factory=CatalogRepository)
    comments: CommentRepository = field(default_factory=CommentRepository)
    audit: AuditRepository = field(default_factory=AuditRepository)
    analytics: AnalyticsRepository = field(default_factory=AnalyticsRepository)


@dataclass(frozen=True)
class Ledger:
    orders: OrderService
    works: WorkService
    parts: PartService
    expenses: ExpenseService
    admin: AdminService
    analytics: AnalyticsService


def build_ledger(db: Db, cfg: AppConfig, repos: Repositories | None = None) -> Ledger:
    """Wire every service against one store handle."""
    r = repos or Repositories()
    audit = AuditWriter(r.audit)
    totals = OrderTotalsCalculator(
        order_repo=r.orders,
        work_repo=r.works,
        part_repo=r.parts,
        expense_repo=r.expenses,
    )
    return Ledger(
        orders=OrderService(
            db,
            order_repo=r.orders,
            work_repo=r.works,
            part_repo=r.parts,
            expense_repo=r.expenses,
            comment_repo=r.comments,
            audit_repo=r.audit,
            audit=audit,
            comment_preview_chars=cfg.ledger.comment_preview_chars,
            audit_page_limit=cfg.ledger.audit_page_limit,
        ),
        works=WorkService(
            db,
            order_repo=r.orders,
            work_repo=r.works,
            user_repo=r.users,
            catalog_repo=r.catalog,
            totals=totals,
            audit=audit,
        ),
        parts=PartService(db, order_repo=r.orders, part_repo=r.parts, totals=totals, audit=audit),
        expenses=ExpenseService(db, order_repo=r.orders, expense_repo=r.expenses, totals=totals, audit=audit),
        admin=AdminService(db, user_repo=r.users, catalog_repo=r.catalog, audit=audit),
        analytics=AnalyticsService(db, analytics_repo=r.analytics, default_bucket=cfg.ledger.default_bucket),
    )
