from __future__ import annotations

import logging
import os
import tempfile

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from shopledger.audit import camel, json_value
from shopledger.config import ConfigError, configure_logging, load_config
from shopledger.db import Db, DbError
from shopledger.domain import Actor, Catalog, Custom, OrderScoped, ShopWide
from shopledger.errors import Forbidden, LedgerError, ValidationError
from shopledger.ledger import Ledger, build_ledger
from shopledger.services.admin_service import (
    CreateServiceInput,
    CreateUserInput,
    UpdateServiceInput,
    UpdateUserInput,
)
from shopledger.services.expense_service import CreateExpenseInput, UpdateExpenseInput
from shopledger.services.order_service import CreateOrderInput, UpdateOrderInput
from shopledger.services.part_service import CreatePartInput, UpdatePartInput
from shopledger.services.work_service import CreateWorkInput, UpdateWorkInput
from shopledger.validation import UNSET

logger = logging.getLogger(__name__)


class Unauthorized(LedgerError):
    status = 401


def to_json(value):
    """Rows to camelCase JSON-ready values, recursively."""
    if isinstance(value, dict):
        return {camel(k): to_json(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_json(v) for v in value]
    return json_value(value)


def _actor() -> Actor:
    # identity is resolved upstream by the authenticating gateway
    raw_id = request.headers.get("X-Actor-Id", "").strip()
    if not raw_id.isdigit():
        raise Unauthorized("Unauthorized")
    is_admin = request.headers.get("X-Actor-Admin", "").strip().lower() in {"1", "true", "yes"}
    return Actor(id=int(raw_id), is_admin=is_admin)


def _body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _ok(**payload):
    return jsonify({"ok": True, **{k: to_json(v) for k, v in payload.items()}})


def create_app(ledger: Ledger) -> Flask:
    app = Flask(__name__)

    @app.before_request
    def resolve_actor():
        g.actor = _actor()

    @app.errorhandler(LedgerError)
    def handle_ledger_error(e: LedgerError):
        return jsonify(e.to_payload()), e.status

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify({"ok": False, "message": e.description}), e.code
        logger.exception("unhandled error on %s %s", request.method, request.path)
        return jsonify({"ok": False, "message": "Internal error"}), 500

    # --- orders ----------------------------------------------------------

    @app.get("/api/orders")
    def orders_list():
        rows = ledger.orders.list_orders(
            g.actor,
            q=request.args.get("q"),
            statuses=request.args.getlist("status"),
            mine=request.args.get("mine", "").lower() in {"1", "true"},
            limit=request.args.get("limit", 100, type=int),
        )
        return _ok(orders=rows)

    @app.post("/api/orders")
    def orders_create():
        b = _body()
        order = ledger.orders.create_order(
            g.actor,
            CreateOrderInput(
                title=b.get("title"),
                guitar_serial=b.get("guitarSerial"),
                description=b.get("description"),
                customer_name=b.get("customerName"),
                customer_phone=b.get("customerPhone"),
            ),
        )
        return _ok(order=order), 201

    @app.get("/api/orders/<int:order_id>")
    def orders_get(order_id: int):
        return _ok(order=ledger.orders.get_order(g.actor, order_id))

    @app.patch("/api/orders/<int:order_id>")
    def orders_update(order_id: int):
        b = _body()
        order = ledger.orders.update_order(
            g.actor,
            order_id,
            UpdateOrderInput(
                title=b.get("title", UNSET),
                guitar_serial=b.get("guitarSerial", UNSET),
                description=b.get("description", UNSET),
                customer_name=b.get("customerName", UNSET),
                customer_phone=b.get("customerPhone", UNSET),
            ),
        )
        return _ok(order=order)

    @app.post("/api/orders/<int:order_id>/status")
    def orders_status(order_id: int):
        order = ledger.orders.change_status(g.actor, order_id, _body().get("status"))
        return _ok(order=order)

    @app.get("/api/orders/<int:order_id>/comments")
    def comments_list(order_id: int):
        return _ok(comments=ledger.orders.list_comments(order_id))

    @app.post("/api/orders/<int:order_id>/comments")
    def comments_create(order_id: int):
        comment = ledger.orders.add_comment(g.actor, order_id, _body().get("text"))
        return _ok(comment=comment), 201

    @app.get("/api/orders/<int:order_id>/audit")
    def orders_audit(order_id: int):
        rows = ledger.orders.list_order_audit(
            order_id,
            entity=request.args.get("entity"),
            action=request.args.get("action"),
            limit=request.args.get("limit", type=int),
        )
        return _ok(audit=rows)

    # --- work lines ------------------------------------------------------

    @app.post("/api/orders/<int:order_id>/works/from-service")
    def works_from_service(order_id: int):
        b = _body()
        work = ledger.works.add_work(
            g.actor,
            order_id,
            CreateWorkInput(
                source=Catalog(b.get("serviceId")),
                performer_id=b.get("performerId"),
                unit_price_cents=b.get("unitPriceCents"),
                quantity=b.get("quantity", 1),
            ),
        )
        return _ok(work=work), 201

    @app.post("/api/orders/<int:order_id>/works/custom")
    def works_custom(order_id: int):
        b = _body()
        work = ledger.works.add_work(
            g.actor,
            order_id,
            CreateWorkInput(
                source=Custom(b.get("serviceName")),
                performer_id=b.get("performerId"),
                unit_price_cents=b.get("unitPriceCents"),
                quantity=b.get("quantity", 1),
            ),
        )
        return _ok(work=work), 201

    @app.patch("/api/orders/<int:order_id>/works/<int:work_id>")
    def works_update(order_id: int, work_id: int):
        b = _body()
        work = ledger.works.update_work(
            g.actor,
            order_id,
            work_id,
            UpdateWorkInput(
                service_name=b.get("serviceName", UNSET),
                unit_price_cents=b.get("unitPriceCents", UNSET),
                quantity=b.get("quantity", UNSET),
                performer_id=b.get("performerId", UNSET),
            ),
        )
        return _ok(work=work)

    @app.delete("/api/orders/<int:order_id>/works/<int:work_id>")
    def works_delete(order_id: int, work_id: int):
        ledger.works.delete_work(g.actor, order_id, work_id)
        return _ok()

    # --- parts -----------------------------------------------------------

    @app.post("/api/orders/<int:order_id>/parts")
    def parts_create(order_id: int):
        b = _body()
        part = ledger.parts.add_part(
            g.actor,
            order_id,
            CreatePartInput(
                name=b.get("name"),
                unit_price_cents=b.get("unitPriceCents"),
                quantity=b.get("quantity", 1),
                cost_cents=b.get("costCents"),
            ),
        )
        return _ok(part=part), 201

    @app.patch("/api/orders/<int:order_id>/parts/<int:part_id>")
    def parts_update(order_id: int, part_id: int):
        b = _body()
        part = ledger.parts.update_part(
            g.actor,
            order_id,
            part_id,
            UpdatePartInput(
                name=b.get("name", UNSET),
                unit_price_cents=b.get("unitPriceCents", UNSET),
                quantity=b.get("quantity", UNSET),
                cost_cents=b.get("costCents", UNSET),
            ),
        )
        return _ok(part=part)

    @app.delete("/api/orders/<int:order_id>/parts/<int:part_id>")
    def parts_delete(order_id: int, part_id: int):
        ledger.parts.delete_part(g.actor, order_id, part_id)
        return _ok()

    # --- expenses --------------------------------------------------------

    def _create_expense(scope):
        b = _body()
        expense = ledger.expenses.create_expense(
            g.actor,
            scope,
            CreateExpenseInput(
                title=b.get("title"),
                amount_cents=b.get("amountCents"),
                expense_date=b.get("expenseDate"),
            ),
        )
        return _ok(expense=expense), 201

    def _update_expense(scope, expense_id: int):
        b = _body()
        expense = ledger.expenses.update_expense(
            g.actor,
            scope,
            expense_id,
            UpdateExpenseInput(
                title=b.get("title", UNSET),
                amount_cents=b.get("amountCents", UNSET),
                expense_date=b.get("expenseDate", UNSET),
            ),
        )
        return _ok(expense=expense)

    @app.post("/api/orders/<int:order_id>/expenses")
    def order_expenses_create(order_id: int):
        return _create_expense(OrderScoped(order_id))

    @app.patch("/api/orders/<int:order_id>/expenses/<int:expense_id>")
    def order_expenses_update(order_id: int, expense_id: int):
        return _update_expense(OrderScoped(order_id), expense_id)

    @app.delete("/api/orders/<int:order_id>/expenses/<int:expense_id>")
    def order_expenses_delete(order_id: int, expense_id: int):
        ledger.expenses.delete_expense(g.actor, OrderScoped(order_id), expense_id)
        return _ok()

    @app.get("/api/admin/expenses")
    def shop_expenses_list():
        rows = ledger.expenses.list_shop_expenses(g.actor, request.args.get("from"), request.args.get("to"))
        return _ok(expenses=rows)

    @app.post("/api/admin/expenses")
    def shop_expenses_create():
        return _create_expense(ShopWide())

    @app.patch("/api/admin/expenses/<int:expense_id>")
    def shop_expenses_update(expense_id: int):
        return _update_expense(ShopWide(), expense_id)

    @app.delete("/api/admin/expenses/<int:expense_id>")
    def shop_expenses_delete(expense_id: int):
        ledger.expenses.delete_expense(g.actor, ShopWide(), expense_id)
        return _ok()

    # --- users and catalog -----------------------------------------------

    @app.get("/api/users")
    def users_active():
        return _ok(users=ledger.admin.list_users(active_only=True))

    @app.get("/api/services")
    def services_active():
        return _ok(services=ledger.admin.list_services(active_only=True))

    @app.get("/api/admin/users")
    def admin_users_list():
        if not g.actor.is_admin:
            raise Forbidden("Admin rights required")
        return _ok(users=ledger.admin.list_users())

    @app.post("/api/admin/users")
    def admin_users_create():
        b = _body()
        user = ledger.admin.create_user(
            g.actor,
            CreateUserInput(
                name=b.get("name"),
                is_admin=b.get("isAdmin", False),
                is_active=b.get("isActive", True),
                commission_pct=b.get("commissionPct", 0),
            ),
        )
        return _ok(user=user), 201

    @app.patch("/api/admin/users/<int:user_id>")
    def admin_users_update(user_id: int):
        b = _body()
        user = ledger.admin.update_user(
            g.actor,
            user_id,
            UpdateUserInput(
                is_admin=b.get("isAdmin", UNSET),
                is_active=b.get("isActive", UNSET),
                commission_pct=b.get("commissionPct", UNSET),
            ),
        )
        return _ok(user=user)

    @app.get("/api/admin/services")
    def admin_services_list():
        if not g.actor.is_admin:
            raise Forbidden("Admin rights required")
        return _ok(services=ledger.admin.list_services())

    @app.post("/api/admin/services")
    def admin_services_create():
        b = _body()
        service = ledger.admin.create_service(
            g.actor,
            CreateServiceInput(
                name=b.get("name"),
                default_price_cents=b.get("defaultPriceCents"),
                is_active=b.get("isActive", True),
            ),
        )
        return _ok(service=service), 201

    @app.patch("/api/admin/services/<int:service_id>")
    def admin_services_update(service_id: int):
        b = _body()
        service = ledger.admin.update_service(
            g.actor,
            service_id,
            UpdateServiceInput(
                name=b.get("name", UNSET),
                default_price_cents=b.get("defaultPriceCents", UNSET),
                is_active=b.get("isActive", UNSET),
            ),
        )
        return _ok(service=service)

    @app.post("/api/admin/services/import")
    def admin_services_import():
        file = request.files.get("file")
        if not file or file.filename == "":
            raise ValidationError("No file selected")

        fd, path = tempfile.mkstemp(suffix=".json")
        try:
            file.save(path)
            rows = ledger.admin.import_catalog_json(g.actor, path)
        finally:
            os.close(fd)
            os.unlink(path)
        return _ok(imported=len(rows), services=rows)

    # --- auth events -----------------------------------------------------

    @app.post("/api/auth/login-event")
    def auth_login():
        ledger.admin.record_login(g.actor.id)
        return _ok()

    @app.post("/api/auth/logout-event")
    def auth_logout():
        ledger.admin.record_logout(g.actor.id)
        return _ok()

    # --- analytics -------------------------------------------------------

    @app.get("/api/admin/analytics")
    def admin_analytics():
        report = ledger.analytics.shop_report(
            g.actor,
            request.args.get("from"),
            request.args.get("to"),
            request.args.get("bucket"),
        )
        return jsonify({"ok": True, **report.to_dict()})

    @app.get("/api/me/commission")
    def my_commission():
        report = ledger.analytics.my_commission(
            g.actor,
            request.args.get("from"),
            request.args.get("to"),
            request.args.get("bucket"),
        )
        return jsonify({"ok": True, **report.to_dict()})

    return app


if __name__ == "__main__":
    try:
        cfg = load_config("config.toml")
        configure_logging(cfg.log_level)
        app = create_app(build_ledger(Db(cfg.db), cfg))
        app.run(debug=False, host="127.0.0.1", port=5000)
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}")
        raise SystemExit(2)
    except DbError as e:
        print(f"[DB ERROR] {e}")
        raise SystemExit(3)
