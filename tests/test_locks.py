"""Paid orders are locked; only admins move orders into or out of PAID."""

import pytest

from fakes import as_actor
from shopledger.domain import Custom, OrderScoped, OrderStatus
from shopledger.errors import Conflict
from shopledger.locks import assert_status_change_allowed, is_locked, next_paid_at
from shopledger.services.admin_service import UpdateUserInput
from shopledger.services.expense_service import CreateExpenseInput, UpdateExpenseInput
from shopledger.services.order_service import CreateOrderInput, UpdateOrderInput
from shopledger.services.part_service import CreatePartInput, UpdatePartInput
from shopledger.services.work_service import CreateWorkInput, UpdateWorkInput


@pytest.fixture
def paid_order(ledger, admin, master):
    boss, worker = as_actor(admin), as_actor(master)
    order = ledger.orders.create_order(worker, CreateOrderInput(title="Gibson LP", guitar_serial="LP-1"))
    oid = order["id"]
    work = ledger.works.add_work(
        boss, oid, CreateWorkInput(source=Custom("Refret"), performer_id=master["id"], unit_price_cents=300000)
    )
    part = ledger.parts.add_part(worker, oid, CreatePartInput(name="Frets", unit_price_cents=50000, quantity=2))
    expense = ledger.expenses.create_expense(
        worker, OrderScoped(oid), CreateExpenseInput(title="Courier", amount_cents=30000)
    )
    ledger.orders.change_status(boss, oid, "PAID")
    return {"id": oid, "work": work["id"], "part": part["id"], "expense": expense["id"]}


def _mutations(ledger, o):
    oid = o["id"]
    return [
        lambda a: ledger.works.add_work(
            a, oid, CreateWorkInput(source=Custom("Setup"), performer_id=a.id, unit_price_cents=1000)
        ),
        lambda a: ledger.works.update_work(a, oid, o["work"], UpdateWorkInput(quantity=2)),
        lambda a: ledger.works.delete_work(a, oid, o["work"]),
        lambda a: ledger.parts.add_part(a, oid, CreatePartInput(name="Nut", unit_price_cents=1000)),
        lambda a: ledger.parts.update_part(a, oid, o["part"], UpdatePartInput(quantity=5)),
        lambda a: ledger.parts.delete_part(a, oid, o["part"]),
        lambda a: ledger.expenses.create_expense(a, OrderScoped(oid), CreateExpenseInput(title="Glue", amount_cents=1)),
        lambda a: ledger.expenses.update_expense(a, OrderScoped(oid), o["expense"], UpdateExpenseInput(amount_cents=9)),
        lambda a: ledger.expenses.delete_expense(a, OrderScoped(oid), o["expense"]),
        lambda a: ledger.orders.add_comment(a, oid, "done"),
    ]


class TestLockRules:
    def test_predicates(self):
        assert is_locked({"status": "PAID"})
        assert not is_locked({"status": "READY_FOR_PICKUP"})
        assert next_paid_at(OrderStatus.NEW, "now") is None
        assert next_paid_at(OrderStatus.PAID, "now") == "now"

    @pytest.mark.parametrize(
        "current,new",
        [(OrderStatus.NEW, OrderStatus.PAID), (OrderStatus.PAID, OrderStatus.IN_PROGRESS)],
    )
    def test_non_admin_cannot_touch_paid(self, current, new):
        with pytest.raises(Conflict):
            assert_status_change_allowed(is_admin=False, current=current, new=new)
        assert_status_change_allowed(is_admin=True, current=current, new=new)

    def test_non_paid_transitions_are_free(self):
        assert_status_change_allowed(is_admin=False, current=OrderStatus.NEW, new=OrderStatus.WAITING_PARTS)


class TestPaidOrder:
    def test_paid_sets_paid_at(self, store, paid_order):
        row = store.tables["orders"][paid_order["id"]]
        assert row["status"] == "PAID"
        assert row["paid_at"] is not None

    @pytest.mark.parametrize("who", ["admin", "master"])
    def test_every_mutation_is_rejected_without_side_effects(self, request, ledger, store, paid_order, who):
        a = as_actor(request.getfixturevalue(who))
        before_order = dict(store.tables["orders"][paid_order["id"]])
        before_audit = len(store.tables["audit"])

        for mutate in _mutations(ledger, paid_order):
            with pytest.raises(Conflict):
                mutate(a)

        assert store.tables["orders"][paid_order["id"]] == before_order
        assert len(store.tables["audit"]) == before_audit

    def test_header_edit_rejected_even_for_admin(self, ledger, admin, paid_order):
        with pytest.raises(Conflict):
            ledger.orders.update_order(as_actor(admin), paid_order["id"], UpdateOrderInput(title="New title"))

    def test_non_admin_cannot_revert(self, ledger, master, paid_order):
        with pytest.raises(Conflict):
            ledger.orders.change_status(as_actor(master), paid_order["id"], "IN_PROGRESS")

    def test_admin_revert_unlocks(self, ledger, store, admin, master, paid_order):
        ledger.orders.change_status(as_actor(admin), paid_order["id"], "READY_FOR_PICKUP")
        assert store.tables["orders"][paid_order["id"]]["paid_at"] is None

        ledger.orders.add_comment(as_actor(master), paid_order["id"], "one more string change")
        ledger.parts.add_part(
            as_actor(master), paid_order["id"], CreatePartInput(name="Strings", unit_price_cents=90000)
        )
        assert store.tables["orders"][paid_order["id"]]["parts_subtotal_cents"] == 190000

    def test_line_added_after_revert_uses_rate_at_edit_time(self, ledger, store, admin, master, paid_order):
        ledger.admin.update_user(as_actor(admin), master["id"], UpdateUserInput(commission_pct=10))
        ledger.orders.change_status(as_actor(admin), paid_order["id"], "IN_PROGRESS")
        work = ledger.works.add_work(
            as_actor(admin),
            paid_order["id"],
            CreateWorkInput(source=Custom("Setup"), performer_id=master["id"], unit_price_cents=10000),
        )

        assert work["commission_pct_snapshot"] == 10
        assert store.tables["works"][paid_order["work"]]["commission_pct_snapshot"] == 40

    def test_same_status_is_a_no_op(self, ledger, store, admin, paid_order):
        before = len(store.tables["audit"])
        ledger.orders.change_status(as_actor(admin), paid_order["id"], "PAID")
        assert len(store.tables["audit"]) == before

    def test_non_admin_repeating_paid_is_rejected(self, ledger, store, master, paid_order):
        before = len(store.tables["audit"])
        with pytest.raises(Conflict):
            ledger.orders.change_status(as_actor(master), paid_order["id"], "PAID")
        assert len(store.tables["audit"]) == before

    def test_intermediate_statuses_by_anyone(self, ledger, store, master):
        order = ledger.orders.create_order(as_actor(master), CreateOrderInput(title="Bass"))
        for status in ("IN_PROGRESS", "WAITING_PARTS", "READY_FOR_PICKUP", "NEW"):
            ledger.orders.change_status(as_actor(master), order["id"], status)
        assert store.tables["orders"][order["id"]]["status"] == "NEW"
