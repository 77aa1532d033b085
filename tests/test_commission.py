"""Commission snapshots on work lines."""

import pytest

from fakes import as_actor
from shopledger.commission import performer_rate, recompute_commission, snapshot_commission
from shopledger.domain import Catalog, Custom
from shopledger.errors import Conflict, NotFound
from shopledger.services.admin_service import CreateServiceInput, UpdateUserInput
from shopledger.services.order_service import CreateOrderInput
from shopledger.services.work_service import CreateWorkInput, UpdateWorkInput


def _order(ledger, user):
    return ledger.orders.create_order(as_actor(user), CreateOrderInput(title="Fender Strat"))


class TestSnapshotMath:
    def test_admin_rate_is_always_zero(self):
        assert performer_rate({"is_admin": True, "commission_pct": 50}) == 0

    def test_snapshot(self):
        snap = snapshot_commission({"is_admin": False, "commission_pct": 40}, 100000, 1)
        assert (snap.pct, snap.cents) == (40, 40000)

    def test_recompute_keeps_given_pct(self):
        assert recompute_commission(10, 10000, 2) == 2000


class TestWorkLineSnapshots:
    def test_catalog_line_uses_default_price(self, ledger, admin, master):
        ledger.admin.create_service(as_actor(admin), CreateServiceInput(name="Diagnostics", default_price_cents=100000))
        order = _order(ledger, admin)

        work = ledger.works.add_work(
            as_actor(admin), order["id"], CreateWorkInput(source=Catalog(1), performer_id=master["id"])
        )

        assert work["service_name"] == "Diagnostics"
        assert work["unit_price_cents"] == 100000
        assert work["commission_pct_snapshot"] == 40
        assert work["commission_cents_snapshot"] == 40000

    def test_admin_performer_earns_nothing(self, ledger, admin):
        order = _order(ledger, admin)
        work = ledger.works.add_work(
            as_actor(admin),
            order["id"],
            CreateWorkInput(source=Custom("Fret dressing"), performer_id=admin["id"], unit_price_cents=50000),
        )
        assert work["commission_pct_snapshot"] == 0
        assert work["commission_cents_snapshot"] == 0

    def test_rate_change_does_not_touch_existing_lines(self, ledger, store, admin, make_user):
        performer = make_user("luthier", pct=10)
        order = _order(ledger, admin)
        work = ledger.works.add_work(
            as_actor(admin),
            order["id"],
            CreateWorkInput(source=Custom("Setup"), performer_id=performer["id"], unit_price_cents=10000),
        )
        assert work["commission_cents_snapshot"] == 1000

        ledger.admin.update_user(as_actor(admin), performer["id"], UpdateUserInput(commission_pct=20))

        stored = store.tables["works"][work["id"]]
        assert stored["commission_pct_snapshot"] == 10
        assert stored["commission_cents_snapshot"] == 1000

        # quantity edit keeps the frozen percentage and recomputes the cents
        edited = ledger.works.update_work(as_actor(admin), order["id"], work["id"], UpdateWorkInput(quantity=2))
        assert edited["commission_pct_snapshot"] == 10
        assert edited["commission_cents_snapshot"] == 2000

    def test_new_line_after_rate_change_uses_new_rate(self, ledger, admin, make_user):
        performer = make_user("luthier", pct=10)
        ledger.admin.update_user(as_actor(admin), performer["id"], UpdateUserInput(commission_pct=20))
        order = _order(ledger, admin)
        work = ledger.works.add_work(
            as_actor(admin),
            order["id"],
            CreateWorkInput(source=Custom("Setup"), performer_id=performer["id"], unit_price_cents=10000),
        )
        assert work["commission_pct_snapshot"] == 20

    def test_performer_change_takes_new_snapshot(self, ledger, admin, master, make_user):
        other = make_user("master2", pct=35)
        order = _order(ledger, admin)
        work = ledger.works.add_work(
            as_actor(admin),
            order["id"],
            CreateWorkInput(source=Custom("Shielding"), performer_id=master["id"], unit_price_cents=250000),
        )

        edited = ledger.works.update_work(
            as_actor(admin), order["id"], work["id"], UpdateWorkInput(performer_id=other["id"])
        )

        assert edited["performer_id"] == other["id"]
        assert edited["commission_pct_snapshot"] == 35
        assert edited["commission_cents_snapshot"] == 87500

    def test_inactive_performer_rejected(self, ledger, admin, make_user):
        gone = make_user("former", pct=30, is_active=False)
        order = _order(ledger, admin)
        with pytest.raises(Conflict):
            ledger.works.add_work(
                as_actor(admin),
                order["id"],
                CreateWorkInput(source=Custom("Setup"), performer_id=gone["id"], unit_price_cents=100),
            )

    def test_unknown_performer_and_service(self, ledger, admin):
        order = _order(ledger, admin)
        with pytest.raises(NotFound):
            ledger.works.add_work(
                as_actor(admin), order["id"], CreateWorkInput(source=Custom("Setup"), performer_id=99, unit_price_cents=1)
            )
        with pytest.raises(NotFound):
            ledger.works.add_work(
                as_actor(admin), order["id"], CreateWorkInput(source=Catalog(42), performer_id=admin["id"])
            )

    def test_catalog_line_cannot_be_renamed(self, ledger, admin, master):
        ledger.admin.create_service(as_actor(admin), CreateServiceInput(name="Diagnostics", default_price_cents=100000))
        order = _order(ledger, admin)
        work = ledger.works.add_work(
            as_actor(admin), order["id"], CreateWorkInput(source=Catalog(1), performer_id=master["id"])
        )
        with pytest.raises(Conflict):
            ledger.works.update_work(
                as_actor(admin), order["id"], work["id"], UpdateWorkInput(service_name="Something else")
            )
