from __future__ import annotations

import pytest

from fakes import CFG, FakeDb, FakeUserRepository, Store, fake_repositories
from shopledger.ledger import build_ledger


@pytest.fixture
def store():
    return Store()


@pytest.fixture
def db(store):
    return FakeDb(store)


@pytest.fixture
def ledger(db):
    return build_ledger(db, CFG, fake_repositories())


@pytest.fixture
def make_user(store):
    def _make(name: str, *, is_admin: bool = False, pct: int = 0, is_active: bool = True) -> dict:
        return FakeUserRepository().create(
            store, name=name, is_admin=is_admin, is_active=is_active, commission_pct=0 if is_admin else pct
        )

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin", is_admin=True)


@pytest.fixture
def master(make_user):
    return make_user("master1", pct=40)
