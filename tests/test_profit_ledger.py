from decimal import Decimal

from billing_service.app.crud.financials import profit_ledger_crud as ledger
from billing_service.app.models import Profit

from conftest import make_owner


def test_total_is_zero_without_entry(db):
    owner = make_owner(db)

    assert ledger.get_total(db, owner.id) == Decimal("0.00")


def test_increment_creates_entry(db):
    owner = make_owner(db)

    assert ledger.increment(db, owner.id, Decimal("800")) == Decimal("800.00")
    assert db.query(Profit).filter(Profit.owner_id == owner.id).count() == 1


def test_increment_accumulates_and_allows_negative_totals(db):
    owner = make_owner(db)

    ledger.increment(db, owner.id, Decimal("100.10"))
    ledger.increment(db, owner.id, Decimal("50.25"))
    assert ledger.get_total(db, owner.id) == Decimal("150.35")

    assert ledger.decrement(db, owner.id, Decimal("200.00")) == Decimal("-49.65")


def test_round_trip_restores_exact_total(db):
    owner = make_owner(db)
    ledger.increment(db, owner.id, Decimal("1234.56"))

    ledger.increment(db, owner.id, Decimal("650.99"))
    ledger.decrement(db, owner.id, Decimal("650.99"))

    assert ledger.get_total(db, owner.id) == Decimal("1234.56")


def test_ensure_entry_is_idempotent(db):
    owner = make_owner(db)

    ledger.ensure_entry(db, owner.id)
    ledger.ensure_entry(db, owner.id)

    assert db.query(Profit).filter(Profit.owner_id == owner.id).count() == 1
    assert ledger.get_total(db, owner.id) == Decimal("0.00")


def test_uncommitted_increment_is_rolled_back(db):
    owner = make_owner(db)
    ledger.ensure_entry(db, owner.id)

    ledger.increment(db, owner.id, Decimal("300.00"), commit=False)
    db.rollback()

    assert ledger.get_total(db, owner.id) == Decimal("0.00")
