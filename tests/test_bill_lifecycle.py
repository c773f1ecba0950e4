import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi import HTTPException

from billing_service.app.crud.financials import bill_lifecycle_service as lifecycle
from billing_service.app.crud.financials import profit_ledger_crud as ledger
from billing_service.app.enum.bill_enum import BillStatus, allowed_sources
from billing_service.app.models import Bill
from shared.core.database import BillingSessionLocal
from shared.utils.app_status_code import AppStatusCode

from conftest import make_bill, make_owner

TODAY = date(2025, 11, 20)


def _status(db, bill_id):
    db.expire_all()
    return db.query(Bill).filter(Bill.id == bill_id).one()


def test_allowed_sources_follow_transition_table():
    assert set(allowed_sources(BillStatus.PAID)) == {
        BillStatus.PENDING, BillStatus.OVERDUE, BillStatus.RECEIPT_SENT}
    assert allowed_sources(BillStatus.OVERDUE) == [BillStatus.PENDING]
    assert lifecycle.can_transition(BillStatus.OVERDUE, BillStatus.PENDING) is False


def test_mark_as_paid_credits_ledger(db):
    owner = make_owner(db)
    bill = make_bill(db, owner, amount="800.00")

    result = lifecycle.mark_bill_as_paid(db, owner.id, bill.id, today=TODAY)

    assert result.bill.status == BillStatus.PAID
    assert result.bill.payment_date == TODAY
    assert result.profit.added == Decimal("800.00")
    assert result.profit.total == Decimal("800.00")
    assert ledger.get_total(db, owner.id) == Decimal("800.00")


def test_paying_twice_is_rejected_and_ledger_unchanged(db):
    owner = make_owner(db)
    bill = make_bill(db, owner)
    lifecycle.mark_bill_as_paid(db, owner.id, bill.id, today=TODAY)

    with pytest.raises(HTTPException) as exc:
        lifecycle.mark_bill_as_paid(db, owner.id, bill.id, today=TODAY)

    assert exc.value.status_code == 400
    assert exc.value.detail["status_code"] == AppStatusCode.BILL_ALREADY_PAID
    assert ledger.get_total(db, owner.id) == Decimal("800.00")


def test_undo_payment_round_trip(db):
    owner = make_owner(db)
    bill = make_bill(db, owner, amount="650.00")
    lifecycle.mark_bill_as_paid(db, owner.id, bill.id, today=TODAY)

    result = lifecycle.undo_bill_payment(db, owner.id, bill.id)

    assert result.bill.status == BillStatus.PENDING
    assert result.bill.payment_date is None
    assert result.profit.subtracted == Decimal("650.00")
    assert ledger.get_total(db, owner.id) == Decimal("0.00")


def test_undo_requires_paid_bill(db):
    owner = make_owner(db)
    bill = make_bill(db, owner)

    with pytest.raises(HTTPException) as exc:
        lifecycle.undo_bill_payment(db, owner.id, bill.id)

    assert exc.value.detail["status_code"] == AppStatusCode.BILL_NOT_PAID
    assert _status(db, bill.id).status == BillStatus.PENDING


def test_overdue_bill_can_be_paid(db):
    owner = make_owner(db)
    bill = make_bill(db, owner, status=BillStatus.OVERDUE)

    result = lifecycle.mark_bill_as_paid(db, owner.id, bill.id, today=TODAY)

    assert result.bill.status == BillStatus.PAID


def test_receipt_sent_before_payment_can_still_be_paid(db):
    owner = make_owner(db)
    bill = make_bill(db, owner)

    sent = lifecycle.mark_bill_receipt_sent(db, owner.id, bill.id)
    assert sent.status == BillStatus.RECEIPT_SENT

    result = lifecycle.mark_bill_as_paid(db, owner.id, bill.id, today=TODAY)
    assert result.bill.status == BillStatus.PAID
    assert ledger.get_total(db, owner.id) == Decimal("800.00")


def test_receipt_sent_after_payment_blocks_second_credit(db):
    owner = make_owner(db)
    bill = make_bill(db, owner)
    lifecycle.mark_bill_as_paid(db, owner.id, bill.id, today=TODAY)

    sent = lifecycle.mark_bill_receipt_sent(db, owner.id, bill.id)
    assert sent.status == BillStatus.RECEIPT_SENT
    assert sent.payment_date == TODAY

    with pytest.raises(HTTPException) as exc:
        lifecycle.mark_bill_as_paid(db, owner.id, bill.id, today=TODAY)

    assert exc.value.detail["status_code"] == AppStatusCode.BILL_ALREADY_PAID
    assert ledger.get_total(db, owner.id) == Decimal("800.00")


def test_overdue_bill_cannot_be_marked_receipt_sent(db):
    owner = make_owner(db)
    bill = make_bill(db, owner, status=BillStatus.OVERDUE)

    with pytest.raises(HTTPException) as exc:
        lifecycle.mark_bill_receipt_sent(db, owner.id, bill.id)

    assert exc.value.detail["status_code"] == AppStatusCode.INVALID_BILL_TRANSITION
    assert _status(db, bill.id).status == BillStatus.OVERDUE


def test_other_owners_bill_is_not_found(db):
    owner = make_owner(db)
    other = make_owner(db, name="Other", email="other@example.com")
    bill = make_bill(db, owner)

    with pytest.raises(HTTPException) as exc:
        lifecycle.mark_bill_as_paid(db, other.id, bill.id)
    assert exc.value.status_code == 404

    with pytest.raises(HTTPException) as exc:
        lifecycle.mark_bill_as_paid(db, owner.id, uuid.uuid4())
    assert exc.value.status_code == 404


def test_overdue_sweep_only_flags_past_due_pending_bills(db):
    owner = make_owner(db)
    late = make_bill(db, owner, due_date=TODAY - timedelta(days=1), tenant_name="Late")
    upcoming = make_bill(db, owner, due_date=TODAY + timedelta(days=1), tenant_name="Upcoming")
    due_today = make_bill(db, owner, due_date=TODAY, tenant_name="Due Today")
    paid = make_bill(db, owner, due_date=TODAY - timedelta(days=5), status=BillStatus.PAID,
                     payment_date=TODAY - timedelta(days=6), tenant_name="Paid")

    assert lifecycle.sweep_overdue_bills(db, today=TODAY) == 1

    assert _status(db, late.id).status == BillStatus.OVERDUE
    assert _status(db, upcoming.id).status == BillStatus.PENDING
    assert _status(db, due_today.id).status == BillStatus.PENDING
    assert _status(db, paid.id).status == BillStatus.PAID

    # second sweep finds nothing new
    assert lifecycle.sweep_overdue_bills(db, today=TODAY) == 0


def test_concurrent_payments_for_one_owner_sum_exactly(db):
    owner = make_owner(db)
    bill_ids = [
        make_bill(db, owner, amount=f"{100 + i}.25", tenant_name=f"Tenant {i}").id
        for i in range(8)
    ]
    owner_id = owner.id

    def pay(bill_id):
        with BillingSessionLocal() as session:
            return lifecycle.mark_bill_as_paid(session, owner_id, bill_id, today=TODAY)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(pay, bill_ids))

    assert all(r.bill.status == BillStatus.PAID for r in results)
    db.expire_all()
    assert ledger.get_total(db, owner_id) == Decimal("830.00")
    assert db.query(Bill).filter(Bill.status == BillStatus.PAID).count() == 8
