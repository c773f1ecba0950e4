import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shared.helpers.json_response_helper import error_response
from shared.utils.app_status_code import AppStatusCode

from . import profit_ledger_crud as ledger
from ...enum.bill_enum import BILL_TRANSITIONS, BillStatus, allowed_sources
from ...models.financials.bills import Bill
from ...schemas.financials.bills_schemas import (
    BillPaymentResult, BillPaymentState, ProfitChange
)

logger = logging.getLogger(__name__)


def can_transition(current: BillStatus, target: BillStatus) -> bool:
    return target in BILL_TRANSITIONS.get(BillStatus(current), frozenset())


def get_owner_bill(db: Session, owner_id: UUID, bill_id: UUID) -> Bill:
    bill = db.query(Bill).filter(
        Bill.id == bill_id,
        Bill.owner_id == owner_id
    ).first()

    if not bill:
        return error_response(
            message="Bill not found",
            status_code=AppStatusCode.NOT_FOUND,
            http_status=404
        )
    return bill


def _bill_amount(bill: Bill):
    return ledger.as_money(
        bill.total_amount if bill.total_amount is not None else bill.amount)


def _guarded_update(db: Session, bill_id: UUID, target: BillStatus, values: dict, *extra_filters) -> int:
    """
    Move the bill to ``target`` only if its stored status is still a legal
    source. Returns the affected row count (0 means the guard failed).
    """
    return (
        db.query(Bill)
        .filter(
            Bill.id == bill_id,
            Bill.status.in_(allowed_sources(target)),
            *extra_filters
        )
        .update(
            {Bill.status: target, Bill.updated_at: func.now(), **values},
            synchronize_session=False
        )
    )


def _payment_state(db: Session, bill: Bill, amount) -> BillPaymentState:
    db.refresh(bill)
    return BillPaymentState(
        id=bill.id,
        status=bill.status,
        payment_date=bill.payment_date,
        amount=amount
    )


def mark_bill_as_paid(db: Session, owner_id: UUID, bill_id: UUID, today: Optional[date] = None) -> BillPaymentResult:
    """PENDING | OVERDUE | RECEIPT_SENT (unpaid) -> PAID, adding the bill total to the ledger."""
    bill = get_owner_bill(db, owner_id, bill_id)

    if bill.status == BillStatus.PAID or bill.payment_date is not None:
        return error_response(
            message="This bill is already marked as paid",
            status_code=AppStatusCode.BILL_ALREADY_PAID
        )

    amount = _bill_amount(bill)
    ledger.ensure_entry(db, bill.owner_id)

    try:
        updated = _guarded_update(
            db, bill.id, BillStatus.PAID,
            {Bill.payment_date: today or date.today()},
            Bill.payment_date.is_(None)
        )
        if not updated:
            db.rollback()
            return error_response(
                message="This bill is already marked as paid",
                status_code=AppStatusCode.BILL_ALREADY_PAID
            )

        total = ledger.increment(db, bill.owner_id, amount, commit=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to mark bill {bill_id} as paid")
        raise

    logger.info(
        f"Bill {bill_id} marked as paid. Added {amount} to profit. New total: {total}")

    return BillPaymentResult(
        bill=_payment_state(db, bill, amount),
        profit=ProfitChange(total=total, added=amount)
    )


def undo_bill_payment(db: Session, owner_id: UUID, bill_id: UUID) -> BillPaymentResult:
    """PAID -> PENDING, subtracting the bill's current total from the ledger."""
    bill = get_owner_bill(db, owner_id, bill_id)

    if bill.status != BillStatus.PAID:
        return error_response(
            message="This bill is not marked as paid",
            status_code=AppStatusCode.BILL_NOT_PAID
        )

    amount = _bill_amount(bill)

    try:
        updated = (
            db.query(Bill)
            .filter(Bill.id == bill.id, Bill.status == BillStatus.PAID)
            .update(
                {
                    Bill.status: BillStatus.PENDING,
                    Bill.payment_date: None,
                    Bill.updated_at: func.now(),
                },
                synchronize_session=False
            )
        )
        if not updated:
            db.rollback()
            return error_response(
                message="This bill is not marked as paid",
                status_code=AppStatusCode.BILL_NOT_PAID
            )

        total = ledger.decrement(db, bill.owner_id, amount, commit=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to undo payment of bill {bill_id}")
        raise

    logger.info(
        f"Bill {bill_id} payment undone. Subtracted {amount} from profit. New total: {total}")

    return BillPaymentResult(
        bill=_payment_state(db, bill, amount),
        profit=ProfitChange(total=total, subtracted=amount)
    )


def mark_bill_receipt_sent(db: Session, owner_id: UUID, bill_id: UUID) -> Bill:
    """PENDING | PAID -> RECEIPT_SENT. The ledger is not touched."""
    bill = get_owner_bill(db, owner_id, bill_id)

    if not can_transition(bill.status, BillStatus.RECEIPT_SENT):
        return error_response(
            message=f"Cannot mark a {bill.status.value} bill as receipt sent",
            status_code=AppStatusCode.INVALID_BILL_TRANSITION
        )

    updated = _guarded_update(db, bill.id, BillStatus.RECEIPT_SENT, {})
    if not updated:
        db.rollback()
        return error_response(
            message="Bill status changed concurrently, retry the operation",
            status_code=AppStatusCode.INVALID_BILL_TRANSITION,
            http_status=409
        )

    db.commit()
    db.refresh(bill)
    logger.info(f"Receipt sent for bill {bill_id}")
    return bill


def mark_bill_as_overdue(db: Session, bill_id: UUID, today: date) -> bool:
    """PENDING -> OVERDUE once the due date has passed. Never reverted automatically."""
    updated = _guarded_update(
        db, bill_id, BillStatus.OVERDUE, {},
        Bill.due_date < today
    )
    db.commit()
    return bool(updated)


def find_overdue_candidates(db: Session, today: date) -> List[Bill]:
    return (
        db.query(Bill)
        .filter(
            Bill.status == BillStatus.PENDING,
            Bill.due_date < today
        )
        .all()
    )


def sweep_overdue_bills(db: Session, today: Optional[date] = None) -> int:
    """Daily overdue sweep. Returns how many bills became OVERDUE."""
    today = today or date.today()
    candidates = find_overdue_candidates(db, today)

    if not candidates:
        logger.info("No overdue bills found")
        return 0

    marked = 0
    for bill in candidates:
        bill_id = bill.id
        try:
            if mark_bill_as_overdue(db, bill_id, today):
                marked += 1
                logger.info(f"Marked bill {bill_id} as overdue")
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Failed to mark bill {bill_id} as overdue")

    logger.info(f"Updated {marked} bills to overdue status")
    return marked
