import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models.financials.profits import Profit

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def as_money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS)


def ensure_entry(db: Session, owner_id: UUID) -> None:
    """
    Create the owner's ledger row (total 0) if it does not exist yet.
    Commits on its own, so call it before opening a payment transaction.
    """
    exists = db.query(Profit.id).filter(Profit.owner_id == owner_id).first()
    if exists:
        return

    db.add(Profit(owner_id=owner_id, total_profit=ZERO,
                  last_updated=datetime.now(timezone.utc)))
    try:
        db.commit()
    except IntegrityError:
        # created by a concurrent request in the meantime
        db.rollback()


def increment(db: Session, owner_id: UUID, delta, commit: bool = True) -> Decimal:
    """
    Add ``delta`` (may be negative) to the owner's running total.

    The update is one ``total_profit = total_profit + delta`` statement so two
    concurrent payments for the same owner cannot overwrite each other.
    With ``commit=False`` the change joins the caller's transaction.
    """
    delta = as_money(delta)
    now = datetime.now(timezone.utc)

    updated = (
        db.query(Profit)
        .filter(Profit.owner_id == owner_id)
        .update(
            {
                Profit.total_profit: Profit.total_profit + delta,
                Profit.last_updated: now,
            },
            synchronize_session=False
        )
    )

    if not updated:
        db.add(Profit(owner_id=owner_id, total_profit=delta, last_updated=now))
        db.flush()

    if commit:
        db.commit()

    total = get_total(db, owner_id)
    logger.info(f"Ledger for owner {owner_id} moved by {delta}, total {total}")
    return total


def decrement(db: Session, owner_id: UUID, amount, commit: bool = True) -> Decimal:
    return increment(db, owner_id, -as_money(amount), commit=commit)


def get_total(db: Session, owner_id: UUID) -> Decimal:
    total = (
        db.query(Profit.total_profit)
        .filter(Profit.owner_id == owner_id)
        .scalar()
    )
    return as_money(total) if total is not None else ZERO
