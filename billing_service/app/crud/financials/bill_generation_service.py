"""
Monthly bill generation.

Creates the missing bill of every ACTIVE lease for one billing period. The
(tenant, month) unique constraint is the idempotency key: running the same
period again only reports skips. Each lease is handled in its own session and
transaction, so one failing lease never aborts the rest of the batch.
"""
import asyncio
import calendar
import logging
import re
from datetime import date
from decimal import Decimal
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.core.config import settings
from shared.core.database import BillingSessionLocal
from shared.helpers.json_response_helper import error_response
from shared.utils.app_status_code import AppStatusCode

from .profit_ledger_crud import as_money
from ...enum.bill_enum import BillLanguage, BillStatus, LeaseStatus
from ...models.financials.bills import Bill
from ...models.leasing_tenants.leases import Lease
from ...models.leasing_tenants.properties import Property
from ...models.leasing_tenants.tenants import Tenant
from ...schemas.financials.bills_schemas import (
    ActiveLease, BillingPeriod, GenerationErrorDetail, GenerationResult
)

logger = logging.getLogger(__name__)

PERIOD_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def parse_period(period: Optional[str] = None, today: Optional[date] = None) -> BillingPeriod:
    """Validate a YYYY-MM period (default: current month) and derive its bill and due dates."""
    if not period:
        period = (today or date.today()).strftime("%Y-%m")

    if not PERIOD_PATTERN.match(period):
        return error_response(
            message=f"Invalid billing period '{period}', expected YYYY-MM",
            status_code=AppStatusCode.INVALID_BILLING_PERIOD
        )

    year, month = (int(part) for part in period.split("-"))
    last_day = calendar.monthrange(year, month)[1]

    return BillingPeriod(
        month=period,
        bill_date=date(year, month, 1),
        due_date=date(year, month, min(settings.BILLING_DUE_DAY, last_day))
    )


def get_active_leases(db: Session, owner_id: Optional[UUID] = None) -> List[ActiveLease]:
    query = (
        db.query(
            Lease.id.label("lease_id"),
            Lease.tenant_id,
            Tenant.name.label("tenant_name"),
            Tenant.email.label("tenant_email"),
            Lease.property_id,
            Property.title.label("property_title"),
            Property.owner_id,
            Property.monthly_rent,
            Lease.utility_charges,
        )
        .join(Property, Lease.property_id == Property.id)
        .join(Tenant, Lease.tenant_id == Tenant.id)
        .filter(Lease.status == LeaseStatus.ACTIVE)
    )

    if owner_id:
        query = query.filter(Property.owner_id == owner_id)

    return [ActiveLease.model_validate(row._asdict()) for row in query.all()]


def find_existing_bill_id(db: Session, tenant_id: UUID, month: str, owner_id: Optional[UUID] = None):
    filters = [Bill.tenant_id == tenant_id, Bill.month == month]
    if owner_id:
        filters.append(Bill.owner_id == owner_id)
    return db.query(Bill.id).filter(*filters).scalar()


def build_description(lease: ActiveLease, period: BillingPeriod, rent: Decimal, charges: Decimal) -> str:
    title = lease.property_title or "property"
    description = f"Monthly rent {period.month} - {title}: {rent}"
    if charges:
        description += f" + charges {charges}"
    return description


def create_bill_for_lease(session_factory: Callable[[], Session], lease: ActiveLease, period: BillingPeriod) -> bool:
    """
    Create the lease's bill for ``period``.
    Returns True when a bill was created and False when one already existed.
    """
    with session_factory() as db:
        if find_existing_bill_id(db, lease.tenant_id, period.month, lease.owner_id):
            logger.info(
                f"Bill already exists for tenant {lease.tenant_name} ({lease.tenant_email}) for {period.month}")
            return False

        if lease.monthly_rent is None:
            raise ValueError(
                f"Property {lease.property_id} has no monthly rent")

        rent_amount = as_money(lease.monthly_rent)
        charges = as_money(lease.utility_charges)
        total_amount = rent_amount + charges

        db.add(Bill(
            owner_id=lease.owner_id,
            tenant_id=lease.tenant_id,
            property_id=lease.property_id,
            month=period.month,
            amount=total_amount,
            rent_amount=rent_amount,
            charges=charges,
            total_amount=total_amount,
            bill_date=period.bill_date,
            due_date=period.due_date,
            status=BillStatus.PENDING,
            language=BillLanguage.fr,
            description=build_description(
                lease, period, rent_amount, charges)
        ))

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            # another writer created the (tenant, month) bill first
            if find_existing_bill_id(db, lease.tenant_id, period.month):
                return False
            raise

    logger.info(
        f"Generated bill for tenant {lease.tenant_name} ({lease.tenant_email}) - Amount: {total_amount}")
    return True


def _load_active_leases(session_factory: Callable[[], Session], owner_id: Optional[UUID]) -> List[ActiveLease]:
    with session_factory() as db:
        return get_active_leases(db, owner_id)


async def wait_for_worker(worker: asyncio.Future, timeout: Optional[float] = None):
    """
    Await a worker-thread future, optionally bounded by ``timeout``.

    The timeout never cancels the worker itself. If the awaiting task is
    cancelled, the thread is still awaited before the cancellation propagates,
    since a running thread cannot be interrupted.
    """
    try:
        return await asyncio.wait_for(asyncio.shield(worker), timeout=timeout)
    except asyncio.CancelledError:
        await asyncio.gather(worker, return_exceptions=True)
        raise


async def _settle_timed_out_lease(worker: asyncio.Future, session_factory: Callable[[], Session],
                                  lease: ActiveLease, period: BillingPeriod) -> bool:
    """
    Wait for a lease worker that overran its timeout, then classify it from the
    stored state. Returns True (generated) or False (skipped), or raises.
    """
    try:
        created = await wait_for_worker(worker)
        failure = None
    except Exception as e:
        created = False
        failure = e

    exists = await wait_for_worker(asyncio.ensure_future(asyncio.to_thread(
        _bill_exists, session_factory, lease, period)))

    if not exists:
        raise TimeoutError(
            f"Timed out and no bill stored: {failure}" if failure else "Timed out and no bill stored")
    return bool(created)


def _bill_exists(session_factory: Callable[[], Session], lease: ActiveLease, period: BillingPeriod) -> bool:
    with session_factory() as db:
        return find_existing_bill_id(db, lease.tenant_id, period.month) is not None


async def generate_for_period(
    period: Optional[str] = None,
    owner_id: Optional[UUID] = None,
    session_factory: Callable[[], Session] = BillingSessionLocal,
    lease_timeout: Optional[float] = None,
    today: Optional[date] = None,
) -> GenerationResult:
    """
    Generate the missing bills of ``period`` for every ACTIVE lease,
    optionally only those of one owner.

    A lease overrunning ``lease_timeout`` is logged and its worker is still
    awaited, so a bill committed late counts as generated, not as an error.
    """
    billing_period = parse_period(period, today=today)
    lease_timeout = lease_timeout or settings.BILLING_LEASE_TIMEOUT_SECONDS

    logger.info(
        f"Starting bill generation for {billing_period.month}"
        + (f" (owner {owner_id})" if owner_id else ""))

    leases = await wait_for_worker(asyncio.ensure_future(
        asyncio.to_thread(_load_active_leases, session_factory, owner_id)))

    result = GenerationResult(
        period=billing_period.month,
        bill_date=billing_period.bill_date,
        due_date=billing_period.due_date,
        owner_id=owner_id,
        total_leases=len(leases),
    )

    if not leases:
        logger.info("No active leases found for bill generation")
        return result

    for lease in leases:
        worker = asyncio.ensure_future(asyncio.to_thread(
            create_bill_for_lease, session_factory, lease, billing_period))
        try:
            try:
                created = await wait_for_worker(worker, timeout=lease_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Bill for tenant {lease.tenant_name} ({lease.tenant_email}) still running "
                    f"after {lease_timeout}s, waiting for it to settle")
                created = await _settle_timed_out_lease(
                    worker, session_factory, lease, billing_period)
        except Exception as e:
            logger.error(
                f"Error generating bill for tenant {lease.tenant_name} ({lease.tenant_email}): {e}")
            result.errors += 1
            result.error_details.append(_error_detail(lease, str(e)))
            continue

        if created:
            result.bills_generated += 1
        else:
            result.bills_skipped += 1

    logger.info(
        f"Bill generation summary for {result.period}: leases={result.total_leases} "
        f"generated={result.bills_generated} skipped={result.bills_skipped} errors={result.errors}")
    return result


def _error_detail(lease: ActiveLease, message: str) -> GenerationErrorDetail:
    return GenerationErrorDetail(
        tenant_id=lease.tenant_id,
        tenant_name=lease.tenant_name,
        tenant_email=lease.tenant_email,
        error=message
    )


def count_missing_bills(db: Session, period: str) -> int:
    """Active leases with a rent that still have no bill for ``period``."""
    billed_tenants = select(Bill.tenant_id).where(Bill.month == period)

    return (
        db.query(func.count(Lease.id))
        .join(Property, Lease.property_id == Property.id)
        .filter(
            Lease.status == LeaseStatus.ACTIVE,
            Property.monthly_rent.isnot(None),
            Lease.tenant_id.not_in(billed_tenants)
        )
        .scalar()
    ) or 0
