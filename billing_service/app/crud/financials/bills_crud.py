from collections import defaultdict
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from shared.helpers.json_response_helper import error_response
from shared.models.owners import Owner
from shared.utils.app_status_code import AppStatusCode

from .bill_generation_service import parse_period
from .profit_ledger_crud import ZERO, as_money
from ...enum.bill_enum import BillStatus
from ...models.financials.bills import Bill
from ...models.leasing_tenants.properties import Property
from ...models.leasing_tenants.tenants import Tenant
from ...schemas.financials.bills_schemas import (
    BillOut, BillsOverview, BillsRequest, BillsResponse, GenerationStats, OwnerBreakdown
)


def build_bills_filters(owner_id: UUID, params: BillsRequest):
    filters = [Bill.owner_id == owner_id]

    if params.status:
        filters.append(Bill.status == params.status)

    if params.month:
        filters.append(Bill.month == parse_period(params.month).month)

    # Text Search Bar (tenant name OR property title)
    if params.search:
        search_term = f"%{params.search}%"
        filters.append(or_(
            Tenant.name.ilike(search_term),
            Property.title.ilike(search_term)
        ))

    return filters


def bill_to_out(bill: Bill) -> BillOut:
    return BillOut.model_validate({
        **{column.name: getattr(bill, column.name) for column in Bill.__table__.columns},
        "tenant_name": bill.tenant.name if bill.tenant else None,
        "tenant_email": bill.tenant.email if bill.tenant else None,
        "property_title": bill.property.title if bill.property else None,
    })


def get_bills(db: Session, owner_id: UUID, params: BillsRequest) -> BillsResponse:
    filters = build_bills_filters(owner_id, params)

    base_query = (
        db.query(Bill)
        .join(Tenant, Bill.tenant_id == Tenant.id)
        .join(Property, Bill.property_id == Property.id)
        .filter(*filters)
    )
    total = base_query.with_entities(func.count(Bill.id)).scalar()

    bills = (
        base_query
        .options(joinedload(Bill.tenant), joinedload(Bill.property))
        .order_by(Bill.month.desc(), Bill.created_at.desc())
        .offset(params.skip)
        .limit(params.limit)
        .all()
    )

    return BillsResponse(
        bills=[bill_to_out(bill) for bill in bills],
        total=total or 0
    )


def get_bill_detail(db: Session, owner_id: UUID, bill_id: UUID) -> BillOut:
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

    return bill_to_out(bill)


def get_bills_overview(db: Session, owner_id: UUID) -> BillsOverview:
    rows = (
        db.query(
            Bill.status,
            func.count(Bill.id),
            func.coalesce(func.sum(Bill.amount), 0)
        )
        .filter(Bill.owner_id == owner_id)
        .group_by(Bill.status)
        .all()
    )

    status_breakdown = {status.value: count for status, count, _ in rows}
    total_amount = sum((as_money(amount) for _, _, amount in rows), ZERO)

    return BillsOverview(
        totalBills=sum(status_breakdown.values()),
        totalAmount=total_amount,
        pendingBills=status_breakdown.get(BillStatus.PENDING.value, 0),
        overdueBills=status_breakdown.get(BillStatus.OVERDUE.value, 0),
        statusBreakdown=status_breakdown
    )


def get_generation_stats(db: Session, month: str) -> GenerationStats:
    """Bill counts and amounts of one period, across all owners. ``owner_breakdown`` is keyed by owner id."""
    period = parse_period(month)

    bills = (
        db.query(Bill.status, Bill.amount, Owner.id, Owner.name)
        .join(Owner, Bill.owner_id == Owner.id)
        .filter(Bill.month == period.month)
        .all()
    )

    status_breakdown = defaultdict(int)
    owner_breakdown = defaultdict(OwnerBreakdown)
    total_amount = Decimal("0.00")

    for status, amount, owner_id, owner_name in bills:
        amount = as_money(amount)
        total_amount += amount
        status_breakdown[status.value] += 1
        entry = owner_breakdown[str(owner_id)]
        entry.owner_name = owner_name
        entry.bills += 1
        entry.amount += amount

    return GenerationStats(
        month=period.month,
        total_bills=len(bills),
        total_amount=total_amount,
        status_breakdown=dict(status_breakdown),
        owner_breakdown=dict(owner_breakdown)
    )
