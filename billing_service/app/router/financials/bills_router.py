from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.core.auth import allow_super_admin, validate_current_token
from shared.core.database import get_billing_db as get_db
from shared.core.schemas import UserToken
from shared.helpers.json_response_helper import error_response, success_response
from shared.utils.app_status_code import AppStatusCode

from ...crud.financials import bills_crud as crud
from ...crud.financials import bill_lifecycle_service as lifecycle
from ...crud.financials import profit_ledger_crud as ledger
from ...crud.scheduler.scheduler_service import BillingScheduler, get_scheduler
from ...schemas.financials.bills_schemas import (
    BillOut, BillPaymentResult, BillsOverview, BillsRequest, BillsResponse,
    GenerationRequest, GenerationResult, GenerationStats, ProfitTotalOut
)

router = APIRouter(
    prefix="/api/bills",
    tags=["bills"],
    dependencies=[Depends(validate_current_token)]
)


def _generation_response(result: GenerationResult):
    if result.already_running:
        return error_response(
            message="Bill generation is already in progress, try again later",
            status_code=AppStatusCode.GENERATION_IN_PROGRESS,
            http_status=409
        )
    return success_response(
        data=result.model_dump(mode="json"),
        message=f"Generated {result.bills_generated} bills for {result.period}",
        status_code=AppStatusCode.OPERATION_SUCCESSFUL
    )

# ----------------------------------------------------------------
# Generation
# ----------------------------------------------------------------


@router.post("/generate-monthly")
async def generate_monthly_bills(
        request: GenerationRequest,
        scheduler: BillingScheduler = Depends(get_scheduler),
        current_user: UserToken = Depends(allow_super_admin)):
    result = await scheduler.trigger_monthly_generation(request.month)
    return _generation_response(result)


@router.post("/generate-owner")
async def generate_owner_bills(
        request: GenerationRequest,
        scheduler: BillingScheduler = Depends(get_scheduler),
        current_user: UserToken = Depends(validate_current_token)):
    result = await scheduler.trigger_owner_generation(UUID(current_user.user_id), request.month)
    return _generation_response(result)


@router.get("/generation-stats", response_model=GenerationStats)
def get_generation_stats(
        month: str = Query(..., description="Billing period in YYYY-MM format"),
        db: Session = Depends(get_db)):
    return crud.get_generation_stats(db, month)

# ----------------------------------------------------------------
# Listing
# ----------------------------------------------------------------


@router.get("/overview", response_model=BillsOverview)
def get_bills_overview(
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.get_bills_overview(db, UUID(current_user.user_id))


@router.get("/all", response_model=BillsResponse)
def get_bills(
        params: BillsRequest = Depends(),
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.get_bills(db, UUID(current_user.user_id), params)


@router.get("/profits/total", response_model=ProfitTotalOut)
def get_total_profit(
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    owner_id = UUID(current_user.user_id)
    return ProfitTotalOut(owner_id=owner_id, total_profit=ledger.get_total(db, owner_id))


@router.get("/{bill_id}", response_model=BillOut)
def get_bill(
        bill_id: UUID,
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.get_bill_detail(db, UUID(current_user.user_id), bill_id)

# ----------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------


@router.put("/{bill_id}/pay", response_model=BillPaymentResult)
def mark_bill_as_paid(
        bill_id: UUID,
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return lifecycle.mark_bill_as_paid(db, UUID(current_user.user_id), bill_id)


@router.put("/{bill_id}/undo", response_model=BillPaymentResult)
def undo_bill_payment(
        bill_id: UUID,
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return lifecycle.undo_bill_payment(db, UUID(current_user.user_id), bill_id)


@router.put("/{bill_id}/receipt-sent", response_model=BillOut)
def mark_receipt_sent(
        bill_id: UUID,
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    bill = lifecycle.mark_bill_receipt_sent(db, UUID(current_user.user_id), bill_id)
    return crud.bill_to_out(bill)
