from datetime import date as date_type, datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from shared.core.schemas import CommonQueryParams
from billing_service.app.enum.bill_enum import BillLanguage, BillStatus

# Bills


class BillOut(BaseModel):
    id: UUID
    owner_id: UUID
    tenant_id: UUID
    property_id: UUID
    month: str
    amount: Decimal
    rent_amount: Decimal
    charges: Decimal
    total_amount: Decimal
    bill_date: date_type
    due_date: date_type
    payment_date: Optional[date_type] = None
    status: BillStatus
    description: Optional[str] = None
    language: Optional[BillLanguage] = None
    created_at: Optional[datetime] = None

    # fields needed for the UI Table
    tenant_name: Optional[str] = None
    tenant_email: Optional[str] = None
    property_title: Optional[str] = None

    class Config:
        from_attributes = True


class BillsRequest(CommonQueryParams):
    status: Optional[BillStatus] = None
    month: Optional[str] = None


class BillsResponse(BaseModel):
    bills: List[BillOut]
    total: int


class BillsOverview(BaseModel):
    totalBills: int
    totalAmount: Decimal
    pendingBills: int
    overdueBills: int
    statusBreakdown: Dict[str, int] = {}

# Generation


class BillingPeriod(BaseModel):
    month: str
    bill_date: date_type
    due_date: date_type


class ActiveLease(BaseModel):
    """Read-only snapshot of an ACTIVE lease with its property's rent and owner."""
    lease_id: UUID
    tenant_id: UUID
    tenant_name: Optional[str] = None
    tenant_email: Optional[str] = None
    property_id: UUID
    property_title: Optional[str] = None
    owner_id: UUID
    monthly_rent: Optional[Decimal] = None
    utility_charges: Optional[Decimal] = None


class GenerationRequest(BaseModel):
    month: Optional[str] = Field(
        default=None, description="Billing period in YYYY-MM format, defaults to the current month")


class GenerationErrorDetail(BaseModel):
    tenant_id: Optional[UUID] = None
    tenant_name: Optional[str] = None
    tenant_email: Optional[str] = None
    error: str


class GenerationResult(BaseModel):
    """Audit surface of one generation batch."""
    period: str
    bill_date: Optional[date_type] = None
    due_date: Optional[date_type] = None
    owner_id: Optional[UUID] = None
    total_leases: int = 0
    bills_generated: int = 0
    bills_skipped: int = 0
    errors: int = 0
    error_details: List[GenerationErrorDetail] = []
    # True when another run held the generation guard
    already_running: bool = False


class OwnerBreakdown(BaseModel):
    owner_name: Optional[str] = None
    bills: int = 0
    amount: Decimal = Decimal("0.00")


class GenerationStats(BaseModel):
    month: str
    total_bills: int
    total_amount: Decimal
    status_breakdown: Dict[str, int] = {}
    owner_breakdown: Dict[str, OwnerBreakdown] = {}

# Lifecycle / Ledger


class BillPaymentState(BaseModel):
    id: UUID
    status: BillStatus
    payment_date: Optional[date_type] = None
    amount: Decimal


class ProfitChange(BaseModel):
    total: Decimal
    added: Optional[Decimal] = None
    subtracted: Optional[Decimal] = None


class BillPaymentResult(BaseModel):
    bill: BillPaymentState
    profit: ProfitChange


class ProfitTotalOut(BaseModel):
    owner_id: UUID
    total_profit: Decimal
