import uuid
from sqlalchemy import (
    Column, String, Date, Numeric, Text, ForeignKey, DateTime, Enum, Uuid, func, UniqueConstraint
)
from sqlalchemy.orm import relationship
from shared.core.database import Base
from billing_service.app.enum.bill_enum import BillLanguage, BillStatus


class Bill(Base):
    __tablename__ = "bills"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey(
        "owners.id"), nullable=False, index=True)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey(
        "tenants.id"), nullable=False, index=True)
    property_id = Column(Uuid(as_uuid=True), ForeignKey(
        "properties.id"), nullable=False, index=True)

    # billing period, YYYY-MM
    month = Column(String(7), nullable=False, index=True)

    # legacy column, always equal to total_amount
    amount = Column(Numeric(10, 2), nullable=False)
    rent_amount = Column(Numeric(10, 2), nullable=False)
    charges = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)

    bill_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    payment_date = Column(Date, nullable=True)

    status = Column(Enum(BillStatus, name="bill_status_enum"),
                    nullable=False, default=BillStatus.PENDING, index=True)
    description = Column(Text, default="Monthly rent payment")
    language = Column(Enum(BillLanguage, name="bill_language_enum"),
                      nullable=False, default=BillLanguage.fr)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True),
                        server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        # one bill per tenant and billing period
        UniqueConstraint("tenant_id", "month",
                         name="uq_bill_tenant_month"),
    )

    owner = relationship("Owner", back_populates="bills")
    tenant = relationship("Tenant", back_populates="bills")
    property = relationship("Property", back_populates="bills")
