import uuid
from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Numeric, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from shared.core.database import Base
from billing_service.app.enum.bill_enum import LeaseStatus


class Lease(Base):
    __tablename__ = "leases"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey(
        "tenants.id"), nullable=False, index=True)
    property_id = Column(Uuid(as_uuid=True), ForeignKey(
        "properties.id"), nullable=False, index=True)

    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    # recurring extras billed with the rent (water, heating, ...)
    utility_charges = Column(Numeric(10, 2), nullable=True, default=0)
    status = Column(Enum(LeaseStatus, name="lease_status_enum"),
                    nullable=False, default=LeaseStatus.ACTIVE, index=True)
    created_at = Column(DateTime(timezone=True),
                        server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    tenant = relationship("Tenant", back_populates="leases")
    property = relationship("Property", back_populates="leases")
