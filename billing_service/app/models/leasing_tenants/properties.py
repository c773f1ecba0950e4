import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from shared.core.database import Base


class Property(Base):
    __tablename__ = "properties"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey(
        "owners.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    address = Column(String(500), nullable=True)
    city = Column(String(120), nullable=True)
    # current rent; bills copy it at generation time
    monthly_rent = Column(Numeric(10, 2), nullable=True)
    created_at = Column(DateTime(timezone=True),
                        server_default=func.now(), nullable=False)

    owner = relationship("Owner", back_populates="properties")
    leases = relationship("Lease", back_populates="property")
    bills = relationship("Bill", back_populates="property")
