import uuid
from decimal import Decimal
from sqlalchemy import Column, DateTime, ForeignKey, Numeric, Uuid, func
from sqlalchemy.orm import relationship
from shared.core.database import Base


class Profit(Base):
    """Running profit total of one owner; one row per owner."""
    __tablename__ = "profits"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey(
        "owners.id"), nullable=False, unique=True)
    total_profit = Column(Numeric(12, 2), nullable=False,
                          default=Decimal("0.00"))
    last_updated = Column(DateTime(timezone=True),
                          server_default=func.now(), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    owner = relationship("Owner", back_populates="profit")
