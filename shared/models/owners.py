import uuid
from sqlalchemy import Boolean, Column, DateTime, String, Uuid, func
from sqlalchemy.orm import relationship
from shared.core.database import Base


class Owner(Base):
    """Admin account that manages properties, their bills and a profit ledger."""
    __tablename__ = "owners"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    email = Column(String(200), nullable=True)
    is_super_admin = Column(Boolean, default=False, nullable=False)
    status = Column(String(16), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    properties = relationship("Property", back_populates="owner")
    bills = relationship("Bill", back_populates="owner")
    profit = relationship("Profit", back_populates="owner", uselist=False)
