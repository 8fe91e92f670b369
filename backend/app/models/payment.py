"""Payment schedule entries: one due payment per commission line."""
from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
import enum


class PaymentType(str, enum.Enum):
    CVD = "CVD"  # Direct sale commission, due the 15th of month N+1
    CCA = "CCA"  # Network commission, due the 22nd of month N+1


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentSchedule(Base):
    __tablename__ = "payment_schedules"

    id = Column(Integer, primary_key=True, index=True)

    type = Column(Enum(PaymentType), nullable=False, index=True)

    # Beneficiary
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)

    # Trigger
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True, index=True)
    source_vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=True)  # CCA: the new qualifier
    product_type = Column(String, nullable=True)
    trigger_date = Column(Date, nullable=False)  # Installation date (CVD) or acquisition date (CCA)

    payment_date = Column(Date, nullable=False, index=True)
    commission = Column(Numeric(10, 2), nullable=False)

    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    payment_reference = Column(String, nullable=True)

    commission_record_id = Column(Integer, ForeignKey("commission_records.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    vendor = relationship("Vendor", foreign_keys=[vendor_id])
    source_vendor = relationship("Vendor", foreign_keys=[source_vendor_id])
    client = relationship("Client")
    commission_record = relationship("CommissionRecord", back_populates="payment_schedules")
