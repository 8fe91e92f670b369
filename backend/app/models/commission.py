from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey, Enum, Boolean, JSON, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
import enum


class CommissionKind(str, enum.Enum):
    CVD = "CVD"  # Direct sales
    CAE = "CAE"  # Team animation bonus paid up the upline


class CommissionStatus(str, enum.Enum):
    CALCULATED = "calculated"
    LOCKED = "locked"


class CommissionRecord(Base):
    """Ledger entry: a commission computed once for a vendor and a period.

    CVD records belong to the selling vendor. CAE records belong to the new
    qualifier whose 25 points triggered the upline distribution.
    """
    __tablename__ = "commission_records"
    __table_args__ = (
        UniqueConstraint("kind", "vendor_id", "period", name="uq_commission_kind_vendor_period"),
    )

    id = Column(Integer, primary_key=True, index=True)

    kind = Column(Enum(CommissionKind), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    period = Column(String, nullable=False, index=True)  # Format: "2025-06"

    # Snapshot of the computation
    total_points = Column(Integer, default=0, nullable=False)
    tier = Column(Integer, nullable=True)  # CVD only
    total_commission = Column(Numeric(10, 2), nullable=False, default=0)
    breakdown = Column(JSON, nullable=True)

    status = Column(Enum(CommissionStatus), default=CommissionStatus.CALCULATED, nullable=False)
    is_locked = Column(Boolean, default=False)

    calculated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    vendor = relationship("Vendor")
    payment_schedules = relationship("PaymentSchedule", back_populates="commission_record")
