from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import date, datetime
from decimal import Decimal
from app.models.commission import CommissionKind, CommissionStatus


class InstallationEvent(BaseModel):
    """One sold-and-installed unit, read from an installed client record."""
    vendor_id: int
    product_type: str
    installation_date: date
    client_id: Optional[int] = None

    class Config:
        from_attributes = True
        frozen = True


class ProductBreakdown(BaseModel):
    product_type: str
    quantity: int
    points: int
    unit_commission: Decimal
    commission: Decimal


class CommissionResult(BaseModel):
    vendor_id: int
    period: str  # Format: "YYYY-MM"
    total_points: int
    tier: int
    breakdown: List[ProductBreakdown]
    total_commission: Decimal
    installation_count: int = 0


class TierProgress(BaseModel):
    total_points: int
    tier: int
    tier_label: str
    next_tier: Optional[int] = None
    next_tier_min_points: Optional[int] = None
    points_to_next_tier: Optional[int] = None


class NewQualifier(BaseModel):
    vendor_id: int
    name: Optional[str] = None
    points_this_month: int = Field(..., ge=0)


class UplineMember(BaseModel):
    vendor_id: int
    position: Optional[str] = None
    distance: int = Field(..., ge=1)


class DistributionEntry(BaseModel):
    vendor_id: int
    position: str
    distance: int
    amount: Decimal
    generation: str  # "first" or "second"
    description: str


class DistributionResult(BaseModel):
    qualifier_id: int
    distribution: List[DistributionEntry]
    total_commission: Decimal


class CAEDistributeRequest(BaseModel):
    qualifier: NewQualifier
    upline: List[UplineMember]


class CAERecordRequest(BaseModel):
    period: str  # Month in which the qualifier reached the threshold, "YYYY-MM"
    acquisition_date: date


class CommissionRecordOut(BaseModel):
    id: int
    kind: CommissionKind
    vendor_id: int
    period: str
    total_points: int
    tier: Optional[int]
    total_commission: Decimal
    breakdown: Optional[List[Dict]]
    status: CommissionStatus
    is_locked: bool
    calculated_at: Optional[datetime]

    class Config:
        from_attributes = True
