import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.core.database import get_db
from app.models.vendor import Vendor
from app.schemas.commission import (
    CommissionResult, TierProgress, DistributionResult, CAEDistributeRequest,
    CAERecordRequest, CommissionRecordOut,
)
from app.services.cae import CAECommissionService, distribute_cae_bonus
from app.services.commission import CVDCommissionService, lock_commission_record
from app.services.rate_card import DEFAULT_RATE_CARD

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/commissions", tags=["commissions"])


def _get_vendor_or_404(db: Session, vendor_id: int) -> Vendor:
    vendor = db.query(Vendor).filter(Vendor.id == vendor_id).first()
    if not vendor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Vendor not found"
        )
    return vendor


@router.get("/tiers")
def list_commission_tiers():
    """CVD tiers with the per-product amounts, and the CAE position bonuses"""
    card = DEFAULT_RATE_CARD
    return {
        "tiers": [
            {
                "tier": band.tier,
                "label": band.label,
                "min_points": band.min_points,
                "max_points": band.max_points,
                "commissions": {
                    product: float(amounts.get(band.tier, 0))
                    for product, amounts in card.commission_table.items()
                },
            }
            for band in card.tiers
        ],
        "product_points": dict(card.product_points),
        "positions": [
            {
                "position": bonus.position,
                "first_generation": float(bonus.first_generation),
                "second_generation": float(bonus.second_generation) if bonus.second_generation else None,
                "description": bonus.description,
            }
            for bonus in card.positions.values()
        ],
        "cae_qualifying_points": card.cae_qualifying_points,
    }


@router.get("/cvd/{vendor_id}/{period}", response_model=CommissionResult)
def calculate_cvd_commission(vendor_id: int, period: str, db: Session = Depends(get_db)):
    """
    Live CVD computation for a vendor
    Period format: YYYY-MM
    """
    _get_vendor_or_404(db, vendor_id)
    try:
        return CVDCommissionService(db).calculate(vendor_id, period)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/cvd/{vendor_id}/{period}/progress", response_model=TierProgress)
def get_tier_progress(vendor_id: int, period: str, db: Session = Depends(get_db)):
    """Current tier and points missing to the next one"""
    _get_vendor_or_404(db, vendor_id)
    try:
        return CVDCommissionService(db).progress(vendor_id, period)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/cvd/{vendor_id}/{period}/record", response_model=CommissionRecordOut)
def record_cvd_commission(vendor_id: int, period: str, db: Session = Depends(get_db)):
    """Store the month's CVD in the ledger and schedule its payments"""
    _get_vendor_or_404(db, vendor_id)
    try:
        return CVDCommissionService(db).record(vendor_id, period)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/records/{record_id}/lock", response_model=CommissionRecordOut)
def lock_record(record_id: int, db: Session = Depends(get_db)):
    record = lock_commission_record(db, record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Commission record not found")
    return record


@router.post("/cae/distribute", response_model=DistributionResult)
def preview_cae_distribution(body: CAEDistributeRequest):
    """Distribution for an explicit qualifier and upline chain (nothing stored)"""
    return distribute_cae_bonus(body.qualifier, body.upline)


@router.post("/cae/{vendor_id}/record")
def record_cae_commission(vendor_id: int, body: CAERecordRequest, db: Session = Depends(get_db)):
    """Distribute the CAE of a qualifying vendor over its upline and schedule the CCA payments"""
    _get_vendor_or_404(db, vendor_id)
    try:
        result, record = CAECommissionService(db).record(vendor_id, body.period, body.acquisition_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "distribution": result.model_dump(mode="json"),
        "record": CommissionRecordOut.model_validate(record).model_dump(mode="json") if record else None,
    }
