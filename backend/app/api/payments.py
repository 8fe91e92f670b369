"""Payments API: upcoming payments, monthly report, overdue tracking and settlement."""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.payment import (
    PaymentScheduleEntry, UpcomingPayments, MonthlyPaymentReport, MarkPaidRequest,
)
from app.services.payments import PaymentService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.get("/vendor/{vendor_id}", response_model=List[PaymentScheduleEntry])
def list_vendor_payments(vendor_id: int, db: Session = Depends(get_db)):
    return PaymentService(db).list_for_vendor(vendor_id)


@router.get("/upcoming/{vendor_id}", response_model=UpcomingPayments)
def get_upcoming(vendor_id: int, db: Session = Depends(get_db)):
    """Pending CVD and CCA payments not yet due, soonest first"""
    return PaymentService(db).upcoming(vendor_id)


@router.get("/report/{year}/{month}", response_model=MonthlyPaymentReport)
def monthly_report(year: int, month: int, db: Session = Depends(get_db)):
    """Pending payments due in a month, with the 15th (CVD) and 22nd (CCA) due dates"""
    try:
        return PaymentService(db).monthly_report(month, year)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/overdue", response_model=List[PaymentScheduleEntry])
def list_overdue(db: Session = Depends(get_db)):
    return PaymentService(db).overdue()


@router.post("/overdue/persist")
def persist_overdue(db: Session = Depends(get_db)):
    flagged = PaymentService(db).persist_overdue()
    return {"success": True, "flagged": flagged}


@router.post("/{schedule_id}/pay", response_model=PaymentScheduleEntry)
def mark_paid(schedule_id: int, body: MarkPaidRequest = None, db: Session = Depends(get_db)):
    """Settle a pending or overdue payment"""
    service = PaymentService(db)
    if not service.get(schedule_id):
        raise HTTPException(status_code=404, detail="Payment not found")

    entry = service.mark_paid(schedule_id, body.payment_reference if body else None)
    if entry is None:
        raise HTTPException(status_code=409, detail="Payment already settled")
    return entry
