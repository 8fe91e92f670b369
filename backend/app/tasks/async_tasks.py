import logging
from app.celery_app import celery_app
from app.core.database import SessionLocal
from app.models.vendor import Vendor
from app.services.commission import CVDCommissionService
from app.services.payments import PaymentService

logger = logging.getLogger(__name__)


@celery_app.task(name="record_monthly_commissions")
def record_monthly_commissions(vendor_id: int, period: str):
    """
    Async task to compute and store the CVD of one vendor for a given period
    """
    db = SessionLocal()
    try:
        service = CVDCommissionService(db)
        record = service.record(vendor_id, period)
        return {
            "record_id": record.id,
            "vendor_id": vendor_id,
            "period": period,
            "total_points": record.total_points,
            "tier": record.tier,
            "total_commission": str(record.total_commission),
        }
    finally:
        db.close()


@celery_app.task(name="record_all_monthly_commissions")
def record_all_monthly_commissions(period: str):
    """
    Fan out one CVD task per active vendor. Vendors are independent of each other.
    """
    db = SessionLocal()
    try:
        vendor_ids = [v.id for v in db.query(Vendor.id).filter(Vendor.is_active == True).all()]
    finally:
        db.close()

    for vendor_id in vendor_ids:
        record_monthly_commissions.delay(vendor_id, period)
    logger.info(f"Queued CVD computation for {len(vendor_ids)} vendor(s), period {period}")
    return {"period": period, "queued": len(vendor_ids)}


@celery_app.task(name="flag_overdue_payments")
def flag_overdue_payments():
    """
    Async task to store the overdue status on late pending payments
    """
    db = SessionLocal()
    try:
        flagged = PaymentService(db).persist_overdue()
        return {"flagged": flagged}
    finally:
        db.close()
