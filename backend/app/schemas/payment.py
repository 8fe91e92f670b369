from pydantic import BaseModel
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from app.models.payment import PaymentType, PaymentStatus


class PaymentScheduleEntry(BaseModel):
    id: Optional[int] = None
    type: PaymentType
    vendor_id: int
    client_id: Optional[int] = None
    source_vendor_id: Optional[int] = None
    product_type: Optional[str] = None
    trigger_date: date
    payment_date: date
    commission: Decimal
    status: PaymentStatus = PaymentStatus.PENDING
    paid_at: Optional[datetime] = None
    payment_reference: Optional[str] = None

    class Config:
        from_attributes = True


class UpcomingPayments(BaseModel):
    next_cvd_payments: List[PaymentScheduleEntry]
    next_cca_payments: List[PaymentScheduleEntry]
    total_cvd_pending: Decimal
    total_cca_pending: Decimal


class PaymentDates(BaseModel):
    cvd_date: date
    cca_date: date


class MonthlyPaymentReport(BaseModel):
    month: int
    year: int
    cvd_payments: List[PaymentScheduleEntry]
    cca_payments: List[PaymentScheduleEntry]
    total_cvd: Decimal
    total_cca: Decimal
    payment_dates: PaymentDates


class MarkPaidRequest(BaseModel):
    payment_reference: Optional[str] = None
