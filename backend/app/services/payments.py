"""Commission payment scheduling.

Calendar rules:
1. CVD (direct sales) installed in month N are paid on the 15th of N+1
2. CCA (network commission) acquired in month N are paid on the 22nd of N+1
3. A pending entry whose payment date has passed is reported as overdue;
   the stored status only changes when persist_overdue() is called
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Union

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.payment import PaymentSchedule, PaymentType, PaymentStatus
from app.schemas.payment import (
    PaymentScheduleEntry, UpcomingPayments, MonthlyPaymentReport, PaymentDates,
)

logger = logging.getLogger(__name__)


def _payment_day(payment_type: PaymentType) -> int:
    if payment_type == PaymentType.CVD:
        return settings.CVD_PAYMENT_DAY
    return settings.CCA_PAYMENT_DAY


def schedule_payment(payment_type: Union[PaymentType, str], trigger_date: date) -> date:
    """Due date for a commission triggered on trigger_date."""
    payment_type = PaymentType(payment_type)
    if isinstance(trigger_date, datetime):
        trigger_date = trigger_date.date()
    if not isinstance(trigger_date, date):
        raise ValueError(f"Invalid trigger date: {trigger_date!r}")

    return trigger_date + relativedelta(months=1, day=_payment_day(payment_type))


def generate_payment_schedule(
    client_id: int,
    vendor_id: int,
    product_type: str,
    installation_date: date,
    acquisition_date: date,
    cvd_commission: Decimal,
    cca_commission: Decimal,
) -> List[PaymentScheduleEntry]:
    """Build the CVD and CCA entries owed for one client. Zero amounts produce no entry."""
    schedules = []

    if cvd_commission > 0:
        schedules.append(PaymentScheduleEntry(
            type=PaymentType.CVD,
            vendor_id=vendor_id,
            client_id=client_id,
            product_type=product_type,
            trigger_date=installation_date,
            payment_date=schedule_payment(PaymentType.CVD, installation_date),
            commission=cvd_commission,
        ))

    if cca_commission > 0:
        schedules.append(PaymentScheduleEntry(
            type=PaymentType.CCA,
            vendor_id=vendor_id,
            client_id=client_id,
            product_type=product_type,
            trigger_date=acquisition_date,
            payment_date=schedule_payment(PaymentType.CCA, acquisition_date),
            commission=cca_commission,
        ))

    return schedules


def _as_entry(schedule) -> PaymentScheduleEntry:
    if isinstance(schedule, PaymentScheduleEntry):
        return schedule
    return PaymentScheduleEntry.model_validate(schedule)


def is_overdue(schedule, today: Optional[date] = None) -> bool:
    today = today or date.today()
    return schedule.status == PaymentStatus.PENDING and schedule.payment_date < today


def check_overdue_payments(schedules: Iterable, today: Optional[date] = None) -> List[PaymentScheduleEntry]:
    """Return copies of the schedules with late pending entries reported as overdue.

    The inputs (schemas or ORM rows) are never modified.
    """
    today = today or date.today()
    checked = []
    for schedule in schedules:
        entry = _as_entry(schedule)
        if is_overdue(entry, today):
            entry = entry.model_copy(update={"status": PaymentStatus.OVERDUE})
        checked.append(entry)
    return checked


def get_upcoming_payments(vendor_id: int, schedules: Iterable, today: Optional[date] = None) -> UpcomingPayments:
    today = today or date.today()
    pending = [
        entry for entry in map(_as_entry, schedules)
        if entry.vendor_id == vendor_id
        and entry.status == PaymentStatus.PENDING
        and entry.payment_date >= today
    ]
    pending.sort(key=lambda e: e.payment_date)

    next_cvd = [e for e in pending if e.type == PaymentType.CVD]
    next_cca = [e for e in pending if e.type == PaymentType.CCA]

    return UpcomingPayments(
        next_cvd_payments=next_cvd,
        next_cca_payments=next_cca,
        total_cvd_pending=sum((e.commission for e in next_cvd), Decimal("0")),
        total_cca_pending=sum((e.commission for e in next_cca), Decimal("0")),
    )


def generate_monthly_payment_report(month: int, year: int, schedules: Iterable) -> MonthlyPaymentReport:
    """Pending payments falling due in the given month, split by commission type."""
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")

    due = [
        entry for entry in map(_as_entry, schedules)
        if entry.status == PaymentStatus.PENDING
        and entry.payment_date.year == year
        and entry.payment_date.month == month
    ]
    cvd_payments = [e for e in due if e.type == PaymentType.CVD]
    cca_payments = [e for e in due if e.type == PaymentType.CCA]

    return MonthlyPaymentReport(
        month=month,
        year=year,
        cvd_payments=cvd_payments,
        cca_payments=cca_payments,
        total_cvd=sum((e.commission for e in cvd_payments), Decimal("0")),
        total_cca=sum((e.commission for e in cca_payments), Decimal("0")),
        payment_dates=PaymentDates(
            cvd_date=date(year, month, settings.CVD_PAYMENT_DAY),
            cca_date=date(year, month, settings.CCA_PAYMENT_DAY),
        ),
    )


def days_until_payment(payment_date: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    return (payment_date - today).days


class PaymentService:
    """Persistence side of the payment schedule"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, schedule_id: int) -> Optional[PaymentSchedule]:
        return self.db.query(PaymentSchedule).filter(PaymentSchedule.id == schedule_id).first()

    def list_for_vendor(self, vendor_id: int) -> List[PaymentSchedule]:
        return (
            self.db.query(PaymentSchedule)
            .filter(PaymentSchedule.vendor_id == vendor_id)
            .order_by(PaymentSchedule.payment_date, PaymentSchedule.id)
            .all()
        )

    def upsert_entry(
        self,
        payment_type: PaymentType,
        vendor_id: int,
        trigger_date: date,
        commission: Decimal,
        client_id: Optional[int] = None,
        source_vendor_id: Optional[int] = None,
        product_type: Optional[str] = None,
        commission_record_id: Optional[int] = None,
    ) -> Optional[PaymentSchedule]:
        """Create or refresh the entry owed for one commission line.

        An entry is identified by its type, beneficiary, client, source
        vendor and ledger record, so each recorded period keeps its own
        entries. Settled entries are left untouched. Nothing is created for
        a zero amount. Does not commit.
        """
        existing = (
            self.db.query(PaymentSchedule)
            .filter(
                PaymentSchedule.type == payment_type,
                PaymentSchedule.vendor_id == vendor_id,
                PaymentSchedule.client_id == client_id,
                PaymentSchedule.source_vendor_id == source_vendor_id,
                PaymentSchedule.commission_record_id == commission_record_id,
            )
            .first()
        )
        payment_date = schedule_payment(payment_type, trigger_date)

        if existing:
            if existing.status == PaymentStatus.PAID:
                return existing
            existing.trigger_date = trigger_date
            existing.payment_date = payment_date
            existing.commission = commission
            existing.product_type = product_type
            return existing

        if commission <= 0:
            return None

        entry = PaymentSchedule(
            type=payment_type,
            vendor_id=vendor_id,
            client_id=client_id,
            source_vendor_id=source_vendor_id,
            product_type=product_type,
            trigger_date=trigger_date,
            payment_date=payment_date,
            commission=commission,
            status=PaymentStatus.PENDING,
            commission_record_id=commission_record_id,
        )
        self.db.add(entry)
        return entry

    def zero_unpaid(self, commission_record_id: int, keep: Iterable[Optional[PaymentSchedule]] = ()) -> int:
        """Zero the unpaid entries of a ledger record that are no longer owed.

        Entries listed in keep (the ones just refreshed) are left alone. Rows
        are never deleted. Does not commit.
        """
        self.db.flush()
        keep_ids = [entry.id for entry in keep if entry is not None]
        query = self.db.query(PaymentSchedule).filter(
            PaymentSchedule.commission_record_id == commission_record_id,
            PaymentSchedule.status != PaymentStatus.PAID,
            PaymentSchedule.commission > 0,
        )
        if keep_ids:
            query = query.filter(PaymentSchedule.id.notin_(keep_ids))
        zeroed = query.update(
            {PaymentSchedule.commission: Decimal("0"), PaymentSchedule.updated_at: datetime.utcnow()},
            synchronize_session="fetch",
        )
        if zeroed:
            logger.info(f"Zeroed {zeroed} unpaid payment(s) of commission record {commission_record_id}")
        return zeroed

    def upcoming(self, vendor_id: int, today: Optional[date] = None) -> UpcomingPayments:
        schedules = (
            self.db.query(PaymentSchedule)
            .filter(
                PaymentSchedule.vendor_id == vendor_id,
                PaymentSchedule.status == PaymentStatus.PENDING,
                PaymentSchedule.commission > 0,
            )
            .all()
        )
        return get_upcoming_payments(vendor_id, schedules, today)

    def monthly_report(self, month: int, year: int) -> MonthlyPaymentReport:
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month: {month}")
        start = date(year, month, 1)
        end = start + relativedelta(months=1)
        schedules = (
            self.db.query(PaymentSchedule)
            .filter(
                PaymentSchedule.status == PaymentStatus.PENDING,
                PaymentSchedule.payment_date >= start,
                PaymentSchedule.payment_date < end,
                PaymentSchedule.commission > 0,
            )
            .order_by(PaymentSchedule.payment_date, PaymentSchedule.id)
            .all()
        )
        return generate_monthly_payment_report(month, year, schedules)

    def overdue(self, today: Optional[date] = None) -> List[PaymentScheduleEntry]:
        """Late unpaid entries, whether or not the overdue status has been stored yet.

        Pending rows are reported as overdue without touching stored state.
        """
        today = today or date.today()
        schedules = (
            self.db.query(PaymentSchedule)
            .filter(
                PaymentSchedule.status.in_([PaymentStatus.PENDING, PaymentStatus.OVERDUE]),
                PaymentSchedule.commission > 0,
                PaymentSchedule.payment_date < today,
            )
            .order_by(PaymentSchedule.payment_date, PaymentSchedule.id)
            .all()
        )
        return [e for e in check_overdue_payments(schedules, today) if e.status == PaymentStatus.OVERDUE]

    def persist_overdue(self, today: Optional[date] = None) -> int:
        """Store the overdue status on late pending entries. Returns the number flagged."""
        today = today or date.today()
        flagged = (
            self.db.query(PaymentSchedule)
            .filter(
                PaymentSchedule.status == PaymentStatus.PENDING,
                PaymentSchedule.payment_date < today,
                PaymentSchedule.commission > 0,
            )
            .update(
                {PaymentSchedule.status: PaymentStatus.OVERDUE, PaymentSchedule.updated_at: datetime.utcnow()},
                synchronize_session=False,
            )
        )
        self.db.commit()
        logger.info(f"Flagged {flagged} payment(s) as overdue (before {today.isoformat()})")
        return flagged

    def mark_paid(self, schedule_id: int, payment_reference: Optional[str] = None) -> Optional[PaymentSchedule]:
        """Settle one entry with a single conditional UPDATE.

        Returns the refreshed entry, or None when it was already paid (a
        concurrent settlement won the race).
        """
        now = datetime.utcnow()
        updated = (
            self.db.query(PaymentSchedule)
            .filter(
                PaymentSchedule.id == schedule_id,
                PaymentSchedule.status != PaymentStatus.PAID,
            )
            .update(
                {
                    PaymentSchedule.status: PaymentStatus.PAID,
                    PaymentSchedule.paid_at: now,
                    PaymentSchedule.payment_reference: payment_reference,
                    PaymentSchedule.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()

        if not updated:
            return None

        entry = self.get(schedule_id)
        self.db.refresh(entry)
        logger.info(f"Payment {schedule_id} settled ({entry.type.value}, {entry.commission} EUR)")
        return entry
