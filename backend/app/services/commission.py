import calendar
import logging
from collections import Counter
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.models.client import Client, ClientStatus
from app.models.commission import CommissionRecord, CommissionKind, CommissionStatus
from app.models.payment import PaymentType
from app.schemas.commission import (
    InstallationEvent, ProductBreakdown, CommissionResult, TierProgress,
)
from app.services.payments import PaymentService
from app.services.rate_card import RateCard, DEFAULT_RATE_CARD, normalize_product

logger = logging.getLogger(__name__)


def parse_period(period: str) -> Tuple[int, int]:
    """Split a "YYYY-MM" period into (year, month)"""
    try:
        year, month = (int(part) for part in period.split("-"))
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid period '{period}', expected YYYY-MM")
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid period '{period}', month out of range")
    return year, month


def period_bounds(period: str) -> Tuple[date, date]:
    """First and last calendar day of the period, both inclusive"""
    year, month = parse_period(period)
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def resolve_tier(points: int, rate_card: RateCard = DEFAULT_RATE_CARD) -> int:
    """
    Map cumulative monthly points to a CVD tier.
    Anything under the first band (negative points) falls back to tier 1.
    """
    bands = sorted(rate_card.tiers, key=lambda b: b.min_points)
    tier = bands[0].tier
    for band in bands:
        if points >= band.min_points:
            tier = band.tier
    return tier


def tier_progress(points: int, rate_card: RateCard = DEFAULT_RATE_CARD) -> TierProgress:
    """Current tier and the points still missing to reach the next one"""
    tier = resolve_tier(points, rate_card)
    band = rate_card.band(tier)
    next_band = rate_card.band(tier + 1)

    return TierProgress(
        total_points=points,
        tier=tier,
        tier_label=band.label if band else "",
        next_tier=next_band.tier if next_band else None,
        next_tier_min_points=next_band.min_points if next_band else None,
        points_to_next_tier=max(next_band.min_points - points, 0) if next_band else None,
    )


def _product_order(rate_card: RateCard):
    catalogue = list(rate_card.product_points)

    def key(product: str):
        return (catalogue.index(product), product) if product in catalogue else (len(catalogue), product)
    return key


def compute_monthly_commission(
    vendor_id: int,
    month: str,
    installations: Iterable[InstallationEvent],
    rate_card: RateCard = DEFAULT_RATE_CARD,
) -> CommissionResult:
    """
    CVD commission for one vendor and one month.

    1. Points are summed over every installation of the month
    2. The tier comes from the FINAL monthly total
    3. Every unit of the month is priced at that tier, including units
       installed before the tier was reached
    4. A product with no configured rate earns 0 instead of failing the month
    """
    if vendor_id is None:
        raise ValueError("vendor_id is required")

    start, end = period_bounds(month)
    events = [
        e for e in installations
        if e.vendor_id == vendor_id and start <= e.installation_date <= end
    ]

    counts = Counter(normalize_product(e.product_type) for e in events)
    total_points = sum(count * rate_card.product_points.get(product, 0) for product, count in counts.items())
    tier = resolve_tier(total_points, rate_card)

    breakdown = []
    total_commission = Decimal("0")
    for product in sorted(counts, key=_product_order(rate_card)):
        quantity = counts[product]
        unit_commission = rate_card.unit_commission(product, tier)
        if unit_commission is None:
            logger.warning(f"No CVD rate for '{product}' at tier {tier} (vendor {vendor_id}, {month}), counting 0")
            unit_commission = Decimal("0")

        product_commission = quantity * unit_commission
        total_commission += product_commission
        breakdown.append(ProductBreakdown(
            product_type=product,
            quantity=quantity,
            points=quantity * rate_card.product_points.get(product, 0),
            unit_commission=unit_commission,
            commission=product_commission,
        ))

    return CommissionResult(
        vendor_id=vendor_id,
        period=month,
        total_points=total_points,
        tier=tier,
        breakdown=breakdown,
        total_commission=total_commission,
        installation_count=len(events),
    )


class CVDCommissionService:
    """
    Direct sales commission (CVD) over the CRM client records:
    - installations are read once per call, then priced
    - record() stores the result as a ledger entry and schedules the payments
    - a locked ledger entry is returned as stored and never recomputed
    """

    def __init__(self, db: Session, rate_card: RateCard = DEFAULT_RATE_CARD):
        self.db = db
        self.rate_card = rate_card

    def fetch_installations(self, vendor_id: int, period: str) -> List[InstallationEvent]:
        start, end = period_bounds(period)
        clients = (
            self.db.query(Client)
            .filter(
                Client.vendor_id == vendor_id,
                Client.deleted_at == None,
                Client.produit != None,
                Client.status == ClientStatus.INSTALLATION.value,
                Client.installation_date != None,
                Client.installation_date >= start,
                Client.installation_date <= end,
            )
            .order_by(Client.installation_date, Client.id)
            .all()
        )
        return [
            InstallationEvent(
                vendor_id=c.vendor_id,
                product_type=c.produit,
                installation_date=c.installation_date,
                client_id=c.id,
            )
            for c in clients
        ]

    def calculate(self, vendor_id: int, period: str) -> CommissionResult:
        installations = self.fetch_installations(vendor_id, period)
        result = compute_monthly_commission(vendor_id, period, installations, self.rate_card)
        logger.info(
            f"CVD {period} vendor {vendor_id}: {result.installation_count} installations, "
            f"{result.total_points} pts, tier {result.tier}, {result.total_commission} EUR"
        )
        return result

    def progress(self, vendor_id: int, period: str) -> TierProgress:
        result = self.calculate(vendor_id, period)
        return tier_progress(result.total_points, self.rate_card)

    def get_record(self, vendor_id: int, period: str) -> Optional[CommissionRecord]:
        return (
            self.db.query(CommissionRecord)
            .filter(
                CommissionRecord.kind == CommissionKind.CVD,
                CommissionRecord.vendor_id == vendor_id,
                CommissionRecord.period == period,
            )
            .first()
        )

    def record(self, vendor_id: int, period: str) -> CommissionRecord:
        """Compute the month once and store it with its CVD payment entries"""
        existing = self.get_record(vendor_id, period)
        if existing and existing.is_locked:
            logger.info(f"CVD {period} vendor {vendor_id} is locked, returning stored record {existing.id}")
            return existing

        installations = self.fetch_installations(vendor_id, period)
        result = compute_monthly_commission(vendor_id, period, installations, self.rate_card)

        record = existing or CommissionRecord(kind=CommissionKind.CVD, vendor_id=vendor_id, period=period)
        record.total_points = result.total_points
        record.tier = result.tier
        record.total_commission = result.total_commission
        record.breakdown = [line.model_dump(mode="json") for line in result.breakdown]
        record.status = CommissionStatus.CALCULATED
        record.calculated_at = datetime.utcnow()
        if not existing:
            self.db.add(record)
        self.db.flush()

        # One payment line per installed client, all at the month's tier
        payments = PaymentService(self.db)
        kept = []
        for event in installations:
            unit_commission = self.rate_card.unit_commission(event.product_type, result.tier) or Decimal("0")
            kept.append(payments.upsert_entry(
                PaymentType.CVD,
                vendor_id=vendor_id,
                trigger_date=event.installation_date,
                commission=unit_commission,
                client_id=event.client_id,
                product_type=normalize_product(event.product_type),
                commission_record_id=record.id,
            ))
        # Clients no longer installed in this month stop being owed
        payments.zero_unpaid(record.id, kept)

        self.db.commit()
        self.db.refresh(record)
        logger.info(f"CVD {period} vendor {vendor_id} recorded: {record.total_commission} EUR (record {record.id})")
        return record


def lock_commission_record(db: Session, record_id: int) -> Optional[CommissionRecord]:
    """Freeze a ledger entry so later edits of client records no longer change it"""
    record = db.query(CommissionRecord).filter(CommissionRecord.id == record_id).first()
    if not record:
        return None
    record.is_locked = True
    record.status = CommissionStatus.LOCKED
    db.commit()
    db.refresh(record)
    return record
