"""Team animation commission (CAE), paid up the upline as CCA.

When a new partner reaches the qualifying points in a month, each position
of the upline chain gets a fixed bonus. Every rank absorbs the difference
between its own pool and what junior ranks of the same chain already took:

    ETT      40 flat
    ETL      140, minus the ETT share when an ETT came first
    Manager  290, minus what ETT and ETL already received
    RC..SVP  their pool minus the Manager pool (290) when a Manager came
             first, otherwise minus what ETT and ETL received

A second Manager/RC/RD/RVP/SVP in the chain gets the fixed second
generation amount; any further occurrence gets nothing.
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.models.commission import CommissionRecord, CommissionKind, CommissionStatus
from app.models.payment import PaymentType
from app.models.vendor import Vendor, MLMPosition
from app.schemas.commission import (
    NewQualifier, UplineMember, DistributionEntry, DistributionResult,
)
from app.services.commission import CVDCommissionService
from app.services.payments import PaymentService
from app.services.rate_card import RateCard, PositionBonus, DEFAULT_RATE_CARD

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _first_generation_amount(bonus: PositionBonus, paid: Dict[str, Decimal], rate_card: RateCard) -> Decimal:
    position = bonus.position
    junior_share = paid.get(MLMPosition.ETT.value, ZERO) + paid.get(MLMPosition.ETL.value, ZERO)

    if position == MLMPosition.ETT.value:
        amount = bonus.first_generation
    elif position == MLMPosition.ETL.value:
        amount = bonus.first_generation - paid.get(MLMPosition.ETT.value, ZERO)
    elif position == MLMPosition.MANAGER.value:
        amount = bonus.first_generation - junior_share
    elif MLMPosition.MANAGER.value in paid:
        amount = bonus.first_generation - rate_card.positions[MLMPosition.MANAGER.value].first_generation
    else:
        amount = bonus.first_generation - junior_share

    return max(amount, ZERO)


def distribute_cae_bonus(
    new_qualifier: NewQualifier,
    upline_chain: Iterable[UplineMember],
    rate_card: RateCard = DEFAULT_RATE_CARD,
) -> DistributionResult:
    """Split the CAE bonus of a new qualifier over its upline.

    The chain is walked in the order given (closest sponsor first); the
    result depends on that order. A qualifier under the threshold gets an
    empty distribution.
    """
    if new_qualifier.points_this_month < rate_card.cae_qualifying_points:
        return DistributionResult(qualifier_id=new_qualifier.vendor_id, distribution=[], total_commission=ZERO)

    distribution = []
    total = ZERO
    paid: Dict[str, Decimal] = {}
    occurrences: Dict[str, int] = {}

    for member in upline_chain:
        bonus = rate_card.positions.get(member.position) if member.position else None
        if bonus is None:
            logger.debug(f"CAE: no bonus configured for position {member.position!r} (vendor {member.vendor_id})")
            continue

        seen = occurrences.get(bonus.position, 0)
        occurrences[bonus.position] = seen + 1

        amount = ZERO
        generation = "first"
        if seen == 0:
            amount = _first_generation_amount(bonus, paid, rate_card)
            paid[bonus.position] = amount
        elif seen == 1 and bonus.second_generation:
            amount = bonus.second_generation
            generation = "second"

        if amount > 0:
            description = bonus.description + (" (2ème génération)" if generation == "second" else "")
            distribution.append(DistributionEntry(
                vendor_id=member.vendor_id,
                position=bonus.position,
                distance=member.distance,
                amount=amount,
                generation=generation,
                description=description,
            ))
            total += amount

    return DistributionResult(
        qualifier_id=new_qualifier.vendor_id,
        distribution=distribution,
        total_commission=total,
    )


def get_upline_chain(db: Session, vendor_id: int) -> List[UplineMember]:
    """Sponsors of a vendor, closest first, following the parent pointers"""
    vendor = db.query(Vendor).filter(Vendor.id == vendor_id).first()
    if not vendor:
        raise ValueError(f"Vendor {vendor_id} not found")

    chain = []
    visited = {vendor.id}
    distance = 1
    parent_id = vendor.parent_id
    while parent_id is not None:
        if parent_id in visited:
            logger.warning(f"Cycle in MLM tree above vendor {vendor_id} at vendor {parent_id}, chain truncated")
            break
        parent = db.query(Vendor).filter(Vendor.id == parent_id).first()
        if not parent:
            break
        visited.add(parent.id)
        chain.append(UplineMember(vendor_id=parent.id, position=parent.position, distance=distance))
        distance += 1
        parent_id = parent.parent_id

    return chain


class CAECommissionService:
    """Records the CAE distribution of a qualifier and schedules the CCA payments"""

    def __init__(self, db: Session, rate_card: RateCard = DEFAULT_RATE_CARD):
        self.db = db
        self.rate_card = rate_card

    def build_qualifier(self, vendor_id: int, period: str) -> NewQualifier:
        vendor = self.db.query(Vendor).filter(Vendor.id == vendor_id).first()
        if not vendor:
            raise ValueError(f"Vendor {vendor_id} not found")
        monthly = CVDCommissionService(self.db, self.rate_card).calculate(vendor_id, period)
        return NewQualifier(vendor_id=vendor.id, name=vendor.full_name, points_this_month=monthly.total_points)

    def get_record(self, vendor_id: int, period: str) -> Optional[CommissionRecord]:
        return (
            self.db.query(CommissionRecord)
            .filter(
                CommissionRecord.kind == CommissionKind.CAE,
                CommissionRecord.vendor_id == vendor_id,
                CommissionRecord.period == period,
            )
            .first()
        )

    def record(
        self, vendor_id: int, period: str, acquisition_date: date
    ) -> Tuple[DistributionResult, Optional[CommissionRecord]]:
        """
        Distribute the bonus triggered by vendor_id qualifying in period.
        Nothing is stored when the vendor has not qualified yet. An unlocked
        record that no longer qualifies is refreshed to zero and its unpaid
        CCA entries are zeroed.
        """
        existing = self.get_record(vendor_id, period)
        if existing and existing.is_locked:
            stored = DistributionResult(
                qualifier_id=vendor_id,
                distribution=[DistributionEntry.model_validate(line) for line in existing.breakdown or []],
                total_commission=existing.total_commission,
            )
            return stored, existing

        qualifier = self.build_qualifier(vendor_id, period)
        chain = get_upline_chain(self.db, vendor_id)
        result = distribute_cae_bonus(qualifier, chain, self.rate_card)

        if not result.distribution and not existing:
            logger.info(f"CAE {period} vendor {vendor_id}: {qualifier.points_this_month} pts, nothing to distribute")
            return result, None

        record = existing or CommissionRecord(kind=CommissionKind.CAE, vendor_id=vendor_id, period=period)
        record.total_points = qualifier.points_this_month
        record.total_commission = result.total_commission
        record.breakdown = [line.model_dump(mode="json") for line in result.distribution]
        record.status = CommissionStatus.CALCULATED
        record.calculated_at = datetime.utcnow()
        if not existing:
            self.db.add(record)
        self.db.flush()

        payments = PaymentService(self.db)
        kept = [
            payments.upsert_entry(
                PaymentType.CCA,
                vendor_id=line.vendor_id,
                trigger_date=acquisition_date,
                commission=line.amount,
                source_vendor_id=vendor_id,
                commission_record_id=record.id,
            )
            for line in result.distribution
        ]
        payments.zero_unpaid(record.id, kept)

        self.db.commit()
        self.db.refresh(record)
        logger.info(
            f"CAE {period} vendor {vendor_id}: {len(result.distribution)} upline share(s), "
            f"{result.total_commission} EUR (record {record.id})"
        )
        return result, record
