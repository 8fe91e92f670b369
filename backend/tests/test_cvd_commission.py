from datetime import date, datetime
from decimal import Decimal

import pytest

from app.models.client import ClientStatus
from app.models.commission import CommissionKind
from app.models.payment import PaymentSchedule, PaymentType, PaymentStatus
from app.schemas.commission import InstallationEvent
from app.services.commission import (
    compute_monthly_commission, period_bounds, CVDCommissionService, lock_commission_record,
)
from app.services.payments import PaymentService
from app.services.rate_card import DEFAULT_RATE_CARD, normalize_product


def _events(vendor_id, product, days, month=6, year=2025):
    return [
        InstallationEvent(vendor_id=vendor_id, product_type=product, installation_date=date(year, month, d))
        for d in days
    ]


class TestComputeMonthlyCommission:

    def test_all_units_priced_at_final_tier(self):
        # 5 Pop = 20 pts (tier 1), 2 more = 28 pts (tier 2): all 7 at the tier 2 rate
        installations = _events(1, "Freebox Pop", [2, 3, 4, 5, 6]) + _events(1, "Freebox Pop", [20, 21])
        result = compute_monthly_commission(1, "2025-06", installations)

        assert result.total_points == 28
        assert result.tier == 2
        assert len(result.breakdown) == 1
        line = result.breakdown[0]
        assert line.quantity == 7
        assert line.unit_commission == Decimal("60")
        assert result.total_commission == Decimal("420")

    def test_breakdown_per_product(self):
        installations = (
            _events(1, "Freebox Ultra", range(1, 11))      # 60 pts
            + _events(1, "Freebox Essentiel", [11, 12])   # 10 pts
            + _events(1, "Forfait 5G", [13, 14, 15])      # 3 pts
        )
        result = compute_monthly_commission(1, "2025-06", installations)

        assert result.total_points == 73
        assert result.tier == 3
        by_product = {line.product_type: line for line in result.breakdown}
        assert by_product["Freebox Ultra"].commission == Decimal("1000")
        assert by_product["Freebox Essentiel"].commission == Decimal("180")
        assert by_product["Forfait 5G"].commission == Decimal("30")
        assert result.total_commission == Decimal("1210")
        assert [line.product_type for line in result.breakdown] == [
            "Freebox Essentiel", "Freebox Ultra", "Forfait 5G",
        ]

    def test_month_bounds_are_inclusive(self):
        installations = [
            InstallationEvent(vendor_id=1, product_type="Freebox Pop", installation_date=date(2025, 5, 31)),
            InstallationEvent(vendor_id=1, product_type="Freebox Pop", installation_date=date(2025, 6, 1)),
            InstallationEvent(vendor_id=1, product_type="Freebox Pop", installation_date=date(2025, 6, 30)),
            InstallationEvent(vendor_id=1, product_type="Freebox Pop", installation_date=date(2025, 7, 1)),
        ]
        result = compute_monthly_commission(1, "2025-06", installations)
        assert result.installation_count == 2
        assert result.total_points == 8

    def test_other_vendors_are_ignored(self):
        installations = _events(1, "Freebox Pop", [1]) + _events(2, "Freebox Ultra", [1, 2, 3])
        result = compute_monthly_commission(1, "2025-06", installations)
        assert result.total_points == 4
        assert result.total_commission == Decimal("50")

    def test_unknown_product_earns_nothing(self):
        installations = _events(1, "Freebox Delta", [1, 2]) + _events(1, "Freebox Pop", [3])
        result = compute_monthly_commission(1, "2025-06", installations)

        by_product = {line.product_type: line for line in result.breakdown}
        assert by_product["Freebox Delta"].points == 0
        assert by_product["Freebox Delta"].commission == Decimal("0")
        assert result.total_commission == Decimal("50")

    def test_missing_tier_rate_defaults_to_zero(self):
        table = dict(DEFAULT_RATE_CARD.commission_table)
        table["Freebox Pop"] = {1: Decimal("50")}
        card = DEFAULT_RATE_CARD.model_copy(update={"commission_table": table})

        result = compute_monthly_commission(1, "2025-06", _events(1, "Freebox Pop", range(1, 8)), card)
        assert result.tier == 2
        assert result.total_commission == Decimal("0")

    def test_5g_labels_are_normalized(self):
        assert normalize_product("5G") == "Forfait 5G"
        assert normalize_product("Forfait 5G 100Go") == "Forfait 5G"
        assert normalize_product(" freebox pop ") == "Freebox Pop"

        result = compute_monthly_commission(1, "2025-06", _events(1, "5G", [1, 2]))
        assert result.breakdown[0].product_type == "Forfait 5G"
        assert result.total_points == 2

    def test_no_installations(self):
        result = compute_monthly_commission(1, "2025-06", [])
        assert result.total_points == 0
        assert result.tier == 1
        assert result.breakdown == []
        assert result.total_commission == Decimal("0")

    def test_same_snapshot_same_result(self):
        installations = _events(1, "Freebox Essentiel", range(1, 12))
        first = compute_monthly_commission(1, "2025-06", installations)
        second = compute_monthly_commission(1, "2025-06", installations)
        assert first == second

    def test_vendor_id_is_required(self):
        with pytest.raises(ValueError):
            compute_monthly_commission(None, "2025-06", [])

    @pytest.mark.parametrize("period", ["2025/06", "2025-13", "june", ""])
    def test_invalid_period(self, period):
        with pytest.raises(ValueError):
            compute_monthly_commission(1, period, [])


def test_period_bounds_handles_leap_february():
    assert period_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
    assert period_bounds("2025-12") == (date(2025, 12, 1), date(2025, 12, 31))


class TestCVDCommissionService:

    def test_only_installed_live_clients_count(self, db, hierarchy, add_installation):
        seller = hierarchy["NEW1"]
        add_installation(seller, "Freebox Pop", date(2025, 6, 3))
        add_installation(seller, "Freebox Pop", date(2025, 6, 4), status=ClientStatus.SIGNATURE.value)
        deleted = add_installation(seller, "Freebox Ultra", date(2025, 6, 5))
        deleted.deleted_at = datetime(2025, 6, 6)
        db.commit()

        result = CVDCommissionService(db).calculate(seller.id, "2025-06")
        assert result.installation_count == 1
        assert result.total_points == 4

    def test_record_stores_ledger_and_schedules_payments(self, db, hierarchy, add_installation):
        seller = hierarchy["NEW1"]
        for day in range(1, 8):
            add_installation(seller, "Freebox Pop", date(2025, 6, day))

        record = CVDCommissionService(db).record(seller.id, "2025-06")

        assert record.kind == CommissionKind.CVD
        assert record.total_points == 28
        assert record.tier == 2
        assert record.total_commission == Decimal("420")

        payments = db.query(PaymentSchedule).filter(PaymentSchedule.vendor_id == seller.id).all()
        assert len(payments) == 7
        assert all(p.type == PaymentType.CVD for p in payments)
        assert all(p.payment_date == date(2025, 7, 15) for p in payments)
        assert all(p.commission == Decimal("60") for p in payments)

    def test_record_twice_updates_instead_of_duplicating(self, db, hierarchy, add_installation):
        seller = hierarchy["NEW1"]
        add_installation(seller, "Freebox Pop", date(2025, 6, 1))
        service = CVDCommissionService(db)
        first = service.record(seller.id, "2025-06")

        for day in range(2, 9):
            add_installation(seller, "Freebox Pop", date(2025, 6, day))
        second = service.record(seller.id, "2025-06")

        assert second.id == first.id
        assert second.total_points == 32
        assert second.tier == 2
        payments = db.query(PaymentSchedule).filter(PaymentSchedule.vendor_id == seller.id).all()
        assert len(payments) == 8
        assert {p.commission for p in payments} == {Decimal("60")}

    def test_locked_record_is_not_recomputed(self, db, hierarchy, add_installation):
        seller = hierarchy["NEW1"]
        add_installation(seller, "Freebox Pop", date(2025, 6, 1))
        service = CVDCommissionService(db)
        record = service.record(seller.id, "2025-06")
        lock_commission_record(db, record.id)

        add_installation(seller, "Freebox Ultra", date(2025, 6, 2))
        again = service.record(seller.id, "2025-06")

        assert again.id == record.id
        assert again.is_locked
        assert again.total_points == 4
        assert again.total_commission == Decimal("50")

    def test_lock_unknown_record(self, db):
        assert lock_commission_record(db, 999) is None

    def test_rerecord_zeroes_entries_of_clients_no_longer_installed(self, db, hierarchy, add_installation):
        seller = hierarchy["NEW1"]
        kept = add_installation(seller, "Freebox Pop", date(2025, 6, 1))
        cancelled = add_installation(seller, "Freebox Pop", date(2025, 6, 2))
        service = CVDCommissionService(db)
        assert service.record(seller.id, "2025-06").total_commission == Decimal("100")

        cancelled.status = ClientStatus.RESILIATION.value
        db.commit()
        record = service.record(seller.id, "2025-06")

        assert record.total_commission == Decimal("50")
        payments = {p.client_id: p for p in db.query(PaymentSchedule).filter(PaymentSchedule.vendor_id == seller.id)}
        assert len(payments) == 2
        assert payments[kept.id].commission == Decimal("50")
        assert payments[cancelled.id].commission == Decimal("0")
        unpaid = sum(p.commission for p in payments.values() if p.status != PaymentStatus.PAID)
        assert unpaid == record.total_commission

    def test_paid_entry_survives_client_cancellation(self, db, hierarchy, add_installation):
        seller = hierarchy["NEW1"]
        client = add_installation(seller, "Freebox Pop", date(2025, 6, 1))
        service = CVDCommissionService(db)
        service.record(seller.id, "2025-06")
        entry = db.query(PaymentSchedule).filter(PaymentSchedule.client_id == client.id).one()
        PaymentService(db).mark_paid(entry.id)

        client.status = ClientStatus.RESILIATION.value
        db.commit()
        service.record(seller.id, "2025-06")

        db.refresh(entry)
        assert entry.status == PaymentStatus.PAID
        assert entry.commission == Decimal("50")


def test_rate_card_tables_are_read_only():
    with pytest.raises(TypeError):
        DEFAULT_RATE_CARD.commission_table["Freebox Pop"][4] = Decimal("999")
    with pytest.raises(TypeError):
        DEFAULT_RATE_CARD.commission_table["Freebox Delta"] = {}
    with pytest.raises(TypeError):
        DEFAULT_RATE_CARD.product_points["Freebox Pop"] = 40
    with pytest.raises(TypeError):
        del DEFAULT_RATE_CARD.positions["ETT"]
