from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timezone

import pytest

import config
from errors import (
    ConfirmationRequired,
    CycleExistsError,
    CycleNotFoundError,
    DuplicateDateError,
    InvalidStatusTransition,
    PartialCommitError,
    PersistenceError,
    TransactionLockedError,
    TransactionNotFoundError,
    ValidationError,
)
from computations import EMPTY_FINANCIALS
from ledger_service import LedgerService
from models import Bus, LineItem, Shareholder, TransactionStatus
from reconciliation import DEFICIT, SURPLUS
from store import MemoryStore

VERIFIED = TransactionStatus.VERIFIED
PAID = TransactionStatus.PAID


class FailingStore(MemoryStore):
    """Memory store refusing writes for the given ids"""

    def __init__(self, bad_ids):
        super().__init__()
        self.bad_ids = set(bad_ids)

    def upsert(self, collection, item):
        if item.get("id") in self.bad_ids:
            raise PersistenceError(f"cannot write {item['id']}")
        return super().upsert(collection, item)


class TestTransactions:
    def test_save_new_promotes_and_recomputes(self, service, make_transaction):
        t = make_transaction(id="", status=TransactionStatus.AI_GENERATED)
        t.breakdown.revenue_down = 200
        result = service.save_transaction(t)
        assert result.created
        assert result.transaction.id.startswith("trans_")
        assert result.transaction.status == VERIFIED
        assert result.transaction.total_balance == 190
        stored = service.get_transaction(result.transaction.id)
        assert stored == result.transaction

    def test_new_transaction_defaults(self, service):
        t = service.new_transaction("05/11/2025")
        assert t.status == TransactionStatus.AI_GENERATED
        assert t.breakdown.bus_id == config.HOME_BUS_PLATE
        assert t.remaining_balance == 0

    def test_second_record_on_same_date_is_refused(self, seeded, make_transaction):
        with pytest.raises(DuplicateDateError) as exc:
            seeded.save_transaction(make_transaction(id="new", date="01/11/2025"))
        assert exc.value.existing_id == "A"

    def test_editing_a_record_that_shares_a_date_reports_the_conflict(self, seeded, store, make_transaction, caplog):
        store.upsert("transactions", config.transaction_to_dict(make_transaction(id="A2", date="01/11/2025")))
        a = seeded.get_transaction("A")
        with caplog.at_level(logging.WARNING):
            result = seeded.save_transaction(replace(a, note="sửa"))
        assert not result.created
        assert result.date_conflicts == ["A2"]
        assert "A2" in caplog.text

    def test_empty_record_needs_confirmation(self, service):
        t = service.new_transaction("06/11/2025")
        with pytest.raises(ConfirmationRequired) as exc:
            service.save_transaction(t)
        assert exc.value.reasons == [EMPTY_FINANCIALS]
        assert service.list_transactions() == []
        assert service.save_transaction(t, confirm=True).created

    def test_validation(self, service, make_transaction):
        with pytest.raises(ValidationError):
            service.save_transaction(make_transaction(date=""))
        with pytest.raises(ValidationError):
            service.save_transaction(make_transaction(date="32/11/2025"))
        with pytest.raises(ValidationError):
            service.save_transaction(make_transaction(bus_id=""))

    def test_listing_and_lookup(self, seeded):
        assert [t.id for t in seeded.list_transactions()] == ["A", "B", "C", "D"]
        assert [t.id for t in seeded.transactions_for_month(11, 2025)] == ["A", "B", "C", "D"]
        assert seeded.transactions_for_month(10, 2025) == []
        assert [t.id for t in seeded.find_by_date("03/11/2025")] == ["C"]
        with pytest.raises(TransactionNotFoundError):
            seeded.get_transaction("nope")

    def test_search(self, seeded):
        c = seeded.get_transaction("C")
        seeded.save_transaction(replace(c, note="Thay lốp xe"))
        assert [t.id for t in seeded.search("lốp")] == ["C"]
        assert [t.id for t in seeded.search("02/11")] == ["B"]
        assert seeded.search("  ") == []

    def test_delete(self, seeded):
        seeded.delete_transaction("D")
        assert "D" not in [t.id for t in seeded.list_transactions()]
        seeded.create_cycle(["A"], 11, 2025)
        with pytest.raises(TransactionLockedError):
            seeded.delete_transaction("A")

    def test_unpadded_date_is_the_same_day(self, seeded, make_transaction):
        with pytest.raises(DuplicateDateError) as exc:
            seeded.save_transaction(make_transaction(id="F", date="1/11/2025"))
        assert exc.value.existing_id == "A"
        assert exc.value.date == "01/11/2025"

    def test_dates_are_stored_zero_padded(self, service, make_transaction):
        saved = service.save_transaction(make_transaction(id="J", date="05/1/2026")).transaction
        assert saved.date == "05/01/2026"
        assert service.get_transaction("J").date == "05/01/2026"
        assert [t.id for t in service.transactions_for_month(1, 2026)] == ["J"]
        assert service.reconcile(1, 2026).total_target == 45

    def test_unpadded_stored_dates_still_match(self, service, store, make_transaction):
        store.upsert("transactions", config.transaction_to_dict(make_transaction(id="L", date="7/1/2026")))
        assert [t.id for t in service.transactions_for_month(1, 2026)] == ["L"]
        assert [t.id for t in service.find_by_date("07/01/2026")] == ["L"]
        assert service.find_by_date("not a date") == []

    def test_new_record_cannot_arrive_paid(self, service, make_transaction):
        with pytest.raises(InvalidStatusTransition):
            service.save_transaction(make_transaction(id="", status=PAID))
        with pytest.raises(InvalidStatusTransition):
            service.save_transaction(make_transaction(id="", payment_month="2025.11"))
        assert service.list_transactions() == []

    def test_saving_keeps_the_stored_status(self, seeded):
        seeded.create_cycle(["A"], 11, 2025)
        a = seeded.get_transaction("A")
        saved = seeded.save_transaction(replace(a, status=VERIFIED, payment_month=None)).transaction
        assert (saved.status, saved.payment_month) == (PAID, "2025.11")

        d = seeded.get_transaction("D")
        saved = seeded.save_transaction(replace(d, status=PAID, payment_month="2025.11")).transaction
        assert (saved.status, saved.payment_month) == (VERIFIED, None)


class TestCycles:
    def test_create(self, seeded):
        cycle = seeded.create_cycle(["A", "B"], 11, 2025, today=date(2025, 12, 1))
        assert cycle.id == "2025.11"
        assert cycle.total_amount == 135
        assert cycle.created_date == "01/12/2025"
        a = seeded.get_transaction("A")
        assert (a.status, a.payment_month) == (PAID, "2025.11")
        assert [t.id for t in seeded.open_transactions()] == ["C", "D"]
        assert [t.id for t in seeded.transactions_for_cycle(None)] == ["C", "D"]
        assert [t.id for t in seeded.transactions_for_cycle("2025.11")] == ["A", "B"]

    def test_create_twice_for_a_month(self, seeded):
        seeded.create_cycle(["A"], 11, 2025)
        with pytest.raises(CycleExistsError):
            seeded.create_cycle(["B"], 11, 2025)

    def test_update_and_delete(self, seeded):
        seeded.create_cycle(["A", "B"], 11, 2025)
        cycle = seeded.update_cycle("2025.11", ["B", "C"], note="Đợt 2")
        assert cycle.transaction_ids == ["B", "C"]
        assert cycle.total_amount == 125
        assert cycle.note == "Đợt 2"
        assert seeded.get_transaction("A").status == VERIFIED
        assert seeded.get_transaction("A").payment_month is None
        assert seeded.get_transaction("C").status == PAID

        reopened = seeded.delete_cycle("2025.11")
        assert sorted(reopened) == ["B", "C"]
        assert seeded.list_cycles() == []
        assert all(t.status == VERIFIED for t in seeded.list_transactions() if t.id != "D")

    def test_missing_cycle(self, seeded):
        with pytest.raises(CycleNotFoundError):
            seeded.update_cycle("2024.01", ["A"])
        with pytest.raises(CycleNotFoundError):
            seeded.delete_cycle("2024.01")

    def test_editing_a_paid_record_keeps_it_paid(self, seeded):
        seeded.create_cycle(["A"], 11, 2025)
        a = seeded.get_transaction("A")
        b = replace(a.breakdown, private_expense_items=[LineItem("p", "Ăn", 10)])
        saved = seeded.save_transaction(replace(a, breakdown=b)).transaction
        assert saved.status == PAID
        assert saved.payment_month == "2025.11"
        assert saved.remaining_balance == 80

    def test_cycle_report(self, seeded):
        seeded.create_cycle(["A", "B"], 11, 2025)
        report = seeded.cycle_report("2025.11")
        assert [t.id for t in report.transactions] == ["A", "B"]
        assert report.total_remaining == 135
        assert report.shares.owner_share == pytest.approx(33.75)
        assert report.shares.shareholder_shares == {"Anh Thảo": pytest.approx(33.75)}

    def test_partial_commit_is_reported(self, make_transaction, buses):
        store = FailingStore(["B"])
        for bus in buses:
            store.upsert("buses", config.bus_to_dict(bus))
        for t in [make_transaction(id="A", date="01/11/2025"), make_transaction(id="B", date="02/11/2025")]:
            MemoryStore.upsert(store, "transactions", config.transaction_to_dict(t))
        service = LedgerService(store)
        with pytest.raises(PartialCommitError) as exc:
            service.create_cycle(["A", "B"], 11, 2025)
        assert ("cycles", "2025.11") in exc.value.applied
        assert ("transactions", "A") in exc.value.applied
        assert [i for _, i, _ in exc.value.failed] == ["B"]
        assert service.get_transaction("B").status == VERIFIED


class TestReconciliation:
    def test_unsaved_month_is_an_empty_report(self, service):
        r = service.load_reconciliation(10, 2025)
        assert r.id == "recon_10_2025"
        assert r.paid_items == []

    def test_save_and_reconcile(self, seeded):
        r = seeded.load_reconciliation(11, 2025)
        r = replace(r, bank_account=100, cash_wallet=60, paid_items=[LineItem("1", "Ứng", 10)])
        now = datetime(2025, 12, 1, 8, 0, tzinfo=timezone.utc)
        saved = seeded.save_reconciliation(r, now=now)
        assert saved.last_updated == now.isoformat()
        assert seeded.load_reconciliation(11, 2025) == saved

        result = seeded.reconcile(11, 2025)
        assert result.total_target == pytest.approx(152.5)
        assert result.owner_target == pytest.approx(76.25)
        assert result.total_adjusted_assets == 170
        assert result.discrepancy == pytest.approx(17.5)
        assert result.status == SURPLUS

    def test_reconcile_with_unsaved_report(self, seeded):
        result = seeded.reconcile(11, 2025)
        assert result.discrepancy == pytest.approx(-152.5)
        assert result.status == DEFICIT

    def test_invalid_month(self, service):
        r = service.load_reconciliation(1, 2025)
        with pytest.raises(ValidationError):
            service.save_reconciliation(replace(r, month=13))


class TestBusesAndDashboard:
    def test_ensure_seeded(self):
        service = LedgerService(MemoryStore())
        buses = service.ensure_seeded()
        assert buses[0].license_plate == config.HOME_BUS_PLATE
        assert service.ensure_seeded() == service.list_buses()
        assert len(service.list_buses()) == len(buses)

    def test_save_bus_normalizes_and_warns(self, service, caplog):
        bus = service.save_bus(Bus("", "51B-123.45", share_percentage=40, shareholders=[Shareholder("s", "X", 60)]))
        assert bus.id.startswith("bus_")
        assert bus.share_percentage == 100
        assert bus.shareholders == []
        with caplog.at_level(logging.WARNING):
            service.save_bus(Bus("b9", "51B-999.99", is_shareholding=True, share_percentage=30,
                                 shareholders=[Shareholder("s", "X", 30)]))
        assert "not 100" in caplog.text
        with pytest.raises(ValidationError):
            service.save_bus(Bus("b0", "  "))

    def test_delete_bus(self, service):
        assert service.delete_bus("bus-2")
        assert not service.delete_bus("bus-2")

    def test_dashboard_stats(self, seeded, store, make_transaction):
        stats = seeded.dashboard_stats(11, 2025)
        assert stats.period_balance == 305
        assert stats.period_revenue == 600
        assert stats.transaction_count == 4
        assert stats.period_balance_growth is None

        store.upsert("transactions", config.transaction_to_dict(make_transaction(id="O", date="15/10/2025")))
        assert seeded.dashboard_stats(11, 2025).period_balance_growth == pytest.approx((305 - 90) / 90 * 100)


def test_open_uses_configured_data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv(config.DATA_DIR_ENV, str(tmp_path))
    service = LedgerService.open()
    service.ensure_seeded()
    assert (tmp_path / "buses.json").exists()
    assert LedgerService.open(str(tmp_path)).list_buses() == service.list_buses()
