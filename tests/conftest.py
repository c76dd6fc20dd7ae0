from __future__ import annotations

import pytest

from models import Bus, LineItem, Shareholder, Transaction, TransactionBreakdown, TransactionStatus
from computations import apply_balances
from ledger_service import LedgerService
from store import MemoryStore
import config

HOME = "25F-002.19"
PARTNER = "25F-000.19"


@pytest.fixture
def home_bus():
    return Bus(
        id="bus-1",
        license_plate=HOME,
        is_shareholding=True,
        share_percentage=25,
        shareholders=[Shareholder("sh-1", "Anh Thảo", 25)],
    )


@pytest.fixture
def partner_bus():
    return Bus(id="bus-2", license_plate=PARTNER, is_partner=True, share_percentage=0)


@pytest.fixture
def buses(home_bus, partner_bus):
    return [home_bus, partner_bus]


@pytest.fixture
def make_transaction():
    def _make(
        id="t1",
        date="02/11/2025",
        revenue_down=100.0,
        revenue_up=50.0,
        total_expense=60.0,
        fuel=20.0,
        is_shared=True,
        private=(),
        bus_id=HOME,
        status=TransactionStatus.VERIFIED,
        payment_month=None,
        note="",
    ):
        breakdown = TransactionBreakdown(
            revenue_down=revenue_down,
            revenue_up=revenue_up,
            expense_fuel=fuel,
            total_expense=total_expense,
            private_expense_items=[LineItem(f"p{i}", desc, amt) for i, (desc, amt) in enumerate(private)],
            is_shared=is_shared,
            bus_id=bus_id,
            partner_bus_id=PARTNER,
        )
        t = Transaction(id=id, date=date, breakdown=breakdown, status=status, payment_month=payment_month, note=note)
        return apply_balances(t)

    return _make


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def service(store, buses):
    for bus in buses:
        store.upsert("buses", config.bus_to_dict(bus))
    return LedgerService(store)


@pytest.fixture
def seeded(service, store, make_transaction):
    """Service holding three verified November records and one AI generated one"""
    for t in [
        make_transaction(id="A", date="01/11/2025"),
        make_transaction(id="B", date="02/11/2025", is_shared=False),
        make_transaction(id="C", date="03/11/2025", private=[("Ăn trưa", 10)]),
        make_transaction(id="D", date="04/11/2025", status=TransactionStatus.AI_GENERATED),
    ]:
        store.upsert("transactions", config.transaction_to_dict(t))
    return service
