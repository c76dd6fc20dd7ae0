"""
Configuration and record conversion for BusLedger

Records are stored with the camelCase keys used by the dashboard's JSON files.
"""
from __future__ import annotations
import logging
import os
from typing import List, Optional

from dotenv import load_dotenv

from models import (
    Bus,
    BusStatus,
    LineItem,
    PaymentCycle,
    ReconciliationReport,
    Shareholder,
    Transaction,
    TransactionBreakdown,
    TransactionStatus,
)
from utils import app_dir, safe_float

DATA_DIR_ENV = "BUSLEDGER_DATA_DIR"
LOG_LEVEL_ENV = "BUSLEDGER_LOG_LEVEL"

HOME_BUS_PLATE = "25F-002.19"
PARTNER_BUS_PLATE = "25F-000.19"


def data_dir() -> str:
    """Data directory from BUSLEDGER_DATA_DIR (.env honoured), else the app dir"""
    load_dotenv()
    path = os.environ.get(DATA_DIR_ENV)
    if path:
        os.makedirs(path, exist_ok=True)
        return path
    return app_dir()


def configure_logging(level: Optional[str] = None) -> None:
    """Basic logging setup for scripts; the modules only create loggers"""
    load_dotenv()
    level = level or os.environ.get(LOG_LEVEL_ENV, "INFO")
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def default_breakdown() -> TransactionBreakdown:
    return TransactionBreakdown(is_shared=True, bus_id=HOME_BUS_PLATE, partner_bus_id=PARTNER_BUS_PLATE)


def seed_buses() -> List[Bus]:
    """Bus list used when the bus collection is empty"""
    home = Bus(
        id="bus-1",
        license_plate=HOME_BUS_PLATE,
        is_partner=False,
        is_shareholding=True,
        note="Xe nhà (Chính)",
        share_percentage=25,
        shareholders=[Shareholder("sh-1", "Anh Thảo", 25)],
    )
    partners = [
        Bus(id=f"bus-{i}", license_plate=plate, is_partner=True, note="Xe đối tác", share_percentage=0)
        for i, plate in enumerate([PARTNER_BUS_PLATE, "25F-002.01", "25F-002.37", "25F-000.41"], start=2)
    ]
    return [home] + partners


# ---------- Line items ----------

def item_to_dict(i: LineItem) -> dict:
    return {"id": i.id, "description": i.description, "amount": i.amount}


def dict_to_item(d: dict) -> LineItem:
    return LineItem(
        id=str(d.get("id", "")),
        description=str(d.get("description", "") or ""),
        amount=safe_float(d.get("amount")),
    )


def _items(d: dict, key: str) -> List[LineItem]:
    return [dict_to_item(x) for x in (d.get(key) or [])]


# ---------- Buses ----------

def bus_to_dict(b: Bus) -> dict:
    return {
        "id": b.id,
        "licensePlate": b.license_plate,
        "isPartner": b.is_partner,
        "isShareholding": b.is_shareholding,
        "status": b.status.value,
        "note": b.note,
        "sharePercentage": b.share_percentage,
        "shareholders": [
            {"id": s.id, "name": s.name, "percentage": s.percentage} for s in b.shareholders
        ],
    }


def dict_to_bus(d: dict) -> Bus:
    shareholders = [
        Shareholder(id=str(s.get("id", "")), name=str(s.get("name", "")), percentage=safe_float(s.get("percentage")))
        for s in (d.get("shareholders") or [])
    ]
    share_pct = safe_float(d.get("sharePercentage"), 100.0)
    is_shareholding = d.get("isShareholding")
    if is_shareholding is None:
        # records saved before the flag existed
        is_shareholding = share_pct < 100 or bool(shareholders)
    return Bus(
        id=str(d.get("id", "")),
        license_plate=str(d.get("licensePlate", "")),
        is_partner=bool(d.get("isPartner", False)),
        is_shareholding=bool(is_shareholding),
        status=BusStatus(d.get("status") or BusStatus.ACTIVE.value),
        note=str(d.get("note", "") or ""),
        share_percentage=share_pct,
        shareholders=shareholders,
    )


# ---------- Transactions ----------

def breakdown_to_dict(b: TransactionBreakdown) -> dict:
    return {
        "revenueDown": b.revenue_down,
        "revenueUp": b.revenue_up,
        "otherRevenueItems": [item_to_dict(i) for i in b.other_revenue_items],
        "expenseFuel": b.expense_fuel,
        "expensePolice": b.expense_police,
        "expenseRepair": b.expense_repair,
        "otherExpenseItems": [item_to_dict(i) for i in b.other_expense_items],
        "totalExpense": b.total_expense,
        "expenseFixed": b.expense_fixed,
        "privateExpenseItems": [item_to_dict(i) for i in b.private_expense_items],
        "isShared": b.is_shared,
        "busId": b.bus_id,
        "partnerBusId": b.partner_bus_id,
        "manualBalance": b.manual_balance,
        "isManualBalance": b.is_manual_balance,
    }


def dict_to_breakdown(d: Optional[dict]) -> TransactionBreakdown:
    d = d or {}
    other_rev = _items(d, "otherRevenueItems")
    other_exp = _items(d, "otherExpenseItems")
    # older records kept a single scalar for "other"
    legacy_rev = safe_float(d.get("revenueOther"))
    if legacy_rev and not other_rev:
        other_rev = [LineItem(id="legacy-revenue-other", description="Thu khác", amount=legacy_rev)]
    legacy_exp = safe_float(d.get("expenseOther"))
    if legacy_exp and not other_exp:
        other_exp = [LineItem(id="legacy-expense-other", description="Chi khác", amount=legacy_exp)]

    fuel = safe_float(d.get("expenseFuel"))
    police = safe_float(d.get("expensePolice"))
    repair = safe_float(d.get("expenseRepair"))
    fixed = safe_float(d.get("expenseFixed"))
    if "totalExpense" in d:
        total_expense = safe_float(d.get("totalExpense"))
    else:
        total_expense = fuel + police + repair + fixed + sum(i.amount for i in other_exp)

    manual_flag = d.get("isManualBalance")
    return TransactionBreakdown(
        revenue_down=safe_float(d.get("revenueDown")),
        revenue_up=safe_float(d.get("revenueUp")),
        other_revenue_items=other_rev,
        expense_fuel=fuel,
        expense_police=police,
        expense_repair=repair,
        other_expense_items=other_exp,
        total_expense=total_expense,
        expense_fixed=fixed,
        private_expense_items=_items(d, "privateExpenseItems"),
        is_shared=bool(d.get("isShared", True)),
        bus_id=str(d.get("busId", "") or ""),
        partner_bus_id=str(d.get("partnerBusId", "") or ""),
        manual_balance=safe_float(d.get("manualBalance")),
        is_manual_balance=None if manual_flag is None else bool(manual_flag),
    )


def _breakdown_from_totals(d: dict) -> TransactionBreakdown:
    """Rebuild inputs for records that only carry the top level totals"""
    private = safe_float(d.get("privateExpense"))
    revenue = safe_float(d.get("revenue"))
    expense = safe_float(d.get("sharedExpense"))
    return TransactionBreakdown(
        revenue_down=revenue,
        total_expense=expense,
        expense_fixed=expense,
        private_expense_items=[LineItem(id="legacy-private", description="Chi riêng", amount=private)] if private else [],
        is_shared=bool(d.get("isShared", True)),
        manual_balance=safe_float(d.get("totalBalance")) if revenue == 0 and expense == 0 else 0.0,
    )


def transaction_to_dict(t: Transaction) -> dict:
    d = {
        "id": t.id,
        "date": t.date,
        "revenue": t.revenue,
        "sharedExpense": t.shared_expense,
        "totalBalance": t.total_balance,
        "splitBalance": t.split_balance,
        "privateExpense": t.private_expense,
        "remainingBalance": t.remaining_balance,
        "note": t.note,
        "status": t.status.value,
        "details": t.details,
        "isShared": t.is_shared,
        "breakdown": breakdown_to_dict(t.breakdown),
    }
    if t.payment_month:
        d["paymentMonth"] = t.payment_month
    if t.image_url:
        d["imageUrl"] = t.image_url
    return d


def dict_to_transaction(d: dict) -> Transaction:
    if d.get("breakdown"):
        breakdown = dict_to_breakdown(d["breakdown"])
    else:
        breakdown = _breakdown_from_totals(d)
    return Transaction(
        id=str(d.get("id", "")),
        date=str(d.get("date", "")),
        breakdown=breakdown,
        status=TransactionStatus(d.get("status") or TransactionStatus.AI_GENERATED.value),
        payment_month=d.get("paymentMonth") or None,
        revenue=safe_float(d.get("revenue")),
        shared_expense=safe_float(d.get("sharedExpense")),
        total_balance=safe_float(d.get("totalBalance")),
        split_balance=safe_float(d.get("splitBalance")),
        private_expense=safe_float(d.get("privateExpense")),
        remaining_balance=safe_float(d.get("remainingBalance")),
        is_shared=bool(d.get("isShared", breakdown.is_shared)),
        note=str(d.get("note", "") or ""),
        details=str(d.get("details", "") or ""),
        image_url=d.get("imageUrl") or None,
    )


# ---------- Cycles ----------

def cycle_to_dict(c: PaymentCycle) -> dict:
    return {
        "id": c.id,
        "createdDate": c.created_date,
        "transactionIds": list(c.transaction_ids),
        "totalAmount": c.total_amount,
        "note": c.note,
    }


def dict_to_cycle(d: dict) -> PaymentCycle:
    return PaymentCycle(
        id=str(d.get("id", "")),
        created_date=str(d.get("createdDate", "")),
        transaction_ids=[str(x) for x in (d.get("transactionIds") or [])],
        total_amount=safe_float(d.get("totalAmount")),
        note=str(d.get("note", "") or ""),
    )


# ---------- Reconciliation ----------

def report_to_dict(r: ReconciliationReport) -> dict:
    return {
        "id": r.id,
        "month": r.month,
        "year": r.year,
        "cashStorage": r.cash_storage,
        "cashWallet": r.cash_wallet,
        "bankAccount": r.bank_account,
        "existingMoney": r.existing_money,
        "paidItems": [item_to_dict(i) for i in r.paid_items],
        "debtItems": [item_to_dict(i) for i in r.debt_items],
        "lastUpdated": r.last_updated,
    }


def dict_to_report(d: dict) -> ReconciliationReport:
    return ReconciliationReport(
        id=str(d.get("id", "")),
        month=int(d.get("month", 0)),
        year=int(d.get("year", 0)),
        cash_storage=safe_float(d.get("cashStorage")),
        cash_wallet=safe_float(d.get("cashWallet")),
        bank_account=safe_float(d.get("bankAccount")),
        existing_money=safe_float(d.get("existingMoney")),
        paid_items=_items(d, "paidItems"),
        debt_items=_items(d, "debtItems"),
        last_updated=str(d.get("lastUpdated", "") or ""),
    )
