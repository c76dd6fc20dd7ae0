"""
Cash reconciliation: real holdings against the distributed target of a month
"""
from __future__ import annotations
from typing import Iterable, Optional

from models import Bus, ReconciliationReport, ReconciliationResult
from computations import distribute, sum_items
from utils import recon_id_for, round_half_up

BALANCED = "balanced"
SURPLUS = "surplus"
DEFICIT = "deficit"

STATUS_LABELS = {
    BALANCED: "Cân bằng",
    SURPLUS: "Thừa tiền",
    DEFICIT: "Thiếu tiền",
}


def empty_report(month: int, year: int) -> ReconciliationReport:
    """Zeroed report used for a month that has none saved yet"""
    return ReconciliationReport(id=recon_id_for(month, year), month=month, year=year)


def find_main_bus(buses: Iterable[Bus]) -> Optional[Bus]:
    """The first shareholding bus carries the month's target"""
    return next((b for b in buses if b.is_shareholding), None)


def classify(discrepancy: float) -> str:
    # compared on whole thousands so float noise does not flip the status
    rounded = round_half_up(discrepancy)
    if rounded == 0:
        return BALANCED
    return SURPLUS if rounded > 0 else DEFICIT


def compute_discrepancy(
    report: ReconciliationReport,
    monthly_remaining_total: float,
    main_bus: Optional[Bus],
) -> ReconciliationResult:
    """
    discrepancy = cash + wallet + bank + paid - debt - target - existing money

    With a main bus the target is its distributed total (owner and shareholders).
    Without one the month's remaining balance is split flat in half.
    """
    if main_bus is not None:
        d = distribute(monthly_remaining_total, main_bus)
        owner_target = d.owner_share
        shareholder_targets = dict(d.shareholder_shares)
        total_target = d.total_distributed
    else:
        owner_target = float(monthly_remaining_total) / 2
        shareholder_targets = {}
        total_target = owner_target

    total_cash = float(report.cash_storage) + float(report.cash_wallet)
    total_real = total_cash + float(report.bank_account)
    total_paid = sum_items(report.paid_items)
    total_debt = sum_items(report.debt_items)
    adjusted = total_real + total_paid - total_debt
    discrepancy = adjusted - total_target - float(report.existing_money)

    return ReconciliationResult(
        total_target=total_target,
        owner_target=owner_target,
        shareholder_targets=shareholder_targets,
        total_cash=total_cash,
        total_real_assets=total_real,
        total_paid=total_paid,
        total_debt=total_debt,
        total_adjusted_assets=adjusted,
        discrepancy=discrepancy,
        status=classify(discrepancy),
    )
