"""
Business logic and computations for BusLedger
"""
from __future__ import annotations
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence

from models import (
    BalanceSummary,
    Bus,
    DashboardStats,
    LineItem,
    ShareDistribution,
    Transaction,
    TransactionBreakdown,
)

logger = logging.getLogger(__name__)

EMPTY_FINANCIALS = "empty"
NEGATIVE_FIXED_EXPENSE = "negative_fixed_expense"


def sum_items(items: Iterable[LineItem]) -> float:
    return sum(float(i.amount) for i in items)


def is_manual_mode(total_revenue: float, total_expense: float) -> bool:
    """Total balance is typed by hand only when nothing was earned or spent"""
    return total_revenue == 0 and total_expense == 0


def compute_balances(b: TransactionBreakdown) -> BalanceSummary:
    """
    Derive every balance field of a breakdown.
    The total expense is the figure entered by hand; the fixed expense is
    whatever is left after the itemized expenses and may be negative.
    """
    total_revenue = float(b.revenue_down) + float(b.revenue_up) + sum_items(b.other_revenue_items)
    itemized = (
        float(b.expense_fuel)
        + float(b.expense_police)
        + float(b.expense_repair)
        + sum_items(b.other_expense_items)
    )
    total_expense = float(b.total_expense)
    manual = is_manual_mode(total_revenue, total_expense)
    total_balance = float(b.manual_balance) if manual else total_revenue - total_expense
    split_balance = total_balance if b.is_shared else total_balance / 2
    private = sum_items(b.private_expense_items)

    return BalanceSummary(
        total_revenue=total_revenue,
        sum_itemized_expense=itemized,
        total_expense=total_expense,
        fixed_expense=total_expense - itemized,
        is_manual_mode=manual,
        total_balance=total_balance,
        split_balance=split_balance,
        total_private_expense=private,
        remaining_balance=split_balance - private,
    )


def apply_balances(t: Transaction) -> Transaction:
    """Return a copy of the transaction with its derived fields recomputed"""
    s = compute_balances(t.breakdown)
    breakdown = replace(
        t.breakdown,
        expense_fixed=s.fixed_expense,
        is_manual_balance=s.is_manual_mode,
    )
    return replace(
        t,
        breakdown=breakdown,
        is_shared=breakdown.is_shared,
        revenue=s.total_revenue,
        shared_expense=s.total_expense,
        total_balance=s.total_balance,
        split_balance=s.split_balance,
        private_expense=s.total_private_expense,
        remaining_balance=s.remaining_balance,
    )


def confirmation_reasons(s: BalanceSummary) -> List[str]:
    """Conditions that let a save go through only after explicit confirmation"""
    reasons = []
    if (
        s.total_revenue == 0
        and s.total_expense == 0
        and s.total_private_expense == 0
        and s.total_balance == 0
    ):
        reasons.append(EMPTY_FINANCIALS)
    if s.fixed_expense_negative:
        reasons.append(NEGATIVE_FIXED_EXPENSE)
    return reasons


# ---------- Auto note ----------

def _fmt_amount(amount: float) -> str:
    a = float(amount)
    return str(int(a)) if a.is_integer() else str(a)


def _render_items(items: Sequence[LineItem], inflow: bool) -> List[str]:
    out = []
    for i in items:
        desc = (i.description or "").strip()
        amount = float(i.amount)
        if not desc or amount == 0:
            continue
        signed = amount if inflow else -amount
        sign = "+" if signed > 0 else "-"
        out.append(f"{desc} ({sign}{_fmt_amount(abs(amount))})")
    return out


def build_auto_note(b: TransactionBreakdown) -> str:
    """One-line summary of the named items: 'Vé xe (+200); Rửa xe (-50)'"""
    parts = _render_items(b.other_revenue_items, inflow=True)
    parts += _render_items(b.other_expense_items, inflow=False)
    parts += _render_items(b.private_expense_items, inflow=False)
    return "; ".join(parts)


def merge_auto_note(note: str, previous_auto: str, new_auto: str) -> str:
    """
    Swap the previously generated text inside the note for the new one.
    If the old text is no longer in the note verbatim, the new text is appended.
    """
    note = note or ""
    if previous_auto and previous_auto in note:
        return note.replace(previous_auto, new_auto, 1)
    if not new_auto or new_auto in note:
        return note
    if not note.strip():
        return new_auto
    return f"{note.rstrip()}\n{new_auto}"


def update_breakdown(t: Transaction, breakdown: TransactionBreakdown) -> Transaction:
    """Apply an edited breakdown: refresh the generated note text and all balances"""
    note = merge_auto_note(t.note, build_auto_note(t.breakdown), build_auto_note(breakdown))
    return apply_balances(replace(t, breakdown=breakdown, note=note))


# ---------- Share distribution ----------

def find_bus_by_plate(buses: Iterable[Bus], plate: Optional[str]) -> Optional[Bus]:
    if not plate:
        return None
    for bus in buses:
        if bus.license_plate == plate:
            return bus
    logger.warning("bus %s not found, distributing as non-shareholding", plate)
    return None


def distribute(amount: float, bus: Optional[Bus]) -> ShareDistribution:
    """
    Split an amount between the bus owner and its shareholders.
    Percentages are not normalized: the distributed total may differ from amount.
    """
    amount = float(amount)
    if bus is None or not bus.is_shareholding:
        return ShareDistribution(owner_share=amount, shareholder_shares={}, is_shareholding=False)

    shares: Dict[str, float] = {}
    for sh in bus.shareholders:
        shares[sh.name] = shares.get(sh.name, 0.0) + amount * float(sh.percentage) / 100
    return ShareDistribution(
        owner_share=amount * float(bus.share_percentage) / 100,
        shareholder_shares=shares,
        is_shareholding=True,
    )


def transaction_distribution(t: Transaction, buses: Sequence[Bus]) -> ShareDistribution:
    bus = find_bus_by_plate(buses, t.breakdown.bus_id)
    return distribute(t.remaining_balance, bus)


def row_shares(t: Transaction, buses: Sequence[Bus]) -> Dict[str, float]:
    """Owner and held (all shareholders together) amounts of one row"""
    d = transaction_distribution(t, buses)
    return {
        "owner_share": d.owner_share,
        "held_share": sum(d.shareholder_shares.values()),
        "is_shareholding": d.is_shareholding,
    }


def aggregate_shares(transactions: Iterable[Transaction], buses: Sequence[Bus]) -> ShareDistribution:
    """Sum owner and per-shareholder cuts over transactions, keyed by shareholder name"""
    owner = 0.0
    shares: Dict[str, float] = {}
    any_shareholding = False
    for t in transactions:
        d = transaction_distribution(t, buses)
        owner += d.owner_share
        any_shareholding = any_shareholding or d.is_shareholding
        for name, amount in d.shareholder_shares.items():
            shares[name] = shares.get(name, 0.0) + amount
    return ShareDistribution(owner_share=owner, shareholder_shares=shares, is_shareholding=any_shareholding)


def normalize_bus(bus: Bus) -> Bus:
    """A non-shareholding bus keeps 100% and no shareholders"""
    if bus.is_shareholding:
        return bus
    return replace(bus, share_percentage=100.0, shareholders=[])


def percentage_warnings(bus: Bus) -> List[str]:
    """Warnings for unusual percentage setups; nothing here is enforced"""
    if not bus.is_shareholding:
        return []
    warnings = []
    pcts = [("owner", bus.share_percentage)] + [(sh.name or sh.id, sh.percentage) for sh in bus.shareholders]
    for name, pct in pcts:
        if pct < 0 or pct > 100:
            warnings.append(f"{name}: percentage {pct} is outside 0-100")
    total = sum(float(p) for _, p in pcts)
    if abs(total - 100) > 1e-9:
        warnings.append(f"percentages add up to {total:g}, not 100")
    names = [sh.name for sh in bus.shareholders]
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        warnings.append("duplicate shareholder names: " + ", ".join(dupes))
    return warnings


# ---------- Totals ----------

def total_remaining(transactions: Iterable[Transaction]) -> float:
    return sum(float(t.remaining_balance) for t in transactions)


def compute_dashboard_stats(
    current: Sequence[Transaction],
    previous: Sequence[Transaction],
) -> DashboardStats:
    """Period totals with growth against the previous month"""
    period_balance = total_remaining(current)
    prev_balance = total_remaining(previous)
    growth = None
    if prev_balance != 0:
        growth = (period_balance - prev_balance) / abs(prev_balance) * 100
    return DashboardStats(
        period_balance=period_balance,
        period_revenue=sum(float(t.revenue) for t in current),
        period_balance_growth=growth,
        transaction_count=len(current),
    )
