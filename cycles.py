"""
Payment cycle planning for BusLedger

The functions here never touch storage. They check the request against the
loaded cycles and transactions and return a CyclePlan describing the records
to write; LedgerService commits the plan.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from errors import CycleExistsError, InvalidStatusTransition, ValidationError
from models import PaymentCycle, Transaction, TransactionStatus
from computations import total_remaining
from utils import cycle_id_for, today_str


@dataclass
class CyclePlan:
    cycle: Optional[PaymentCycle] = None
    transaction_updates: List[Transaction] = field(default_factory=list)
    removed_cycle_id: Optional[str] = None


def promote_on_save(status: TransactionStatus) -> TransactionStatus:
    """Any saved edit verifies an AI generated record"""
    if status == TransactionStatus.AI_GENERATED:
        return TransactionStatus.VERIFIED
    return status


def mark_paid(t: Transaction, cycle_id: str) -> Transaction:
    if t.status == TransactionStatus.PAID and t.payment_month == cycle_id:
        return t
    if t.status != TransactionStatus.VERIFIED:
        raise InvalidStatusTransition(t.id, t.status.value, TransactionStatus.PAID.value)
    return replace(t, status=TransactionStatus.PAID, payment_month=cycle_id)


def mark_unpaid(t: Transaction) -> Transaction:
    return replace(t, status=TransactionStatus.VERIFIED, payment_month=None)


def default_cycle_note(month: int, year: int) -> str:
    return f"Thanh toán kỳ {month}/{year}"


def sort_cycles(cycles: Sequence[PaymentCycle]) -> List[PaymentCycle]:
    """Newest first"""
    return sorted(cycles, key=lambda c: c.id, reverse=True)


def latest_cycle_id(cycles: Sequence[PaymentCycle]) -> Optional[str]:
    ordered = sort_cycles(cycles)
    return ordered[0].id if ordered else None


def is_cycle_mutable(cycles: Sequence[PaymentCycle], cycle_id: str) -> bool:
    """Only the most recent cycle may be edited or deleted"""
    return latest_cycle_id(cycles) == cycle_id


def next_available_cycle_month(cycles: Sequence[PaymentCycle], month: int, year: int):
    """First (month, year) from the given one onwards without a cycle"""
    taken = {c.id for c in cycles}
    current = date(year, month, 1)
    while cycle_id_for(current.month, current.year) in taken:
        current += relativedelta(months=1)
    return current.month, current.year


def _index(transactions: Sequence[Transaction]) -> Dict[str, Transaction]:
    return {t.id: t for t in transactions}


def _lookup(by_id: Dict[str, Transaction], ids: Sequence[str]) -> List[Transaction]:
    missing = [i for i in ids if i not in by_id]
    if missing:
        raise ValidationError("unknown transaction ids: " + ", ".join(missing))
    return [by_id[i] for i in ids]


def _unique(ids: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(ids))


def plan_create_cycle(
    cycles: Sequence[PaymentCycle],
    transactions: Sequence[Transaction],
    transaction_ids: Sequence[str],
    month: int,
    year: int,
    total_amount: Optional[float] = None,
    note: Optional[str] = None,
    today: Optional[date] = None,
) -> CyclePlan:
    if not 1 <= month <= 12:
        raise ValidationError(f"invalid month {month}")
    ids = _unique(transaction_ids)
    if not ids:
        raise ValidationError("a payment cycle needs at least one transaction")

    cycle_id = cycle_id_for(month, year)
    if any(c.id == cycle_id for c in cycles):
        raise CycleExistsError(cycle_id)

    members = _lookup(_index(transactions), ids)
    updates = [mark_paid(t, cycle_id) for t in members]
    if total_amount is None:
        total_amount = total_remaining(members)

    cycle = PaymentCycle(
        id=cycle_id,
        created_date=today_str(today),
        transaction_ids=ids,
        total_amount=float(total_amount),
        note=note or default_cycle_note(month, year),
    )
    return CyclePlan(cycle=cycle, transaction_updates=updates)


def plan_update_cycle(
    cycle: PaymentCycle,
    transactions: Sequence[Transaction],
    new_transaction_ids: Sequence[str],
    total_amount: Optional[float] = None,
    note: Optional[str] = None,
) -> CyclePlan:
    """
    Diff the membership: added ids become PAID, dropped ids go back to VERIFIED.
    Ids present on both sides are left alone.
    """
    by_id = _index(transactions)
    new_ids = _unique(new_transaction_ids)
    old_ids = set(cycle.transaction_ids)
    # also catch records still pointing at the cycle but missing from its list
    old_ids |= {t.id for t in transactions if t.payment_month == cycle.id}

    added = _lookup(by_id, [i for i in new_ids if i not in old_ids])
    removed = [by_id[i] for i in sorted(old_ids - set(new_ids)) if i in by_id]

    updates = [mark_paid(t, cycle.id) for t in added]
    updates += [mark_unpaid(t) for t in removed if t.payment_month == cycle.id]

    if total_amount is None:
        total_amount = total_remaining(by_id[i] for i in new_ids if i in by_id)
    updated = replace(
        cycle,
        transaction_ids=new_ids,
        total_amount=float(total_amount),
        note=cycle.note if note is None else note,
    )
    return CyclePlan(cycle=updated, transaction_updates=updates)


def plan_delete_cycle(cycle_id: str, transactions: Sequence[Transaction]) -> CyclePlan:
    """Every member reverts to VERIFIED; amounts and notes are untouched"""
    updates = [mark_unpaid(t) for t in transactions if t.payment_month == cycle_id]
    return CyclePlan(transaction_updates=updates, removed_cycle_id=cycle_id)


def cycle_transactions(
    cycle_id: str,
    cycles: Sequence[PaymentCycle],
    transactions: Sequence[Transaction],
) -> List[Transaction]:
    """Members of a cycle; falls back to payment_month when the record is gone"""
    cycle = next((c for c in cycles if c.id == cycle_id), None)
    if cycle is not None:
        ids = set(cycle.transaction_ids)
        return [t for t in transactions if t.id in ids]
    return [t for t in transactions if t.payment_month == cycle_id]


def open_transactions(transactions: Sequence[Transaction]) -> List[Transaction]:
    """Unpaid records: not PAID and not attached to a cycle"""
    return [t for t in transactions if t.status != TransactionStatus.PAID and not t.payment_month]
