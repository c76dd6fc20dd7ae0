"""
Ledger orchestration: loads records from a collection store, runs the
computations and planners on them and writes the results back.
"""
from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import List, Optional, Sequence

from dateutil.relativedelta import relativedelta

import config
from computations import (
    aggregate_shares,
    apply_balances,
    compute_balances,
    compute_dashboard_stats,
    confirmation_reasons,
    normalize_bus,
    percentage_warnings,
    total_remaining,
)
from cycles import (
    CyclePlan,
    cycle_transactions,
    open_transactions,
    plan_create_cycle,
    plan_delete_cycle,
    plan_update_cycle,
    promote_on_save,
    sort_cycles,
)
from errors import (
    ConfirmationRequired,
    CycleNotFoundError,
    DuplicateDateError,
    InvalidStatusTransition,
    TransactionLockedError,
    TransactionNotFoundError,
    ValidationError,
)
from models import (
    Bus,
    DashboardStats,
    PaymentCycle,
    ReconciliationReport,
    ReconciliationResult,
    ShareDistribution,
    Transaction,
    TransactionStatus,
)
from reconciliation import compute_discrepancy, empty_report, find_main_bus
from store import CollectionStore, JsonFileStore, UnitOfWork
from utils import canonical_date, date_sort_key, is_valid_date, recon_id_for, try_parse_date

logger = logging.getLogger(__name__)

TRANSACTIONS = "transactions"
CYCLES = "cycles"
BUSES = "buses"
RECONCILIATIONS = "reconciliations"


@dataclass
class SaveResult:
    transaction: Transaction
    created: bool
    date_conflicts: List[str] = field(default_factory=list)  # ids of other records on the same date


@dataclass
class CycleReport:
    cycle: PaymentCycle
    transactions: List[Transaction]
    shares: ShareDistribution
    total_remaining: float


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class LedgerService:
    """All reads and writes of the bookkeeping data go through here"""

    def __init__(self, store: CollectionStore):
        self.store = store

    @classmethod
    def open(cls, path: Optional[str] = None) -> "LedgerService":
        """Service over the JSON files in path, or in the configured data directory"""
        path = path or config.data_dir()
        logger.info("opening ledger data in %s", path)
        return cls(JsonFileStore(path))

    # ---------- Buses ----------
    def list_buses(self) -> List[Bus]:
        return [config.dict_to_bus(d) for d in self.store.get_all(BUSES)]

    def ensure_seeded(self) -> List[Bus]:
        """Write the default bus list when no bus exists yet"""
        buses = self.list_buses()
        if buses:
            return buses
        buses = config.seed_buses()
        for bus in buses:
            self.store.upsert(BUSES, config.bus_to_dict(bus))
        logger.info("seeded %d buses", len(buses))
        return buses

    def save_bus(self, bus: Bus) -> Bus:
        if not bus.license_plate.strip():
            raise ValidationError("license plate is required")
        bus = normalize_bus(bus)
        if not bus.id:
            bus = replace(bus, id=new_id("bus"))
        for warning in percentage_warnings(bus):
            logger.warning("bus %s: %s", bus.license_plate, warning)
        self.store.upsert(BUSES, config.bus_to_dict(bus))
        logger.info("saved bus %s (%s)", bus.id, bus.license_plate)
        return bus

    def delete_bus(self, bus_id: str) -> bool:
        deleted = self.store.delete(BUSES, bus_id)
        if deleted:
            logger.info("deleted bus %s", bus_id)
        return deleted

    # ---------- Transactions ----------
    def list_transactions(self) -> List[Transaction]:
        """All records, oldest date first"""
        items = [config.dict_to_transaction(d) for d in self.store.get_all(TRANSACTIONS)]
        return sorted(items, key=lambda t: date_sort_key(t.date))

    def get_transaction(self, transaction_id: str) -> Transaction:
        d = self.store.get_by_id(TRANSACTIONS, transaction_id)
        if d is None:
            raise TransactionNotFoundError(transaction_id)
        return config.dict_to_transaction(d)

    def transactions_for_month(self, month: int, year: int) -> List[Transaction]:
        out = []
        for t in self.list_transactions():
            d = try_parse_date(t.date)
            if d is not None and (d.month, d.year) == (month, year):
                out.append(t)
        return out

    def open_transactions(self) -> List[Transaction]:
        return open_transactions(self.list_transactions())

    def transactions_for_cycle(self, cycle_id: Optional[str]) -> List[Transaction]:
        """Members of a cycle, or the open records when no cycle id is given"""
        if not cycle_id:
            return self.open_transactions()
        return cycle_transactions(cycle_id, self.list_cycles(), self.list_transactions())

    def search(self, query: str) -> List[Transaction]:
        q = (query or "").strip().lower()
        if not q:
            return []
        return [
            t for t in self.list_transactions()
            if q in t.note.lower() or q in t.date.lower() or (t.payment_month and q in t.payment_month)
        ]

    def new_transaction(self, date_str: str, status: TransactionStatus = TransactionStatus.AI_GENERATED) -> Transaction:
        """Unsaved record with a zeroed default breakdown"""
        return apply_balances(
            Transaction(id=new_id("trans"), date=date_str, breakdown=config.default_breakdown(), status=status)
        )

    def find_by_date(self, date_str: str) -> List[Transaction]:
        """Records on the same calendar day, whatever the zero padding"""
        day = try_parse_date(date_str)
        if day is None:
            return []
        return [t for t in self.list_transactions() if try_parse_date(t.date) == day]

    def save_transaction(self, transaction: Transaction, confirm: bool = False) -> SaveResult:
        """
        Validate, recompute and store a record.

        A new record on a date that already has one raises DuplicateDateError;
        the caller decides whether to edit the existing record instead. Empty
        financials or a negative fixed expense raise ConfirmationRequired
        unless confirm is set.

        Status and payment month are owned by the cycle operations: an
        existing record keeps its stored ones, a new record cannot arrive PAID.
        """
        if not is_valid_date(transaction.date):
            raise ValidationError(f"invalid or missing date: {transaction.date!r}")
        if not transaction.breakdown.bus_id:
            raise ValidationError("bus license plate is required")
        transaction = replace(transaction, date=canonical_date(transaction.date))

        stored = self.store.get_by_id(TRANSACTIONS, transaction.id) if transaction.id else None
        created = stored is None
        if not transaction.id:
            transaction = replace(transaction, id=new_id("trans"))
        if stored is not None:
            current = config.dict_to_transaction(stored)
            transaction = replace(transaction, status=current.status, payment_month=current.payment_month)
        elif transaction.status == TransactionStatus.PAID or transaction.payment_month:
            raise InvalidStatusTransition(transaction.id, "new", TransactionStatus.PAID.value)

        others = [t.id for t in self.find_by_date(transaction.date) if t.id != transaction.id]
        if others and created:
            raise DuplicateDateError(transaction.date, others[0])
        if others:
            logger.warning("transaction %s shares date %s with %s", transaction.id, transaction.date, ", ".join(others))

        reasons = confirmation_reasons(compute_balances(transaction.breakdown))
        if reasons and not confirm:
            raise ConfirmationRequired(reasons)

        transaction = apply_balances(replace(transaction, status=promote_on_save(transaction.status)))
        self.store.upsert(TRANSACTIONS, config.transaction_to_dict(transaction))
        logger.info("saved transaction %s (%s)", transaction.id, transaction.date)
        return SaveResult(transaction=transaction, created=created, date_conflicts=others)

    def delete_transaction(self, transaction_id: str) -> None:
        t = self.get_transaction(transaction_id)
        if t.status == TransactionStatus.PAID:
            raise TransactionLockedError(f"transaction {transaction_id} is paid in cycle {t.payment_month}")
        self.store.delete(TRANSACTIONS, transaction_id)
        logger.info("deleted transaction %s", transaction_id)

    # ---------- Payment cycles ----------
    def list_cycles(self) -> List[PaymentCycle]:
        """Newest first"""
        return sort_cycles([config.dict_to_cycle(d) for d in self.store.get_all(CYCLES)])

    def get_cycle(self, cycle_id: str) -> PaymentCycle:
        d = self.store.get_by_id(CYCLES, cycle_id)
        if d is None:
            raise CycleNotFoundError(cycle_id)
        return config.dict_to_cycle(d)

    def _commit(self, plan: CyclePlan) -> None:
        uow = UnitOfWork(self.store)
        if plan.cycle is not None:
            uow.upsert(CYCLES, config.cycle_to_dict(plan.cycle))
        if plan.removed_cycle_id:
            uow.delete(CYCLES, plan.removed_cycle_id)
        for t in plan.transaction_updates:
            uow.upsert(TRANSACTIONS, config.transaction_to_dict(t))
        uow.commit()

    def create_cycle(
        self,
        transaction_ids: Sequence[str],
        month: int,
        year: int,
        total_amount: Optional[float] = None,
        note: Optional[str] = None,
        today: Optional[date] = None,
    ) -> PaymentCycle:
        plan = plan_create_cycle(
            self.list_cycles(), self.list_transactions(), transaction_ids, month, year, total_amount, note, today
        )
        self._commit(plan)
        logger.info("created cycle %s with %d transactions", plan.cycle.id, len(plan.cycle.transaction_ids))
        return plan.cycle

    def update_cycle(
        self,
        cycle_id: str,
        transaction_ids: Sequence[str],
        total_amount: Optional[float] = None,
        note: Optional[str] = None,
    ) -> PaymentCycle:
        cycle = self.get_cycle(cycle_id)
        plan = plan_update_cycle(cycle, self.list_transactions(), transaction_ids, total_amount, note)
        self._commit(plan)
        logger.info("updated cycle %s (%d records changed)", cycle_id, len(plan.transaction_updates))
        return plan.cycle

    def delete_cycle(self, cycle_id: str) -> List[str]:
        """Remove a cycle; returns the ids of the records reverted to VERIFIED"""
        self.get_cycle(cycle_id)
        plan = plan_delete_cycle(cycle_id, self.list_transactions())
        self._commit(plan)
        logger.info("deleted cycle %s, %d records reopened", cycle_id, len(plan.transaction_updates))
        return [t.id for t in plan.transaction_updates]

    def cycle_report(self, cycle_id: str) -> CycleReport:
        cycle = self.get_cycle(cycle_id)
        members = cycle_transactions(cycle_id, [cycle], self.list_transactions())
        return CycleReport(
            cycle=cycle,
            transactions=members,
            shares=aggregate_shares(members, self.list_buses()),
            total_remaining=total_remaining(members),
        )

    # ---------- Reconciliation ----------
    def load_reconciliation(self, month: int, year: int) -> ReconciliationReport:
        d = self.store.get_by_id(RECONCILIATIONS, recon_id_for(month, year))
        if d is None:
            return empty_report(month, year)
        return config.dict_to_report(d)

    def save_reconciliation(self, report: ReconciliationReport, now: Optional[datetime] = None) -> ReconciliationReport:
        if not 1 <= report.month <= 12:
            raise ValidationError(f"invalid month {report.month}")
        now = now or datetime.now(timezone.utc)
        report = replace(report, id=recon_id_for(report.month, report.year), last_updated=now.isoformat())
        self.store.upsert(RECONCILIATIONS, config.report_to_dict(report))
        logger.info("saved reconciliation %s", report.id)
        return report

    def reconcile(self, month: int, year: int, report: Optional[ReconciliationReport] = None) -> ReconciliationResult:
        """Discrepancy of a month against the stored (or given) report"""
        if report is None:
            report = self.load_reconciliation(month, year)
        monthly_total = total_remaining(self.transactions_for_month(month, year))
        return compute_discrepancy(report, monthly_total, find_main_bus(self.list_buses()))

    # ---------- Dashboard ----------
    def dashboard_stats(self, month: int, year: int) -> DashboardStats:
        prev = date(year, month, 1) - relativedelta(months=1)
        return compute_dashboard_stats(
            self.transactions_for_month(month, year),
            self.transactions_for_month(prev.month, prev.year),
        )
