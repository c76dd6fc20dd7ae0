"""
Exceptions raised by BusLedger
"""
from __future__ import annotations
from typing import List, Sequence, Tuple


class LedgerError(Exception):
    """Base class for all ledger errors"""


class ValidationError(LedgerError, ValueError):
    """A required field is missing or malformed; nothing was written"""


class ConfirmationRequired(LedgerError):
    """Save is allowed only after the caller confirms the listed reasons"""

    def __init__(self, reasons: Sequence[str]):
        self.reasons = list(reasons)
        super().__init__("confirmation required: " + ", ".join(self.reasons))


class ConflictError(LedgerError):
    """The operation collides with existing data and needs a caller decision"""


class DuplicateDateError(ConflictError):
    def __init__(self, date: str, existing_id: str):
        self.date = date
        self.existing_id = existing_id
        super().__init__(f"a transaction for {date} already exists ({existing_id})")


class CycleExistsError(ConflictError):
    def __init__(self, cycle_id: str):
        self.cycle_id = cycle_id
        super().__init__(f"payment cycle {cycle_id} already exists")


class NotFoundError(LedgerError):
    pass


class CycleNotFoundError(NotFoundError):
    def __init__(self, cycle_id: str):
        self.cycle_id = cycle_id
        super().__init__(f"payment cycle {cycle_id} not found")


class TransactionNotFoundError(NotFoundError):
    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"transaction {transaction_id} not found")


class InvalidStatusTransition(LedgerError):
    def __init__(self, transaction_id: str, current: str, target: str):
        self.transaction_id = transaction_id
        self.current = current
        self.target = target
        super().__init__(f"transaction {transaction_id}: cannot move from {current} to {target}")


class TransactionLockedError(LedgerError):
    """Paid transactions cannot be deleted"""


class PersistenceError(LedgerError):
    """The collection store failed"""


class PartialCommitError(PersistenceError):
    """Some writes of a batch failed; `failed` lists (collection, id, message)"""

    def __init__(self, applied: List[Tuple[str, str]], failed: List[Tuple[str, str, str]]):
        self.applied = applied
        self.failed = failed
        keys = ", ".join(f"{c}/{i}" for c, i, _ in failed)
        super().__init__(f"{len(failed)} of {len(applied) + len(failed)} writes failed: {keys}")
