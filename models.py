"""
Data models for BusLedger application

All amounts are in thousands of VND (13400 means 13.400.000 VND).
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class TransactionStatus(str, Enum):
    AI_GENERATED = "AI_GENERATED"
    VERIFIED = "VERIFIED"
    PAID = "PAID"


class BusStatus(str, Enum):
    ACTIVE = "ACTIVE"
    MAINTENANCE = "MAINTENANCE"
    INACTIVE = "INACTIVE"


STATUS_LABELS = {
    TransactionStatus.PAID: "Đã thanh toán",
    TransactionStatus.VERIFIED: "Đã đối soát",
    TransactionStatus.AI_GENERATED: "AI Tạo",
}


@dataclass
class LineItem:
    """Named amount: other revenue, other expense, private expense or recon item"""
    id: str
    description: str = ""
    amount: float = 0.0


@dataclass
class Shareholder:
    """Person holding a percentage of a bus on the owner's behalf"""
    id: str
    name: str
    percentage: float  # 0-100, independent of the other shareholders


@dataclass
class Bus:
    """Vehicle / ownership unit"""
    id: str
    license_plate: str
    is_partner: bool = False
    is_shareholding: bool = False
    status: BusStatus = BusStatus.ACTIVE
    note: str = ""
    share_percentage: float = 100.0  # owner's cut, only meaningful when is_shareholding
    shareholders: List[Shareholder] = field(default_factory=list)


@dataclass
class TransactionBreakdown:
    """Editable inputs of one day's record"""
    revenue_down: float = 0.0
    revenue_up: float = 0.0
    other_revenue_items: List[LineItem] = field(default_factory=list)
    expense_fuel: float = 0.0
    expense_police: float = 0.0
    expense_repair: float = 0.0
    other_expense_items: List[LineItem] = field(default_factory=list)
    total_expense: float = 0.0  # entered by hand, authoritative "chi chung"
    expense_fixed: float = 0.0  # residual, recomputed
    private_expense_items: List[LineItem] = field(default_factory=list)
    is_shared: bool = True  # True = run with two buses
    bus_id: str = ""  # license plate
    partner_bus_id: str = ""
    manual_balance: float = 0.0
    is_manual_balance: Optional[bool] = None


@dataclass
class Transaction:
    """One day's financial record"""
    id: str
    date: str  # DD/MM/YYYY
    breakdown: TransactionBreakdown = field(default_factory=TransactionBreakdown)
    status: TransactionStatus = TransactionStatus.AI_GENERATED
    payment_month: Optional[str] = None  # cycle id YYYY.MM once paid
    revenue: float = 0.0
    shared_expense: float = 0.0
    total_balance: float = 0.0
    split_balance: float = 0.0
    private_expense: float = 0.0
    remaining_balance: float = 0.0
    is_shared: bool = True
    note: str = ""
    details: str = ""
    image_url: Optional[str] = None


@dataclass
class PaymentCycle:
    """Monthly settlement batch"""
    id: str  # YYYY.MM
    created_date: str  # DD/MM/YYYY
    transaction_ids: List[str] = field(default_factory=list)
    total_amount: float = 0.0
    note: str = ""


@dataclass
class ReconciliationReport:
    """Monthly cash reconciliation snapshot"""
    id: str  # recon_M_YYYY
    month: int
    year: int
    cash_storage: float = 0.0
    cash_wallet: float = 0.0
    bank_account: float = 0.0
    existing_money: float = 0.0
    paid_items: List[LineItem] = field(default_factory=list)
    debt_items: List[LineItem] = field(default_factory=list)
    last_updated: str = ""


@dataclass
class BalanceSummary:
    """Derived fields of a breakdown"""
    total_revenue: float
    sum_itemized_expense: float
    total_expense: float
    fixed_expense: float
    is_manual_mode: bool
    total_balance: float
    split_balance: float
    total_private_expense: float
    remaining_balance: float

    @property
    def fixed_expense_negative(self) -> bool:
        return self.fixed_expense < 0


@dataclass
class ShareDistribution:
    """Owner cut and per-shareholder cuts of an amount"""
    owner_share: float = 0.0
    shareholder_shares: Dict[str, float] = field(default_factory=dict)
    is_shareholding: bool = False

    @property
    def total_distributed(self) -> float:
        return self.owner_share + sum(self.shareholder_shares.values())


@dataclass
class ReconciliationResult:
    total_target: float
    owner_target: float
    shareholder_targets: Dict[str, float]
    total_cash: float
    total_real_assets: float
    total_paid: float
    total_debt: float
    total_adjusted_assets: float
    discrepancy: float
    status: str  # balanced / surplus / deficit


@dataclass
class DashboardStats:
    period_balance: float
    period_revenue: float
    period_balance_growth: Optional[float]  # percent vs previous month
    transaction_count: int
