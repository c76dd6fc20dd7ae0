"""
Utility functions for BusLedger: dates, ids, money rounding and formatting
"""
from __future__ import annotations
import os
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

DATE_FORMAT = "%d/%m/%Y"


def today_str(today: Optional[date] = None) -> str:
    """Get today's date as DD/MM/YYYY string"""
    return (today or date.today()).strftime(DATE_FORMAT)


def parse_date(s: str) -> date:
    """Parse DD/MM/YYYY date string"""
    return datetime.strptime(s.strip(), DATE_FORMAT).date()


def is_valid_date(s: Optional[str]) -> bool:
    if not s:
        return False
    try:
        parse_date(s)
    except ValueError:
        return False
    return True


def try_parse_date(s: Optional[str]) -> Optional[date]:
    """parse_date that returns None for missing or malformed input"""
    try:
        return parse_date(s)
    except (ValueError, AttributeError):
        return None


def canonical_date(s: str) -> str:
    """Zero-padded DD/MM/YYYY form: '1/11/2025' -> '01/11/2025'"""
    return parse_date(s).strftime(DATE_FORMAT)


def date_sort_key(s: str) -> date:
    """Sort key for DD/MM/YYYY strings; unparseable dates sort first"""
    return try_parse_date(s) or date.min


def safe_float(x, default: float = 0.0) -> float:
    """Convert value to float safely, returning default on error"""
    try:
        return float(x)
    except (TypeError, ValueError):
        return default


def parse_amount(text: str) -> float:
    """
    Parse a user-typed amount such as "13.400" or "13,400".
    Both separators are treated as thousands grouping.
    """
    cleaned = str(text).replace(",", "").replace(".", "").strip()
    return safe_float(cleaned, 0.0)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_to_step(value: float, step: int = 50) -> int:
    """Round to the nearest multiple of step (1234 -> 1250, 1220 -> 1200)"""
    return round_half_up(value / step) * step


def format_money(value: float) -> str:
    """Format a thousand-unit amount with vi-VN grouping: 13400 -> '13.400'"""
    return f"{round_half_up(value):,}".replace(",", ".")


def format_base_currency(value: float) -> str:
    """Format a thousand-unit amount in the base unit: 1250 -> '1.250.000 VNĐ'"""
    return f"{format_money(value * 1000)} VNĐ"


def cycle_id_for(month: int, year: int) -> str:
    """Payment cycle id: YYYY.MM"""
    return f"{year}.{month:02d}"


def parse_cycle_id(cycle_id: str) -> Tuple[int, int]:
    """Return (month, year) from a YYYY.MM cycle id"""
    year_str, month_str = cycle_id.split(".")
    return int(month_str), int(year_str)


def recon_id_for(month: int, year: int) -> str:
    """Reconciliation report id: recon_M_YYYY (month not padded)"""
    return f"recon_{month}_{year}"


def month_label(month: int, year: int) -> str:
    return f"{month}/{year}"


def app_dir() -> str:
    """
    Get application data directory: ~/.local/share/BusLedger
    Creates directory if it doesn't exist.
    """
    base = os.path.expanduser("~/.local/share")
    path = os.path.join(base, "BusLedger")
    os.makedirs(path, exist_ok=True)
    return path
