"""
Excel export functionality for BusLedger
"""
from __future__ import annotations
from typing import List, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter

from models import STATUS_LABELS, Bus, PaymentCycle, Transaction
from computations import aggregate_shares, row_shares, total_remaining
from utils import month_label, parse_cycle_id, round_half_up, round_to_step

MONEY_FORMAT = "#,##0"

TRANSACTION_HEADERS = [
    "Ngày",
    "Kỳ thanh toán",
    "Xe",
    "Tổng thu (nghìn)",
    "Chi chung (nghìn)",
    "Tổng dư (nghìn)",
    "Dư chia (nghìn)",
    "Chi riêng (nghìn)",
    "Dư còn lại (nghìn)",
    "Ghi chú",
    "Trạng thái",
    "Chi tiết (Thu)",
    "Chi tiết (Chi)",
]


def _style_header(ws, row=1):
    """Apply header styling to worksheet row"""
    header_font = Font(bold=True, color="FFFFFF")
    fill = PatternFill("solid", fgColor="4F81BD")
    align = Alignment(horizontal="center", vertical="center")
    thin = Side(style="thin", color="A0A0A0")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    for cell in ws[row]:
        cell.font = header_font
        cell.fill = fill
        cell.alignment = align
        cell.border = border


def _autosize_columns(ws, min_width=10, max_width=45):
    """Auto-size columns based on content"""
    for col in range(1, ws.max_column + 1):
        letter = get_column_letter(col)
        max_len = 0
        for cell in ws[letter]:
            v = cell.value
            if v is None:
                continue
            max_len = max(max_len, len(str(v)))
        ws.column_dimensions[letter].width = max(min_width, min(max_width, max_len + 2))


def _money_columns(ws, columns: Sequence[int], first_row=2):
    for r in range(first_row, ws.max_row + 1):
        for c in columns:
            ws.cell(r, c).number_format = MONEY_FORMAT


def report_filename(label: str) -> str:
    """'11/2025' -> 'Bao_Cao_Thu_Chi_11-2025.xlsx'"""
    return f"Bao_Cao_Thu_Chi_{label.replace('/', '-')}.xlsx"


def transaction_row(t: Transaction) -> List:
    b = t.breakdown
    return [
        t.date,
        t.payment_month or "-",
        "2 Xe" if t.is_shared else "1 Xe",
        t.revenue,
        t.shared_expense,
        t.total_balance,
        t.split_balance,
        t.private_expense,
        t.remaining_balance,
        t.note,
        STATUS_LABELS[t.status],
        f"Xuôi: {b.revenue_down:g}, Ngược: {b.revenue_up:g}",
        f"Dầu: {b.expense_fuel:g}, Luật: {b.expense_police:g}, Sửa: {b.expense_repair:g}",
    ]


def export_transactions_excel(transactions: Sequence[Transaction], filepath: str) -> None:
    """
    Export transactions to a single "Báo Cáo" sheet:
    one row per day, money columns in thousands, totals row at the bottom.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Báo Cáo"
    ws.append(TRANSACTION_HEADERS)
    _style_header(ws, 1)
    ws.freeze_panes = "A2"

    for t in transactions:
        ws.append(transaction_row(t))

    if transactions:
        last = ws.max_row
        ws.append(["TỔNG"] + [""] * (len(TRANSACTION_HEADERS) - 1))
        trow = ws.max_row
        ws.cell(trow, 1).font = Font(bold=True)
        for col in range(4, 10):
            letter = get_column_letter(col)
            ws.cell(trow, col).value = f"=SUM({letter}2:{letter}{last})"
            ws.cell(trow, col).font = Font(bold=True)

    _money_columns(ws, range(4, 10))
    _autosize_columns(ws)
    wb.save(filepath)


def export_cycle_report_excel(
    cycle: PaymentCycle,
    transactions: Sequence[Transaction],
    buses: Sequence[Bus],
    filepath: str,
    transfer_step: int = 50,
) -> None:
    """
    Export a payment cycle:
    - "Chi tiết": one row per member with owner and held shares
    - "Tổng hợp": owner total, per-shareholder totals and rounded transfers
    """
    ids = set(cycle.transaction_ids)
    members = [t for t in transactions if t.id in ids]
    month, year = parse_cycle_id(cycle.id)

    wb = Workbook()
    ws = wb.active
    ws.title = "Chi tiết"
    ws.append(["#", "Ngày", "Tổng dư", "Chia cổ phần", "Cầm hộ", "Ghi chú"])
    _style_header(ws, 1)
    ws.freeze_panes = "A2"
    for idx, t in enumerate(members, start=1):
        s = row_shares(t, buses)
        held = s["held_share"] if s["is_shareholding"] and s["held_share"] != 0 else None
        ws.append([idx, t.date, t.remaining_balance, s["owner_share"], held if held is not None else "-", t.note])
    _money_columns(ws, (3, 4, 5))
    _autosize_columns(ws)

    shares = aggregate_shares(members, buses)
    ws = wb.create_sheet("Tổng hợp")
    ws.append(["Mục", "Số tiền (nghìn)", "Chuyển khoản (VNĐ)"])
    _style_header(ws, 1)
    ws.append(["Kỳ thanh toán", f"Tháng {month_label(month, year)}", ""])
    ws.append(["Ngày tạo", cycle.created_date, ""])
    ws.append(["Tổng dư", round_half_up(total_remaining(members)), ""])
    ws.append(["Chia cổ phần", round_half_up(shares.owner_share), ""])
    for name, amount in shares.shareholder_shares.items():
        ws.append([name, round_half_up(amount), round_to_step(amount, transfer_step) * 1000])
    ws.append(["Tổng phân chia", round_half_up(shares.total_distributed), ""])
    ws.append(["Ghi chú", cycle.note or "Không có ghi chú", ""])
    for r in range(4, ws.max_row):
        ws.cell(r, 2).number_format = MONEY_FORMAT
        ws.cell(r, 3).number_format = MONEY_FORMAT
    _autosize_columns(ws)

    wb.save(filepath)
