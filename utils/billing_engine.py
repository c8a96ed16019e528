"""
Billing Engine - money calculations for invoices, receipts and owner statements
Single place where VAT, totals, balances and payouts are computed
"""

from calendar import monthrange
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

from sqlalchemy.orm import Session

from config import VAT_RATE, INVOICE_DUE_DAYS, DEFAULT_COMMISSION_RATE
from models.finance import Invoice, OwnerStatement, Receipt


CENT = Decimal("0.01")

STATEMENT_TRANSITIONS = {
    "draft": ("sent", "paid"),
    "sent": ("paid",),
    "paid": (),
}


def _safe_decimal(value, fallback: Decimal = Decimal("0")) -> Decimal:
    """Converts to Decimal without raising"""
    if value is None:
        return fallback
    try:
        if isinstance(value, Decimal):
            return value
        return Decimal(str(value))
    except (ArithmeticError, ValueError, TypeError):
        return fallback


def money(value) -> Decimal:
    """Rounds to cents, half up"""
    return _safe_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def period_bounds(period: str) -> Tuple[date, date]:
    """First and last day of a YYYY-MM period"""
    try:
        year, month = (int(part) for part in period.split("-"))
        last_day = monthrange(year, month)[1]
    except (ValueError, TypeError):
        raise ValueError(f"Invalid period: {period}, expected YYYY-MM")
    return date(year, month, 1), date(year, month, last_day)


# ========== RESERVATIONS ==========

def reservation_total(check_in: date, check_out: date, price_per_night) -> Decimal:
    nights = max((check_out - check_in).days, 0)
    return money(_safe_decimal(price_per_night) * nights)


# ========== INVOICES ==========

class InvoiceAmounts:
    """Result of an invoice amount calculation"""

    def __init__(self, subtotal: Decimal, vat: Decimal, vat_rate: Decimal):
        self.subtotal = subtotal
        self.vat = vat
        self.vat_rate = vat_rate
        self.total = money(subtotal + vat)


def compute_invoice_amounts(subtotal, vat=None, vat_rate=None) -> InvoiceAmounts:
    """
    subtotal + VAT = total.
    VAT defaults to subtotal x rate (configured VAT_RATE) unless given explicitly.
    """
    subtotal_dec = money(subtotal)
    if subtotal_dec < 0:
        raise ValueError("Subtotal cannot be negative")

    rate = _safe_decimal(VAT_RATE if vat_rate is None else vat_rate)
    if vat is None:
        vat_dec = money(subtotal_dec * rate)
    else:
        vat_dec = money(vat)
        if vat_dec < 0:
            raise ValueError("VAT cannot be negative")

    return InvoiceAmounts(subtotal_dec, vat_dec, rate)


def default_due_date(issue_date: date) -> date:
    return issue_date + timedelta(days=INVOICE_DUE_DAYS)


def next_invoice_number(db: Session, hotel_id: int, issue_date: date) -> str:
    """INV-YYYYMM-NNNN, sequential per hotel and month"""
    prefix = f"INV-{issue_date.strftime('%Y%m')}-"
    last = (
        db.query(Invoice.invoice_number)
        .filter(Invoice.hotel_id == hotel_id, Invoice.invoice_number.like(f"{prefix}%"))
        .order_by(Invoice.invoice_number.desc())
        .first()
    )
    sequence = 1
    if last:
        try:
            sequence = int(last[0].rsplit("-", 1)[1]) + 1
        except (IndexError, ValueError):
            sequence = 1
    return f"{prefix}{sequence:04d}"


def effective_invoice_status(invoice, today: date) -> str:
    if invoice.status == "pending" and invoice.due_date and invoice.due_date < today:
        return "overdue"
    return invoice.status


def refresh_overdue(invoices: Iterable[Invoice], today: date) -> int:
    """Moves pending invoices past their due date to overdue. Does not commit."""
    changed = 0
    for invoice in invoices:
        status = effective_invoice_status(invoice, today)
        if status != invoice.status:
            invoice.status = status
            changed += 1
    return changed


def invoice_summary(invoices: Iterable[Invoice]) -> dict:
    summary = {
        "count": 0,
        "total_amount": Decimal("0"),
        "paid_amount": Decimal("0"),
        "pending_amount": Decimal("0"),
        "overdue_amount": Decimal("0"),
        "paid_count": 0,
        "pending_count": 0,
        "overdue_count": 0,
    }
    for invoice in invoices:
        total = _safe_decimal(invoice.total)
        summary["count"] += 1
        summary["total_amount"] += total
        if invoice.status in ("paid", "pending", "overdue"):
            summary[f"{invoice.status}_amount"] += total
            summary[f"{invoice.status}_count"] += 1

    for key in ("total_amount", "paid_amount", "pending_amount", "overdue_amount"):
        summary[key] = float(money(summary[key]))
    return summary


def invoice_from_payment(receipt: Receipt) -> dict:
    """
    Invoice-like row for an income receipt that was never invoiced.
    Labeled with source="payment" so callers can tell it from a stored invoice.
    """
    reservation = receipt.reservation
    guest = reservation.guest if reservation else None
    amount = money(receipt.amount)
    return {
        "id": None,
        "source": "payment",
        "hotel_id": receipt.hotel_id,
        "invoice_number": f"PAY-{receipt.id:05d}",
        "contract_number": receipt.reservation_number,
        "guest_id": guest.id if guest else None,
        "guest_name": guest.full_name if guest else "Guest",
        "reservation_id": receipt.reservation_id,
        "issue_date": receipt.date,
        "due_date": receipt.date,
        "subtotal": float(amount),
        "vat": 0.0,
        "total": float(amount),
        "status": "paid",
        "paid_at": receipt.created_at,
        "notes": receipt.notes,
    }


# ========== RECEIPTS ==========

def receipt_totals(receipts: Iterable[Receipt]) -> dict:
    income = Decimal("0")
    expense = Decimal("0")
    count = 0
    for receipt in receipts:
        count += 1
        if receipt.type == "income":
            income += _safe_decimal(receipt.amount)
        elif receipt.type == "expense":
            expense += _safe_decimal(receipt.amount)
    return {
        "count": count,
        "income": float(money(income)),
        "expense": float(money(expense)),
        "net": float(money(income - expense)),
    }


# ========== OWNER STATEMENTS ==========

def compute_net_payout(total_revenue, expenses, commission) -> Decimal:
    """net payout = revenue - expenses - commission"""
    return money(_safe_decimal(total_revenue) - _safe_decimal(expenses) - _safe_decimal(commission))


def apply_statement_amounts(statement: OwnerStatement) -> OwnerStatement:
    statement.total_revenue = money(statement.total_revenue)
    statement.expenses = money(statement.expenses)
    statement.commission = money(statement.commission)
    statement.net_payout = compute_net_payout(statement.total_revenue, statement.expenses, statement.commission)
    return statement


def statement_amounts_from_receipts(receipts: Iterable[Receipt], commission_rate: Optional[float] = None) -> dict:
    """Revenue from income receipts, expenses from expense receipts, commission on revenue"""
    rate = _safe_decimal(DEFAULT_COMMISSION_RATE if commission_rate is None else commission_rate)
    revenue = Decimal("0")
    expenses = Decimal("0")
    for receipt in receipts:
        if receipt.type == "income":
            revenue += _safe_decimal(receipt.amount)
        elif receipt.type == "expense":
            expenses += _safe_decimal(receipt.amount)

    commission = money(revenue * rate)
    return {
        "total_revenue": money(revenue),
        "expenses": money(expenses),
        "commission": commission,
        "net_payout": compute_net_payout(revenue, expenses, commission),
    }


def can_transition_statement(current: str, target: str) -> bool:
    return target in STATEMENT_TRANSITIONS.get(current, ())


def statement_summary(statements: Iterable[OwnerStatement]) -> dict:
    """pending = net payouts not yet paid, paid = net payouts already paid"""
    pending = Decimal("0")
    paid = Decimal("0")
    counts = {"draft": 0, "sent": 0, "paid": 0}
    for statement in statements:
        net = _safe_decimal(statement.net_payout)
        if statement.status == "paid":
            paid += net
        else:
            pending += net
        if statement.status in counts:
            counts[statement.status] += 1
    return {
        "pending_total": float(money(pending)),
        "paid_total": float(money(paid)),
        "counts": counts,
    }
