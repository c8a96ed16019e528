"""
Tests for the billing engine: VAT, invoice numbers, overdue, receipts and owner payouts
"""
from datetime import date
from decimal import Decimal
from unittest.mock import Mock

import pytest

from utils.billing_engine import (
    _safe_decimal,
    can_transition_statement,
    compute_invoice_amounts,
    compute_net_payout,
    default_due_date,
    invoice_from_payment,
    invoice_summary,
    money,
    period_bounds,
    receipt_totals,
    refresh_overdue,
    reservation_total,
    statement_amounts_from_receipts,
    statement_summary,
)


class TestHelperFunctions:

    def test_safe_decimal_with_valid_values(self):
        assert _safe_decimal(10) == Decimal("10")
        assert _safe_decimal("25.50") == Decimal("25.50")
        assert _safe_decimal(Decimal("100.99")) == Decimal("100.99")

    def test_safe_decimal_with_invalid_values(self):
        assert _safe_decimal(None) == Decimal("0")
        assert _safe_decimal("abc") == Decimal("0")
        assert _safe_decimal(None, Decimal("10")) == Decimal("10")

    def test_money_rounds_half_up(self):
        assert money("10.005") == Decimal("10.01")
        assert money(3) == Decimal("3.00")

    def test_period_bounds(self):
        assert period_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
        assert period_bounds("2023-12") == (date(2023, 12, 1), date(2023, 12, 31))

    def test_period_bounds_rejects_garbage(self):
        with pytest.raises(ValueError):
            period_bounds("2024-13")
        with pytest.raises(ValueError):
            period_bounds("January")


class TestInvoiceAmounts:

    def test_vat_defaults_to_configured_rate(self):
        amounts = compute_invoice_amounts(1000)
        assert amounts.vat == Decimal("150.00")
        assert amounts.total == Decimal("1150.00")

    def test_explicit_vat_wins(self):
        amounts = compute_invoice_amounts(1000, vat=50)
        assert amounts.vat == Decimal("50.00")
        assert amounts.total == Decimal("1050.00")

    def test_custom_rate_and_rounding(self):
        amounts = compute_invoice_amounts("99.99", vat_rate=0.05)
        assert amounts.vat == Decimal("5.00")
        assert amounts.total == Decimal("104.99")

    def test_negative_amounts_rejected(self):
        with pytest.raises(ValueError):
            compute_invoice_amounts(-1)
        with pytest.raises(ValueError):
            compute_invoice_amounts(10, vat=-1)

    def test_default_due_date_is_a_week_later(self):
        assert default_due_date(date(2024, 1, 28)) == date(2024, 2, 4)


class TestOverdue:

    def _invoice(self, status, due, total=100):
        return Mock(status=status, due_date=due, total=Decimal(total))

    def test_pending_past_due_becomes_overdue(self):
        late = self._invoice("pending", date(2024, 1, 1))
        on_time = self._invoice("pending", date(2024, 1, 10))
        paid = self._invoice("paid", date(2024, 1, 1))

        changed = refresh_overdue([late, on_time, paid], today=date(2024, 1, 5))

        assert changed == 1
        assert late.status == "overdue"
        assert on_time.status == "pending"
        assert paid.status == "paid"

    def test_due_today_is_not_overdue(self):
        invoice = self._invoice("pending", date(2024, 1, 5))
        assert refresh_overdue([invoice], today=date(2024, 1, 5)) == 0

    def test_summary_buckets_by_status(self):
        summary = invoice_summary([
            self._invoice("paid", date(2024, 1, 1), 100),
            self._invoice("pending", date(2024, 1, 1), 50),
            self._invoice("overdue", date(2024, 1, 1), 25),
        ])
        assert summary["count"] == 3
        assert summary["total_amount"] == 175.0
        assert summary["paid_amount"] == 100.0
        assert summary["pending_count"] == 1
        assert summary["overdue_amount"] == 25.0


class TestPaymentFallbackRow:

    def test_row_is_labeled_as_payment(self):
        receipt = Mock(
            id=7,
            hotel_id=1,
            amount=Decimal("300"),
            date=date(2024, 3, 1),
            reservation_id=12,
            reservation_number="RES-00012",
            created_at=None,
            notes=None,
        )
        receipt.reservation = Mock(guest=None)

        row = invoice_from_payment(receipt)

        assert row["id"] is None
        assert row["source"] == "payment"
        assert row["invoice_number"] == "PAY-00007"
        assert row["guest_name"] == "Guest"
        assert row["status"] == "paid"
        assert row["vat"] == 0.0
        assert row["total"] == 300.0


class TestReservationMoney:

    def test_total_is_nights_times_price(self):
        assert reservation_total(date(2024, 5, 1), date(2024, 5, 4), "120.50") == Decimal("361.50")

    def test_receipt_totals(self):
        receipts = [
            Mock(type="income", amount=Decimal("200")),
            Mock(type="income", amount=Decimal("50.25")),
            Mock(type="expense", amount=Decimal("80")),
        ]
        assert receipt_totals(receipts) == {"count": 3, "income": 250.25, "expense": 80.0, "net": 170.25}


class TestOwnerStatements:

    def test_net_payout(self):
        assert compute_net_payout(10000, 2500, 1500) == Decimal("6000.00")

    def test_amounts_from_receipts(self):
        receipts = [
            Mock(type="income", amount=Decimal("1000")),
            Mock(type="income", amount=Decimal("500")),
            Mock(type="expense", amount=Decimal("300")),
        ]
        amounts = statement_amounts_from_receipts(receipts, commission_rate=0.10)
        assert amounts["total_revenue"] == Decimal("1500.00")
        assert amounts["expenses"] == Decimal("300.00")
        assert amounts["commission"] == Decimal("150.00")
        assert amounts["net_payout"] == Decimal("1050.00")

    def test_default_commission_rate(self):
        amounts = statement_amounts_from_receipts([Mock(type="income", amount=Decimal("1000"))])
        assert amounts["commission"] == Decimal("150.00")

    @pytest.mark.parametrize("current,target,allowed", [
        ("draft", "sent", True),
        ("draft", "paid", True),
        ("sent", "paid", True),
        ("sent", "draft", False),
        ("paid", "sent", False),
        ("paid", "draft", False),
    ])
    def test_transitions(self, current, target, allowed):
        assert can_transition_statement(current, target) is allowed

    def test_summary(self):
        statements = [
            Mock(status="draft", net_payout=Decimal("100")),
            Mock(status="sent", net_payout=Decimal("200")),
            Mock(status="paid", net_payout=Decimal("300")),
        ]
        summary = statement_summary(statements)
        assert summary["pending_total"] == 300.0
        assert summary["paid_total"] == 300.0
        assert summary["counts"] == {"draft": 1, "sent": 1, "paid": 1}
