from datetime import datetime, timezone

import pytest

from printshop.errors import IllegalTransition, InvalidCurrency, OverPayment, ValidationError
from printshop.models.invoice import Invoice
from printshop.services import ledger

NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def _invoice(status="sent", currency="AED", due_date="2025-04-01"):
    return Invoice(
        id="inv",
        invoice_number="INV20250001",
        status=status,
        currency=currency,
        due_date=due_date,
        subtotal=0.0,
        discount_amount=0.0,
        tax_amount=0.0,
        total=0.0,
    )


def _pay(invoice, amount, **kwargs):
    kwargs.setdefault("method", "cash")
    return ledger.record_payment(
        invoice, amount, paid_on="2025-03-10", recorded_by="u1", now=NOW, **kwargs
    )


class TestItemAmounts:
    def test_discount_then_tax(self):
        assert ledger.item_amounts(2, 100, 10, 5) == (200.0, 20.0, 185.0)

    def test_half_up_rounding(self):
        _, _, total = ledger.item_amounts(1, 0.125, 0, 0)
        assert total == 0.13
        _, discount, _ = ledger.item_amounts(1, 2.25, 50, 0)
        assert discount == 1.13

    @pytest.mark.parametrize("quantity,unit_price,discount,tax", [
        (0, 10, 0, 0),
        (1, -1, 0, 0),
        (1, 10, 101, 0),
        (1, 10, 0, -1),
        (1, float("inf"), 0, 0),
        (float("nan"), 10, 0, 0),
        (1, 10, 0, float("inf")),
    ])
    def test_rejects_bad_lines(self, quantity, unit_price, discount, tax):
        with pytest.raises(ValidationError):
            ledger.item_amounts(quantity, unit_price, discount, tax)


class TestTotals:
    def test_invoice_totals(self):
        invoice = _invoice()
        ledger.add_item(invoice, "Brochures", 2, 100, 10, 5)
        ledger.add_item(invoice, "Delivery", 1, 50)
        assert invoice.subtotal == 250.0
        assert invoice.discount_amount == 20.0
        assert invoice.tax_amount == 5.0
        assert invoice.total == 235.0
        assert [i.position for i in invoice.items] == [0, 1]

    def test_remove_item_reorders(self):
        invoice = _invoice()
        first = ledger.add_item(invoice, "A", 1, 10)
        ledger.add_item(invoice, "B", 1, 20)
        ledger.remove_item(invoice, first.id)
        assert [i.description for i in invoice.items] == ["B"]
        assert invoice.items[0].position == 0
        assert invoice.total == 20.0

    def test_remove_item_below_paid_amount(self):
        invoice = _invoice()
        first = ledger.add_item(invoice, "A", 1, 100)
        ledger.add_item(invoice, "B", 1, 20)
        _pay(invoice, 110)
        with pytest.raises(OverPayment):
            ledger.remove_item(invoice, first.id)
        assert invoice.total == 120.0
        assert len(invoice.items) == 2

    def test_remove_item_message_names_the_removal(self):
        invoice = _invoice()
        first = ledger.add_item(invoice, "A", 1, 100)
        ledger.add_item(invoice, "B", 1, 20)
        _pay(invoice, 110)
        message = "would lower the total .* to 20.00, below the 110.00 already paid"
        with pytest.raises(OverPayment, match=message):
            ledger.remove_item(invoice, first.id)

    def test_items_locked_once_paid(self):
        invoice = _invoice()
        ledger.add_item(invoice, "A", 1, 100)
        _pay(invoice, 100)
        with pytest.raises(IllegalTransition):
            ledger.add_item(invoice, "B", 1, 1)


class TestPayments:
    def test_partial_payment_leaves_status(self):
        invoice = _invoice()
        ledger.add_item(invoice, "Brochures", 2, 100, 10, 5)
        settled = _pay(invoice, 100)
        assert settled is False
        assert ledger.balance(invoice) == 85.0
        assert invoice.status == "sent"

    def test_full_payment_settles(self):
        invoice = _invoice()
        ledger.add_item(invoice, "Brochures", 2, 100, 10, 5)
        _pay(invoice, 100)
        assert _pay(invoice, 85) is True
        assert invoice.status == "paid"
        assert invoice.paid_at == "2025-03-10T09:00:00Z"
        assert ledger.balance(invoice) == 0.0

    def test_overpayment_rejected_without_side_effects(self):
        invoice = _invoice()
        ledger.add_item(invoice, "A", 1, 50)
        with pytest.raises(OverPayment):
            _pay(invoice, 50.01)
        assert invoice.payments == []
        assert invoice.status == "sent"

    def test_currency_mismatch(self):
        invoice = _invoice(currency="AED")
        ledger.add_item(invoice, "A", 1, 50)
        with pytest.raises(InvalidCurrency):
            _pay(invoice, 10, currency="USD")
        with pytest.raises(InvalidCurrency):
            _pay(invoice, 10, currency="XYZ")

    def test_unknown_method(self):
        invoice = _invoice()
        ledger.add_item(invoice, "A", 1, 50)
        with pytest.raises(ValidationError):
            _pay(invoice, 10, method="barter")

    def test_payment_on_settled_invoice_is_overpayment(self):
        invoice = _invoice()
        ledger.add_item(invoice, "A", 1, 100)
        _pay(invoice, 100)
        with pytest.raises(OverPayment):
            _pay(invoice, 1)
        assert len(invoice.payments) == 1
        assert invoice.status == "paid"

    @pytest.mark.parametrize("amount", [float("inf"), float("nan")])
    def test_non_finite_amount(self, amount):
        invoice = _invoice()
        ledger.add_item(invoice, "A", 1, 100)
        with pytest.raises(ValidationError):
            _pay(invoice, amount)
        assert invoice.payments == []

    def test_no_payment_on_cancelled(self):
        invoice = _invoice()
        ledger.add_item(invoice, "A", 1, 50)
        ledger.cancel(invoice)
        with pytest.raises(IllegalTransition):
            _pay(invoice, 10)


class TestStatus:
    def test_overdue_is_derived(self):
        invoice = _invoice(due_date="2025-03-01")
        assert ledger.is_overdue(invoice, NOW)
        assert ledger.effective_status(invoice, NOW) == "overdue"
        assert invoice.status == "sent"

    def test_due_today_is_overdue_after_midnight(self):
        invoice = _invoice(due_date="2025-03-10")
        assert ledger.is_overdue(invoice, NOW)
        assert not ledger.is_overdue(invoice, datetime(2025, 3, 10, tzinfo=timezone.utc))

    def test_paid_invoice_is_never_overdue(self):
        invoice = _invoice(status="paid", due_date="2025-03-01")
        assert not ledger.is_overdue(invoice, NOW)
        assert ledger.effective_status(invoice, NOW) == "paid"

    def test_cancelled_keeps_status(self):
        invoice = _invoice(status="cancelled", due_date="2025-03-01")
        assert ledger.effective_status(invoice, NOW) == "cancelled"

    def test_send_and_view(self):
        invoice = _invoice(status="draft")
        ledger.mark_sent(invoice, NOW)
        ledger.mark_viewed(invoice, NOW)
        assert invoice.status == "viewed"
        assert invoice.sent_at == invoice.viewed_at == "2025-03-10T09:00:00Z"

    def test_view_requires_sent(self):
        with pytest.raises(IllegalTransition):
            ledger.mark_viewed(_invoice(status="draft"), NOW)
        with pytest.raises(IllegalTransition):
            ledger.mark_sent(_invoice(status="sent"), NOW)
