"""
Invoice ledger: item totals, invoice totals, payments and derived status.

Stored totals are rebuilt from the item list on every item change. Paid amount,
balance and overdue are derived on read and never persisted.
"""
import logging
import uuid
from datetime import datetime

from printshop.errors import IllegalTransition, InvalidCurrency, OverPayment, ValidationError
from printshop.models.invoice import Invoice, InvoiceItem, Payment
from printshop.utils.money import EPSILON, ensure_finite, round_money, validate_currency
from printshop.utils.timestamps import parse_timestamp, to_iso

logger = logging.getLogger("printshop.ledger")

PAYMENT_METHODS = ("bank-transfer", "cash", "card", "cheque", "online")
CLOSED_STATUSES = ("paid", "cancelled")


def item_amounts(quantity: float, unit_price: float, discount: float, tax: float):
    """Return (gross, discount_amount, line_total) for one invoice line."""
    for name, value in (
        ("quantity", quantity), ("unit_price", unit_price), ("discount", discount), ("tax", tax)
    ):
        ensure_finite(name, value)
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")
    if unit_price < 0:
        raise ValidationError("unit_price must be >= 0")
    if not 0 <= discount <= 100:
        raise ValidationError("discount must be between 0 and 100")
    if tax < 0:
        raise ValidationError("tax must be >= 0")
    gross = round_money(quantity * unit_price)
    discount_amount = round_money(quantity * unit_price * discount / 100)
    return gross, discount_amount, round_money(gross - discount_amount + tax)


def recompute_totals(invoice: Invoice) -> float:
    subtotal = discount_total = tax_total = 0.0
    for item in invoice.items:
        gross, discount_amount, line_total = item_amounts(
            item.quantity, item.unit_price, item.discount or 0, item.tax or 0
        )
        item.total = line_total
        subtotal += gross
        discount_total += discount_amount
        tax_total += item.tax or 0
    invoice.subtotal = round_money(subtotal)
    invoice.discount_amount = round_money(discount_total)
    invoice.tax_amount = round_money(tax_total)
    invoice.total = round_money(invoice.subtotal - invoice.discount_amount + invoice.tax_amount)
    return invoice.total


def paid_amount(invoice: Invoice) -> float:
    return round_money(sum(p.amount for p in invoice.payments))


def balance(invoice: Invoice) -> float:
    return round_money((invoice.total or 0) - paid_amount(invoice))


def is_overdue(invoice: Invoice, now: datetime) -> bool:
    if invoice.status == "paid":
        return False
    return now > parse_timestamp(invoice.due_date)


def effective_status(invoice: Invoice, now: datetime) -> str:
    if invoice.status != "cancelled" and is_overdue(invoice, now):
        return "overdue"
    return invoice.status


def _ensure_open(invoice: Invoice, target: str):
    if invoice.status in CLOSED_STATUSES:
        raise IllegalTransition("Invoice", invoice.status, target, "invoice is closed")


def add_item(
    invoice: Invoice,
    description: str,
    quantity: float,
    unit_price: float,
    discount: float = 0,
    tax: float = 0,
) -> InvoiceItem:
    _ensure_open(invoice, invoice.status)
    if not description:
        raise ValidationError("description is required")
    _, _, line_total = item_amounts(quantity, unit_price, discount, tax)
    item = InvoiceItem(
        id=str(uuid.uuid4()),
        description=description,
        quantity=quantity,
        unit_price=unit_price,
        discount=discount,
        tax=tax,
        total=line_total,
    )
    invoice.items.append(item)
    recompute_totals(invoice)
    return item


def remove_item(invoice: Invoice, item_id: str) -> InvoiceItem:
    _ensure_open(invoice, invoice.status)
    item = next((i for i in invoice.items if i.id == item_id), None)
    if item is None:
        raise ValidationError(f"Invoice {invoice.invoice_number} has no item {item_id}")
    remaining = round_money(invoice.total - item.total)
    paid = paid_amount(invoice)
    if remaining + EPSILON < paid:
        raise OverPayment(
            invoice.invoice_number,
            paid,
            remaining,
            f"Removing item {item_id} would lower the total of invoice {invoice.invoice_number} "
            f"to {remaining:.2f}, below the {paid:.2f} already paid",
        )
    invoice.items.remove(item)
    invoice.items.reorder()
    recompute_totals(invoice)
    return item


def record_payment(
    invoice: Invoice,
    amount: float,
    method: str,
    paid_on: str,
    recorded_by: str,
    now: datetime,
    currency: str | None = None,
    reference: str | None = None,
    notes: str | None = None,
) -> bool:
    """Append a payment. Returns True when this payment settled the invoice."""
    # Only cancellation closes an invoice to payments; a settled one fails the balance check.
    if invoice.status == "cancelled":
        raise IllegalTransition("Invoice", invoice.status, "paid", "invoice is cancelled")
    if currency is not None:
        validate_currency(currency)
        if currency != invoice.currency:
            raise InvalidCurrency(
                f"Payment in {currency} cannot settle invoice {invoice.invoice_number} "
                f"billed in {invoice.currency}"
            )
    if ensure_finite("amount", amount) <= 0:
        raise ValidationError("amount must be > 0")
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method '{method}'")
    amount = round_money(amount)
    outstanding = balance(invoice)
    if amount > outstanding + EPSILON:
        raise OverPayment(invoice.invoice_number, amount, outstanding)

    invoice.payments.append(
        Payment(
            id=str(uuid.uuid4()),
            amount=amount,
            paid_on=paid_on,
            method=method,
            reference=reference,
            notes=notes,
            recorded_by=recorded_by,
            created_at=to_iso(now),
        )
    )
    if paid_amount(invoice) + EPSILON >= invoice.total:
        invoice.status = "paid"
        invoice.paid_at = to_iso(now)
        logger.info("Invoice %s settled", invoice.invoice_number)
        return True
    return False


def mark_sent(invoice: Invoice, now: datetime):
    if invoice.status != "draft":
        raise IllegalTransition("Invoice", invoice.status, "sent")
    invoice.status = "sent"
    invoice.sent_at = to_iso(now)


def mark_viewed(invoice: Invoice, now: datetime):
    if invoice.status != "sent":
        raise IllegalTransition("Invoice", invoice.status, "viewed")
    invoice.status = "viewed"
    invoice.viewed_at = to_iso(now)


def cancel(invoice: Invoice):
    _ensure_open(invoice, "cancelled")
    invoice.status = "cancelled"
