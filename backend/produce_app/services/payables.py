"""
Vendor payment arithmetic: early payment discounts and applying or
reversing a payment against invoices and credit memos.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping

from produce_app.models.v1.invoice import Invoice
from produce_app.models.v1.vendor_credit_memo import VendorCreditMemo
from produce_app.models.v1.vendor_payment import VendorPayment
from produce_app.services.money import money, money_float

logger = logging.getLogger(__name__)


def early_payment_discount(vendor, invoices: Iterable[Invoice], payment_date: datetime) -> Dict[str, Any]:
    """
    Discount on the remaining balance of invoices paid within the vendor's
    early payment window.
    """
    if not vendor.has_early_discount:
        return {"discount_amount": 0.0, "qualifying_invoices": [], "percentage": 0, "original_amount": 0.0}

    percentage = vendor.early_discount_percentage
    within_days = vendor.early_discount_within_days
    qualifying = []
    discountable = Decimal("0")
    for invoice in invoices:
        days_since_invoice = (payment_date - invoice.invoice_date).days
        if days_since_invoice <= within_days:
            qualifying.append(invoice.id)
            discountable += money(invoice.amount_remaining)

    return {
        "discount_amount": money_float(discountable * Decimal(str(percentage)) / 100),
        "qualifying_invoices": qualifying,
        "percentage": percentage,
        "original_amount": money_float(discountable),
    }


def apply_invoice_payment(invoice: Invoice, amount: Decimal) -> None:
    invoice.amount_paid = money(invoice.amount_paid) + amount
    invoice.refresh_payment_status()


def reverse_invoice_payment(invoice: Invoice, amount: Decimal) -> None:
    invoice.amount_paid = max(Decimal("0"), money(invoice.amount_paid) - amount)
    if invoice.status in ("paid", "partially_paid") and money(invoice.amount_paid) == 0:
        invoice.status = "approved"
    elif invoice.status == "paid" and money(invoice.amount_paid) < money(invoice.total_amount):
        invoice.status = "partially_paid"
    invoice.refresh_payment_status()


def reverse_payment(payment: VendorPayment, invoices: Mapping[int, Invoice],
                    memos: Mapping[int, VendorCreditMemo]) -> None:
    """Undo a payment's effect on its invoices and credit memos."""
    for allocation in payment.allocations:
        invoice = invoices.get(allocation.invoice_id)
        if invoice is not None:
            reverse_invoice_payment(invoice, money(allocation.amount))
    for credit in payment.applied_credits or []:
        memo = memos.get(credit["credit_memo_id"])
        if memo is not None:
            memo.reverse_application(payment.id, money(credit["amount"]))
    logger.info(f"Reversed payment {payment.payment_number}: {len(payment.allocations)} invoices, "
                f"{len(payment.applied_credits or [])} credits")
