"""Vendor account statement with a running balance."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from produce_app.services.money import money, money_float


def statement_transactions(invoices: Iterable, payments: Iterable, memos: Iterable) -> List[Dict[str, Any]]:
    """
    Invoices and debit memos raise the balance owed, payments and credit
    memos lower it. Sorted by date.
    """
    rows = []
    for invoice in invoices:
        rows.append({
            "type": "invoice",
            "date": invoice.invoice_date,
            "reference": invoice.invoice_number,
            "description": f"Invoice {invoice.invoice_number}",
            "debit": money(invoice.total_amount),
            "credit": Decimal("0"),
            "status": invoice.status,
        })
    for payment in payments:
        rows.append({
            "type": "payment",
            "date": payment.payment_date,
            "reference": payment.payment_number,
            "description": f"Payment {payment.payment_number} ({payment.payment_method})",
            "debit": Decimal("0"),
            "credit": money(payment.net_amount),
            "status": payment.check_clearance_status or payment.status,
        })
    for memo in memos:
        is_credit = memo.memo_type == "credit"
        rows.append({
            "type": "credit_memo" if is_credit else "debit_memo",
            "date": memo.created_at,
            "reference": memo.memo_number,
            "description": f"{'Credit' if is_credit else 'Debit'} Memo {memo.memo_number}",
            "debit": Decimal("0") if is_credit else money(memo.amount),
            "credit": money(memo.amount) if is_credit else Decimal("0"),
            "status": memo.status,
        })
    # Ties keep insertion order: invoices, payments, memos
    rows.sort(key=lambda r: r["date"] or datetime.min)
    return rows


def build_statement(invoices: List, payments: List, memos: List) -> Dict[str, Any]:
    balance = Decimal("0")
    transactions = []
    for row in statement_transactions(invoices, payments, memos):
        balance += row["debit"] - row["credit"]
        transactions.append({
            **row,
            "debit": money_float(row["debit"]),
            "credit": money_float(row["credit"]),
            "balance": money_float(balance),
        })

    credits = [m for m in memos if m.memo_type == "credit"]
    debits = [m for m in memos if m.memo_type == "debit"]
    summary = {
        "total_invoiced": money_float(sum((money(i.total_amount) for i in invoices), Decimal("0"))),
        "total_paid": money_float(sum((money(p.net_amount) for p in payments), Decimal("0"))),
        "total_credits": money_float(sum((money(m.amount) for m in credits), Decimal("0"))),
        "total_debits": money_float(sum((money(m.amount) for m in debits), Decimal("0"))),
        "current_balance": money_float(balance),
        "invoice_count": len(invoices),
        "payment_count": len(payments),
        "credit_memo_count": len(memos),
    }
    return {"transactions": transactions, "summary": summary}
