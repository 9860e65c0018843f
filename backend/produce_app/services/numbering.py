"""
Document number generation.

Numbers are a fixed prefix followed by a zero-padded sequence that restarts
whenever the prefix changes (per month or per day for dated prefixes).
"""

import random
import string
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.models.v1.adjustment import Adjustment
from produce_app.models.v1.credit_memo import CreditMemo
from produce_app.models.v1.invoice import Invoice
from produce_app.models.v1.order import Order, PreOrder
from produce_app.models.v1.purchase_order import PurchaseOrder
from produce_app.models.v1.vendor_credit_memo import VendorCreditMemo
from produce_app.models.v1.vendor_dispute import VendorDispute
from produce_app.models.v1.vendor_payment import VendorPayment
from produce_app.models.v1.work_order import WorkOrder


async def next_number(db: AsyncSession, column, prefix: str, width: int) -> str:
    """Next `prefix + sequence` for `column`; hand-typed numbers are skipped."""
    result = await db.execute(select(column).where(column.like(f"{prefix}%")))
    seq = 0
    for (number,) in result.all():
        suffix = number[len(prefix):]
        if suffix.isdigit():
            seq = max(seq, int(suffix))
    return f"{prefix}{seq + 1:0{width}d}"


def _yymm(now: Optional[datetime]) -> str:
    return (now or datetime.utcnow()).strftime("%y%m")


async def generate_order_number(db: AsyncSession) -> str:
    return await next_number(db, Order.order_number, "N-", 5)


async def generate_pre_order_number(db: AsyncSession) -> str:
    return await next_number(db, PreOrder.pre_order_number, "PRE-", 5)


async def generate_purchase_order_number(db: AsyncSession) -> str:
    return await next_number(db, PurchaseOrder.purchase_order_number, "PO-", 6)


async def generate_work_order_number(db: AsyncSession) -> str:
    return await next_number(db, WorkOrder.work_order_number, "WO-", 6)


async def generate_invoice_number(db: AsyncSession, now: datetime = None) -> str:
    return await next_number(db, Invoice.invoice_number, f"INV-{_yymm(now)}-", 4)


async def generate_memo_number(db: AsyncSession, memo_type: str, now: datetime = None) -> str:
    prefix = "VDM" if memo_type == "debit" else "VCM"
    return await next_number(db, VendorCreditMemo.memo_number, f"{prefix}{_yymm(now)}", 4)


async def generate_payment_number(db: AsyncSession, now: datetime = None) -> str:
    return await next_number(db, VendorPayment.payment_number, f"VP{_yymm(now)}", 4)


async def generate_dispute_number(db: AsyncSession, now: datetime = None) -> str:
    return await next_number(db, VendorDispute.dispute_number, f"VD{_yymm(now)}", 4)


async def generate_adjustment_number(db: AsyncSession, now: datetime = None) -> str:
    day = (now or datetime.utcnow()).strftime("%y%m%d")
    return await next_number(db, Adjustment.adjustment_number, f"ADJ-{day}-", 4)


async def generate_credit_memo_number(db: AsyncSession, now: datetime = None) -> str:
    return await next_number(db, CreditMemo.credit_memo_number, f"CM-{_yymm(now)}-", 4)


def generate_registration_ref(now: datetime = None) -> str:
    """REG-YYYYMMDD-XXXXX with five random upper-case letters or digits."""
    day = (now or datetime.utcnow()).strftime("%Y%m%d")
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=5))
    return f"REG-{day}-{suffix}"
