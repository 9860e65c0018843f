"""
Vendor credit and debit memos.
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from produce_app.db.base import Base


class VendorCreditMemo(Base):
    """Money a vendor owes us (credit) or we owe them (debit).

    A credit memo is consumed by vendor payments through apply_to_payment;
    each application is recorded in `applications`.
    """
    __tablename__ = "vendor_credit_memos"

    id = Column(Integer, primary_key=True, index=True)
    memo_number = Column(String(20), unique=True, nullable=False, index=True)
    # credit / debit
    memo_type = Column(String(10), nullable=False, default="credit")
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"))
    invoice_id = Column(Integer, ForeignKey("invoices.id"))

    reason_category = Column(String(30), nullable=False, default="other")
    description = Column(Text)
    line_items = Column(JSON, default=list)
    subtotal = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    amount = Column(DECIMAL(12, 2), nullable=False)
    applied_amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))

    # draft / pending_approval / approved / applied / partially_applied / voided
    status = Column(String(20), nullable=False, default="draft", index=True)
    approved_at = Column(DateTime)
    approved_by_name = Column(String(100))
    approval_notes = Column(Text)
    voided_at = Column(DateTime)
    void_reason = Column(Text)
    # [{payment_id, amount, applied_at}]
    applications = Column(JSON, default=list)
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("Vendor", lazy="selectin")

    def __repr__(self):
        return f"<VendorCreditMemo {self.memo_number}: {self.status} ${self.amount}>"

    @property
    def remaining_amount(self) -> Decimal:
        return Decimal(str(self.amount or 0)) - Decimal(str(self.applied_amount or 0))

    @property
    def can_edit(self) -> bool:
        return self.status in ("draft", "pending_approval")

    @property
    def can_approve(self) -> bool:
        return self.status == "pending_approval"

    @property
    def can_void(self) -> bool:
        return self.status in ("draft", "pending_approval", "approved") and not self.applied_amount

    @property
    def can_apply(self) -> bool:
        return self.status in ("approved", "partially_applied") and self.remaining_amount > 0

    def apply_to_payment(self, payment_id: int, amount: Decimal) -> None:
        self.applied_amount = Decimal(str(self.applied_amount or 0)) + amount
        self.applications = list(self.applications or []) + [{
            "payment_id": payment_id,
            "amount": float(amount),
            "applied_at": datetime.utcnow().isoformat(),
        }]
        self.status = "applied" if self.remaining_amount <= 0 else "partially_applied"

    def apply_to_purchase_order(self, purchase_order_id: int, amount: Decimal) -> None:
        self.applied_amount = Decimal(str(self.applied_amount or 0)) + amount
        self.applications = list(self.applications or []) + [{
            "purchase_order_id": purchase_order_id,
            "amount": float(amount),
            "applied_at": datetime.utcnow().isoformat(),
        }]
        self.status = "applied" if self.remaining_amount <= 0 else "partially_applied"

    def reverse_application(self, payment_id: int, amount: Decimal) -> None:
        self.applied_amount = Decimal(str(self.applied_amount or 0)) - amount
        self.applications = [a for a in (self.applications or []) if a.get("payment_id") != payment_id]
        self.status = "approved" if self.remaining_amount == Decimal(str(self.amount)) else "partially_applied"
