"""
Vendor invoices (accounts payable) and their link to purchase orders.
"""

from datetime import datetime
from decimal import Decimal
import math
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, Boolean, Table
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from produce_app.db.base import Base


invoice_purchase_orders = Table(
    "invoice_purchase_orders",
    Base.metadata,
    Column("invoice_id", Integer, ForeignKey("invoices.id"), primary_key=True),
    Column("purchase_order_id", Integer, ForeignKey("purchase_orders.id"), primary_key=True),
)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(30), unique=True, nullable=False, index=True)
    vendor_invoice_number = Column(String(50))
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    invoice_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    due_date = Column(DateTime, index=True)

    # [{product_id, product_name, quantity, unit_price, total}]
    line_items = Column(JSON, default=list)

    subtotal = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    tax_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    shipping_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    discount_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    total_amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    amount_paid = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    amount_remaining = Column(DECIMAL(12, 2), default=Decimal("0.00"))

    # pending / matched / disputed / approved / partially_paid / paid / cancelled
    status = Column(String(20), nullable=False, default="pending", index=True)

    matching_status = Column(String(100))
    matching_details = Column(JSON)
    matched_at = Column(DateTime)

    on_hold = Column(Boolean, default=False)
    hold_reason = Column(Text)
    dispute_reason = Column(Text)
    approved_at = Column(DateTime)
    approval_notes = Column(Text)
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("Vendor", lazy="selectin")
    purchase_orders = relationship("PurchaseOrder", secondary=invoice_purchase_orders, lazy="selectin")

    def __repr__(self):
        return f"<Invoice {self.invoice_number}: {self.status} ${self.total_amount}>"

    def refresh_payment_status(self) -> None:
        """Keep remaining and status consistent with amount_paid.

        Call after any change to total_amount or amount_paid.
        """
        total = Decimal(str(self.total_amount or 0))
        paid = Decimal(str(self.amount_paid or 0))
        self.amount_remaining = total - paid
        if self.status == "cancelled":
            return
        if total > 0 and paid >= total:
            self.status = "paid"
        elif 0 < paid < total and self.status in ("approved", "paid"):
            self.status = "partially_paid"

    @property
    def days_until_due(self) -> int:
        if not self.due_date:
            return None
        return math.ceil((self.due_date - datetime.utcnow()).total_seconds() / 86400)

    @property
    def is_overdue(self) -> bool:
        if not self.due_date or self.status in ("paid", "cancelled"):
            return False
        return self.due_date < datetime.utcnow()
