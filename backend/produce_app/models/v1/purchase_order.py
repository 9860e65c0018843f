"""
Purchase orders placed with vendors, with per-item quality inspection.
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, Float
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from produce_app.db.base import Base


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, index=True)
    purchase_order_number = Column(String(30), unique=True, nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    purchase_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    delivery_date = Column(DateTime)
    due_date = Column(DateTime)

    # pending / quality-check / approved / received / cancelled
    status = Column(String(20), nullable=False, default="quality-check", index=True)
    # pending / partial / paid
    payment_status = Column(String(20), nullable=False, default="pending", index=True)
    payment_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    payment_method = Column(String(20))
    payment_notes = Column(Text)

    total_amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    total_credit_applied = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    credit_adjustments = Column(JSON, default=list)
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("Vendor", lazy="selectin")
    items = relationship(
        "PurchaseOrderItem", back_populates="purchase_order",
        cascade="all, delete-orphan", order_by="PurchaseOrderItem.id", lazy="selectin"
    )

    def __repr__(self):
        return f"<PurchaseOrder {self.purchase_order_number}: ${self.total_amount}>"

    @property
    def outstanding_amount(self) -> Decimal:
        return (
            Decimal(str(self.total_amount or 0))
            - Decimal(str(self.total_credit_applied or 0))
            - Decimal(str(self.payment_amount or 0))
        )

    def recalculate_totals(self) -> None:
        total = Decimal("0")
        for item in self.items:
            item.total_price = (Decimal(str(item.quantity or 0)) * Decimal(str(item.unit_price or 0))).quantize(Decimal("0.01"))
            if item.lb:
                item.total_weight = (item.quantity or 0) * item.lb
            total += item.total_price
        self.total_amount = total

    def refresh_payment_status(self) -> None:
        payable = Decimal(str(self.total_amount or 0)) - Decimal(str(self.total_credit_applied or 0))
        paid = Decimal(str(self.payment_amount or 0))
        if paid > 0 and paid >= payable:
            self.payment_status = "paid"
        elif paid > 0:
            self.payment_status = "partial"
        else:
            self.payment_status = "pending"


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"

    id = Column(Integer, primary_key=True, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    product_name = Column(String(150))
    quantity = Column(Float, nullable=False, default=0)
    unit_price = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    total_price = Column(DECIMAL(12, 2), default=Decimal("0.00"))

    # pending / approved / rejected
    quality_status = Column(String(20), nullable=False, default="pending")
    quality_notes = Column(Text)
    # damaged / spoiled / wrong_item / quality_issue / short_shipment / other
    rejection_reason = Column(String(30))
    batch_number = Column(String(50))
    expected_weight = Column(Float)
    actual_weight = Column(Float)
    weight_variance = Column(Float)
    lb = Column(Float, comment="Weight per case")
    total_weight = Column(Float)
    # Quantity currently counted into product stock
    approved_quantity = Column(Float, default=0)

    purchase_order = relationship("PurchaseOrder", back_populates="items")
