"""
Store orders and PreOrders.
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, Float, Boolean
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from produce_app.db.base import Base


class Order(Base):
    """Store order.

    Soft delete keeps the row: is_delete is set, total moves to
    deleted_amount and every item quantity moves to deleted_quantity.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(20), unique=True, nullable=False, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)
    pre_order_id = Column(Integer, ForeignKey("pre_orders.id"), index=True)

    # Processing / Shipped / Delivered / Cancelled
    status = Column(String(20), nullable=False, default="Processing", index=True)
    # Regular / PreOrder
    order_type = Column(String(20), nullable=False, default="Regular")

    total = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    shipping_cost = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    credit_applied = Column(DECIMAL(12, 2), default=Decimal("0.00"))

    # pending / partial / paid
    payment_status = Column(String(20), nullable=False, default="pending", index=True)
    payment_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    payment_method = Column(String(20))
    payment_transaction_id = Column(String(100))
    payment_notes = Column(Text)
    payment_date = Column(DateTime)
    payment_history = Column(JSON, default=list)

    plate_count = Column(Integer, default=0)
    billing_address = Column(JSON)
    shipping_address = Column(JSON)
    pallet_data = Column(JSON)
    notes = Column(Text)

    is_delete = Column(Boolean, default=False, index=True)
    deleted_reason = Column(Text)
    deleted_amount = Column(DECIMAL(12, 2))

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    store = relationship("Store", lazy="selectin")
    items = relationship(
        "OrderItem", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderItem.id", lazy="selectin"
    )

    def __repr__(self):
        return f"<Order {self.order_number}: {self.status} ${self.total}>"

    @property
    def items_total(self) -> Decimal:
        return sum((Decimal(str(i.total or 0)) for i in self.items), Decimal("0"))

    def recalculate_total(self) -> None:
        """total = Σ item price × quantity + shipping."""
        for item in self.items:
            item.total = (Decimal(str(item.unit_price or 0)) * Decimal(str(item.quantity or 0))).quantize(Decimal("0.01"))
        self.total = self.items_total + Decimal(str(self.shipping_cost or 0))


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    product_name = Column(String(150))
    quantity = Column(Float, nullable=False, default=0)
    # box / unit
    pricing_type = Column(String(10), nullable=False, default="box")
    unit_price = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    total = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    deleted_quantity = Column(Float)
    deleted_total = Column(DECIMAL(12, 2))

    order = relationship("Order", back_populates="items")

    def __repr__(self):
        return f"<OrderItem {self.product_name} x{self.quantity} {self.pricing_type}>"


class PreOrder(Base):
    """Tentative order awaiting confirmation into a regular Order."""
    __tablename__ = "pre_orders"

    id = Column(Integer, primary_key=True, index=True)
    pre_order_number = Column(String(20), unique=True, nullable=False, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)
    # pending / confirmed / cancelled
    status = Column(String(20), nullable=False, default="pending", index=True)
    confirmed = Column(Boolean, default=False, index=True)
    order_id = Column(Integer, index=True, comment="Order created on confirmation")
    expected_delivery_date = Column(DateTime, index=True)
    total_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    notes = Column(Text)
    is_delete = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    store = relationship("Store", lazy="selectin")
    items = relationship(
        "PreOrderItem", back_populates="pre_order",
        cascade="all, delete-orphan", order_by="PreOrderItem.id", lazy="selectin"
    )

    def __repr__(self):
        return f"<PreOrder {self.pre_order_number}: {self.status}>"

    def recalculate_total(self) -> None:
        total = Decimal("0")
        for item in self.items:
            item.total = (Decimal(str(item.unit_price or 0)) * Decimal(str(item.quantity or 0))).quantize(Decimal("0.01"))
            total += item.total
        self.total_amount = total


class PreOrderItem(Base):
    __tablename__ = "pre_order_items"

    id = Column(Integer, primary_key=True, index=True)
    pre_order_id = Column(Integer, ForeignKey("pre_orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    product_name = Column(String(150))
    quantity = Column(Float, nullable=False, default=0)
    pricing_type = Column(String(10), nullable=False, default="box")
    unit_price = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    total = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))

    pre_order = relationship("PreOrder", back_populates="items")
