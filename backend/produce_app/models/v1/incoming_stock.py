"""
Expected inbound stock for a week, before and after it is tied to a vendor.
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, DECIMAL, Float, String
from sqlalchemy.orm import relationship
from produce_app.db.base import Base


class IncomingStock(Base):
    """
    Lifecycle: draft -> linked (vendor chosen) -> received; any non-received
    entry may be cancelled.
    """
    __tablename__ = "incoming_stock"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Float, nullable=False, default=0)
    week_start = Column(DateTime, nullable=False, index=True)
    week_end = Column(DateTime, nullable=False)
    # draft / linked / received / cancelled
    status = Column(String(20), nullable=False, default="draft", index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), index=True)
    unit_price = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    total_price = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"))
    linked_at = Column(DateTime)
    received_at = Column(DateTime)
    received_quantity = Column(Float)
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", lazy="joined", innerjoin=True)
    vendor = relationship("Vendor", lazy="selectin")

    def __repr__(self):
        return f"<IncomingStock product={self.product_id} qty={self.quantity} {self.status}>"

    def compute_total(self) -> None:
        self.total_price = (Decimal(str(self.quantity or 0)) * Decimal(str(self.unit_price or 0))).quantize(Decimal("0.01"))
