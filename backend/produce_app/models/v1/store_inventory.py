"""
Inventory held at a store location (per store, per product).
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Float, UniqueConstraint
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from produce_app.db.base import Base

MAX_MOVEMENTS = 100


class StoreInventory(Base):
    __tablename__ = "store_inventory"

    __table_args__ = (
        UniqueConstraint('store_id', 'product_id', name='uq_store_product'),
    )

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    quantity = Column(Float, default=0)
    allocated = Column(Float, default=0)
    available = Column(Float, default=0)
    unit_quantity = Column(Float, default=0)
    unit_allocated = Column(Float, default=0)
    unit_available = Column(Float, default=0)

    min_stock = Column(Float, default=5)
    max_stock = Column(Float, default=100)
    reorder_point = Column(Float, default=10)
    location = Column(String(100))

    # [{type, quantity, unit_quantity, reason, reference, date, performed_by_name}]
    movements = Column(JSON, default=list)
    last_restocked = Column(DateTime)
    last_sold = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    store = relationship("Store", lazy="selectin")
    product = relationship("Product", lazy="selectin")

    def __repr__(self):
        return f"<StoreInventory store={self.store_id} product={self.product_id} qty={self.quantity}>"

    @property
    def stock_status(self) -> str:
        qty = self.quantity or 0
        if qty <= 0:
            return "out-of-stock"
        if qty <= (self.reorder_point or 0):
            return "low"
        if qty >= (self.max_stock or 0):
            return "overstocked"
        return "normal"

    def recalculate_available(self) -> None:
        self.available = max(0, (self.quantity or 0) - (self.allocated or 0))
        self.unit_available = max(0, (self.unit_quantity or 0) - (self.unit_allocated or 0))

    def add_movement(self, movement_type: str, quantity: float, unit_quantity: float = 0,
                     reason: str = None, reference: str = None, performed_by_name: str = None) -> None:
        movements = list(self.movements or [])
        movements.append({
            "type": movement_type,
            "quantity": quantity,
            "unit_quantity": unit_quantity,
            "reason": reason,
            "reference": reference,
            "date": datetime.utcnow().isoformat(),
            "performed_by_name": performed_by_name,
        })
        self.movements = movements[-MAX_MOVEMENTS:]
