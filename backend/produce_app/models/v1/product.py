"""
Products and their stock ledger.

Stock is never trusted from the running counters alone: the weekly
figure is recomputed from ProductLedgerEntry rows (see services.stock).
The counters (remaining, unit_remaining ...) are kept for quick listings
and are clamped at zero when orders consume them.
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, Float, Boolean
from sqlalchemy.orm import relationship
from produce_app.db.base import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False, index=True)
    short_code = Column(String(20), unique=True, index=True)
    category = Column(String(100), index=True)
    unit = Column(String(20), default="lb", comment="Unit for unit pricing (lb, oz, pieces ...)")
    description = Column(Text)
    origin = Column(String(100))
    organic = Column(Boolean, default=False)
    threshold = Column(Float, default=0, comment="Low stock warning level (boxes)")

    price = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="Unit price")
    price_per_box = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    a_price = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    b_price = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    c_price = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    restaurant_price = Column(DECIMAL(12, 2), default=Decimal("0.00"))

    # case / unit / both
    sales_mode = Column(String(10), nullable=False, default="both")

    case_length = Column(Float, default=0)
    case_width = Column(Float, default=0)
    case_height = Column(Float, default=0)
    case_weight = Column(Float, default=0)
    # auto / manual
    pallet_input_mode = Column(String(10), default="auto")
    manual_cases_per_pallet = Column(Integer, default=0)
    cases_per_layer = Column(Integer, default=0)
    layers_per_pallet = Column(Integer, default=0)
    total_cases_per_pallet = Column(Integer, default=0)
    pallet_is_manual = Column(Boolean, default=False)

    total_purchase = Column(Float, default=0)
    total_sell = Column(Float, default=0)
    remaining = Column(Float, default=0)
    unit_purchase = Column(Float, default=0)
    unit_sell = Column(Float, default=0)
    unit_remaining = Column(Float, default=0)

    carry_forward_box = Column(Float, default=0)
    carry_forward_unit = Column(Float, default=0)
    manually_add_box = Column(Float, default=0)
    manually_add_box_date = Column(DateTime)
    manually_add_unit = Column(Float, default=0)
    manually_add_unit_date = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    ledger_entries = relationship(
        "ProductLedgerEntry", back_populates="product",
        cascade="all, delete-orphan", order_by="ProductLedgerEntry.id", lazy="selectin"
    )
    purchase_logs = relationship(
        "ProductPurchaseLog", back_populates="product",
        cascade="all, delete-orphan", order_by="ProductPurchaseLog.id", lazy="selectin"
    )

    def __repr__(self):
        return f"<Product {self.id}: {self.name}>"

    @property
    def case_dimensions(self) -> dict:
        return {
            "length": self.case_length or 0,
            "width": self.case_width or 0,
            "height": self.case_height or 0,
        }

    @property
    def latest_per_lb(self) -> float:
        """Weight per case recorded by the most recent purchase approval."""
        for log in reversed(self.purchase_logs or []):
            if log.per_lb:
                return float(log.per_lb)
        return 0.0

    def refresh_pallet_capacity(self) -> None:
        from produce_app.services.pallet_calculator import product_pallet_capacity

        capacity = product_pallet_capacity(self)
        self.cases_per_layer = capacity["cases_per_layer"]
        self.layers_per_pallet = capacity["layers_per_pallet"]
        self.total_cases_per_pallet = capacity["total_cases_per_pallet"]
        self.pallet_is_manual = capacity["is_manual"]

    def add_ledger_entry(self, entry_type: str, date: datetime, quantity: float = 0,
                         weight: float = 0, lb: str = None, trash_type: str = None,
                         reason: str = None, purchase_order_id: int = None,
                         purchase_order_item_id: int = None) -> "ProductLedgerEntry":
        entry = ProductLedgerEntry(
            entry_type=entry_type,
            date=date,
            quantity=quantity,
            weight=weight,
            lb=lb,
            trash_type=trash_type,
            reason=reason,
            purchase_order_id=purchase_order_id,
            purchase_order_item_id=purchase_order_item_id,
        )
        self.ledger_entries.append(entry)
        return entry


class ProductLedgerEntry(Base):
    """Dated stock movement.

    entry_type:
    - purchase: boxes received (quantity)
    - sale: boxes sold (quantity)
    - lb_purchase: units received (weight)
    - lb_sell: units sold (weight), lb=box when estimated from a box sale
    - trash: boxes or units discarded (quantity, trash_type)
    """
    __tablename__ = "product_ledger_entries"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    entry_type = Column(String(20), nullable=False, index=True)
    date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    quantity = Column(Float, default=0)
    weight = Column(Float, default=0)
    lb = Column(String(10))
    trash_type = Column(String(10))
    reason = Column(String(255))
    purchase_order_id = Column(Integer, index=True)
    purchase_order_item_id = Column(Integer, index=True)

    product = relationship("Product", back_populates="ledger_entries")

    def __repr__(self):
        return f"<ProductLedgerEntry {self.entry_type} q={self.quantity} w={self.weight}>"


class ProductPurchaseLog(Base):
    """Quantity change applied to a product by a purchase order approval."""
    __tablename__ = "product_purchase_logs"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    purchase_order_id = Column(Integer, index=True)
    old_quantity = Column(Float, default=0)
    new_quantity = Column(Float, default=0)
    per_lb = Column(Float, default=0)
    total_lb = Column(Float, default=0)
    difference = Column(Float, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="purchase_logs")
