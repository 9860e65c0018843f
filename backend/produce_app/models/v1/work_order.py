"""
Weekly work order: what each store gets and what warehouse staff must pick.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Float, Boolean
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from produce_app.db.base import Base


class WorkOrder(Base):
    __tablename__ = "work_orders"

    id = Column(Integer, primary_key=True, index=True)
    work_order_number = Column(String(20), unique=True, nullable=False, index=True)
    week_start = Column(DateTime, nullable=False, index=True)
    week_end = Column(DateTime, nullable=False)
    week_label = Column(String(50))
    # draft / confirmed / in_progress / completed / cancelled
    status = Column(String(20), nullable=False, default="draft", index=True)

    total_products = Column(Integer, default=0)
    total_stores = Column(Integer, default=0)
    total_orders = Column(Integer, default=0)
    total_pre_orders = Column(Integer, default=0)
    has_shortage = Column(Boolean, default=False, index=True)
    short_product_count = Column(Integer, default=0)
    total_shortage_quantity = Column(Float, default=0)

    confirmed_order_ids = Column(JSON, default=list)
    confirmed_pre_order_ids = Column(JSON, default=list)

    confirmed_at = Column(DateTime)
    confirmed_by_name = Column(String(100))
    completed_at = Column(DateTime)
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    products = relationship(
        "WorkOrderProduct", back_populates="work_order",
        cascade="all, delete-orphan", order_by="WorkOrderProduct.id", lazy="selectin"
    )
    store_allocations = relationship(
        "WorkOrderStore", back_populates="work_order",
        cascade="all, delete-orphan", order_by="WorkOrderStore.id", lazy="selectin"
    )

    def __repr__(self):
        return f"<WorkOrder {self.work_order_number}: {self.status}>"

    @property
    def shortage_percentage(self) -> int:
        if not self.total_products:
            return 0
        return round(self.short_product_count / self.total_products * 100)

    def calculate_totals(self) -> None:
        short_count = 0
        short_qty = 0.0
        for product in self.products:
            if (product.shortage or 0) < 0:
                short_count += 1
                short_qty += abs(product.shortage)
        self.short_product_count = short_count
        self.total_shortage_quantity = short_qty
        self.has_shortage = short_count > 0
        self.total_products = len(self.products)
        self.total_stores = len(self.store_allocations)

    def update_product_status(self, product_id: int, added_quantity: float,
                              notes: str = None) -> "WorkOrderProduct":
        """Add newly found stock to a product and re-grade its shortage."""
        product = next((p for p in self.products if p.product_id == product_id), None)
        if product is None:
            return None
        old_shortage = product.shortage or 0
        product.total_available = (product.total_available or 0) + added_quantity
        product.shortage = product.total_available - (product.total_ordered or 0)
        if product.shortage >= 0:
            product.status = "full"
            product.resolved_at = datetime.utcnow()
            product.resolved_quantity = added_quantity
            product.resolution_notes = notes
        elif product.shortage > old_shortage:
            product.status = "partial"
        self.calculate_totals()
        return product

    def refresh_picking_status(self) -> None:
        stores = self.store_allocations
        if stores and all(s.picking_status == "completed" for s in stores):
            self.status = "completed"
            self.completed_at = datetime.utcnow()
        elif any(s.picking_status in ("in_progress", "completed") for s in stores):
            self.status = "in_progress"
            self.completed_at = None


class WorkOrderProduct(Base):
    """Per-product availability and shortage at confirmation time."""
    __tablename__ = "work_order_products"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    product_name = Column(String(150))
    total_ordered = Column(Float, default=0)
    total_available = Column(Float, default=0)
    current_stock = Column(Float, default=0)
    incoming_stock = Column(Float, default=0)
    shortage = Column(Float, default=0, comment="Negative means short")
    # full / partial / short / pending
    status = Column(String(20), default="pending")
    resolved_at = Column(DateTime)
    resolved_quantity = Column(Float, default=0)
    resolution_notes = Column(Text)

    work_order = relationship("WorkOrder", back_populates="products")


class WorkOrderStore(Base):
    """What one store receives from the work order."""
    __tablename__ = "work_order_stores"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)
    store_name = Column(String(150))
    store_city = Column(String(100))
    store_state = Column(String(50))
    order_id = Column(Integer, ForeignKey("orders.id"))
    total_ordered = Column(Float, default=0)
    total_allocated = Column(Float, default=0)
    total_shortage = Column(Float, default=0)
    # full / partial / short
    allocation_status = Column(String(20), default="full")
    # pending / in_progress / completed
    picking_status = Column(String(20), default="pending")
    picking_started_at = Column(DateTime)
    picking_completed_at = Column(DateTime)

    work_order = relationship("WorkOrder", back_populates="store_allocations")
    items = relationship(
        "WorkOrderStoreItem", back_populates="store_allocation",
        cascade="all, delete-orphan", order_by="WorkOrderStoreItem.id", lazy="selectin"
    )

    def refresh_picking_status(self) -> None:
        now = datetime.utcnow()
        if self.items and all(i.picked for i in self.items):
            self.picking_status = "completed"
            self.picking_completed_at = now
        elif any(i.picked for i in self.items):
            self.picking_status = "in_progress"
            self.picking_started_at = self.picking_started_at or now
            self.picking_completed_at = None
        else:
            self.picking_status = "pending"
            self.picking_completed_at = None


class WorkOrderStoreItem(Base):
    __tablename__ = "work_order_store_items"

    id = Column(Integer, primary_key=True, index=True)
    store_allocation_id = Column(Integer, ForeignKey("work_order_stores.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    product_name = Column(String(150))
    ordered = Column(Float, default=0)
    allocated = Column(Float, default=0)
    shortage = Column(Float, default=0)
    # full / partial / short
    status = Column(String(20), default="full")
    picked = Column(Boolean, default=False)
    picked_at = Column(DateTime)

    store_allocation = relationship("WorkOrderStore", back_populates="items")
