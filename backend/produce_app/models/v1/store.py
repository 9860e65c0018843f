"""
Store accounts (stores, members and admins) and the store credit ledger.
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, Float
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from produce_app.db.base import Base


class Store(Base):
    """Account that places orders (role=store) or operates the back office.

    Stores register as `pending` and must be approved before ordering.
    credit_balance is only changed through StoreCreditEntry rows, see
    services.store_credit.post_credit.
    """
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(100), nullable=False, comment="Contact name")
    email = Column(String(150), unique=True, nullable=False, index=True)
    phone = Column(String(50))
    store_name = Column(String(150), index=True)
    owner_name = Column(String(100))
    address = Column(String(255))
    city = Column(String(100), index=True)
    state = Column(String(50))
    zip_code = Column(String(20))
    business_description = Column(Text)
    password_hash = Column(String(255), nullable=False)

    # member / store / admin
    role = Column(String(20), nullable=False, default="member", index=True)

    # a_price / b_price / c_price / restaurant_price
    price_category = Column(String(30), nullable=False, default="a_price")
    shipping_cost = Column(DECIMAL(12, 2), default=Decimal("0.00"))

    # pending / approved / rejected
    approval_status = Column(String(20), nullable=False, default="pending", index=True)
    registration_ref = Column(String(30), unique=True, index=True)
    approved_at = Column(DateTime)
    rejected_at = Column(DateTime)
    rejection_reason = Column(Text)

    # active / inactive / suspended
    status = Column(String(20), nullable=False, default="active")
    last_login = Column(DateTime)

    credit_balance = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    credit_limit = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    payment_terms_days = Column(Integer, default=7)
    interest_rate = Column(Float, default=1.5, comment="Monthly percent")
    # active / suspended / revoked
    credit_status = Column(String(20), default="active")

    # Calls, emails and notes: {id, type, subject, notes, outcome, created_by, created_by_name, created_at}
    communication_logs = Column(JSON, default=list)
    # Payments taken outside an order: {id, amount, type, reference, notes, order_id, created_by, created_at}
    payment_records = Column(JSON, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    credit_history = relationship(
        "StoreCreditEntry", back_populates="store",
        cascade="all, delete-orphan", order_by="StoreCreditEntry.id", lazy="selectin"
    )

    def __repr__(self):
        return f"<Store {self.id}: {self.store_name or self.name} ({self.role})>"

    @property
    def display_name(self) -> str:
        return self.store_name or self.name or self.email

    @property
    def is_approved(self) -> bool:
        return self.role != "store" or self.approval_status == "approved"


class StoreCreditEntry(Base):
    """One movement of a store's credit balance."""
    __tablename__ = "store_credit_entries"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)

    # credit_issued / credit_applied / adjustment / refund
    entry_type = Column(String(30), nullable=False)
    amount = Column(DECIMAL(12, 2), nullable=False, comment="Signed amount")
    reference_id = Column(Integer)
    reference_model = Column(String(50))
    reason = Column(Text)
    balance_before = Column(DECIMAL(12, 2), nullable=False)
    balance_after = Column(DECIMAL(12, 2), nullable=False)
    performed_by = Column(Integer)
    performed_by_name = Column(String(100))
    created_at = Column(DateTime, default=datetime.utcnow)

    store = relationship("Store", back_populates="credit_history")

    def __repr__(self):
        return f"<StoreCreditEntry {self.entry_type} {self.amount} -> {self.balance_after}>"
