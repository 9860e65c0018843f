"""
Payments made to vendors and how they are spread over invoices.
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from produce_app.db.base import Base


class VendorPayment(Base):
    """
    net_amount = gross_amount - credit_applied - discount_amount
    """
    __tablename__ = "vendor_payments"

    id = Column(Integer, primary_key=True, index=True)
    payment_number = Column(String(20), unique=True, nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    payment_date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    # cash / check / credit_card / ach / wire / other
    payment_method = Column(String(20), nullable=False)
    check_number = Column(String(50))
    # pending / cleared / bounced (checks only)
    check_clearance_status = Column(String(20))
    check_cleared_at = Column(DateTime)
    bounce_reason = Column(Text)
    reference = Column(String(100))

    gross_amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    credit_applied = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    discount_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    net_amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    # [{credit_memo_id, memo_number, amount}]
    applied_credits = Column(JSON, default=list)

    # pending / completed / failed / reversed / voided
    status = Column(String(20), nullable=False, default="completed", index=True)
    voided_at = Column(DateTime)
    void_reason = Column(Text)
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("Vendor", lazy="selectin")
    allocations = relationship(
        "VendorPaymentAllocation", back_populates="payment",
        cascade="all, delete-orphan", order_by="VendorPaymentAllocation.id", lazy="selectin"
    )

    def __repr__(self):
        return f"<VendorPayment {self.payment_number}: {self.status} ${self.net_amount}>"

    @property
    def can_void(self) -> bool:
        if self.payment_method == "check":
            # A bounced check has already been reversed
            return self.status not in ("voided", "failed") and self.check_clearance_status != "cleared"
        return self.status == "completed"


class VendorPaymentAllocation(Base):
    __tablename__ = "vendor_payment_allocations"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("vendor_payments.id"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    invoice_number = Column(String(30))
    amount = Column(DECIMAL(12, 2), nullable=False)
    remaining_after_payment = Column(DECIMAL(12, 2))

    payment = relationship("VendorPayment", back_populates="allocations")
