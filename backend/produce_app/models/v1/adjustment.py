"""
Manual balance adjustments against a store (or, for record keeping, a vendor).
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, Boolean
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from produce_app.db.base import Base

# Sign of each adjustment type on the store credit balance
POSITIVE_TYPES = ("credit", "refund", "correction", "discount")
NEGATIVE_TYPES = ("debit", "write_off")


class Adjustment(Base):
    """
    Lifecycle: pending -> approved -> applied, or pending -> rejected.
    Any non-voided adjustment can be voided; an applied one is reversed.
    """
    __tablename__ = "adjustments"

    id = Column(Integer, primary_key=True, index=True)
    adjustment_number = Column(String(20), unique=True, nullable=False, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), index=True)

    # credit / debit / write_off / correction / refund / discount
    adjustment_type = Column(String(20), nullable=False, index=True)
    amount = Column(DECIMAL(12, 2), nullable=False)
    reason_category = Column(String(30), nullable=False, default="other")
    reason = Column(Text, nullable=False)
    notes = Column(Text)
    reference_type = Column(String(30))
    reference_id = Column(Integer)
    reference_number = Column(String(50))

    # draft / pending / approved / rejected / applied / voided
    status = Column(String(20), nullable=False, default="pending", index=True)
    requires_approval = Column(Boolean, default=True)
    approved_at = Column(DateTime)
    approved_by_name = Column(String(100))
    rejected_at = Column(DateTime)
    rejection_reason = Column(Text)
    applied_at = Column(DateTime)
    voided_at = Column(DateTime)
    void_reason = Column(Text)
    balance_before = Column(DECIMAL(12, 2))
    balance_after = Column(DECIMAL(12, 2))

    # [{action, previous_status, new_status, notes, performed_by, performed_by_name, created_at}]
    audit_log = Column(JSON, default=list)

    created_by_name = Column(String(100))
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    store = relationship("Store", lazy="selectin")
    vendor = relationship("Vendor", lazy="selectin")

    def __repr__(self):
        return f"<Adjustment {self.adjustment_number}: {self.adjustment_type} ${self.amount} {self.status}>"

    @property
    def signed_amount(self) -> Decimal:
        amount = Decimal(str(self.amount or 0))
        return -amount if self.adjustment_type in NEGATIVE_TYPES else amount

    def add_audit(self, action: str, previous_status: str, new_status: str,
                  notes: str = None, performed_by: int = None, performed_by_name: str = None) -> None:
        self.audit_log = list(self.audit_log or []) + [{
            "action": action,
            "previous_status": previous_status,
            "new_status": new_status,
            "notes": notes,
            "performed_by": performed_by,
            "performed_by_name": performed_by_name,
            "created_at": datetime.utcnow().isoformat(),
        }]
