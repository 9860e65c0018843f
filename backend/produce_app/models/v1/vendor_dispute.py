"""
Disputes raised against vendors (quality, quantity, pricing ...).
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, Boolean
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from produce_app.db.base import Base

OPEN_STATUSES = ("open", "in_progress", "pending_vendor", "escalated")


class VendorDispute(Base):
    __tablename__ = "vendor_disputes"

    id = Column(Integer, primary_key=True, index=True)
    dispute_number = Column(String(20), unique=True, nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"))
    invoice_id = Column(Integer, ForeignKey("invoices.id"))

    # quality / quantity / pricing / delivery / documentation / other
    dispute_type = Column(String(20), nullable=False)
    # low / medium / high / urgent
    priority = Column(String(10), nullable=False, default="medium")
    # open / in_progress / pending_vendor / resolved / escalated / closed
    status = Column(String(20), nullable=False, default="open", index=True)
    description = Column(Text, nullable=False)
    disputed_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"))

    put_invoices_on_hold = Column(Boolean, default=True)
    affected_invoice_ids = Column(JSON, default=list)
    # [{date, message, by, user_id, is_internal, attachments}]
    communications = Column(JSON, default=list)

    # credit_issued / replacement / price_adjustment / no_action / other
    resolution_type = Column(String(20))
    resolution_notes = Column(Text)
    resolution_amount = Column(DECIMAL(12, 2))
    credit_memo_id = Column(Integer, ForeignKey("vendor_credit_memos.id"))
    resolved_at = Column(DateTime)
    resolved_by_name = Column(String(100))

    escalated_at = Column(DateTime)
    escalation_reason = Column(Text)
    escalated_to = Column(String(100))

    due_date = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("Vendor", lazy="selectin")

    def __repr__(self):
        return f"<VendorDispute {self.dispute_number}: {self.status}>"

    @property
    def can_edit(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def can_resolve(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def can_escalate(self) -> bool:
        return self.status in ("open", "in_progress", "pending_vendor")

    @property
    def is_overdue(self) -> bool:
        if not self.due_date or self.status in ("resolved", "closed"):
            return False
        return self.due_date < datetime.utcnow()

    @property
    def days_open(self) -> int:
        end = self.resolved_at or datetime.utcnow()
        return max(0, (end - (self.created_at or end)).days)

    def add_communication(self, message: str, by: str, user_id: int = None,
                          is_internal: bool = False, attachments: list = None) -> dict:
        entry = {
            "date": datetime.utcnow().isoformat(),
            "message": message,
            "by": by,
            "user_id": user_id,
            "is_internal": is_internal,
            "attachments": attachments or [],
        }
        # Reassign so the JSON column is flagged dirty
        self.communications = list(self.communications or []) + [entry]
        return entry
