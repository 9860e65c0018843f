"""
Quality complaints raised by stores against delivered orders.
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, Boolean
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from produce_app.db.base import Base


class QualityIssue(Base):
    __tablename__ = "quality_issues"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    order_number = Column(String(20))

    # damaged / wrong_item / missing_item / quality / expired / other
    issue_type = Column(String(20), nullable=False)
    description = Column(Text, nullable=False)
    # [{product_id, product_name, quantity, issue}]
    affected_items = Column(JSON, default=list)
    # refund / replacement / credit / adjustment
    requested_action = Column(String(20), nullable=False, default="credit")
    requested_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    images = Column(JSON, default=list)

    # pending / under_review / approved / partially_approved / rejected / resolved
    status = Column(String(20), nullable=False, default="pending", index=True)
    admin_notes = Column(Text)
    resolution = Column(Text)
    approved_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"))
    resolved_at = Column(DateTime)
    resolved_by_name = Column(String(100))
    credit_memo_created = Column(Boolean, default=False)
    # [{sender: store|admin, sender_name, message, created_at}]
    communications = Column(JSON, default=list)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    store = relationship("Store", lazy="selectin")

    def __repr__(self):
        return f"<QualityIssue {self.id}: {self.issue_type} {self.status}>"

    def add_message(self, sender: str, sender_name: str, message: str) -> dict:
        entry = {
            "sender": sender,
            "sender_name": sender_name,
            "message": message,
            "created_at": datetime.utcnow().isoformat(),
        }
        self.communications = list(self.communications or []) + [entry]
        return entry
