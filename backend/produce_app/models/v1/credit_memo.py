"""
Store credit memos (returns and refunds issued to stores).
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from produce_app.db.base import Base


class CreditMemo(Base):
    __tablename__ = "credit_memos"

    id = Column(Integer, primary_key=True, index=True)
    credit_memo_number = Column(String(20), unique=True, nullable=False, index=True)
    memo_date = Column(DateTime, default=datetime.utcnow)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)
    order_number = Column(String(20))
    customer_name = Column(String(150))

    reason = Column(Text, nullable=False)
    notes = Column(Text)
    # store_credit / refund / replacement
    refund_method = Column(String(20), nullable=False, default="store_credit")
    total_amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"))
    # [{product_id, product_name, quantity, unit_price, total, reason}]
    items = Column(JSON, default=list)

    # pending / processed
    status = Column(String(20), nullable=False, default="pending", index=True)
    processed_at = Column(DateTime)
    processed_by = Column(String(100))
    process_notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    store = relationship("Store", lazy="selectin")

    def __repr__(self):
        return f"<CreditMemo {self.credit_memo_number}: {self.status} ${self.total_amount}>"
