"""
Vendors (growers, suppliers and distributors we purchase from).
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, Float
from produce_app.db.base import Base


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False, index=True)
    contact_name = Column(String(100))
    email = Column(String(150))
    phone = Column(String(50))
    address = Column(String(255))
    city = Column(String(100))
    state = Column(String(50))
    zip_code = Column(String(20))

    # farmer / supplier / distributor / other
    vendor_type = Column(String(20), nullable=False, default="supplier")
    # active / inactive / on_hold / blacklisted
    status = Column(String(20), nullable=False, default="active", index=True)

    # cod / net15 / net30 / net45 / net60 / custom
    payment_terms = Column(String(20), nullable=False, default="net30")
    custom_terms_days = Column(Integer)
    early_discount_percentage = Column(Float, default=0)
    early_discount_within_days = Column(Integer, default=0)

    min_quality_score = Column(Float, default=90)
    min_fill_rate = Column(Float, default=95)
    min_on_time_rate = Column(Float, default=95)

    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Vendor {self.id}: {self.name}>"

    @property
    def due_days(self) -> int:
        """Days from invoice/purchase date to the payment due date."""
        terms = self.payment_terms or ""
        if terms == "cod":
            return 0
        if terms == "custom":
            return self.custom_terms_days or 30
        if terms.startswith("net"):
            try:
                return int(terms[3:])
            except ValueError:
                return 30
        return 30

    @property
    def has_early_discount(self) -> bool:
        return bool(self.early_discount_percentage) and bool(self.early_discount_within_days)
