"""
Invoice model for booking billing
"""

from sqlalchemy import Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func

from .database import Base


class Invoice(Base):
    """Invoice model - references a booking without being owned by it"""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    # No FK constraint: invoices outlive deleted bookings
    booking_id = Column(Integer, nullable=True, index=True)
    invoice_number = Column(String(50), nullable=True, index=True)
    status = Column(String(50), default="draft")  # draft, issued, paid, overdue, cancelled
    amount = Column(Float, nullable=True)
    total_amount = Column(Float, nullable=True)  # Older invoices only set the total
    currency = Column(String(10), default="OMR")
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
