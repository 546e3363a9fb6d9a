from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, nullable=False, index=True)
    provider_id = Column(Integer, nullable=False, index=True)
    service_id = Column(Integer, nullable=True, index=True)
    title = Column(String(255), nullable=True)
    # pending, approved, declined, in_progress, completed, cancelled, on_hold, rescheduled
    status = Column(String(50), default="pending", nullable=False, index=True)
    approval_status = Column(String(50), nullable=True)  # pending, approved, declined
    amount = Column(Float, nullable=True)
    amount_cents = Column(Integer, nullable=True)  # Legacy rows store cents only
    currency = Column(String(10), default="OMR")
    # Overwritten by the progress aggregator whenever a child changes
    project_progress = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    milestones = relationship(
        "Milestone",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="Milestone.order_index",
    )


class Milestone(Base):
    __tablename__ = "milestones"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(50), default="pending", nullable=False)  # pending, in_progress, completed, on_hold, cancelled
    weight = Column(Float, default=1.0)
    progress_percentage = Column(Integer, default=0, nullable=False)  # Derived, 0-100
    due_date = Column(DateTime, nullable=True)
    order_index = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="milestones")
    tasks = relationship("Task", back_populates="milestone", cascade="all, delete-orphan")


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    milestone_id = Column(Integer, ForeignKey("milestones.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    status = Column(String(50), default="pending", nullable=False)  # pending, in_progress, completed
    estimated_hours = Column(Float, nullable=True)
    actual_hours = Column(Float, nullable=True)
    due_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    milestone = relationship("Milestone", back_populates="tasks")


class BookingDisplayStatusView(Base):
    """
    Materialized per-booking display status consumed by the summary fast path.
    Rows are rewritten by refresh_display_status_view using the same deriver
    as the row-by-row summary.
    """

    __tablename__ = "mv_booking_display_status"

    booking_id = Column(Integer, primary_key=True)
    client_id = Column(Integer, nullable=False, index=True)
    provider_id = Column(Integer, nullable=False, index=True)
    raw_status = Column(String(50), nullable=True)
    approval_status = Column(String(50), nullable=True)
    display_status = Column(String(50), nullable=False, index=True)
    amount = Column(Float, default=0.0, nullable=False)
    completion_days = Column(Float, nullable=True)  # Only set for delivered bookings
    created_at = Column(DateTime, nullable=True, index=True)
    refreshed_at = Column(DateTime, server_default=func.now())


class User(Base):
    """Marketplace account (client, provider or admin) as mirrored from the auth store"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=True)
    role = Column(String(50), default="client")  # client, provider, admin
    status = Column(String(50), default="active")  # active, suspended, pending
    last_active = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Service(Base):
    """Service listing offered by a provider"""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, nullable=True, index=True)
    title = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    status = Column(String(50), default="active")  # active, draft, archived
    rating = Column(Float, nullable=True)  # 0-5
    created_at = Column(DateTime, server_default=func.now())
