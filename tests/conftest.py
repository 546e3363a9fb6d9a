"""
Shared fixtures: an in-memory SQLite store and row builders.
"""

import os
from datetime import timedelta

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from booking_tracker import models, models_invoice
from booking_tracker.database import Base
from booking_tracker.shared.validators import utcnow

NOW = utcnow().replace(microsecond=0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_booking(db):
    """Insert a booking; created_at defaults to one day ago"""

    def _make(**fields):
        fields.setdefault("client_id", 1)
        fields.setdefault("provider_id", 2)
        fields.setdefault("status", "pending")
        fields.setdefault("created_at", NOW - timedelta(days=1))
        fields.setdefault("updated_at", fields["created_at"])
        booking = models.Booking(**fields)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make


@pytest.fixture
def make_milestone(db):
    def _make(booking, **fields):
        fields.setdefault("title", "Milestone")
        fields.setdefault("status", "pending")
        fields.setdefault("created_at", NOW - timedelta(days=10))
        fields.setdefault("updated_at", fields["created_at"])
        milestone = models.Milestone(booking_id=booking.id, **fields)
        db.add(milestone)
        db.commit()
        db.refresh(milestone)
        return milestone

    return _make


@pytest.fixture
def make_task(db):
    def _make(milestone, **fields):
        fields.setdefault("title", "Task")
        fields.setdefault("status", "pending")
        task = models.Task(milestone_id=milestone.id, **fields)
        db.add(task)
        db.commit()
        db.refresh(task)
        return task

    return _make


@pytest.fixture
def make_invoice(db):
    def _make(booking_id, **fields):
        fields.setdefault("status", "draft")
        fields.setdefault("created_at", NOW - timedelta(days=1))
        invoice = models_invoice.Invoice(booking_id=booking_id, **fields)
        db.add(invoice)
        db.commit()
        db.refresh(invoice)
        return invoice

    return _make
