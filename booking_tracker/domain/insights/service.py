"""Insight service - Fetches aggregate inputs and runs the heuristics"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import SUMMARY_DAYS_BACK, SUMMARY_MAX_ROWS
from ...models import Booking, Milestone, Service, User
from ...models_invoice import Invoice
from .heuristics import InsightContext, build_insight_stats, generate_suggestions, suggestion_stats
from .schemas import SuggestionsResponse

logger = logging.getLogger(__name__)


class InsightService:
    """Service layer for dashboard suggestions"""

    def __init__(self, db: Session, context: Optional[InsightContext] = None):
        self.db = db
        self.context = context or InsightContext()

    def get_suggestions(self) -> SuggestionsResponse:
        since = self.context.now - timedelta(days=SUMMARY_DAYS_BACK)

        users = self.db.query(User).all()
        services = self.db.query(Service).all()
        bookings = (
            self.db.query(Booking)
            .filter(Booking.created_at >= since)
            .order_by(Booking.created_at.desc())
            .limit(SUMMARY_MAX_ROWS)
            .all()
        )
        invoices = (
            self.db.query(Invoice)
            .filter(Invoice.created_at >= since)
            .order_by(Invoice.created_at.desc())
            .limit(SUMMARY_MAX_ROWS)
            .all()
        )
        booking_ids = [b.id for b in bookings]
        milestones = (
            self.db.query(Milestone).filter(Milestone.booking_id.in_(booking_ids)).all()
            if booking_ids
            else []
        )

        stats = build_insight_stats(
            users,
            services,
            bookings,
            invoices,
            milestones,
            now=self.context.now,
            client_names={u.id: u.full_name for u in users if u.full_name},
        )
        suggestions = generate_suggestions(stats, self.context)
        return SuggestionsResponse(suggestions=suggestions, stats=suggestion_stats(self.context))
