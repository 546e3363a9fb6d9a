"""Summary repository - Batch fetches and the materialized display-status view"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session

from ...models import Booking, BookingDisplayStatusView
from ...models_invoice import Invoice
from ...shared.validators import utcnow
from ..status.deriver import BILLABLE_INVOICE_STATUSES, index_invoices_by_booking
from .reducer import PROJECTED_STATUSES, build_view_row
from .schemas import Summary, SummaryScope

logger = logging.getLogger(__name__)


def _scope_bookings(query: Query, model, scope: SummaryScope) -> Query:
    """Clients see bookings they made, providers bookings they serve, admins everything"""
    if scope.role == "client":
        return query.filter(model.client_id == scope.user_id)
    if scope.role == "provider":
        return query.filter(model.provider_id == scope.user_id)
    return query


class SummaryRepository:
    """Repository for dashboard summary database operations"""

    @staticmethod
    def get_bookings(db: Session, scope: SummaryScope, since: datetime, limit: int) -> list[Booking]:
        """Bookings created since the window start, newest first, capped at limit"""
        query = db.query(Booking).filter(Booking.created_at >= since)
        query = _scope_bookings(query, Booking, scope)
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).limit(limit).all()

    @staticmethod
    def _invoice_query(db: Session, scope: SummaryScope, since: datetime) -> Query:
        query = db.query(Invoice).filter(Invoice.created_at >= since)
        if scope.role != "admin":
            visible = _scope_bookings(db.query(Booking.id), Booking, scope)
            query = query.filter(Invoice.booking_id.in_(visible.scalar_subquery()))
        return query

    @staticmethod
    def get_invoices(db: Session, scope: SummaryScope, since: datetime, limit: int) -> list[Invoice]:
        """Invoices created since the window start, capped at limit"""
        query = SummaryRepository._invoice_query(db, scope, since)
        return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).limit(limit).all()

    @staticmethod
    def get_invoices_for_bookings(db: Session, booking_ids: list[int]) -> list[Invoice]:
        if not booking_ids:
            return []
        return db.query(Invoice).filter(Invoice.booking_id.in_(booking_ids)).all()

    @staticmethod
    def count_view_rows(db: Session, scope: SummaryScope, since: datetime) -> int:
        query = db.query(func.count(BookingDisplayStatusView.booking_id)).filter(
            BookingDisplayStatusView.created_at >= since
        )
        return _scope_bookings(query, BookingDisplayStatusView, scope).scalar() or 0

    @staticmethod
    def fast_summary(db: Session, scope: SummaryScope, since: datetime, limit: int) -> Summary:
        """Aggregate the summary in SQL from the materialized display-status view"""
        view = BookingDisplayStatusView
        window = _scope_bookings(db.query(view).filter(view.created_at >= since), view, scope)
        sub = window.order_by(view.created_at.desc(), view.booking_id.desc()).limit(limit).subquery()

        status_counts = dict(
            db.query(sub.c.display_status, func.count(sub.c.booking_id))
            .group_by(sub.c.display_status)
            .all()
        )
        approved = (
            db.query(func.count(sub.c.booking_id))
            .filter(or_(sub.c.raw_status == "approved", sub.c.approval_status == "approved"))
            .scalar()
        )
        projected = (
            db.query(func.coalesce(func.sum(sub.c.amount), 0.0))
            .filter(sub.c.display_status.in_(sorted(PROJECTED_STATUSES)))
            .scalar()
        )
        avg_days = (
            db.query(func.avg(sub.c.completion_days))
            .filter(sub.c.display_status == "delivered", sub.c.completion_days.isnot(None))
            .scalar()
        )

        invoices = (
            SummaryRepository._invoice_query(db, scope, since)
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .limit(limit)
            .subquery()
        )
        revenue = (
            db.query(
                func.coalesce(func.sum(func.coalesce(invoices.c.amount, invoices.c.total_amount, 0.0)), 0.0)
            )
            .filter(invoices.c.status.in_(sorted(BILLABLE_INVOICE_STATUSES)))
            .scalar()
        )

        pending = status_counts.get("pending_review", 0)
        return Summary(
            total=sum(status_counts.values()),
            completed=status_counts.get("delivered", 0),
            inProgress=status_counts.get("in_production", 0),
            approved=approved or 0,
            pending=pending,
            readyToLaunch=status_counts.get("ready_to_launch", 0),
            totalRevenue=float(revenue or 0),
            projectedBillings=float(projected or 0),
            pendingApproval=pending,
            avgCompletionTime=round(float(avg_days), 1) if avg_days is not None else 0,
        )

    @staticmethod
    def refresh_display_status_view(db: Session, booking_ids: Optional[list[int]] = None) -> int:
        """
        Rewrite view rows from current booking and invoice state.

        Refreshes every booking when booking_ids is None. Ids that no longer
        exist have their view row removed. Returns the number of rows written.
        """
        query = db.query(Booking)
        if booking_ids is not None:
            if not booking_ids:
                return 0
            query = query.filter(Booking.id.in_(booking_ids))
        bookings = query.all()

        found_ids = [b.id for b in bookings]
        invoices = index_invoices_by_booking(SummaryRepository.get_invoices_for_bookings(db, found_ids))

        if booking_ids is None:
            db.query(BookingDisplayStatusView).filter(
                BookingDisplayStatusView.booking_id.notin_(found_ids)
            ).delete(synchronize_session=False)

        now = utcnow()
        for booking in bookings:
            row = build_view_row(booking, invoices.get(booking.id, []))
            db.merge(BookingDisplayStatusView(**row, refreshed_at=now))

        if booking_ids is not None:
            missing = set(booking_ids) - set(found_ids)
            if missing:
                db.query(BookingDisplayStatusView).filter(
                    BookingDisplayStatusView.booking_id.in_(sorted(missing))
                ).delete(synchronize_session=False)
                logger.info(f"🗑️ Removed {len(missing)} stale view row(s)")

        db.commit()
        logger.debug(f"📊 Refreshed {len(bookings)} display-status view row(s)")
        return len(bookings)
