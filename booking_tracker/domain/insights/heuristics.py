"""
Insight heuristics.

A fixed set of independent predicates runs over aggregate statistics; each
may emit one Suggestion. Suggestions are ranked by priority, then confidence,
then the order the predicates ran in.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Optional

from ...config import (
    HIGH_VALUE_CLIENT_THRESHOLD,
    INACTIVE_USER_DAYS,
    INSIGHTS_CURRENCY,
    NEW_USER_DAYS,
)
from ...shared.validators import coerce_number, normalize_status, parse_datetime, utcnow
from ..deadlines.monitor import count_overdue
from ..records import normalize_booking, normalize_invoice
from .schemas import (
    PRIORITY_RANK,
    CategoryShare,
    ClientSpend,
    InsightStats,
    Suggestion,
    SuggestionStats,
)

logger = logging.getLogger(__name__)


def _get(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def _previous_month(now: datetime) -> tuple[int, int]:
    if now.month == 1:
        return now.year - 1, 12
    return now.year, now.month - 1


def build_insight_stats(
    users: Iterable[Any],
    services: Iterable[Any],
    bookings: Iterable[Any],
    invoices: Iterable[Any],
    milestones: Iterable[Any] = (),
    now: Optional[datetime] = None,
    client_names: Optional[dict[int, str]] = None,
) -> InsightStats:
    """Reduce raw users, services, bookings and invoices into InsightStats"""
    now = now or utcnow()
    users = list(users)
    services = list(services)
    booking_records = [normalize_booking(b) for b in bookings]
    invoice_records = [normalize_invoice(i) for i in invoices]
    client_names = client_names or {}

    # Category distribution over bookings
    service_category = {_get(s, "id"): _get(s, "category") or "Uncategorized" for s in services}
    categories: dict[str, CategoryShare] = {}
    for service in services:
        name = _get(service, "category") or "Uncategorized"
        categories.setdefault(name, CategoryShare(name=name)).services += 1
    bookings_per_service: dict[Any, int] = defaultdict(int)
    for booking in booking_records:
        bookings_per_service[booking.service_id] += 1
        category = service_category.get(booking.service_id)
        if category is not None:
            categories[category].bookings += 1
    categorised = sum(c.bookings for c in categories.values())
    for category in categories.values():
        category.percentage = category.bookings / categorised * 100 if categorised else 0.0

    underperforming = sum(
        1
        for s in services
        if normalize_status(_get(s, "status")) == "active" and bookings_per_service.get(_get(s, "id"), 0) < 2
    )

    ratings = [r for r in (coerce_number(_get(s, "rating")) for s in services) if r and r > 0]

    # User activity recency
    inactive = 0
    new = 0
    for user in users:
        if normalize_status(_get(user, "status")) != "active":
            continue
        last_active = parse_datetime(_get(user, "last_active"))
        if last_active and now - last_active > timedelta(days=INACTIVE_USER_DAYS):
            inactive += 1
        created_at = parse_datetime(_get(user, "created_at"))
        if created_at and now - created_at < timedelta(days=NEW_USER_DAYS):
            new += 1

    # Client spend
    spend: dict[int, ClientSpend] = {}
    for booking in booking_records:
        if booking.client_id is None:
            continue
        entry = spend.setdefault(
            booking.client_id,
            ClientSpend(client_id=booking.client_id, name=client_names.get(booking.client_id)),
        )
        entry.total += booking.amount
        entry.count += 1
    top_client = max(spend.values(), key=lambda c: c.total, default=None)

    # Month-over-month counts
    last_year, last_month = _previous_month(now)
    current_month_bookings = 0
    last_month_bookings = 0
    recent = 0
    for booking in booking_records:
        if booking.created_at is None:
            continue
        if (booking.created_at.year, booking.created_at.month) == (now.year, now.month):
            current_month_bookings += 1
        elif (booking.created_at.year, booking.created_at.month) == (last_year, last_month):
            last_month_bookings += 1
        if booking.created_at > now - timedelta(days=7):
            recent += 1

    return InsightStats(
        categories=sorted(categories.values(), key=lambda c: c.bookings, reverse=True),
        underperforming_services=underperforming,
        recent_bookings=recent,
        inactive_users=inactive,
        new_users=new,
        top_client=top_client,
        paid_revenue=sum(i.amount for i in invoice_records if i.status == "paid"),
        pending_revenue=sum(i.amount for i in invoice_records if i.status == "issued"),
        total_bookings=len(booking_records),
        completed_bookings=sum(1 for b in booking_records if b.raw_status == "completed"),
        current_month_bookings=current_month_bookings,
        last_month_bookings=last_month_bookings,
        average_rating=sum(ratings) / len(ratings) if ratings else 0.0,
        overdue_milestones=count_overdue(milestones, now),
    )


# ============================================================================
# PREDICATES
# ============================================================================


def category_demand(stats: InsightStats) -> Optional[Suggestion]:
    top = stats.categories[0] if stats.categories else None
    if not top or top.percentage <= 30:
        return None
    return Suggestion(
        id="service-category-demand",
        type="service",
        title=f"High Demand: {top.name} Services",
        description=(
            f"{top.name} services represent {top.percentage:.1f}% of all bookings. "
            "Consider adding more providers in this category."
        ),
        priority="high",
        confidence=85,
        metadata={"category": top.name, "percentage": top.percentage},
    )


def underperforming_services(stats: InsightStats) -> Optional[Suggestion]:
    if stats.underperforming_services <= 0:
        return None
    return Suggestion(
        id="underperforming-services",
        type="service",
        title="Underperforming Services Need Attention",
        description=(
            f"{stats.underperforming_services} services have fewer than 2 bookings. "
            "Consider reviewing their descriptions, pricing, or marketing."
        ),
        priority="medium",
        confidence=75,
        metadata={"count": stats.underperforming_services},
    )


def high_activity(stats: InsightStats) -> Optional[Suggestion]:
    if stats.recent_bookings <= 5:
        return None
    return Suggestion(
        id="new-service-opportunity",
        type="service",
        title="High Activity - Consider New Services",
        description=(
            f"{stats.recent_bookings} bookings in the last week. This high activity "
            "suggests demand for additional service categories."
        ),
        priority="medium",
        confidence=70,
        metadata={"recentBookings": stats.recent_bookings},
    )


def inactive_users(stats: InsightStats) -> Optional[Suggestion]:
    if stats.inactive_users <= 0:
        return None
    return Suggestion(
        id="inactive-users",
        type="user_retention",
        title="Re-engage Inactive Users",
        description=(
            f"{stats.inactive_users} users haven't been active in over {INACTIVE_USER_DAYS} days. "
            "Consider sending re-engagement emails or special offers."
        ),
        priority="high",
        confidence=90,
        metadata={"inactiveCount": stats.inactive_users},
    )


def high_value_client(stats: InsightStats) -> Optional[Suggestion]:
    client = stats.top_client
    if not client or client.total <= HIGH_VALUE_CLIENT_THRESHOLD:
        return None
    name = client.name or f"Client {client.client_id}"
    return Suggestion(
        id="high-value-client",
        type="user_engagement",
        title="High-Value Client Opportunity",
        description=(
            f"{name} has spent {client.total:g} {INSIGHTS_CURRENCY} across {client.count} bookings. "
            "Consider offering premium services or loyalty benefits."
        ),
        priority="medium",
        confidence=80,
        metadata={"totalSpent": client.total, "bookingCount": client.count, "targetUserId": client.client_id},
    )


def new_user_onboarding(stats: InsightStats) -> Optional[Suggestion]:
    if stats.new_users <= 0:
        return None
    return Suggestion(
        id="new-user-onboarding",
        type="user_growth",
        title="New Users Need Onboarding",
        description=(
            f"{stats.new_users} new users joined this week. Ensure they have a smooth "
            "onboarding experience and understand the platform."
        ),
        priority="high",
        confidence=95,
        metadata={"newUserCount": stats.new_users},
    )


def revenue_collection(stats: InsightStats) -> Optional[Suggestion]:
    if stats.pending_revenue <= 0 or stats.pending_revenue <= stats.paid_revenue * 0.3:
        return None
    share = stats.pending_revenue / (stats.paid_revenue + stats.pending_revenue) * 100
    return Suggestion(
        id="revenue-optimization",
        type="revenue",
        title="Revenue Collection Opportunity",
        description=(
            f"You have {stats.pending_revenue:g} {INSIGHTS_CURRENCY} in pending invoices "
            f"({share:.1f}% of total). Implement automated payment reminders to improve cash flow."
        ),
        priority="high",
        confidence=85,
        metadata={"pendingRevenue": stats.pending_revenue, "totalRevenue": stats.paid_revenue},
    )


def completion_rate(stats: InsightStats) -> Optional[Suggestion]:
    if stats.total_bookings == 0 or stats.completion_rate >= 80:
        return None
    return Suggestion(
        id="completion-rate-improvement",
        type="efficiency",
        title="Improve Booking Completion Rate",
        description=(
            f"Current completion rate is {stats.completion_rate:.1f}%. Consider implementing better "
            "project management tools or clearer expectations to improve completion rates."
        ),
        priority="medium",
        confidence=75,
        metadata={"completionRate": stats.completion_rate, "totalBookings": stats.total_bookings},
    )


def growth_momentum(stats: InsightStats) -> Optional[Suggestion]:
    growth = stats.monthly_growth
    if growth <= 20:
        return None
    return Suggestion(
        id="growth-acceleration",
        type="growth",
        title="Accelerate Growth Momentum",
        description=(
            f"You're experiencing {growth:.1f}% monthly growth. Consider scaling operations, "
            "adding more providers, or expanding service categories to capitalize on this momentum."
        ),
        priority="medium",
        confidence=80,
        metadata={"monthlyGrowth": growth},
    )


def service_quality(stats: InsightStats) -> Optional[Suggestion]:
    if stats.average_rating <= 0 or stats.average_rating >= 4.5:
        return None
    return Suggestion(
        id="quality-improvement",
        type="quality",
        title="Enhance Service Quality",
        description=(
            f"Average service rating is {stats.average_rating:.1f}/5. Consider implementing quality "
            "assurance processes, provider training, or customer feedback systems."
        ),
        priority="high",
        confidence=90,
        metadata={"averageRating": stats.average_rating},
    )


def overdue_work(stats: InsightStats) -> Optional[Suggestion]:
    if stats.overdue_milestones <= 0:
        return None
    return Suggestion(
        id="overdue-milestones",
        type="efficiency",
        title="Overdue Milestones Need Follow-up",
        description=(
            f"{stats.overdue_milestones} milestone(s) are past their due date. "
            "Check in with the providers and adjust timelines where needed."
        ),
        priority="high",
        confidence=88,
        metadata={"overdueMilestones": stats.overdue_milestones},
    )


PREDICATES: tuple[Callable[[InsightStats], Optional[Suggestion]], ...] = (
    category_demand,
    underperforming_services,
    high_activity,
    inactive_users,
    high_value_client,
    new_user_onboarding,
    revenue_collection,
    completion_rate,
    growth_momentum,
    service_quality,
    overdue_work,
)


def rank_suggestions(suggestions: Iterable[Suggestion]) -> list[Suggestion]:
    """High before medium before low, then higher confidence; ties keep insertion order"""
    return sorted(suggestions, key=lambda s: (-PRIORITY_RANK[s.priority], -s.confidence))


# ============================================================================
# ENGINE
# ============================================================================


@dataclass
class InsightContext:
    """
    Per-request state for the suggestion engine.

    reset() is the boundary: it runs at the start of every generation, so
    nothing from a previous run leaks into the next.
    """

    now: datetime = field(default_factory=utcnow)
    suggestions: list[Suggestion] = field(default_factory=list)
    last_generated: Optional[datetime] = None
    failed_predicates: list[str] = field(default_factory=list)

    def reset(self) -> None:
        self.suggestions = []
        self.failed_predicates = []


def generate_suggestions(stats: InsightStats, context: InsightContext) -> list[Suggestion]:
    """Evaluate every predicate and store the ranked result on the context"""
    context.reset()
    emitted: list[Suggestion] = []
    for predicate in PREDICATES:
        try:
            suggestion = predicate(stats)
        except Exception as e:
            context.failed_predicates.append(predicate.__name__)
            logger.error(f"❌ Insight predicate {predicate.__name__} failed: {e}")
            continue
        if suggestion is not None:
            emitted.append(suggestion)

    context.suggestions = rank_suggestions(emitted)
    context.last_generated = context.now
    logger.info(f"💡 Generated {len(context.suggestions)} suggestion(s)")
    return context.suggestions


def suggestion_stats(context: InsightContext) -> SuggestionStats:
    by_priority = {p: 0 for p in PRIORITY_RANK}
    by_type: dict[str, int] = defaultdict(int)
    for suggestion in context.suggestions:
        by_priority[suggestion.priority] += 1
        by_type[suggestion.type] += 1
    return SuggestionStats(
        total=len(context.suggestions),
        by_priority=by_priority,
        by_type=dict(by_type),
        last_generated=context.last_generated,
    )
