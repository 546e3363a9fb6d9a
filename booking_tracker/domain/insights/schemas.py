"""Insight domain schemas - Pydantic models for suggestions and their inputs"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}


class Suggestion(BaseModel):
    id: str
    type: str  # service, user_retention, user_engagement, user_growth, revenue, efficiency, growth, quality
    title: str
    description: str
    priority: str
    confidence: int  # 0-100
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: str) -> str:
        if v not in PRIORITY_RANK:
            raise ValueError("priority must be 'high', 'medium' or 'low'")
        return v


class CategoryShare(BaseModel):
    name: str
    services: int = 0
    bookings: int = 0
    percentage: float = 0.0  # Share of all categorised bookings


class ClientSpend(BaseModel):
    client_id: int
    name: Optional[str] = None
    total: float = 0.0
    count: int = 0


class InsightStats(BaseModel):
    """Aggregate statistics the heuristics run against"""

    categories: list[CategoryShare] = Field(default_factory=list)
    underperforming_services: int = 0
    recent_bookings: int = 0
    inactive_users: int = 0
    new_users: int = 0
    top_client: Optional[ClientSpend] = None
    paid_revenue: float = 0.0
    pending_revenue: float = 0.0
    total_bookings: int = 0
    completed_bookings: int = 0
    current_month_bookings: int = 0
    last_month_bookings: int = 0
    average_rating: float = 0.0
    overdue_milestones: int = 0

    @property
    def completion_rate(self) -> float:
        if not self.total_bookings:
            return 0.0
        return self.completed_bookings / self.total_bookings * 100

    @property
    def monthly_growth(self) -> float:
        if self.last_month_bookings == 0:
            return 100.0 if self.current_month_bookings > 0 else 0.0
        return (self.current_month_bookings - self.last_month_bookings) / self.last_month_bookings * 100


class SuggestionStats(BaseModel):
    total: int = 0
    by_priority: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)
    last_generated: Optional[datetime] = None


class SuggestionsResponse(BaseModel):
    suggestions: list[Suggestion] = Field(default_factory=list)
    stats: SuggestionStats = Field(default_factory=SuggestionStats)
