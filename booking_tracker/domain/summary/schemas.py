"""Summary domain schemas - Pydantic models for the dashboard KPIs"""

from typing import Optional

from pydantic import BaseModel, field_validator

VIEWER_ROLES = {"client", "provider", "admin"}


class Summary(BaseModel):
    """
    Dashboard KPI summary. The fast path, the row-by-row path and the
    zero-filled fallback all return exactly this shape.
    """

    total: int = 0
    completed: int = 0
    inProgress: int = 0
    approved: int = 0
    pending: int = 0
    readyToLaunch: int = 0
    totalRevenue: float = 0
    projectedBillings: float = 0
    pendingApproval: int = 0
    avgCompletionTime: float = 0


class SummaryScope(BaseModel):
    """Which bookings a viewer may see: clients and providers only their own"""

    role: str = "admin"
    user_id: Optional[int] = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        if v not in VIEWER_ROLES:
            raise ValueError(f"role must be one of {sorted(VIEWER_ROLES)}")
        return v
