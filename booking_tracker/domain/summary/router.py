"""Summary router - Dashboard KPI endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from .schemas import Summary, SummaryScope
from .service import SummaryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Summary"])


def get_summary_service() -> SummaryService:
    """Dependency injection for SummaryService"""
    return SummaryService()


@router.get("/summary", response_model=Summary)
async def get_booking_summary(
    role: str = Query("admin"),
    user_id: Optional[int] = Query(None),
    strategy: str = Query("auto", pattern="^(auto|fast|rows)$"),
    service: SummaryService = Depends(get_summary_service),
):
    """KPI summary over the trailing window; zero-filled when the store is too slow"""
    try:
        scope = SummaryScope(role=role, user_id=user_id)
    except ValidationError:
        raise HTTPException(status_code=403, detail="Insufficient role")
    if scope.role != "admin" and scope.user_id is None:
        raise HTTPException(status_code=400, detail="user_id is required for client and provider views")
    return service.get_summary(scope, strategy=strategy)


@router.post("/summary/refresh")
async def refresh_summary_view(service: SummaryService = Depends(get_summary_service)):
    """Rebuild the materialized display-status view"""
    refreshed = service.refresh_view()
    logger.info(f"✅ Display-status view rebuilt ({refreshed} rows)")
    return {"refreshed": refreshed}
