"""Insights router - Ranked dashboard suggestions"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from .heuristics import InsightContext
from .schemas import SuggestionsResponse
from .service import InsightService

router = APIRouter(prefix="/insights", tags=["Insights"])


def get_insight_service(db: Session = Depends(get_db)) -> InsightService:
    """Dependency injection for InsightService; a fresh context per request"""
    return InsightService(db, InsightContext())


@router.get("/suggestions", response_model=SuggestionsResponse)
async def get_suggestions(service: InsightService = Depends(get_insight_service)):
    """Suggestions ranked by priority, then confidence"""
    return service.get_suggestions()
