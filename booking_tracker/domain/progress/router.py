"""Progress router - FastAPI endpoints for booking progress"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import SessionLocal, get_db
from ...services.change_consumer import ChangeConsumer, ConsumerReport
from .schemas import BookingProgressResponse, ChangeEvent
from .service import ProgressService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/progress", tags=["Progress"])


def get_progress_service(db: Session = Depends(get_db)) -> ProgressService:
    """Dependency injection for ProgressService"""
    return ProgressService(db)


def get_change_consumer() -> ChangeConsumer:
    """Dependency injection for ChangeConsumer"""
    return ChangeConsumer(SessionLocal)


@router.get("/{booking_id}", response_model=BookingProgressResponse)
async def get_booking_progress(
    booking_id: int,
    service: ProgressService = Depends(get_progress_service),
):
    """Progress, display status, deadlines and risks for one booking; read-only"""
    return service.get_booking_progress(booking_id, persist=False)


@router.post("/{booking_id}/recalculate", response_model=BookingProgressResponse)
async def recalculate_booking_progress(
    booking_id: int,
    service: ProgressService = Depends(get_progress_service),
):
    """Recompute progress from current tasks and persist it"""
    logger.info(f"🔄 Recalculating progress for booking {booking_id}")
    return service.get_booking_progress(booking_id, persist=True)


@router.post("/events", response_model=ConsumerReport)
async def ingest_change_event(
    event: ChangeEvent,
    consumer: ChangeConsumer = Depends(get_change_consumer),
):
    """Feed one realtime change notification through the consumer"""
    return consumer.consume([event])
