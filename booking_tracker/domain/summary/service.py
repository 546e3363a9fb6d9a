"""Summary service - Dashboard KPIs with a hard fetch budget"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ...config import SUMMARY_DAYS_BACK, SUMMARY_FETCH_TIMEOUT_SECONDS, SUMMARY_MAX_ROWS
from ...database import SessionLocal
from ...shared.validators import utcnow
from .reducer import reduce_rows, zero_summary
from .repository import SummaryRepository
from .schemas import Summary, SummaryScope

logger = logging.getLogger(__name__)

STRATEGIES = ("auto", "fast", "rows")


class SummaryFetchTimeout(Exception):
    """A summary fetch ran past its wall-clock budget"""


def run_with_timeout(func: Callable, timeout: float, *args, **kwargs):
    """
    Run func in a worker thread and wait at most timeout seconds.

    Raises:
        SummaryFetchTimeout: when the budget expires; the worker is abandoned
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="summary-fetch")
    future = executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as e:
        raise SummaryFetchTimeout(f"summary fetch exceeded {timeout}s") from e
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


class SummaryService:
    """
    Service layer for the dashboard summary.

    Each fetch opens its own session from session_factory, since it runs on a
    worker thread that may be abandoned when the budget expires.
    """

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        timeout: float = SUMMARY_FETCH_TIMEOUT_SECONDS,
        days_back: int = SUMMARY_DAYS_BACK,
        max_rows: int = SUMMARY_MAX_ROWS,
    ):
        self.session_factory = session_factory
        self.timeout = timeout
        self.days_back = days_back
        self.max_rows = max_rows
        self.repo = SummaryRepository()

    def window_start(self, now: Optional[datetime] = None) -> datetime:
        return (now or utcnow()) - timedelta(days=self.days_back)

    def get_summary(self, scope: SummaryScope, strategy: str = "auto") -> Summary:
        """
        Compute the summary for a viewer.

        Never raises for fetch problems: a timeout or database error returns the
        zero-filled summary, which has the same shape as a real one.
        """
        if strategy not in STRATEGIES:
            raise ValueError(f"strategy must be one of {STRATEGIES}")
        try:
            return run_with_timeout(self._compute, self.timeout, scope, strategy)
        except SummaryFetchTimeout as e:
            logger.warning(f"⏱️ Summary for {scope.role}:{scope.user_id} timed out: {e}")
        except SQLAlchemyError as e:
            logger.error(f"❌ Summary query failed for {scope.role}:{scope.user_id}: {e}")
        return zero_summary()

    def _compute(self, scope: SummaryScope, strategy: str) -> Summary:
        db = self.session_factory()
        try:
            since = self.window_start()
            if strategy == "rows":
                return self.row_summary(db, scope, since)
            if strategy == "fast":
                return self.repo.fast_summary(db, scope, since, self.max_rows)
            return self._auto_summary(db, scope, since)
        finally:
            db.close()

    def _auto_summary(self, db: Session, scope: SummaryScope, since: datetime) -> Summary:
        """Fast path when the view has rows for this window, row-by-row otherwise"""
        try:
            if self.repo.count_view_rows(db, scope, since) > 0:
                return self.repo.fast_summary(db, scope, since, self.max_rows)
            logger.info("ℹ️ Display-status view empty, computing summary row by row")
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Fast summary path failed, falling back to rows: {e}")
            db.rollback()
        return self.row_summary(db, scope, since)

    def row_summary(self, db: Session, scope: SummaryScope, since: datetime) -> Summary:
        """Row-by-row reference computation"""
        bookings = self.repo.get_bookings(db, scope, since, self.max_rows)
        invoices = self.repo.get_invoices(db, scope, since, self.max_rows)
        status_invoices = self.repo.get_invoices_for_bookings(db, [b.id for b in bookings])
        summary = reduce_rows(bookings, invoices, status_invoices)
        logger.info(
            f"📊 Summary computed: total={summary.total}, revenue={summary.totalRevenue}, "
            f"bookings={len(bookings)}, invoices={len(invoices)}"
        )
        return summary

    def refresh_view(self) -> int:
        """Rebuild the whole display-status view"""
        db = self.session_factory()
        try:
            return self.repo.refresh_display_status_view(db)
        finally:
            db.close()
