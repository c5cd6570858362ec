"""
Stale Order Sweep - cancels pending orders that were never paid

Each order is handled on its own session in a bounded worker pool; one order
failing is reported in its result and does not stop the others.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from order_saga.config import settings
from order_saga.repositories.order_repository import OrderRepository
from order_saga.schemas.order import SweepResult
from order_saga.services.notifier import Notifier
from order_saga.services.order_lifecycle import OrderLifecycleService
from order_saga.timeutils import utcnow

logger = logging.getLogger(__name__)

# Public text for a failed order; details stay in the log
SWEEP_ERROR_MESSAGE = "Failed to cancel order"


class StaleOrderSweeper:
    """Cancel pending orders older than the configured timeout"""
    
    def __init__(
        self,
        session_factory: Callable[[], Session],
        notifier: Optional[Notifier] = None,
        timeout_hours: int = None,
        max_workers: int = None
    ):
        self.session_factory = session_factory
        self.notifier = notifier or Notifier()
        self.timeout = timedelta(hours=timeout_hours or settings.STALE_ORDER_TIMEOUT_HOURS)
        self.max_workers = max(1, max_workers or settings.STALE_SWEEP_MAX_WORKERS)
    
    def find_stale(self, now: Optional[datetime] = None) -> List[int]:
        cutoff = (now or utcnow()) - self.timeout
        with self.session_factory() as db:
            return [order.id for order in OrderRepository(db).get_stale_pending(cutoff)]
    
    def _expire(self, order_id: int) -> SweepResult:
        try:
            with self.session_factory() as db:
                status = OrderLifecycleService(db, notifier=self.notifier).expire_order(order_id)
            return SweepResult(id=order_id, status=status)
        except Exception:
            logger.exception("Failed to cancel stale order %s", order_id)
            return SweepResult(id=order_id, status="error", error=SWEEP_ERROR_MESSAGE)
    
    def sweep(self, now: Optional[datetime] = None) -> List[SweepResult]:
        """
        Cancel every stale pending order
        
        Returns:
            One result per stale order, in the order they were found
        """
        order_ids = self.find_stale(now)
        if not order_ids:
            logger.info("No stale orders found")
            return []
        
        logger.info("Found %s stale orders to cancel", len(order_ids))
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(order_ids))) as pool:
            results = list(pool.map(self._expire, order_ids))
        
        failed = [r.id for r in results if r.status == "error"]
        if failed:
            logger.error("Stale sweep finished with %s failures: %s", len(failed), failed)
        return results
