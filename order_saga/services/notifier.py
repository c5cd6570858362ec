"""
Notifier - fire-and-forget customer and admin notifications

Handlers call the Notifier after their state changes are committed. Each call
publishes an event for the notification consumer; when a `schedule` callable is
given (FastAPI's BackgroundTasks.add_task) publishing runs after the response
has been sent. Failures are logged and never propagate to the handler.
"""
import logging
from typing import Callable, Dict, List, Optional

from order_saga.publishers.event_publisher import EventPublisher

logger = logging.getLogger(__name__)


class Notifier:
    """Publishes notification events without ever failing the caller"""
    
    def __init__(self, publisher: Optional[EventPublisher] = None, schedule: Optional[Callable] = None):
        self.publisher = publisher or EventPublisher()
        self.schedule = schedule
    
    def _publish(self, event_type: str, routing_key: str, data: Dict) -> bool:
        try:
            published = self.publisher.publish(event_type, routing_key, data)
        except Exception:
            logger.exception("Notification %s failed", event_type)
            return False
        if not published:
            logger.warning("Notification %s was not published: %s", event_type, data.get("order_id"))
        return published
    
    def _dispatch(self, event_type: str, routing_key: str, data: Dict) -> None:
        if self.schedule is None:
            self._publish(event_type, routing_key, data)
            return
        try:
            self.schedule(self._publish, event_type, routing_key, data)
        except Exception:
            logger.exception("Could not schedule notification %s", event_type)
    
    def send_order_confirmation(self, order: Dict) -> None:
        self._dispatch("OrderConfirmed", "order.confirmed", order)
    
    def send_cancellation_notice(self, order: Dict) -> None:
        self._dispatch("OrderCancelled", "order.cancelled", order)
    
    def send_refund_receipt(self, refund: Dict) -> None:
        self._dispatch("RefundProcessed", "refund.processed", refund)
    
    def send_return_received(self, return_request: Dict) -> None:
        self._dispatch("ReturnCreated", "return.created", return_request)
    
    def send_low_stock_alert(self, items: List[Dict]) -> None:
        self._dispatch("LowStockDetected", "inventory.low_stock", {"items": items})
