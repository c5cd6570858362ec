"""
Shared FastAPI dependencies
"""
import hmac
from typing import Optional

from fastapi import BackgroundTasks, Depends, Header

from order_saga.config import settings
from order_saga.exceptions import AuthenticationError, AuthorizationError
from order_saga.publishers.event_publisher import EventPublisher
from order_saga.services.notifier import Notifier
from order_saga.services.payment_gateway import RazorpayGateway


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller id forwarded by the authenticating gateway"""
    if not x_user_id:
        raise AuthenticationError()
    return x_user_id


def get_optional_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    return x_user_id or None


def get_user_email(x_user_email: Optional[str] = Header(None)) -> Optional[str]:
    """Email forwarded by the authenticating gateway, when it has one"""
    return x_user_email or None


def verify_cron_secret(x_cron_secret: Optional[str] = Header(None)) -> None:
    """Scheduler routes require the shared secret when one is configured"""
    if not settings.CRON_SECRET:
        return
    if not x_cron_secret or not hmac.compare_digest(x_cron_secret, settings.CRON_SECRET):
        raise AuthorizationError()


def get_gateway() -> RazorpayGateway:
    return RazorpayGateway()


def get_event_publisher() -> EventPublisher:
    return EventPublisher()


def get_notifier(
    background_tasks: BackgroundTasks,
    publisher: EventPublisher = Depends(get_event_publisher)
) -> Notifier:
    """Notifier that publishes after the response has been sent"""
    return Notifier(publisher, schedule=background_tasks.add_task)
