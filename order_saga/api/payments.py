"""
Payment endpoints: refunds, payment sync and the provider webhook
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session

from order_saga.api.dependencies import get_current_user_id, get_gateway, get_notifier
from order_saga.api.orders import get_order_service
from order_saga.config import settings
from order_saga.database import get_db
from order_saga.exceptions import ValidationError
from order_saga.schemas.payment import (
    RefundRequest,
    RefundResponse,
    FetchPaymentRequest,
    FetchPaymentResponse,
    WebhookResponse
)
from order_saga.services.notifier import Notifier
from order_saga.services.order_lifecycle import OrderLifecycleService
from order_saga.services.payment_gateway import RazorpayGateway, verify_webhook_signature
from order_saga.services.refund_service import RefundService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


def get_refund_service(
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_gateway),
    notifier: Notifier = Depends(get_notifier)
) -> RefundService:
    """Dependency to get RefundService instance"""
    return RefundService(db, gateway=gateway, notifier=notifier)


@router.post("/process-refund", response_model=RefundResponse, summary="Refund a captured payment")
async def process_refund(
    request: RefundRequest,
    user_id: str = Depends(get_current_user_id),
    service: RefundService = Depends(get_refund_service)
):
    """
    Admin only. Refunds `amount` of a captured payment through the gateway.
    
    - **paymentId**: Razorpay payment id
    - **amount**: Amount in rupees
    """
    return await service.process_refund(user_id, request.payment_id, request.amount, request.reason)


@router.post("/fetch-payment", response_model=FetchPaymentResponse, summary="Sync a payment from the gateway")
async def fetch_payment(
    request: FetchPaymentRequest,
    user_id: str = Depends(get_current_user_id),
    service: RefundService = Depends(get_refund_service)
):
    """
    Admin only. Fetches a payment from the gateway and updates the local transaction.
    """
    return await service.fetch_payment(user_id, request.payment_id)


@router.post("/razorpay-webhook", response_model=WebhookResponse, summary="Payment provider webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    service: OrderLifecycleService = Depends(get_order_service)
):
    """
    Receive payment events from the provider
    
    The body must be signed with the webhook secret. `payment.captured` marks
    the order paid, `payment.failed` fails the transaction; redelivered events
    are no-ops.
    """
    body = await request.body()
    if not verify_webhook_signature(body, x_razorpay_signature, settings.RAZORPAY_WEBHOOK_SECRET):
        logger.error("Invalid webhook signature")
        raise ValidationError("Invalid signature")
    
    try:
        event = json.loads(body)
        entity = event["payload"]["payment"]["entity"]
    except (ValueError, KeyError, TypeError):
        event, entity = {}, None
    
    event_type = event.get("event")
    if not isinstance(entity, dict) or not entity.get("order_id"):
        logger.info("Ignoring webhook event %s without payment entity", event_type)
        return WebhookResponse(outcome="ignored")
    
    if event_type == "payment.captured" and entity.get("id"):
        outcome = service.capture_from_webhook(entity["order_id"], entity["id"], entity.get("method"))
    elif event_type == "payment.failed":
        outcome = service.fail_from_webhook(entity["order_id"])
    else:
        outcome = "ignored"
    
    logger.info("Webhook %s for gateway order %s: %s", event_type, entity.get("order_id"), outcome)
    return WebhookResponse(outcome=outcome)
