"""
Order lifecycle endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from order_saga.api.dependencies import (
    get_current_user_id,
    get_user_email,
    get_gateway,
    get_notifier,
    verify_cron_secret,
)
from order_saga.database import get_db, get_session_factory
from order_saga.schemas.order import (
    OrderCreate,
    OrderAction,
    VerifyPaymentRequest,
    CreateOrderResponse,
    ActionResponse,
    SweepResponse
)
from order_saga.services.notifier import Notifier
from order_saga.services.order_lifecycle import OrderLifecycleService
from order_saga.services.payment_gateway import RazorpayGateway
from order_saga.services.stale_sweep import StaleOrderSweeper

router = APIRouter(tags=["orders"])


def get_order_service(
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_gateway),
    notifier: Notifier = Depends(get_notifier)
) -> OrderLifecycleService:
    """Dependency to get OrderLifecycleService instance"""
    return OrderLifecycleService(db, gateway=gateway, notifier=notifier)


@router.post("/create-order", response_model=CreateOrderResponse, summary="Checkout the cart")
async def create_order(
    order_data: OrderCreate,
    user_id: str = Depends(get_current_user_id),
    user_email: Optional[str] = Depends(get_user_email),
    service: OrderLifecycleService = Depends(get_order_service)
):
    """
    Create a pending order from the caller's cart
    
    Process:
    1. Price the cart from the catalog and apply the coupon
    2. Reserve inventory (all-or-nothing)
    3. Save the order and its items
    4. Create the gateway order and the payment transaction
    
    - **shippingAddress**: address_line_1, city and pincode are required
    - **couponCode**: Coupon code (optional)
    - **email**: Customer email (optional)
    """
    if order_data.customer_email is None and user_email:
        order_data.customer_email = user_email
    return await service.create_order(user_id, order_data)


@router.post("/verify-payment", response_model=ActionResponse, summary="Verify a gateway payment")
def verify_payment(
    request: VerifyPaymentRequest,
    user_id: str = Depends(get_current_user_id),
    service: OrderLifecycleService = Depends(get_order_service)
):
    """
    Verify the payment signature and mark the order paid
    
    - **orderId**: Order ID
    - **gatewayOrderId**: Razorpay order id
    - **gatewayPaymentId**: Razorpay payment id
    - **signature**: Razorpay payment signature
    """
    return service.verify_payment(user_id, request)


@router.post("/cancel-order", response_model=ActionResponse, summary="Cancel a pending order")
def cancel_order(
    request: OrderAction,
    user_id: str = Depends(get_current_user_id),
    service: OrderLifecycleService = Depends(get_order_service)
):
    """
    Cancel the caller's pending order and release its inventory
    
    Cancelling an order that is already paid or cancelled succeeds without changes.
    """
    return service.cancel_order(user_id, request.order_id)


@router.post("/admin-bypass-payment", summary="Mark an order paid without gateway confirmation")
def admin_bypass_payment(
    request: OrderAction,
    user_id: str = Depends(get_current_user_id),
    service: OrderLifecycleService = Depends(get_order_service)
):
    """
    Admin only. Forces a pending order to paid and issues its invoice.
    """
    return service.admin_override(user_id, request.order_id)


@router.post(
    "/cleanup-stale-orders",
    response_model=SweepResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(verify_cron_secret)],
    summary="Cancel stale pending orders"
)
def cleanup_stale_orders(
    session_factory=Depends(get_session_factory),
    notifier: Notifier = Depends(get_notifier)
):
    """
    Scheduler entry point. Cancels pending orders older than the stale timeout.
    
    Returns a per-order result list; a failed order does not stop the others.
    Cancellation notices are published after the response is sent.
    """
    sweeper = StaleOrderSweeper(session_factory, notifier=notifier)
    results = sweeper.sweep()
    return SweepResponse(count=len(results), results=results)
