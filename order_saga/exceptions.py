"""
Error taxonomy for order lifecycle handlers

Every error carries the HTTP status code it maps to and a public message that is
safe to return to the caller. Internal detail belongs in the server log.
"""


class OrderSagaError(Exception):
    """Base exception for order lifecycle errors"""
    status_code = 400
    public_message = "Unable to process the request"
    
    def __init__(self, message: str = None):
        super().__init__(message or self.public_message)
    
    @property
    def message(self) -> str:
        return str(self)


class ValidationError(OrderSagaError):
    """Malformed input or missing required field"""
    status_code = 400
    public_message = "Invalid request"


class AuthenticationError(OrderSagaError):
    """Caller identity missing"""
    status_code = 401
    public_message = "Authentication required"


class AuthorizationError(OrderSagaError):
    """Caller is not the owner or not an admin"""
    status_code = 403
    public_message = "Unauthorized"


class NotFoundError(OrderSagaError):
    """Referenced row does not exist"""
    status_code = 404
    public_message = "Not found"


class InvalidTransitionError(OrderSagaError):
    """Order is not in a state that allows the requested transition"""
    status_code = 409
    public_message = "Order cannot be updated in its current state"


class OversellError(OrderSagaError):
    """Inventory would go negative"""
    status_code = 409
    public_message = "Some items in your cart are no longer available."
    
    def __init__(self, product_id: int, variant_id: int = None, requested: int = 0, message: str = None):
        self.product_id = product_id
        self.variant_id = variant_id
        self.requested = requested
        self.applied = []
        super().__init__(message)


class RateLimitExceeded(OrderSagaError):
    """Too many pending orders for one user"""
    status_code = 429
    public_message = "You have too many pending orders. Please complete or cancel them before creating a new one."


class CouponError(OrderSagaError):
    """Base coupon error"""
    status_code = 400
    public_message = "Coupon cannot be applied"


class CouponNotFound(CouponError):
    public_message = "Coupon not found"


class CouponExpired(CouponError):
    public_message = "Coupon has expired"


class CouponLimitReached(CouponError):
    public_message = "Coupon usage limit reached"


class CouponNotEligible(CouponError):
    public_message = "Coupon is not applicable to this order"


class PaymentVerificationFailed(OrderSagaError):
    """Gateway signature mismatch; no state was changed"""
    status_code = 400
    public_message = "Payment could not be verified. Please contact support if amount was deducted."


class GatewayError(OrderSagaError):
    """Payment provider returned an error or could not be reached"""
    status_code = 502
    public_message = "Payment service temporarily unavailable. Please try again."


class GatewayTimeout(GatewayError):
    """Payment provider call timed out; the outcome is unknown"""
    status_code = 504
    public_message = "Payment service did not respond. The outcome is unknown; check the payment before retrying."


class RefundFailed(GatewayError):
    """Payment provider rejected the refund"""
    status_code = 502
    public_message = "Failed to process refund with the payment provider"
