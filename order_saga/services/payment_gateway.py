"""
Payment Gateway Adapter for Razorpay

Signature checks use constant-time comparison. Every HTTP call has a bounded
timeout; a timed-out call raises GatewayTimeout because the provider may still
have acted on it. Only connection failures (request never sent) are retried,
and refunds are never retried.
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from order_saga.config import settings
from order_saga.exceptions import GatewayError, GatewayTimeout, RefundFailed

logger = logging.getLogger(__name__)


def compute_signature(gateway_order_id: str, gateway_payment_id: str, secret: str) -> str:
    """HMAC-SHA256(secret, "<order_id>|<payment_id>") as lowercase hex"""
    message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(gateway_order_id: str, gateway_payment_id: str, signature: str, secret: str) -> bool:
    """True iff `signature` is the payment signature for this order/payment pair"""
    if not secret or not signature:
        return False
    expected = compute_signature(gateway_order_id, gateway_payment_id, secret)
    return hmac.compare_digest(expected, signature)


def verify_webhook_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """True iff `signature` is HMAC-SHA256(secret, raw body)"""
    if not secret or not signature:
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def to_paise(amount: float) -> int:
    return int(round(amount * 100))


@dataclass
class RefundResult:
    gateway_refund_id: str
    status: str
    amount: float
    raw: Dict[str, Any]


class RazorpayGateway:
    """Client for the Razorpay REST API"""
    
    def __init__(
        self,
        key_id: str = None,
        key_secret: str = None,
        base_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self._key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        self.base_url = (base_url or settings.RAZORPAY_API_URL).rstrip("/")
        self.timeout = timeout or settings.GATEWAY_TIMEOUT
        self._transport = transport
    
    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.key_id, self._key_secret),
            timeout=self.timeout,
            transport=self._transport
        )
    
    async def _send(self, method: str, path: str, payload: Optional[dict] = None) -> httpx.Response:
        async with self._client() as client:
            return await client.request(method, path, json=payload)
    
    @retry(
        stop=stop_after_attempt(settings.MAX_RETRIES),
        wait=wait_exponential(multiplier=settings.RETRY_DELAY, min=1, max=10),
        retry=retry_if_exception_type(httpx.ConnectError),
        reraise=True
    )
    async def _send_with_retry(self, method: str, path: str, payload: Optional[dict] = None) -> httpx.Response:
        return await self._send(method, path, payload)
    
    @staticmethod
    def _error_description(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        return (body.get("error") or {}).get("description") or f"status {response.status_code}"
    
    async def _call(self, method: str, path: str, payload: Optional[dict] = None, retry_connect: bool = True) -> httpx.Response:
        send = self._send_with_retry if retry_connect else self._send
        try:
            return await send(method, path, payload)
        except httpx.TimeoutException as e:
            logger.error("Razorpay %s %s timed out: %s", method, path, e)
            raise GatewayTimeout()
        except httpx.HTTPError as e:
            logger.error("Razorpay %s %s failed: %s", method, path, e)
            raise GatewayError()
    
    async def create_order(self, amount: float, receipt: str, notes: Optional[dict] = None, currency: str = None) -> Dict[str, Any]:
        """
        Create a gateway order for `amount` rupees
        
        Returns:
            Razorpay order entity (contains `id`)
        
        Raises:
            GatewayError, GatewayTimeout
        """
        payload = {
            "amount": to_paise(amount),
            "currency": currency or settings.CURRENCY,
            "receipt": receipt,
            "notes": notes or {},
        }
        response = await self._call("POST", "/orders", payload)
        if response.is_error:
            logger.error(
                "Razorpay order creation failed for receipt %s: %s %s",
                receipt, response.status_code, self._error_description(response)
            )
            raise GatewayError()
        return response.json()
    
    async def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        """Fetch a payment entity"""
        response = await self._call("GET", f"/payments/{payment_id}")
        if response.is_error:
            logger.error(
                "Razorpay fetch payment %s failed: %s %s",
                payment_id, response.status_code, self._error_description(response)
            )
            raise GatewayError(f"Razorpay API error: {response.status_code}")
        return response.json()
    
    async def refund(self, payment_id: str, amount: float) -> RefundResult:
        """
        Refund `amount` rupees of a captured payment
        
        Raises:
            RefundFailed: Provider rejected the refund (no money moved)
            GatewayTimeout: Outcome unknown; the refund may have happened
            GatewayError: Provider could not be reached
        """
        payload = {"amount": to_paise(amount), "speed": "normal"}
        response = await self._call("POST", f"/payments/{payment_id}/refund", payload, retry_connect=False)
        if response.is_error:
            description = self._error_description(response)
            logger.error("Razorpay refund failed for payment %s: %s", payment_id, description)
            raise RefundFailed(description)
        
        data = response.json()
        logger.info("Razorpay refund %s created for payment %s", data.get("id"), payment_id)
        return RefundResult(
            gateway_refund_id=data["id"],
            status=data.get("status", "processed"),
            amount=data.get("amount", to_paise(amount)) / 100,
            raw=data
        )
