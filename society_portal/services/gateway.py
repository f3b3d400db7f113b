"""Payment gateway client and callback signature verification.

The gateway client is built once from settings at application startup and
injected into routes via get_payment_gateway(), so tests can substitute a
fake implementing the same create_order() coroutine.
"""

import asyncio
import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import razorpay
import requests
from fastapi import HTTPException, Request
from razorpay import errors as razorpay_errors

from society_portal.config import Settings
from society_portal.errors import GatewayError

logger = logging.getLogger(__name__)

MINOR_UNITS_PER_MAJOR = 100


@dataclass
class OrderHandle:
    """Gateway order as returned to the checkout page."""

    order_id: str
    amount: int
    """Amount in minor currency units (paise for INR)."""
    currency: str
    receipt: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to integer minor units, rounding half up."""
    minor = Decimal(amount) * MINOR_UNITS_PER_MAJOR
    return int(minor.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def sign_payment(order_id: str, payment_id: str, secret: str) -> str:
    """HMAC-SHA256 hex digest of "order_id|payment_id" keyed by secret."""
    message = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def verify_payment_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """Check a gateway callback signature.

    Returns:
        True if signature matches the expected digest, False otherwise
    """
    if not order_id or not payment_id or not signature or not secret:
        return False
    expected = sign_payment(order_id, payment_id, secret)
    return hmac.compare_digest(expected.encode(), signature.encode())


class PaymentGateway:
    """Interface for payment gateway clients."""

    async def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> OrderHandle:
        raise NotImplementedError


class RazorpayGateway(PaymentGateway):
    """Razorpay orders API client."""

    def __init__(self, key_id: str, key_secret: str, client: Any = None):
        self.key_id = key_id
        self._client = client or razorpay.Client(auth=(key_id, key_secret))

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayGateway":
        settings.validate_gateway()
        return cls(settings.razorpay_key_id, settings.razorpay_key_secret)

    async def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> OrderHandle:
        """Create an order on Razorpay.

        The SDK is blocking, so the call runs in a worker thread.

        Raises:
            GatewayError: Gateway rejected the order or was unreachable
        """
        order_data = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        try:
            order = await asyncio.to_thread(self._client.order.create, data=order_data)
        except (
            razorpay_errors.BadRequestError,
            razorpay_errors.GatewayError,
            razorpay_errors.ServerError,
            requests.RequestException,
        ) as e:
            logger.error("Razorpay order creation failed: receipt=%s error=%s", receipt, e)
            raise GatewayError(f"Could not create payment order: {e}") from e

        if not order or "id" not in order:
            logger.error("Razorpay returned an order without id: receipt=%s", receipt)
            raise GatewayError("Payment gateway returned an invalid order")

        return OrderHandle(
            order_id=order["id"],
            amount=int(order.get("amount", amount_minor)),
            currency=order.get("currency", currency),
            receipt=order.get("receipt", receipt),
            raw=order,
        )


def get_payment_gateway(request: Request) -> PaymentGateway:
    """FastAPI dependency returning the application's gateway client."""
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        logger.error("Payment gateway not initialized")
        raise HTTPException(status_code=503, detail="Payment gateway not initialized")
    return gateway


__all__ = [
    "OrderHandle",
    "PaymentGateway",
    "RazorpayGateway",
    "get_payment_gateway",
    "sign_payment",
    "to_minor_units",
    "verify_payment_signature",
]
