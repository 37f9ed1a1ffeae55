"""
Razorpay Payment Gateway Implementation.

Creates Razorpay orders over the REST API; the customer pays through
Razorpay Checkout (cards, UPI, netbanking) and the client hands back the
signed payment id, which `confirm` verifies. Webhooks carry an
`X-Razorpay-Signature` HMAC of the raw body.
"""
import hashlib
import hmac
import json
import logging
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

import aiohttp

from fulfillment.application.interfaces import (
    ChargeResult,
    ChargeStatus,
    GatewayEvent,
    GatewayEventType,
    IPaymentGateway,
    RefundResult,
)
from fulfillment.domain.entities.order import Order
from fulfillment.domain.errors import PaymentGatewayError, ValidationError
from fulfillment.settings.modules.payment_settings import PaymentSettings
from orchestration.workflow import RetryPolicy

from ._headers import header_value
from .retry import GatewayServerError, call_with_retries
from .stripe_gateway import from_minor_units, to_minor_units

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Razorpay-Signature"

_PAYMENT_STATUSES = {
    "captured": ChargeStatus.SUCCEEDED,
    "authorized": ChargeStatus.PENDING,
    "created": ChargeStatus.PENDING,
    "failed": ChargeStatus.FAILED,
}


def _sign(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class RazorpayGateway(IPaymentGateway):
    """Razorpay Orders adapter; also serves UPI payments."""

    name = "razorpay"

    def __init__(self, settings: PaymentSettings):
        if not settings.razorpay_key_id or not settings.razorpay_key_secret:
            raise ValueError("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET must be set for Razorpay")
        self.key_id = settings.razorpay_key_id
        self.key_secret = settings.razorpay_key_secret
        self.webhook_secret = settings.razorpay_webhook_secret
        self.api_base = settings.razorpay_api_base.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=settings.gateway_timeout_seconds)
        self.retry_policy = RetryPolicy(
            max_attempts=settings.gateway_max_attempts,
            backoff_seconds=settings.gateway_backoff_seconds,
        )
        logger.info("RazorpayGateway initialized")

    async def _request(
        self, method: str, path: str, payload: Optional[Dict[str, Any]] = None
    ) -> Tuple[int, Dict[str, Any]]:
        async with aiohttp.ClientSession(
            timeout=self.timeout, auth=aiohttp.BasicAuth(self.key_id, self.key_secret)
        ) as session:
            async with session.request(method, f"{self.api_base}{path}", json=payload) as response:
                if response.status >= 500:
                    raise GatewayServerError(response.status, await response.text())
                body = await response.json(content_type=None)
                return response.status, body or {}

    async def _call(
        self, method: str, path: str, description: str, payload: Optional[Dict[str, Any]] = None
    ) -> Tuple[int, Dict[str, Any]]:
        return await call_with_retries(
            lambda: self._request(method, path, payload), self.retry_policy, description
        )

    @staticmethod
    def _error(body: Dict[str, Any], status: int) -> str:
        return (body.get("error") or {}).get("description") or f"HTTP {status}"

    async def charge(self, order: Order, payment_details: Dict[str, Any]) -> ChargeResult:
        order_number = order.order_number.value
        amount = to_minor_units(order.total.amount)
        status, body = await self._call(
            "POST",
            "/orders",
            f"razorpay order for {order_number}",
            {
                "amount": amount,
                "currency": order.total.currency,
                "receipt": order_number[:40],
                "notes": {"order_number": order_number},
            },
        )
        if status >= 400:
            raise PaymentGatewayError(f"Razorpay rejected order: {self._error(body, status)}")

        # The client opens Razorpay Checkout with these values.
        return ChargeResult(
            status=ChargeStatus.PENDING,
            gateway_transaction_id=body.get("id"),
            metadata={
                "razorpay_order_id": body.get("id"),
                "key_id": self.key_id,
                "amount": amount,
                "currency": order.total.currency,
            },
        )

    async def confirm(
        self, gateway_transaction_id: str, confirmation: Dict[str, Any]
    ) -> ChargeResult:
        """Verify the Checkout handler's signature and read the payment status."""
        payment_id = confirmation.get("razorpay_payment_id")
        signature = confirmation.get("razorpay_signature")
        if not payment_id or not signature:
            raise ValidationError("razorpay_payment_id and razorpay_signature are required.")
        claimed_order = confirmation.get("razorpay_order_id")
        if claimed_order and claimed_order != gateway_transaction_id:
            raise ValidationError("Razorpay payment does not belong to this order.")

        expected = _sign(self.key_secret, f"{gateway_transaction_id}|{payment_id}".encode("utf-8"))
        if not hmac.compare_digest(expected, str(signature)):
            raise ValidationError("Razorpay payment signature mismatch.")

        status, body = await self._call(
            "GET", f"/payments/{payment_id}", f"razorpay payment lookup for {payment_id}"
        )
        if status >= 400:
            raise PaymentGatewayError(f"Razorpay payment lookup failed: {self._error(body, status)}")
        return ChargeResult(
            status=_PAYMENT_STATUSES.get(body.get("status"), ChargeStatus.PENDING),
            gateway_transaction_id=gateway_transaction_id,
            metadata={"razorpay_payment_id": payment_id, "method": body.get("method")},
        )

    async def refund(
        self,
        gateway_transaction_id: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
    ) -> RefundResult:
        status, body = await self._call(
            "GET",
            f"/orders/{gateway_transaction_id}/payments",
            f"razorpay payments for {gateway_transaction_id}",
        )
        captured = [p for p in body.get("items") or [] if p.get("status") == "captured"]
        if status >= 400 or not captured:
            return RefundResult(success=False, error="No captured Razorpay payment to refund")
        payment_id = captured[0]["id"]

        # A retried refund finds the one it already created.
        status, body = await self._call(
            "GET", f"/payments/{payment_id}/refunds", f"razorpay refunds for {payment_id}"
        )
        for existing in body.get("items") or []:
            if (existing.get("notes") or {}).get("idempotency_key") == idempotency_key:
                return RefundResult(success=True, refund_id=existing.get("id"))

        status, body = await self._call(
            "POST",
            f"/payments/{payment_id}/refund",
            "razorpay refund",
            {"amount": to_minor_units(amount), "notes": {"idempotency_key": idempotency_key}},
        )
        if status >= 400:
            message = self._error(body, status)
            logger.error(f"Razorpay refund rejected: {message}")
            return RefundResult(success=False, error=message)
        if body.get("status") in ("processed", "pending"):
            return RefundResult(success=True, refund_id=body.get("id"))
        return RefundResult(success=False, refund_id=body.get("id"), error=body.get("status"))

    async def verify_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        if not self.webhook_secret:
            logger.error("RAZORPAY_WEBHOOK_SECRET not configured, rejecting webhook")
            return False
        signature = header_value(headers, SIGNATURE_HEADER)
        if not signature:
            return False
        return hmac.compare_digest(_sign(self.webhook_secret, payload), signature)

    def parse_event(self, payload: bytes) -> Optional[GatewayEvent]:
        try:
            data = json.loads(payload)
            event_type = data["event"]
            entities = data["payload"]
        except (ValueError, KeyError, TypeError) as e:
            raise ValidationError("Malformed webhook payload") from e

        payment = (entities.get("payment") or {}).get("entity") or {}
        if event_type == "order.paid":
            order = (entities.get("order") or {}).get("entity") or {}
            return self._event(GatewayEventType.SUCCEEDED, order.get("id"), data, order.get("amount_paid"))
        if event_type == "payment.captured":
            return self._event(GatewayEventType.SUCCEEDED, payment.get("order_id"), data, payment.get("amount"))
        if event_type == "payment.failed":
            return self._event(GatewayEventType.FAILED, payment.get("order_id"), data)
        if event_type == "refund.processed":
            return self._event(
                GatewayEventType.REFUNDED, payment.get("order_id"), data, payment.get("amount_refunded")
            )

        logger.info(f"Ignoring Razorpay event type {event_type!r}")
        return None

    def _event(
        self,
        event_type: GatewayEventType,
        razorpay_order_id: Optional[str],
        data: Dict[str, Any],
        minor_amount: Any = None,
    ) -> GatewayEvent:
        if not razorpay_order_id:
            raise ValidationError("Razorpay webhook payload has no order id")
        return GatewayEvent(
            gateway=self.name,
            event_type=event_type,
            gateway_transaction_id=razorpay_order_id,
            event_id=f"{data['event']}:{razorpay_order_id}:{data.get('created_at', '')}",
            amount=from_minor_units(minor_amount),
        )
