"""
Stripe Payment Gateway Implementation.

Talks to the Stripe REST API with aiohttp (form-encoded requests) and
verifies `Stripe-Signature` webhook headers.
"""
import hashlib
import hmac
import json
import logging
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import uuid4

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

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"

_INTENT_STATUSES = {
    "succeeded": ChargeStatus.SUCCEEDED,
    "processing": ChargeStatus.PENDING,
    "requires_action": ChargeStatus.PENDING,
    "requires_confirmation": ChargeStatus.PENDING,
    "requires_capture": ChargeStatus.PENDING,
    "requires_payment_method": ChargeStatus.FAILED,
    "canceled": ChargeStatus.FAILED,
}


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return (Decimal(int(value)) / 100).quantize(Decimal("0.01"))


class StripeGateway(IPaymentGateway):
    """Stripe PaymentIntents adapter."""

    name = "stripe"

    def __init__(self, settings: PaymentSettings):
        """
        Initialize Stripe gateway.

        Args:
            settings: Payment settings with API key, webhook secret and retry limits
        """
        if not settings.stripe_api_key:
            raise ValueError("STRIPE_SECRET_KEY must be set for the Stripe gateway")
        self.api_key = settings.stripe_api_key
        self.webhook_secret = settings.stripe_webhook_secret
        self.api_base = settings.stripe_api_base.rstrip("/")
        self.tolerance = settings.stripe_signature_tolerance_seconds
        self.timeout = aiohttp.ClientTimeout(total=settings.gateway_timeout_seconds)
        self.retry_policy = RetryPolicy(
            max_attempts=settings.gateway_max_attempts,
            backoff_seconds=settings.gateway_backoff_seconds,
        )
        logger.info("StripeGateway initialized")

    async def _post(
        self, path: str, data: Dict[str, str], idempotency_key: str
    ) -> Tuple[int, Dict[str, Any]]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Idempotency-Key": idempotency_key,
        }
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(f"{self.api_base}{path}", data=data, headers=headers) as response:
                if response.status >= 500:
                    raise GatewayServerError(response.status, await response.text())
                body = await response.json(content_type=None)
                return response.status, body or {}

    async def _get(self, path: str) -> Tuple[int, Dict[str, Any]]:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.get(f"{self.api_base}{path}", headers=headers) as response:
                if response.status >= 500:
                    raise GatewayServerError(response.status, await response.text())
                body = await response.json(content_type=None)
                return response.status, body or {}

    async def charge(self, order: Order, payment_details: Dict[str, Any]) -> ChargeResult:
        payment_method = payment_details.get("payment_method")
        if not payment_method:
            raise ValidationError("payment_method is required for card payments.")

        order_number = order.order_number.value
        data = {
            "amount": str(to_minor_units(order.total.amount)),
            "currency": order.total.currency.lower(),
            "payment_method": str(payment_method),
            "confirm": "true",
            "automatic_payment_methods[enabled]": "true",
            "automatic_payment_methods[allow_redirects]": "never",
            "metadata[order_number]": order_number,
            "expand[]": "latest_charge",
        }
        idempotency_key = f"charge-{order_number}-{uuid4().hex}"
        status, body = await call_with_retries(
            lambda: self._post("/payment_intents", data, idempotency_key),
            self.retry_policy,
            f"stripe charge for {order_number}",
        )

        if status >= 400:
            error = body.get("error", {})
            intent = error.get("payment_intent") or {}
            if error.get("type") == "card_error":
                logger.info(f"Stripe declined charge for {order_number}: {error.get('message')}")
                return ChargeResult(
                    status=ChargeStatus.FAILED,
                    gateway_transaction_id=intent.get("id"),
                    metadata={"decline_code": error.get("decline_code"), "message": error.get("message")},
                )
            raise PaymentGatewayError(f"Stripe rejected charge: {error.get('message', status)}")

        latest_charge = body.get("latest_charge")
        receipt_url = latest_charge.get("receipt_url") if isinstance(latest_charge, dict) else None
        return ChargeResult(
            status=_INTENT_STATUSES.get(body.get("status"), ChargeStatus.PENDING),
            gateway_transaction_id=body.get("id"),
            receipt_url=receipt_url,
            metadata={"stripe_status": body.get("status")},
        )

    async def confirm(
        self, gateway_transaction_id: str, confirmation: Dict[str, Any]
    ) -> ChargeResult:
        """Re-read a PaymentIntent after the customer finished a redirect step."""
        status, body = await call_with_retries(
            lambda: self._get(f"/payment_intents/{gateway_transaction_id}"),
            self.retry_policy,
            f"stripe confirm for {gateway_transaction_id}",
        )
        if status >= 400:
            message = body.get("error", {}).get("message", f"HTTP {status}")
            raise PaymentGatewayError(f"Stripe rejected confirmation: {message}")
        return ChargeResult(
            status=_INTENT_STATUSES.get(body.get("status"), ChargeStatus.PENDING),
            gateway_transaction_id=body.get("id", gateway_transaction_id),
            metadata={"stripe_status": body.get("status")},
        )

    async def refund(
        self,
        gateway_transaction_id: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
    ) -> RefundResult:
        data = {
            "payment_intent": gateway_transaction_id,
            "amount": str(to_minor_units(amount)),
        }
        status, body = await call_with_retries(
            lambda: self._post("/refunds", data, idempotency_key),
            self.retry_policy,
            "stripe refund",
        )
        if status >= 400:
            message = body.get("error", {}).get("message", f"HTTP {status}")
            logger.error(f"Stripe refund rejected: {message}")
            return RefundResult(success=False, error=message)
        if body.get("status") in ("succeeded", "pending"):
            return RefundResult(success=True, refund_id=body.get("id"))
        return RefundResult(success=False, refund_id=body.get("id"), error=body.get("failure_reason"))

    @staticmethod
    def _parse_signature_header(value: str) -> Tuple[Optional[int], List[str]]:
        timestamp: Optional[int] = None
        signatures: List[str] = []
        for part in value.split(","):
            key, _, item = part.strip().partition("=")
            if key == "t" and item.isdigit():
                timestamp = int(item)
            elif key == "v1" and item:
                signatures.append(item)
        return timestamp, signatures

    async def verify_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        if not self.webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET not configured, rejecting webhook")
            return False
        header = header_value(headers, SIGNATURE_HEADER)
        if not header:
            return False

        timestamp, signatures = self._parse_signature_header(header)
        if timestamp is None or not signatures:
            return False
        if abs(time.time() - timestamp) > self.tolerance:
            logger.warning("Stripe webhook timestamp outside tolerance")
            return False

        signed_payload = f"{timestamp}.".encode("utf-8") + payload
        expected = hmac.new(self.webhook_secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
        return any(hmac.compare_digest(expected, signature) for signature in signatures)

    def parse_event(self, payload: bytes) -> Optional[GatewayEvent]:
        try:
            data = json.loads(payload)
            event_type = data["type"]
            obj = data["data"]["object"]
        except (ValueError, KeyError, TypeError) as e:
            raise ValidationError("Malformed webhook payload") from e

        if event_type == "payment_intent.succeeded":
            return GatewayEvent(
                gateway=self.name,
                event_type=GatewayEventType.SUCCEEDED,
                gateway_transaction_id=obj["id"],
                event_id=data.get("id"),
                amount=from_minor_units(obj.get("amount_received")),
            )
        if event_type == "payment_intent.payment_failed":
            return GatewayEvent(
                gateway=self.name,
                event_type=GatewayEventType.FAILED,
                gateway_transaction_id=obj["id"],
                event_id=data.get("id"),
            )
        if event_type == "charge.refunded" and obj.get("payment_intent"):
            return GatewayEvent(
                gateway=self.name,
                event_type=GatewayEventType.REFUNDED,
                gateway_transaction_id=obj["payment_intent"],
                event_id=data.get("id"),
                amount=from_minor_units(obj.get("amount_refunded")),
            )

        logger.info(f"Ignoring Stripe event type {event_type!r}")
        return None
