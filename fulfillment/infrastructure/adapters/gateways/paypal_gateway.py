"""
PayPal Payment Gateway Implementation.

Uses the Orders v2 REST API with aiohttp. A charge creates a PayPal order
the customer approves on paypal.com; the approval is then captured through
`confirm`. Webhooks are verified by PayPal's verify-webhook-signature API.
"""
import json
import logging
import time
from decimal import Decimal
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

TRANSMISSION_HEADERS = {
    "auth_algo": "PAYPAL-AUTH-ALGO",
    "cert_url": "PAYPAL-CERT-URL",
    "transmission_id": "PAYPAL-TRANSMISSION-ID",
    "transmission_sig": "PAYPAL-TRANSMISSION-SIG",
    "transmission_time": "PAYPAL-TRANSMISSION-TIME",
}

_CAPTURE_STATUSES = {
    "COMPLETED": ChargeStatus.SUCCEEDED,
    "PENDING": ChargeStatus.PENDING,
    "DECLINED": ChargeStatus.FAILED,
    "FAILED": ChargeStatus.FAILED,
}

_EVENT_TYPES = {
    "PAYMENT.CAPTURE.COMPLETED": GatewayEventType.SUCCEEDED,
    "PAYMENT.CAPTURE.DENIED": GatewayEventType.FAILED,
    "PAYMENT.CAPTURE.DECLINED": GatewayEventType.FAILED,
    "PAYMENT.CAPTURE.REFUNDED": GatewayEventType.REFUNDED,
}


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.01"))


def _captures(body: Dict[str, Any]) -> List[Dict[str, Any]]:
    captures: List[Dict[str, Any]] = []
    for unit in body.get("purchase_units") or []:
        captures.extend((unit.get("payments") or {}).get("captures") or [])
    return captures


def _link(body: Dict[str, Any], *relations: str) -> Optional[str]:
    for link in body.get("links") or []:
        if link.get("rel") in relations:
            return link.get("href")
    return None


class PayPalGateway(IPaymentGateway):
    """PayPal Orders v2 adapter."""

    name = "paypal"

    def __init__(self, settings: PaymentSettings):
        if not settings.paypal_client_id or not settings.paypal_client_secret:
            raise ValueError("PAYPAL_CLIENT_ID and PAYPAL_CLIENT_SECRET must be set for PayPal")
        self.client_id = settings.paypal_client_id
        self.client_secret = settings.paypal_client_secret
        self.webhook_id = settings.paypal_webhook_id
        self.api_base = settings.paypal_api_base.rstrip("/")
        self.return_url = settings.paypal_return_url
        self.cancel_url = settings.paypal_cancel_url
        self.timeout = aiohttp.ClientTimeout(total=settings.gateway_timeout_seconds)
        self.retry_policy = RetryPolicy(
            max_attempts=settings.gateway_max_attempts,
            backoff_seconds=settings.gateway_backoff_seconds,
        )
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0
        logger.info("PayPalGateway initialized")

    async def _token(self, session: aiohttp.ClientSession) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token
        async with session.post(
            f"{self.api_base}/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=aiohttp.BasicAuth(self.client_id, self.client_secret),
        ) as response:
            if response.status >= 500:
                raise GatewayServerError(response.status, await response.text())
            body = await response.json(content_type=None) or {}
            if response.status >= 400 or "access_token" not in body:
                raise PaymentGatewayError(
                    f"PayPal authentication failed: {body.get('error_description', response.status)}"
                )
        self._access_token = body["access_token"]
        # Refresh a minute early.
        self._token_expires_at = time.monotonic() + max(0, int(body.get("expires_in", 0)) - 60)
        return self._access_token

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> Tuple[int, Dict[str, Any]]:
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            headers = {
                "Authorization": f"Bearer {await self._token(session)}",
                "Content-Type": "application/json",
            }
            if request_id:
                headers["PayPal-Request-Id"] = request_id
            async with session.request(
                method, f"{self.api_base}{path}", json=payload, headers=headers
            ) as response:
                if response.status == 401:
                    self._access_token = None
                    raise GatewayServerError(response.status, "access token rejected")
                if response.status >= 500:
                    raise GatewayServerError(response.status, await response.text())
                body = await response.json(content_type=None)
                return response.status, body or {}

    async def _call(
        self,
        method: str,
        path: str,
        description: str,
        payload: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> Tuple[int, Dict[str, Any]]:
        return await call_with_retries(
            lambda: self._request(method, path, payload, request_id),
            self.retry_policy,
            description,
        )

    async def charge(self, order: Order, payment_details: Dict[str, Any]) -> ChargeResult:
        order_number = order.order_number.value
        experience = {
            "return_url": payment_details.get("return_url") or self.return_url,
            "cancel_url": payment_details.get("cancel_url") or self.cancel_url,
            "user_action": "PAY_NOW",
        }
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": order_number,
                    "custom_id": order_number,
                    "invoice_id": order_number,
                    "amount": {
                        "currency_code": order.total.currency,
                        "value": str(order.total.amount),
                    },
                }
            ],
            "payment_source": {
                "paypal": {
                    "experience_context": {k: v for k, v in experience.items() if v},
                }
            },
        }
        status, body = await self._call(
            "POST",
            "/v2/checkout/orders",
            f"paypal charge for {order_number}",
            payload,
            request_id=f"charge-{order_number}-{uuid4().hex}",
        )
        if status >= 400:
            message = body.get("message") or body.get("name") or f"HTTP {status}"
            if status == 422:
                logger.info(f"PayPal refused order for {order_number}: {message}")
                return ChargeResult(
                    status=ChargeStatus.FAILED,
                    gateway_transaction_id=None,
                    metadata={"paypal_error": body.get("name"), "message": message},
                )
            raise PaymentGatewayError(f"PayPal rejected charge: {message}")

        return ChargeResult(
            status=ChargeStatus.PENDING,
            gateway_transaction_id=body.get("id"),
            metadata={
                "paypal_status": body.get("status"),
                "approval_url": _link(body, "payer-action", "approve"),
            },
        )

    async def confirm(
        self, gateway_transaction_id: str, confirmation: Dict[str, Any]
    ) -> ChargeResult:
        """Capture an order the customer approved.

        PayPal appends the order id to the return URL as `token`; when the
        client passes it along it must match the charge being confirmed.
        """
        token = confirmation.get("token")
        if token and token != gateway_transaction_id:
            raise ValidationError("PayPal approval does not belong to this payment.")

        status, body = await self._call(
            "POST",
            f"/v2/checkout/orders/{gateway_transaction_id}/capture",
            f"paypal capture for {gateway_transaction_id}",
            request_id=f"capture-{gateway_transaction_id}",
        )
        if status == 422 and _issue(body) == "ORDER_ALREADY_CAPTURED":
            status, body = await self._call(
                "GET",
                f"/v2/checkout/orders/{gateway_transaction_id}",
                f"paypal order lookup for {gateway_transaction_id}",
            )
        if status == 422 and _issue(body) == "INSTRUMENT_DECLINED":
            return ChargeResult(
                status=ChargeStatus.FAILED,
                gateway_transaction_id=gateway_transaction_id,
                metadata={"paypal_error": "INSTRUMENT_DECLINED"},
            )
        if status >= 400:
            message = body.get("message") or body.get("name") or f"HTTP {status}"
            raise PaymentGatewayError(f"PayPal capture failed: {message}")

        captures = _captures(body)
        capture_status = captures[0].get("status") if captures else None
        return ChargeResult(
            status=_CAPTURE_STATUSES.get(capture_status, ChargeStatus.PENDING),
            gateway_transaction_id=gateway_transaction_id,
            metadata={
                "paypal_status": body.get("status"),
                "capture_id": captures[0].get("id") if captures else None,
            },
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
            f"/v2/checkout/orders/{gateway_transaction_id}",
            f"paypal order lookup for {gateway_transaction_id}",
        )
        captures = [c for c in _captures(body) if c.get("status") in ("COMPLETED", "PARTIALLY_REFUNDED")]
        if status >= 400 or not captures:
            return RefundResult(success=False, error="No captured PayPal payment to refund")

        status, body = await self._call(
            "POST",
            f"/v2/payments/captures/{captures[0]['id']}/refund",
            "paypal refund",
            {"amount": {"value": str(amount), "currency_code": currency}},
            request_id=idempotency_key,
        )
        if status >= 400:
            message = body.get("message") or body.get("name") or f"HTTP {status}"
            logger.error(f"PayPal refund rejected: {message}")
            return RefundResult(success=False, error=message)
        if body.get("status") in ("COMPLETED", "PENDING"):
            return RefundResult(success=True, refund_id=body.get("id"))
        return RefundResult(success=False, refund_id=body.get("id"), error=body.get("status"))

    async def verify_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        if not self.webhook_id:
            logger.error("PAYPAL_WEBHOOK_ID not configured, rejecting webhook")
            return False
        transmission = {key: header_value(headers, name) for key, name in TRANSMISSION_HEADERS.items()}
        if not all(transmission.values()):
            return False
        try:
            event = json.loads(payload)
        except ValueError:
            return False

        try:
            status, body = await self._call(
                "POST",
                "/v1/notifications/verify-webhook-signature",
                "paypal webhook verification",
                {**transmission, "webhook_id": self.webhook_id, "webhook_event": event},
            )
        except PaymentGatewayError as e:
            logger.error(f"PayPal webhook verification unavailable: {e.message}")
            return False
        verified = status < 400 and body.get("verification_status") == "SUCCESS"
        if not verified:
            logger.warning(f"PayPal webhook verification failed: {body.get('verification_status')}")
        return verified

    def parse_event(self, payload: bytes) -> Optional[GatewayEvent]:
        try:
            data = json.loads(payload)
            event_type = data["event_type"]
            resource = data["resource"]
        except (ValueError, KeyError, TypeError) as e:
            raise ValidationError("Malformed webhook payload") from e

        mapped = _EVENT_TYPES.get(event_type)
        if mapped is None:
            logger.info(f"Ignoring PayPal event type {event_type!r}")
            return None

        related = (resource.get("supplementary_data") or {}).get("related_ids") or {}
        paypal_order_id = related.get("order_id")
        if not paypal_order_id:
            logger.warning(f"PayPal {event_type} event {data.get('id')} carries no order id")
            return None

        if mapped == GatewayEventType.REFUNDED:
            breakdown = resource.get("seller_payable_breakdown") or {}
            amount = _decimal((breakdown.get("total_refunded_amount") or {}).get("value"))
        else:
            amount = _decimal((resource.get("amount") or {}).get("value"))
        return GatewayEvent(
            gateway=self.name,
            event_type=mapped,
            gateway_transaction_id=paypal_order_id,
            event_id=data.get("id"),
            amount=amount,
        )


def _issue(body: Dict[str, Any]) -> Optional[str]:
    details = body.get("details") or []
    return details[0].get("issue") if details else None
