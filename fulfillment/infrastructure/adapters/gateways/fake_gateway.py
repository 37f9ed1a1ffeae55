"""
Fake payment gateway.

In-memory processor for development and tests: outcomes are configurable,
every call is recorded, and webhooks are signed with HMAC-SHA256.
"""
import hashlib
import hmac
import json
import logging
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from fulfillment.application.interfaces import (
    ChargeResult,
    ChargeStatus,
    GatewayEvent,
    GatewayEventType,
    IPaymentGateway,
    RefundResult,
)
from fulfillment.domain.entities.order import Order
from fulfillment.domain.errors import ValidationError
from orchestration.workflow import RetryPolicy

from ._headers import header_value
from .retry import GatewayServerError, call_with_retries

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Fake-Signature"

EVENT_TYPES = {
    "payment.succeeded": GatewayEventType.SUCCEEDED,
    "payment.failed": GatewayEventType.FAILED,
    "payment.refunded": GatewayEventType.REFUNDED,
}


class FakeGateway(IPaymentGateway):
    """
    Configurable in-memory gateway.

    Attributes:
        charge_status: Outcome returned by `charge`
        confirm_status: Outcome returned by `confirm`
        refund_succeeds: Whether `refund` reports success
        transient_failures: Number of upcoming calls that fail like a 5xx
    """

    name = "fake"

    def __init__(
        self,
        webhook_secret: str = "fake-webhook-secret",
        charge_status: ChargeStatus = ChargeStatus.SUCCEEDED,
        refund_succeeds: bool = True,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.webhook_secret = webhook_secret
        self.charge_status = charge_status
        self.confirm_status = ChargeStatus.SUCCEEDED
        self.refund_succeeds = refund_succeeds
        self.transient_failures = 0
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=3, backoff_seconds=0)
        self.charges: List[Dict[str, Any]] = []
        self.refunds: List[Dict[str, Any]] = []
        self.confirmations: List[Dict[str, Any]] = []
        self.attempts = 0
        self._refunds_by_key: Dict[str, RefundResult] = {}

    async def _attempt(self) -> None:
        self.attempts += 1
        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise GatewayServerError(503, "fake upstream unavailable")

    async def charge(self, order: Order, payment_details: Dict[str, Any]) -> ChargeResult:
        async def attempt() -> ChargeResult:
            await self._attempt()
            gateway_transaction_id = f"fake_{uuid4().hex}"
            self.charges.append(
                {
                    "order_number": order.order_number.value,
                    "amount": order.total.amount,
                    "gateway_transaction_id": gateway_transaction_id,
                    "details": dict(payment_details),
                }
            )
            return ChargeResult(
                status=self.charge_status,
                gateway_transaction_id=gateway_transaction_id,
                receipt_url=f"https://fake-gateway.test/receipts/{gateway_transaction_id}",
                metadata={"gateway": self.name},
            )

        return await call_with_retries(attempt, self.retry_policy, "fake charge")

    async def confirm(
        self, gateway_transaction_id: str, confirmation: Dict[str, Any]
    ) -> ChargeResult:
        self.confirmations.append(
            {"gateway_transaction_id": gateway_transaction_id, "confirmation": dict(confirmation)}
        )
        return ChargeResult(
            status=self.confirm_status,
            gateway_transaction_id=gateway_transaction_id,
            metadata={"gateway": self.name, "confirmed": True},
        )

    async def refund(
        self,
        gateway_transaction_id: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
    ) -> RefundResult:
        async def attempt() -> RefundResult:
            await self._attempt()
            if idempotency_key in self._refunds_by_key:
                return self._refunds_by_key[idempotency_key]
            self.refunds.append(
                {
                    "gateway_transaction_id": gateway_transaction_id,
                    "amount": amount,
                    "currency": currency,
                    "idempotency_key": idempotency_key,
                }
            )
            if not self.refund_succeeds:
                return RefundResult(success=False, error="Refund declined by fake gateway")
            result = RefundResult(success=True, refund_id=f"fake_re_{uuid4().hex[:12]}")
            self._refunds_by_key[idempotency_key] = result
            return result

        return await call_with_retries(attempt, self.retry_policy, "fake refund")

    def sign(self, payload: bytes) -> str:
        return hmac.new(self.webhook_secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()

    def build_event(self, event_type: str, gateway_transaction_id: str, event_id: Optional[str] = None) -> bytes:
        """Serialize a webhook body the way the fake processor sends it."""
        return json.dumps(
            {
                "id": event_id or f"evt_{uuid4().hex[:12]}",
                "type": event_type,
                "transaction_id": gateway_transaction_id,
            }
        ).encode("utf-8")

    async def verify_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        signature = header_value(headers, SIGNATURE_HEADER)
        if not signature:
            return False
        return hmac.compare_digest(self.sign(payload), signature)

    def parse_event(self, payload: bytes) -> Optional[GatewayEvent]:
        try:
            data = json.loads(payload)
        except ValueError as e:
            raise ValidationError("Malformed webhook payload") from e

        event_type = EVENT_TYPES.get(data.get("type"))
        if event_type is None:
            logger.info(f"Ignoring fake gateway event type {data.get('type')!r}")
            return None
        if not data.get("transaction_id"):
            raise ValidationError("Webhook payload has no transaction_id")

        amount = data.get("amount")
        return GatewayEvent(
            gateway=self.name,
            event_type=event_type,
            gateway_transaction_id=str(data["transaction_id"]),
            event_id=data.get("id"),
            amount=Decimal(str(amount)) if amount is not None else None,
        )
