"""
Cash-on-delivery gateway.

No remote processor: charges stay pending until the order is fulfilled
and refunds are settled in cash.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional
from uuid import uuid4

from fulfillment.application.interfaces import (
    ChargeResult,
    ChargeStatus,
    GatewayEvent,
    IPaymentGateway,
    RefundResult,
)
from fulfillment.domain.entities.order import Order

logger = logging.getLogger(__name__)


class CashOnDeliveryGateway(IPaymentGateway):
    name = "cod"

    @property
    def supports_webhooks(self) -> bool:
        return False

    async def charge(self, order: Order, payment_details: Dict[str, Any]) -> ChargeResult:
        return ChargeResult(
            status=ChargeStatus.PENDING,
            gateway_transaction_id=f"cod_{uuid4().hex}",
            metadata={"collect_on_delivery": True},
        )

    async def refund(
        self,
        gateway_transaction_id: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
    ) -> RefundResult:
        logger.info(f"Cash refund of {amount} {currency} recorded locally")
        return RefundResult(success=True, refund_id=f"cod_refund_{uuid4().hex[:12]}")

    async def verify_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        return False

    def parse_event(self, payload: bytes) -> Optional[GatewayEvent]:
        return None
