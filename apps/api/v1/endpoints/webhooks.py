"""Payment gateway webhook endpoint."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from apps.api.deps import get_container
from fulfillment.container import ServiceContainer
from fulfillment.domain.errors import WebhookSignatureInvalid

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/{gateway}")
async def receive_webhook(
    gateway: str,
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> dict:
    """
    Verify and queue a gateway event.

    The event is processed by the webhook worker; this endpoint only
    acknowledges receipt once the event is queued.
    """
    adapter = container.gateways.webhook_gateway(gateway)
    if adapter is None:
        raise HTTPException(status_code=404, detail=f"Unknown payment gateway {gateway}")

    payload = await request.body()
    if not await adapter.verify_signature(payload, request.headers):
        logger.warning(f"Rejected {gateway} webhook with an invalid signature")
        raise WebhookSignatureInvalid("Invalid webhook signature")

    event = adapter.parse_event(payload)
    if event is not None:
        await container.webhook_queue.enqueue(event)
    return {"received": True}
