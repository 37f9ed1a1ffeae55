"""Tests for the in-process webhook queue."""

import pytest

from fulfillment.application.interfaces import GatewayEvent, GatewayEventType
from fulfillment.infrastructure.bus import InMemoryWebhookQueue


def _event(gateway_transaction_id: str = "fake_1") -> GatewayEvent:
    return GatewayEvent(
        gateway="fake",
        event_type=GatewayEventType.SUCCEEDED,
        gateway_transaction_id=gateway_transaction_id,
        event_id="evt_1",
    )


def test_gateway_event_dict_round_trip():
    event = _event()
    assert GatewayEvent.from_dict(event.to_dict()) == event


@pytest.mark.asyncio
async def test_receive_returns_nothing_when_empty():
    queue = InMemoryWebhookQueue()
    assert await queue.receive(block_ms=10) == []


@pytest.mark.asyncio
async def test_message_stays_pending_until_acked():
    queue = InMemoryWebhookQueue()
    message_id = await queue.enqueue(_event())

    [message] = await queue.receive(block_ms=10)
    assert message.message_id == message_id
    assert message.deliveries == 1
    assert queue.pending_count == 1

    await queue.ack(message_id)
    assert queue.pending_count == 0


@pytest.mark.asyncio
async def test_retry_later_counts_deliveries():
    queue = InMemoryWebhookQueue()
    await queue.enqueue(_event())

    [first] = await queue.receive(block_ms=10)
    await queue.retry_later(first)
    [second] = await queue.receive(block_ms=10)

    assert second.message_id == first.message_id
    assert second.deliveries == 2
