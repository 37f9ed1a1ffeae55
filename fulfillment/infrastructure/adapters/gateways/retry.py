"""Bounded retries at the gateway boundary."""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

import aiohttp

from fulfillment.domain.errors import PaymentGatewayError
from orchestration.workflow import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GatewayServerError(Exception):
    """Transient upstream failure (5xx) worth retrying."""

    def __init__(self, status: int, body: str = "") -> None:
        super().__init__(f"Gateway returned {status}: {body[:200]}")
        self.status = status


TRANSIENT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, GatewayServerError)


async def call_with_retries(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    description: str,
) -> T:
    """
    Run a gateway call, retrying transport failures and 5xx responses.

    Args:
        operation: Zero-argument coroutine factory performing one attempt
        policy: Attempts and backoff
        description: Human readable call name for logs and the final error

    Returns:
        Whatever the operation returns

    Raises:
        PaymentGatewayError: When every attempt failed
    """
    last_error: Exception | None = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except TRANSIENT_ERRORS as exc:
            last_error = exc
            logger.warning(f"{description} attempt {attempt}/{policy.max_attempts} failed: {exc}")
            if attempt < policy.max_attempts:
                delay = policy.delay_for(attempt)
                if delay > 0:
                    await asyncio.sleep(delay)

    logger.error(f"{description} failed after {policy.max_attempts} attempt(s): {last_error}")
    raise PaymentGatewayError(f"{description} failed: {last_error}") from last_error
