from __future__ import annotations

from pydantic import Field

from fulfillment.settings.base import FulfillmentBaseSettings


class JobSettings(FulfillmentBaseSettings):
    """
    Background job retry settings (refund retries, stock compensation, reversals).
    """

    max_attempts: int = Field(3, alias="JOB_MAX_ATTEMPTS")
    backoff_seconds: float = Field(60.0, alias="JOB_BACKOFF_SECONDS")
    backoff_multiplier: float = Field(2.0, alias="JOB_BACKOFF_MULTIPLIER")
    max_backoff_seconds: float = Field(3600.0, alias="JOB_MAX_BACKOFF_SECONDS")
    compensation_attempts: int = Field(3, alias="COMPENSATION_INLINE_ATTEMPTS")
    settlement_backoff_seconds: float = Field(0.2, alias="SETTLEMENT_BACKOFF_SECONDS")
