from __future__ import annotations

from typing import Optional

from pydantic import Field

from fulfillment.settings.base import FulfillmentBaseSettings


class CatalogSettings(FulfillmentBaseSettings):
    """
    Product catalog service settings.
    Without a base URL the in-memory catalog is used.
    """

    base_url: Optional[str] = Field(None, alias="CATALOG_BASE_URL")
    timeout_seconds: float = Field(5.0, alias="CATALOG_TIMEOUT_SECONDS")


class NotificationSettings(FulfillmentBaseSettings):
    """
    Notification service settings.
    Without a webhook URL notifications are only logged and recorded.
    """

    webhook_url: Optional[str] = Field(None, alias="NOTIFICATION_WEBHOOK_URL")
    operator_recipient: str = Field("operations", alias="OPERATOR_RECIPIENT")
    timeout_seconds: float = Field(5.0, alias="NOTIFICATION_TIMEOUT_SECONDS")
