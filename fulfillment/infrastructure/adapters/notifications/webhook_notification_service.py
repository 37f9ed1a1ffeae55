"""
Webhook Notification Service Implementation.

Posts notifications as JSON to the notification service endpoint.
"""
import asyncio
import logging
from typing import Any, Dict

import aiohttp

from fulfillment.application.interfaces import INotificationService
from fulfillment.settings.modules.integrations_settings import NotificationSettings

logger = logging.getLogger(__name__)


class WebhookNotificationService(INotificationService):
    """
    HTTP implementation of notification service.

    Sends `{recipient, event_type, payload}` to the configured URL.
    """

    def __init__(self, settings: NotificationSettings):
        """
        Initialize webhook notification service.

        Args:
            settings: Notification settings with webhook URL
        """
        self.webhook_url = settings.webhook_url
        self.timeout = aiohttp.ClientTimeout(total=settings.timeout_seconds)
        logger.info("WebhookNotificationService initialized")

    async def notify(self, recipient: str, event_type: str, payload: Dict[str, Any]) -> None:
        if not self.webhook_url:
            logger.warning("Notification webhook_url not configured, skipping notification")
            return

        body = {"recipient": recipient, "event_type": event_type, "payload": payload}
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.webhook_url, json=body) as response:
                    if response.status >= 300:
                        error_text = await response.text()
                        logger.error(
                            f"Notification API error: {response.status} - {error_text}"
                        )
                    else:
                        logger.info(f"Notification {event_type} sent to {recipient}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to send notification {event_type}: {e}", exc_info=True)
