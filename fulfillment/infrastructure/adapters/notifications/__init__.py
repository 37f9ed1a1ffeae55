from .mock_notification_service import MockNotificationService
from .webhook_notification_service import WebhookNotificationService

__all__ = ["MockNotificationService", "WebhookNotificationService"]
