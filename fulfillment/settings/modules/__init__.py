# Settings modules
from .app_settings import AppSettings, IntegrationsSettings, get_app_settings
from .integrations_settings import CatalogSettings, NotificationSettings
from .job_settings import JobSettings
from .payment_settings import PaymentSettings
from .queue_settings import QueueSettings
from .security_settings import SecuritySettings

__all__ = [
    "AppSettings",
    "get_app_settings",
    "IntegrationsSettings",
    "CatalogSettings",
    "JobSettings",
    "NotificationSettings",
    "PaymentSettings",
    "QueueSettings",
    "SecuritySettings",
]
