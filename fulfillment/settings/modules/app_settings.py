from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from fulfillment.infrastructure.database.config import DatabaseSettings
from fulfillment.settings.modules.integrations_settings import (
    CatalogSettings,
    NotificationSettings,
)
from fulfillment.settings.modules.job_settings import JobSettings
from fulfillment.settings.modules.payment_settings import PaymentSettings
from fulfillment.settings.modules.queue_settings import QueueSettings
from fulfillment.settings.modules.security_settings import SecuritySettings


class IntegrationsSettings(BaseModel):
    """Aggregates external collaborator settings as nested objects."""

    model_config = ConfigDict(extra="ignore")

    catalog: CatalogSettings
    notifications: NotificationSettings


class AppSettings(BaseModel):
    """Application settings aggregator."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    database: DatabaseSettings
    payments: PaymentSettings
    security: SecuritySettings
    queue: QueueSettings
    jobs: JobSettings
    integrations: IntegrationsSettings


@lru_cache()
def get_app_settings() -> AppSettings:
    return AppSettings(
        database=DatabaseSettings(),
        payments=PaymentSettings(),
        security=SecuritySettings(),
        queue=QueueSettings(),
        jobs=JobSettings(),
        integrations=IntegrationsSettings(
            catalog=CatalogSettings(),
            notifications=NotificationSettings(),
        ),
    )
