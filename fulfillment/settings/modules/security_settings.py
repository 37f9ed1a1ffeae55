from __future__ import annotations

from pydantic import Field

from fulfillment.settings.base import FulfillmentBaseSettings


class SecuritySettings(FulfillmentBaseSettings):
    """
    Encryption-at-rest settings.
    The secret is stretched into a Fernet key and a separate lookup-hash key.
    """

    field_encryption_secret: str = Field(
        "change-me-in-production", alias="FIELD_ENCRYPTION_SECRET"
    )
