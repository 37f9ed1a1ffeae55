from __future__ import annotations

from typing import Optional

from pydantic import Field

from fulfillment.settings.base import FulfillmentBaseSettings


class PaymentSettings(FulfillmentBaseSettings):
    """
    Payment gateway settings.
    Loaded from .env file with exact variable name matching.
    """

    currency: str = Field("USD", alias="STORE_CURRENCY")
    stripe_api_key: Optional[str] = Field(None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: Optional[str] = Field(None, alias="STRIPE_WEBHOOK_SECRET")
    stripe_api_base: str = Field("https://api.stripe.com/v1", alias="STRIPE_API_BASE")
    stripe_signature_tolerance_seconds: int = Field(300, alias="STRIPE_SIGNATURE_TOLERANCE")
    fake_webhook_secret: str = Field("fake-webhook-secret", alias="FAKE_GATEWAY_WEBHOOK_SECRET")
    gateway_max_attempts: int = Field(3, alias="GATEWAY_MAX_ATTEMPTS")
    gateway_backoff_seconds: float = Field(0.5, alias="GATEWAY_BACKOFF_SECONDS")
    gateway_timeout_seconds: float = Field(15.0, alias="GATEWAY_TIMEOUT_SECONDS")
    paypal_client_id: Optional[str] = Field(None, alias="PAYPAL_CLIENT_ID")
    paypal_client_secret: Optional[str] = Field(None, alias="PAYPAL_CLIENT_SECRET")
    paypal_webhook_id: Optional[str] = Field(None, alias="PAYPAL_WEBHOOK_ID")
    paypal_api_base: str = Field("https://api-m.sandbox.paypal.com", alias="PAYPAL_API_BASE")
    paypal_return_url: Optional[str] = Field(None, alias="PAYPAL_RETURN_URL")
    paypal_cancel_url: Optional[str] = Field(None, alias="PAYPAL_CANCEL_URL")
    razorpay_key_id: Optional[str] = Field(None, alias="RAZORPAY_KEY_ID")
    razorpay_key_secret: Optional[str] = Field(None, alias="RAZORPAY_KEY_SECRET")
    razorpay_webhook_secret: Optional[str] = Field(None, alias="RAZORPAY_WEBHOOK_SECRET")
    razorpay_api_base: str = Field("https://api.razorpay.com/v1", alias="RAZORPAY_API_BASE")
