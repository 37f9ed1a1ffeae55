"""Adapter selection when the container is built from settings alone."""

from fulfillment.container import build_container, build_gateway_registry
from fulfillment.domain.enums import PaymentMethod
from fulfillment.infrastructure.adapters.catalog import HttpCatalogService, InMemoryCatalogService
from fulfillment.infrastructure.adapters.gateways import (
    FakeGateway,
    PayPalGateway,
    RazorpayGateway,
    StripeGateway,
)
from fulfillment.infrastructure.adapters.notifications import (
    MockNotificationService,
    WebhookNotificationService,
)
from fulfillment.infrastructure.bus import InMemoryWebhookQueue, RedisStreamWebhookQueue
from fulfillment.settings.modules.integrations_settings import CatalogSettings, NotificationSettings
from fulfillment.settings.modules.payment_settings import PaymentSettings
from fulfillment.settings.modules.queue_settings import QueueSettings


def test_development_defaults(app_settings, session_factory):
    container = build_container(app_settings, session_factory)

    assert isinstance(container.catalog, InMemoryCatalogService)
    assert isinstance(container.notifier, MockNotificationService)
    assert isinstance(container.webhook_queue, InMemoryWebhookQueue)
    assert isinstance(container.gateways.for_method(PaymentMethod.CARD), FakeGateway)
    assert container.gateways.for_method(PaymentMethod.COD).name == "cod"


def test_configured_collaborators(app_settings, session_factory):
    settings = app_settings.model_copy(
        update={
            "queue": QueueSettings(WEBHOOK_QUEUE_BACKEND="redis"),
            "integrations": app_settings.integrations.model_copy(
                update={
                    "catalog": CatalogSettings(CATALOG_BASE_URL="http://catalog.internal"),
                    "notifications": NotificationSettings(
                        NOTIFICATION_WEBHOOK_URL="http://notify.internal/hook"
                    ),
                }
            ),
        }
    )

    container = build_container(settings, session_factory)

    assert isinstance(container.catalog, HttpCatalogService)
    assert isinstance(container.notifier, WebhookNotificationService)
    assert isinstance(container.webhook_queue, RedisStreamWebhookQueue)


def test_stripe_serves_cards_when_configured(app_settings):
    settings = app_settings.model_copy(
        update={"payments": PaymentSettings(STRIPE_SECRET_KEY="sk_test_1", STRIPE_WEBHOOK_SECRET="whsec")}
    )

    registry = build_gateway_registry(settings)

    assert isinstance(registry.for_method(PaymentMethod.CARD), StripeGateway)
    assert registry.webhook_gateway("stripe") is not None
    assert registry.webhook_gateway("fake") is not None


def test_wallet_gateways_need_credentials(app_settings):
    registry = build_gateway_registry(app_settings)

    assert not registry.serves(PaymentMethod.PAYPAL)
    assert not registry.serves(PaymentMethod.RAZORPAY)
    assert not registry.serves(PaymentMethod.UPI)
    assert registry.serves(PaymentMethod.CARD)


def test_paypal_and_razorpay_when_configured(app_settings):
    settings = app_settings.model_copy(
        update={
            "payments": PaymentSettings(
                PAYPAL_CLIENT_ID="client",
                PAYPAL_CLIENT_SECRET="secret",
                RAZORPAY_KEY_ID="rzp_test_key",
                RAZORPAY_KEY_SECRET="rzp_secret",
            )
        }
    )

    registry = build_gateway_registry(settings)

    assert isinstance(registry.for_method(PaymentMethod.PAYPAL), PayPalGateway)
    assert isinstance(registry.for_method(PaymentMethod.RAZORPAY), RazorpayGateway)
    assert isinstance(registry.for_method(PaymentMethod.UPI), RazorpayGateway)
    assert registry.webhook_gateway("paypal") is not None
    assert registry.webhook_gateway("razorpay") is not None
