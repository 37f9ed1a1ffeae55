"""Shared fixtures: a SQLite database per test and a fully wired service container."""

from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

from fulfillment.application.dtos import AddressDTO, CreateOrderRequest, OrderLineRequest
from fulfillment.application.interfaces import ProductSnapshot, VariantSnapshot
from fulfillment.container import build_container
from fulfillment.data.models import Base
from fulfillment.domain.enums import PaymentMethod
from fulfillment.infrastructure.adapters.catalog import InMemoryCatalogService
from fulfillment.infrastructure.adapters.gateways import (
    CashOnDeliveryGateway,
    FakeGateway,
    PaymentGatewayRegistry,
)
from fulfillment.infrastructure.adapters.notifications import MockNotificationService
from fulfillment.infrastructure.bus import InMemoryWebhookQueue
from fulfillment.infrastructure.database import DatabaseSettings, build_session_factory, create_engine
from fulfillment.infrastructure.security import configure_field_cipher
from fulfillment.settings import AppSettings, IntegrationsSettings
from fulfillment.settings.modules.integrations_settings import CatalogSettings, NotificationSettings
from fulfillment.settings.modules.job_settings import JobSettings
from fulfillment.settings.modules.payment_settings import PaymentSettings
from fulfillment.settings.modules.queue_settings import QueueSettings
from fulfillment.settings.modules.security_settings import SecuritySettings
from orchestration import RetryPolicy

TEST_SECRET = "test-field-secret"
WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture
def app_settings(tmp_path) -> AppSettings:
    """Settings with no backoff so retries run immediately."""
    return AppSettings(
        database=DatabaseSettings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"),
        payments=PaymentSettings(
            STORE_CURRENCY="USD",
            STRIPE_SECRET_KEY=None,
            PAYPAL_CLIENT_ID=None,
            RAZORPAY_KEY_ID=None,
            FAKE_GATEWAY_WEBHOOK_SECRET=WEBHOOK_SECRET,
        ),
        security=SecuritySettings(FIELD_ENCRYPTION_SECRET=TEST_SECRET),
        queue=QueueSettings(WEBHOOK_QUEUE_BACKEND="memory", WEBHOOK_MAX_DELIVERIES=3),
        jobs=JobSettings(
            JOB_MAX_ATTEMPTS=3,
            JOB_BACKOFF_SECONDS=0,
            SETTLEMENT_BACKOFF_SECONDS=0,
            COMPENSATION_INLINE_ATTEMPTS=2,
        ),
        integrations=IntegrationsSettings(
            catalog=CatalogSettings(CATALOG_BASE_URL=None),
            notifications=NotificationSettings(NOTIFICATION_WEBHOOK_URL=None),
        ),
    )


@pytest_asyncio.fixture
async def test_engine(app_settings):
    """File-backed SQLite so concurrent sessions see each other's commits."""
    configure_field_cipher(TEST_SECRET)
    engine = create_engine(app_settings.database)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest.fixture
def catalog() -> InMemoryCatalogService:
    return InMemoryCatalogService(
        [
            ProductSnapshot(
                product_id="oil-1",
                title="Olive Oil",
                is_active=True,
                variants=[
                    VariantSnapshot(size="500ml", price=Decimal("20.00")),
                    VariantSnapshot(size="1L", price=Decimal("35.00")),
                ],
                packaging_options=["bottle", "tin"],
            ),
            ProductSnapshot(
                product_id="honey-1",
                title="Wild Honey",
                is_active=True,
                variants=[VariantSnapshot(size="1kg", price=Decimal("50.00"))],
                packaging_options=["jar"],
            ),
            ProductSnapshot(
                product_id="soap-1",
                title="Lavender Soap",
                is_active=True,
                variants=[VariantSnapshot(size="bar", price=Decimal("4.99"))],
                packaging_options=["box"],
            ),
            ProductSnapshot(
                product_id="retired-1",
                title="Retired Tea",
                is_active=False,
                variants=[VariantSnapshot(size="100g", price=Decimal("9.00"))],
                packaging_options=["tin"],
            ),
        ]
    )


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway(
        webhook_secret=WEBHOOK_SECRET,
        retry_policy=RetryPolicy(max_attempts=3, backoff_seconds=0),
    )


@pytest.fixture
def notifier() -> MockNotificationService:
    return MockNotificationService()


@pytest.fixture
def webhook_queue() -> InMemoryWebhookQueue:
    return InMemoryWebhookQueue()


@pytest_asyncio.fixture
async def container(app_settings, session_factory, catalog, fake_gateway, notifier, webhook_queue):
    """Service container with in-memory adapters; the webhook worker is driven by tests."""
    gateways = PaymentGatewayRegistry(
        [fake_gateway, CashOnDeliveryGateway()],
        routes={
            PaymentMethod.CARD: "fake",
            PaymentMethod.STRIPE: "fake",
            PaymentMethod.COD: "cod",
            PaymentMethod.CASH_ON_DELIVERY: "cod",
        },
    )
    container = build_container(
        app_settings,
        session_factory,
        catalog=catalog,
        gateways=gateways,
        notifier=notifier,
        webhook_queue=webhook_queue,
    )
    yield container
    await container.stop()


@pytest.fixture
def stock(container):
    """Seed stock levels: `await stock("oil-1", "500ml", 10)`."""

    async def _seed(product_id: str, variant: str, quantity: int) -> None:
        await container.stock_ledger.restore(product_id, variant, quantity)

    return _seed


ADDRESS = {
    "full_name": "Dana Reyes",
    "line1": "12 Harbour Road",
    "city": "Portsmouth",
    "postal_code": "PO1 3AX",
    "country": "GB",
}


def make_order_request(
    items: List[Dict[str, Any]],
    payment_method: PaymentMethod = PaymentMethod.CARD,
    coupon_code: Optional[str] = None,
    customer_id: str = "cust-1",
) -> CreateOrderRequest:
    return CreateOrderRequest(
        customer_id=customer_id,
        items=[OrderLineRequest(**item) for item in items],
        shipping_address=AddressDTO(**ADDRESS),
        payment_method=payment_method,
        coupon_code=coupon_code,
    )


@pytest.fixture
def order_request():
    """Factory building checkout requests with a fixed shipping address."""
    return make_order_request


@pytest.fixture
def place_order(container, stock, order_request):
    """Seed stock for the given lines and create the order."""

    async def _place(
        items: List[Dict[str, Any]],
        payment_method: PaymentMethod = PaymentMethod.CARD,
        coupon_code: Optional[str] = None,
        seed: bool = True,
    ):
        if seed:
            for item in items:
                await stock(item["product_id"], item["variant"], item["quantity"] * 5)
        return await container.orders.create_order(
            order_request(items, payment_method=payment_method, coupon_code=coupon_code)
        )

    return _place
