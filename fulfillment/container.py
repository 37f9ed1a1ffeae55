"""
Service container.

Builds the object graph once per process: settings, the session factory,
adapters, the two event buses and every application service.
"""

import logging
from typing import Iterable, Mapping, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from fulfillment.application.interfaces import (
    ICatalogService,
    INotificationService,
    IPaymentGateway,
    IWebhookQueue,
)
from fulfillment.application.services import (
    AlertService,
    CompensationScheduler,
    CouponEngine,
    NotificationDispatcher,
    OrderAcceptance,
    OrderApplicationService,
    OrderUpdater,
    PaymentService,
    RefundProcessor,
    ReturnService,
    StockLedger,
    TransactionLog,
    WebhookReconciler,
    WebhookWorker,
)
from fulfillment.domain.enums import PaymentMethod
from fulfillment.infrastructure.adapters.catalog import HttpCatalogService, InMemoryCatalogService
from fulfillment.infrastructure.adapters.gateways import (
    DEFAULT_METHOD_ROUTES,
    CashOnDeliveryGateway,
    FakeGateway,
    PaymentGatewayRegistry,
    PayPalGateway,
    RazorpayGateway,
    StripeGateway,
)
from fulfillment.infrastructure.adapters.notifications import (
    MockNotificationService,
    WebhookNotificationService,
)
from fulfillment.infrastructure.bus import InMemoryWebhookQueue, RedisStreamWebhookQueue
from fulfillment.infrastructure.event_bus import InMemoryEventBus
from fulfillment.infrastructure.security import configure_field_cipher
from fulfillment.settings import AppSettings
from orchestration import JOB_EXHAUSTED, BackgroundJobQueue, JobRunner, RetryPolicy
from orchestration import InMemoryEventBus as JobEventBus

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Holds the wired services; adapters can be replaced for tests."""

    def __init__(
        self,
        settings: AppSettings,
        session_factory: async_sessionmaker,
        catalog: ICatalogService,
        gateways: PaymentGatewayRegistry,
        notifier: INotificationService,
        webhook_queue: IWebhookQueue,
    ) -> None:
        self.settings = settings
        self.session_factory = session_factory
        self.catalog = catalog
        self.gateways = gateways
        self.notifier = notifier
        self.webhook_queue = webhook_queue

        configure_field_cipher(settings.security.field_encryption_secret)

        # Domain events feed customer notifications
        self.event_bus = InMemoryEventBus()
        self.event_bus.subscribe(NotificationDispatcher(notifier))

        # Job lifecycle events feed operator alerts
        self.job_bus = JobEventBus()
        self.job_runner = JobRunner(event_bus=self.job_bus)
        self.job_queue = BackgroundJobQueue(self.job_runner)

        jobs = settings.jobs
        self.alerts = AlertService(
            session_factory,
            notifier,
            operator_recipient=settings.integrations.notifications.operator_recipient,
        )
        self.job_bus.subscribe(JOB_EXHAUSTED, self.alerts.on_job_exhausted)

        self.stock_ledger = StockLedger(session_factory)
        self.coupons = CouponEngine(session_factory)
        self.updater = OrderUpdater(session_factory, self.event_bus)
        self.transaction_log = TransactionLog(session_factory)
        self.refunds = RefundProcessor(session_factory, self.updater, gateways, self.alerts)
        self.compensation = CompensationScheduler(
            self.job_queue, jobs, self.stock_ledger, self.refunds
        )
        self.acceptance = OrderAcceptance(
            self.updater, self.stock_ledger, self.compensation, jobs
        )
        self.orders = OrderApplicationService(
            session_factory=session_factory,
            event_bus=self.event_bus,
            catalog=catalog,
            stock_ledger=self.stock_ledger,
            coupons=self.coupons,
            updater=self.updater,
            acceptance=self.acceptance,
            refunds=self.refunds,
            compensation=self.compensation,
            currency=settings.payments.currency,
            gateways=gateways,
        )
        self.reconciler = WebhookReconciler(
            session_factory=session_factory,
            updater=self.updater,
            acceptance=self.acceptance,
            compensation=self.compensation,
            alerts=self.alerts,
            runner=self.job_runner,
            settlement_policy=RetryPolicy(
                max_attempts=jobs.max_attempts,
                backoff_seconds=jobs.settlement_backoff_seconds,
                multiplier=jobs.backoff_multiplier,
                max_backoff_seconds=jobs.max_backoff_seconds,
            ),
        )
        self.returns = ReturnService(session_factory, self.updater, self.refunds, self.acceptance)
        self.payments = PaymentService(session_factory, self.updater, gateways, self.reconciler)
        self.webhook_worker = WebhookWorker(
            webhook_queue,
            self.reconciler,
            self.alerts,
            max_deliveries=settings.queue.max_deliveries,
        )

    async def start(self, run_worker: bool = True) -> None:
        self.job_queue.start()
        if run_worker:
            self.webhook_worker.start()
        logger.info("Service container started")

    async def stop(self) -> None:
        await self.webhook_worker.stop()
        await self.job_queue.stop()
        await self.webhook_queue.close()
        logger.info("Service container stopped")


def build_gateway_registry(
    settings: AppSettings,
    extra: Iterable[IPaymentGateway] = (),
    routes: Optional[Mapping[PaymentMethod, str]] = None,
) -> PaymentGatewayRegistry:
    """Register the configured gateways.

    Without a Stripe key, card payments are routed to the fake gateway.
    PayPal and Razorpay are registered only when their credentials are
    set; until then checkout rejects their payment methods.
    """
    payments = settings.payments
    gateways = [
        FakeGateway(webhook_secret=payments.fake_webhook_secret),
        CashOnDeliveryGateway(),
    ]
    method_routes = dict(routes or DEFAULT_METHOD_ROUTES)
    if payments.stripe_api_key:
        gateways.append(StripeGateway(payments))
    elif routes is None:
        logger.warning("STRIPE_SECRET_KEY not set; card payments use the fake gateway")
        method_routes[PaymentMethod.STRIPE] = FakeGateway.name
        method_routes[PaymentMethod.CARD] = FakeGateway.name
    if payments.paypal_client_id and payments.paypal_client_secret:
        gateways.append(PayPalGateway(payments))
    if payments.razorpay_key_id and payments.razorpay_key_secret:
        gateways.append(RazorpayGateway(payments))

    registry = PaymentGatewayRegistry(gateways, method_routes)
    for gateway in extra:
        registry.register(gateway)
    return registry


def build_container(
    settings: AppSettings,
    session_factory: async_sessionmaker,
    catalog: Optional[ICatalogService] = None,
    gateways: Optional[PaymentGatewayRegistry] = None,
    notifier: Optional[INotificationService] = None,
    webhook_queue: Optional[IWebhookQueue] = None,
) -> ServiceContainer:
    """Create a container, choosing adapters from settings where none is given."""
    integrations = settings.integrations

    if catalog is None:
        if integrations.catalog.base_url:
            catalog = HttpCatalogService(integrations.catalog)
        else:
            logger.warning("CATALOG_BASE_URL not set; using an empty in-memory catalog")
            catalog = InMemoryCatalogService()

    if notifier is None:
        if integrations.notifications.webhook_url:
            notifier = WebhookNotificationService(integrations.notifications)
        else:
            notifier = MockNotificationService()

    if webhook_queue is None:
        if settings.queue.backend == "redis":
            webhook_queue = RedisStreamWebhookQueue(settings.queue)
        else:
            webhook_queue = InMemoryWebhookQueue()

    return ServiceContainer(
        settings=settings,
        session_factory=session_factory,
        catalog=catalog,
        gateways=gateways or build_gateway_registry(settings),
        notifier=notifier,
        webhook_queue=webhook_queue,
    )
