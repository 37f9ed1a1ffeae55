"""Routes payment methods to gateway adapters."""
import logging
from typing import Dict, Iterable, Mapping, Optional

from fulfillment.application.interfaces import IPaymentGateway
from fulfillment.domain.enums import PaymentMethod
from fulfillment.domain.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_METHOD_ROUTES: Dict[PaymentMethod, str] = {
    PaymentMethod.STRIPE: "stripe",
    PaymentMethod.CARD: "stripe",
    PaymentMethod.COD: "cod",
    PaymentMethod.CASH_ON_DELIVERY: "cod",
    PaymentMethod.PAYPAL: "paypal",
    PaymentMethod.RAZORPAY: "razorpay",
    PaymentMethod.UPI: "razorpay",
}


class PaymentGatewayRegistry:

    def __init__(
        self,
        gateways: Iterable[IPaymentGateway] = (),
        routes: Optional[Mapping[PaymentMethod, str]] = None,
    ):
        self._gateways: Dict[str, IPaymentGateway] = {}
        self._routes: Dict[PaymentMethod, str] = dict(routes or DEFAULT_METHOD_ROUTES)
        for gateway in gateways:
            self.register(gateway)

    def register(self, gateway: IPaymentGateway) -> None:
        self._gateways[gateway.name] = gateway
        logger.info(f"Registered payment gateway: {gateway.name}")

    def get(self, name: Optional[str]) -> Optional[IPaymentGateway]:
        if not name:
            return None
        return self._gateways.get(name)

    def serves(self, method: PaymentMethod) -> bool:
        """Whether a configured gateway handles the payment method."""
        return self.get(self._routes.get(PaymentMethod(method))) is not None

    def for_method(self, method: PaymentMethod) -> IPaymentGateway:
        """
        Gateway handling a payment method.

        Raises:
            ValidationError: No configured gateway serves the method
        """
        gateway = self.get(self._routes.get(PaymentMethod(method)))
        if gateway is None:
            raise ValidationError(f"Payment method {PaymentMethod(method).value} is not supported.")
        return gateway

    def webhook_gateway(self, name: str) -> Optional[IPaymentGateway]:
        """Gateway accepting webhooks under `name`, if any."""
        gateway = self.get(name)
        if gateway is None or not gateway.supports_webhooks:
            return None
        return gateway
