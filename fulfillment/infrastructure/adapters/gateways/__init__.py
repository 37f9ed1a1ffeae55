from .cod_gateway import CashOnDeliveryGateway
from .fake_gateway import FakeGateway
from .paypal_gateway import PayPalGateway
from .razorpay_gateway import RazorpayGateway
from .registry import DEFAULT_METHOD_ROUTES, PaymentGatewayRegistry
from .retry import GatewayServerError, call_with_retries
from .stripe_gateway import StripeGateway

__all__ = [
    "CashOnDeliveryGateway",
    "DEFAULT_METHOD_ROUTES",
    "FakeGateway",
    "GatewayServerError",
    "PayPalGateway",
    "PaymentGatewayRegistry",
    "RazorpayGateway",
    "StripeGateway",
    "call_with_retries",
]
