"""
Domain error taxonomy.

Every error the order engine reports to callers is defined here. The API
layer translates them into HTTP responses; nothing in the domain knows
about status codes.
"""
from decimal import Decimal
from typing import Optional


class FulfillmentError(Exception):
    """Base class for all order engine errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def kind(self) -> str:
        """Stable error kind reported to callers."""
        return self.__class__.__name__


class ValidationError(FulfillmentError):
    """Bad input shape or missing fields."""


class ProductInvalid(FulfillmentError):
    """Product does not exist or is not active."""

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product with ID {product_id} is invalid.")
        self.product_id = product_id


class VariantNotFound(FulfillmentError):
    """Requested variant is not offered by the product."""

    def __init__(self, variant: str, product: str) -> None:
        super().__init__(f"Variant {variant} not found for product {product}.")
        self.variant = variant
        self.product = product


class PackagingInvalid(FulfillmentError):
    """Requested packaging is not offered by the product."""

    def __init__(self, packaging: str, product: str) -> None:
        super().__init__(f"Packaging {packaging} not valid for product {product}.")
        self.packaging = packaging
        self.product = product


class InsufficientStock(FulfillmentError):
    """Stock ledger shortfall for a variant."""

    def __init__(self, product: str, variant: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Insufficient stock for product {product}, variant {variant}.")
        self.product = product
        self.variant = variant


class CouponInvalid(FulfillmentError):
    """Coupon is unknown or inactive."""


class CouponExpired(FulfillmentError):
    """Coupon expiration date has passed."""


class CouponExhausted(FulfillmentError):
    """Coupon usage cap has been reached."""


class InvalidTransition(FulfillmentError):
    """Order state machine violation."""


class OrderNotFound(FulfillmentError):
    """No order with the given number."""

    def __init__(self, order_number: str) -> None:
        super().__init__(f"Order {order_number} not found")
        self.order_number = order_number


class WebhookSignatureInvalid(FulfillmentError):
    """Webhook payload failed authenticity verification."""


class RefundExceedsLimit(FulfillmentError):
    """Requested refund is larger than the refundable remainder."""

    def __init__(self, requested: Decimal, refundable: Decimal) -> None:
        super().__init__(
            f"Refund amount {requested} exceeds refundable amount {refundable}."
        )
        self.requested = requested
        self.refundable = refundable


class RefundProcessingFailed(FulfillmentError):
    """Gateway refused or failed the refund; state is unchanged."""

    def __init__(self, message: str, idempotency_key: Optional[str] = None) -> None:
        super().__init__(message)
        self.idempotency_key = idempotency_key


class PaymentGatewayError(FulfillmentError):
    """Opaque upstream gateway failure after bounded retries."""


class CouponNotFound(FulfillmentError):
    """Coupon lookup by code found nothing."""

    def __init__(self, code: str) -> None:
        super().__init__(f"Coupon {code} not found")
        self.code = code


class CatalogUnavailable(FulfillmentError):
    """Catalog service could not be reached or answered with an error."""


class ReturnNotFound(FulfillmentError):
    """No return request with the given id on the order."""

    def __init__(self, order_number: str, return_id: int) -> None:
        super().__init__(f"Return {return_id} not found for order {order_number}")
        self.order_number = order_number
        self.return_id = return_id
