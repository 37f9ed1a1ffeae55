"""Application DTOs for Order operations."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from fulfillment.domain.entities.order import Order
from fulfillment.domain.enums import OrderStatus, PaymentMethod, PaymentStatus


class AddressDTO(BaseModel):
    """Postal address snapshot."""

    full_name: str = Field(..., min_length=1)
    line1: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=2)
    line2: Optional[str] = None
    state: Optional[str] = None
    phone: Optional[str] = None

    model_config = {"frozen": True}


class OrderLineRequest(BaseModel):
    """Requested line item; the price is taken from the catalog."""

    product_id: str = Field(..., min_length=1, description="Catalog product ID")
    variant: str = Field(..., min_length=1, description="Variant size, e.g. 500ml")
    packaging: str = Field(..., min_length=1, description="Packaging option")
    quantity: int = Field(..., gt=0, description="Quantity ordered")

    model_config = {"frozen": True}


class CreateOrderRequest(BaseModel):
    """Request DTO for creating an order."""

    customer_id: str = Field(..., min_length=1, description="Customer reference")
    items: List[OrderLineRequest] = Field(..., min_length=1, description="Order items")
    shipping_address: AddressDTO
    billing_address: Optional[AddressDTO] = Field(
        None, description="Defaults to the shipping address"
    )
    payment_method: PaymentMethod
    coupon_code: Optional[str] = Field(None, max_length=15)

    model_config = {"frozen": True}


class OrderItemDTO(BaseModel):
    """DTO for order item."""

    product_id: str
    product_title: str
    variant: str
    packaging: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    model_config = {"frozen": True}


class OrderDTO(BaseModel):
    """Response DTO for order details."""

    order_number: str = Field(..., description="ORD-<millis>-<6 digits>")
    customer_id: str
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    items: List[OrderItemDTO]
    shipping_address: AddressDTO
    billing_address: AddressDTO
    currency: str
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    total_refunded: Decimal
    refundable: Decimal
    coupon_code: Optional[str] = None
    stock_deducted: bool
    cancellation_reason: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    version: int

    model_config = {"frozen": True}

    @classmethod
    def from_order(cls, order: Order) -> "OrderDTO":
        return cls(
            order_number=order.order_number.value,
            customer_id=order.customer_id,
            status=order.status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            items=[
                OrderItemDTO(
                    product_id=item.product_id,
                    product_title=item.product_title,
                    variant=item.variant,
                    packaging=item.packaging,
                    quantity=item.quantity,
                    unit_price=item.unit_price.amount,
                    line_total=item.line_total.quantized().amount,
                )
                for item in order.items
            ],
            shipping_address=AddressDTO(**order.shipping_address.to_dict()),
            billing_address=AddressDTO(**order.billing_address.to_dict()),
            currency=order.total.currency,
            subtotal=order.subtotal.amount,
            discount=order.discount.amount,
            total=order.total.amount,
            total_refunded=order.total_refunded.amount,
            refundable=order.refundable.amount,
            coupon_code=order.coupon_code,
            stock_deducted=order.stock_deducted,
            cancellation_reason=order.cancellation_reason,
            tracking_number=order.tracking_number,
            shipping_date=order.shipping_date,
            delivery_date=order.delivery_date,
            created_at=order.created_at,
            updated_at=order.updated_at,
            version=order.version,
        )


class OrderListDTO(BaseModel):
    """DTO for listing orders."""

    orders: List[OrderDTO] = Field(default_factory=list, description="List of orders")
    total: int = Field(..., ge=0, description="Total count")
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)

    model_config = {"frozen": True}


class UpdateStatusRequest(BaseModel):
    status: OrderStatus
    tracking_number: Optional[str] = Field(None, max_length=100)

    model_config = {"frozen": True}


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)

    model_config = {"frozen": True}
