"""Static mappers for domain entities ↔ database models."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from fulfillment.domain.entities.alert import OperatorAlert
from fulfillment.domain.entities.coupon import Coupon
from fulfillment.domain.entities.order import Order, OrderItem
from fulfillment.domain.entities.return_request import ReturnItem, ReturnRequest
from fulfillment.domain.entities.transaction import Transaction
from fulfillment.domain.enums import (
    DiscountType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ReturnStatus,
    TransactionStatus,
)
from fulfillment.domain.value_objects import Address, Money, OrderNumber, quantize_amount

from .models.alert_model import OperatorAlertModel
from .models.coupon_model import CouponModel
from .models.order_model import OrderItemModel, OrderModel
from .models.return_model import ReturnRequestModel
from .models.transaction_model import TransactionModel


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; every stored timestamp is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _decimal(value) -> Decimal:
    return quantize_amount(Decimal(str(value if value is not None else "0")))


class OrderItemMapper:
    """Static mapper for OrderItem ↔ OrderItemModel transformation."""

    @staticmethod
    def to_domain(model: OrderItemModel, currency: str) -> OrderItem:
        return OrderItem(
            product_id=model.product_id,
            product_title=model.product_title,
            variant=model.variant,
            packaging=model.packaging,
            quantity=model.quantity,
            unit_price=Money(amount=_decimal(model.unit_price), currency=currency),
        )

    @staticmethod
    def to_persistence(entity: OrderItem, order_number: str) -> OrderItemModel:
        return OrderItemModel(
            order_number=order_number,
            product_id=entity.product_id,
            product_title=entity.product_title,
            variant=entity.variant,
            packaging=entity.packaging,
            quantity=entity.quantity,
            unit_price=entity.unit_price.amount,
        )


class OrderMapper:
    """Static mapper for Order ↔ OrderModel transformation."""

    @staticmethod
    def to_domain(model: OrderModel) -> Order:
        """Convert ORM model to domain aggregate.

        Args:
            model: OrderModel instance with items loaded

        Returns:
            Order domain aggregate
        """
        currency = model.currency
        return Order(
            order_number=OrderNumber(model.order_number),
            customer_id=model.customer_id,
            items=[OrderItemMapper.to_domain(item, currency) for item in model.items],
            shipping_address=Address.from_dict(model.shipping_address),
            billing_address=Address.from_dict(model.billing_address),
            payment_method=PaymentMethod(model.payment_method),
            subtotal=Money(_decimal(model.subtotal), currency),
            discount=Money(_decimal(model.discount), currency),
            total=Money(_decimal(model.total), currency),
            coupon_code=model.coupon_code,
            status=OrderStatus(model.status),
            payment_status=PaymentStatus(model.payment_status),
            total_refunded=Money(_decimal(model.total_refunded), currency),
            stock_deducted=bool(model.stock_deducted),
            cancellation_reason=model.cancellation_reason,
            tracking_number=model.tracking_number,
            shipping_date=as_utc(model.shipping_date),
            delivery_date=as_utc(model.delivery_date),
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
            version=model.version,
        )

    @staticmethod
    def to_persistence(entity: Order) -> OrderModel:
        """Convert a newly placed domain aggregate to ORM model.

        Args:
            entity: Order domain aggregate

        Returns:
            OrderModel instance with items
        """
        order_number = entity.order_number.value
        model = OrderModel(
            order_number=order_number,
            customer_id=entity.customer_id,
            payment_method=entity.payment_method.value,
            currency=entity.total.currency,
            subtotal=entity.subtotal.amount,
            discount=entity.discount.amount,
            total=entity.total.amount,
            coupon_code=entity.coupon_code,
            total_refunded=entity.total_refunded.amount,
            shipping_address=entity.shipping_address.to_dict(),
            billing_address=entity.billing_address.to_dict(),
            created_at=entity.created_at,
            **OrderMapper.mutable_values(entity),
        )
        model.items = [OrderItemMapper.to_persistence(item, order_number) for item in entity.items]
        return model

    @staticmethod
    def mutable_values(entity: Order) -> dict:
        """Columns a state transition may change.

        `version` and `total_refunded` are excluded: the former is the CAS
        guard and the latter only moves through refund reservations.
        """
        return {
            "status": entity.status.value,
            "payment_status": entity.payment_status.value,
            "stock_deducted": entity.stock_deducted,
            "cancellation_reason": entity.cancellation_reason,
            "tracking_number": entity.tracking_number,
            "shipping_date": entity.shipping_date,
            "delivery_date": entity.delivery_date,
            "updated_at": entity.updated_at,
        }


class TransactionMapper:

    @staticmethod
    def to_domain(model: TransactionModel) -> Transaction:
        return Transaction(
            id=model.id,
            order_number=model.order_number,
            payment_method=PaymentMethod(model.payment_method),
            amount=Money(_decimal(model.amount), model.currency),
            status=TransactionStatus(model.status),
            gateway=model.gateway,
            gateway_transaction_id=model.gateway_transaction_id,
            receipt_url=model.receipt_url,
            refunded_amount=_decimal(model.refunded_amount),
            metadata=dict(model.gateway_metadata or {}),
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
        )

    @staticmethod
    def to_persistence(entity: Transaction, gateway_id_hash: Optional[str]) -> TransactionModel:
        return TransactionModel(
            order_number=entity.order_number,
            payment_method=entity.payment_method.value,
            gateway=entity.gateway,
            amount=entity.amount.amount,
            currency=entity.amount.currency,
            status=entity.status.value,
            gateway_transaction_id=entity.gateway_transaction_id,
            gateway_id_hash=gateway_id_hash,
            receipt_url=entity.receipt_url,
            refunded_amount=entity.refunded_amount,
            gateway_metadata=dict(entity.metadata),
        )


class CouponMapper:

    @staticmethod
    def to_domain(model: CouponModel) -> Coupon:
        return Coupon(
            id=model.id,
            code=model.code,
            discount_type=DiscountType(model.discount_type),
            discount_value=_decimal(model.discount_value),
            max_uses=model.max_uses,
            used_count=model.used_count,
            is_active=bool(model.is_active),
            expires_at=as_utc(model.expires_at),
        )

    @staticmethod
    def to_persistence(entity: Coupon) -> CouponModel:
        return CouponModel(
            code=entity.code,
            discount_type=entity.discount_type.value,
            discount_value=entity.discount_value,
            max_uses=entity.max_uses,
            used_count=entity.used_count,
            is_active=entity.is_active,
            expires_at=entity.expires_at,
        )


class AlertMapper:

    @staticmethod
    def to_domain(model: OperatorAlertModel) -> OperatorAlert:
        return OperatorAlert(
            id=model.id,
            kind=model.kind,
            order_number=model.order_number,
            detail=dict(model.detail or {}),
            resolved=bool(model.resolved),
            created_at=as_utc(model.created_at),
        )

    @staticmethod
    def to_persistence(entity: OperatorAlert) -> OperatorAlertModel:
        return OperatorAlertModel(
            kind=entity.kind,
            order_number=entity.order_number,
            detail=dict(entity.detail),
            resolved=entity.resolved,
            created_at=entity.created_at,
        )


class ReturnMapper:

    @staticmethod
    def to_domain(model: ReturnRequestModel) -> ReturnRequest:
        refunded = None
        if model.refunded_amount is not None:
            refunded = Money(_decimal(model.refunded_amount), model.currency)
        return ReturnRequest(
            id=model.id,
            order_number=model.order_number,
            status=ReturnStatus(model.status),
            items=[
                ReturnItem(item["product_id"], item["variant"], int(item["quantity"]))
                for item in model.items or []
            ],
            refund_amount=Money(_decimal(model.refund_amount), model.currency),
            refunded_amount=refunded,
            refund_id=model.refund_id,
            reason=model.reason,
            decision_note=model.decision_note,
            created_at=as_utc(model.created_at),
            decided_at=as_utc(model.decided_at),
        )

    @staticmethod
    def to_persistence(entity: ReturnRequest) -> ReturnRequestModel:
        return ReturnRequestModel(
            order_number=entity.order_number,
            items=[
                {"product_id": item.product_id, "variant": item.variant, "quantity": item.quantity}
                for item in entity.items
            ],
            currency=entity.refund_amount.currency,
            refund_amount=entity.refund_amount.amount,
            reason=entity.reason,
            created_at=entity.created_at,
            **ReturnMapper.decision_values(entity),
        )

    @staticmethod
    def decision_values(entity: ReturnRequest) -> dict:
        return {
            "status": entity.status.value,
            "refunded_amount": entity.refunded_amount.amount if entity.refunded_amount else None,
            "refund_id": entity.refund_id,
            "decision_note": entity.decision_note,
            "decided_at": entity.decided_at,
        }
