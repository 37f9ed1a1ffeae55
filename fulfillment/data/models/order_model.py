"""SQLAlchemy ORM models for Order aggregate."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderModel(Base):
    """SQLAlchemy ORM model for orders table."""

    __tablename__ = "orders"

    order_number = Column(String(32), primary_key=True)
    customer_id = Column(String(64), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(32), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    subtotal = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)
    total_refunded = Column(Numeric(12, 2), nullable=False, default=0)
    coupon_code = Column(String(15), nullable=True)
    stock_deducted = Column(Boolean, nullable=False, default=False)
    cancellation_reason = Column(Text, nullable=True)
    tracking_number = Column(String(100), nullable=True)
    shipping_address = Column(JSON, nullable=False)
    billing_address = Column(JSON, nullable=False)
    shipping_date = Column(DateTime(timezone=True), nullable=True)
    delivery_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    version = Column(Integer, nullable=False, default=0)

    # Relationship to items
    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItemModel.id",
    )


class OrderItemModel(Base):
    """SQLAlchemy ORM model for order_items table."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(32), ForeignKey("orders.order_number"), nullable=False, index=True)
    product_id = Column(String(64), nullable=False)
    product_title = Column(String(500), nullable=False)
    variant = Column(String(64), nullable=False)
    packaging = Column(String(64), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)

    # Relationship back to order
    order = relationship("OrderModel", back_populates="items")
