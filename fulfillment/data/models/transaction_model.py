"""SQLAlchemy ORM model for payment transactions."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String

from fulfillment.infrastructure.security import EncryptedString

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionModel(Base):
    """
    Payment attempt row.

    `gateway_transaction_id` and `receipt_url` are Fernet-encrypted;
    `gateway_id_hash` is the keyed lookup hash of the gateway id.
    """

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(32), ForeignKey("orders.order_number"), nullable=False, index=True)
    payment_method = Column(String(32), nullable=False)
    gateway = Column(String(32), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default="pending")
    gateway_transaction_id = Column(EncryptedString(), nullable=True)
    gateway_id_hash = Column(String(64), nullable=True, unique=True, index=True)
    receipt_url = Column(EncryptedString(), nullable=True)
    refunded_amount = Column(Numeric(12, 2), nullable=False, default=0)
    gateway_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
