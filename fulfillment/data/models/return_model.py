"""SQLAlchemy ORM model for customer return requests."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String, Text

from .base import Base


class ReturnRequestModel(Base):
    __tablename__ = "return_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(
        String(32), ForeignKey("orders.order_number"), nullable=False, index=True
    )
    status = Column(String(16), nullable=False, default="requested")
    items = Column(JSON, nullable=False)
    currency = Column(String(3), nullable=False)
    refund_amount = Column(Numeric(12, 2), nullable=False)
    refunded_amount = Column(Numeric(12, 2), nullable=True)
    refund_id = Column(String(255), nullable=True)
    reason = Column(Text, nullable=True)
    decision_note = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    decided_at = Column(DateTime(timezone=True), nullable=True)
