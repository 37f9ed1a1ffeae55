"""SQLAlchemy ORM model for operator alerts."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String

from .base import Base


class OperatorAlertModel(Base):
    __tablename__ = "operator_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(64), nullable=False, index=True)
    order_number = Column(String(32), nullable=True, index=True)
    detail = Column(JSON, nullable=False, default=dict)
    resolved = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
