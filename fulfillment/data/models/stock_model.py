"""SQLAlchemy ORM model for per-variant stock."""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, UniqueConstraint

from .base import Base


class StockEntryModel(Base):
    """One row per (product, variant); quantity is never negative."""

    __tablename__ = "stock_entries"
    __table_args__ = (
        UniqueConstraint("product_id", "variant", name="uq_stock_product_variant"),
        CheckConstraint("quantity >= 0", name="ck_stock_quantity_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(String(64), nullable=False)
    variant = Column(String(64), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
