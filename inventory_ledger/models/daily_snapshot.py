from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Index, Integer, UniqueConstraint

from inventory_ledger.database.base import Base


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DailySnapshot(Base):
    __tablename__ = "daily_stock"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    available_qty = Column(Integer, nullable=False, default=0)
    avg_cost = Column(Float, nullable=False, default=0)

    date = Column(Date, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utc_now,
        onupdate=_utc_now,
    )

    __table_args__ = (
        UniqueConstraint("product_id", "date", name="uq_daily_stock_product_date"),
        Index("idx_daily_stock_available_qty", "available_qty"),
    )


__all__ = ["DailySnapshot"]
