from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer

from inventory_ledger.database.base import Base


class StockMovement(Base):
    """One stock-affecting invoice line for one product.

    Canonical order per product is ``(invoice_id, id)``; ``quantity_before``,
    ``quantity_after`` and ``avg_cost_after`` are derived from the chain and
    rewritten whenever an earlier movement changes.
    """

    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    invoice_id = Column(Integer, nullable=False)
    # Naive wall time in the ledger timezone, so the stored day is the ledger day.
    invoice_date = Column(DateTime, nullable=False)

    quantity_before = Column(Integer, nullable=False, default=0)
    quantity_change = Column(Integer, nullable=False)
    quantity_after = Column(Integer, nullable=False, default=0)

    # Known only for incoming stock with a purchase price.
    unit_cost = Column(Float)
    avg_cost_after = Column(Float)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_stock_movements_chain", "product_id", "invoice_id", "id"),
        Index("idx_stock_movements_invoice_date", "invoice_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} product={self.product_id} invoice={self.invoice_id} "
            f"before={self.quantity_before} change={self.quantity_change} "
            f"after={self.quantity_after} avg={self.avg_cost_after}>"
        )


__all__ = ["StockMovement"]
