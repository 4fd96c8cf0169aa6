from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_ledger.core.exceptions import ProductNotFoundError
from inventory_ledger.models.product import Product


def lock_product(db: Session, product_id: int) -> Product:
    """Serialize ledger writers for one product until the transaction ends.

    Row lock on PostgreSQL; SQLite drops FOR UPDATE and relies on its
    single-writer database lock instead.
    """
    product = db.execute(
        select(Product).where(Product.id == product_id).with_for_update()
    ).scalar_one_or_none()
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def lock_products(db: Session, product_ids: Iterable[int]) -> list[int]:
    # Ascending id order keeps concurrent lockers from deadlocking.
    ids = sorted(set(product_ids))
    if not ids:
        return []
    locked = db.execute(
        select(Product.id)
        .where(Product.id.in_(ids))
        .order_by(Product.id)
        .with_for_update()
    ).scalars().all()
    return list(locked)


__all__ = ["lock_product", "lock_products"]
