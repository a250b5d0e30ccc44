from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from storefront.core.errors import InsufficientStockError, NotFoundError, ValidationError
from storefront.models.product import Product

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"
COMPLETED = "completed"


def _load_product(db: Session, product_id: int) -> Optional[Product]:
    return db.query(Product).populate_existing().filter(Product.id == product_id).first()


def reserve_stock(db: Session, product_id: int, qty: int) -> Product:
    """Take ``qty`` units out of stock inside the caller's transaction.

    The decrement is conditional on ``stock >= qty`` so concurrent orders
    cannot oversell. ``in_stock`` goes false only when stock lands on 0.
    """
    if qty < 1:
        raise ValidationError("Quantity must be at least 1")

    remaining = Product.stock - qty
    result = db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= qty)
        .values(
            stock=remaining,
            in_stock=case((remaining == 0, False), else_=Product.in_stock),
        )
        .execution_options(synchronize_session=False)
    )

    product = _load_product(db, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    if result.rowcount == 0:
        logger.info(
            "stock reservation refused product_id=%s requested=%s available=%s",
            product_id,
            qty,
            product.stock,
        )
        raise InsufficientStockError(product.stock)

    logger.info("stock reserved product_id=%s qty=%s remaining=%s", product_id, qty, product.stock)
    return product


def release_stock(db: Session, product_id: int | None, qty: int) -> Optional[Product]:
    """Put ``qty`` units back. A product that no longer exists is skipped."""
    if product_id is None:
        return None

    result = db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + qty, in_stock=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning("stock release skipped, product missing product_id=%s qty=%s", product_id, qty)
        return None

    product = _load_product(db, product_id)
    logger.info("stock released product_id=%s qty=%s stock=%s", product_id, qty, product.stock)
    return product


def should_release_on_status_change(previous: str, new: str) -> bool:
    return new == CANCELLED and previous != CANCELLED


def should_release_on_delete(status: str) -> bool:
    return status not in {CANCELLED, COMPLETED}
