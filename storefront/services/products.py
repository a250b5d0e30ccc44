from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.core.errors import NotFoundError, ValidationError
from storefront.models.category import Category
from storefront.models.order import Order
from storefront.models.product import Product

logger = logging.getLogger(__name__)

PRODUCT_STATUSES = {"active", "inactive", "draft"}
SORT_COLUMNS = {
    "name": Product.name,
    "price": Product.price,
    "stock": Product.stock,
    "rating": Product.rating,
    "created_at": Product.created_at,
    "updated_at": Product.updated_at,
}


def compute_price(original_price: float, discount: float) -> float:
    return round(float(original_price) * (1 - float(discount or 0) / 100), 2)


def normalize_badges(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(badge).strip() for badge in value if str(badge).strip()]


def _validate_numbers(data: dict[str, Any]) -> None:
    if data.get("stock") is not None and int(data["stock"]) < 0:
        raise ValidationError("Stock cannot be negative")
    if data.get("original_price") is not None and float(data["original_price"]) < 0:
        raise ValidationError("Price cannot be negative")
    if data.get("discount") is not None and not 0 <= float(data["discount"]) <= 100:
        raise ValidationError("Discount must be between 0 and 100")
    if data.get("rating") is not None and not 0 <= float(data["rating"]) <= 5:
        raise ValidationError("Rating must be between 0 and 5")
    if data.get("status") is not None and data["status"] not in PRODUCT_STATUSES:
        raise ValidationError(f"Invalid product status: {data['status']}")


def _require_category(db: Session, category_id: Any) -> int:
    if category_id is None:
        raise ValidationError("Category is required")
    if not db.query(Category.id).filter(Category.id == int(category_id)).first():
        raise ValidationError("Invalid category ID")
    return int(category_id)


def _ensure_unique_sku(db: Session, sku: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ValidationError("Product with this SKU already exists")


def _commit(db: Session, product: Product) -> Product:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError("Product with this SKU already exists") from exc
    db.refresh(product)
    return product


def create_product(db: Session, data: dict[str, Any]) -> Product:
    name = (data.get("name") or "").strip()
    sku = (data.get("sku") or "").strip().upper()
    if not name:
        raise ValidationError("Product name is required")
    if not sku:
        raise ValidationError("SKU is required")
    if data.get("original_price") is None:
        raise ValidationError("Original price is required")
    images = [image for image in (data.get("images") or []) if image]
    if not images:
        raise ValidationError("At least one product image is required")

    _validate_numbers(data)
    category_id = _require_category(db, data.get("category_id"))
    _ensure_unique_sku(db, sku)

    stock = int(data.get("stock") or 0)
    discount = float(data.get("discount") or 0)
    product = Product(
        name=name,
        sku=sku,
        category_id=category_id,
        brand=data.get("brand"),
        description=data.get("description"),
        stock=stock,
        in_stock=data["in_stock"] if data.get("in_stock") is not None else stock > 0,
        original_price=float(data["original_price"]),
        discount=discount,
        price=compute_price(data["original_price"], discount),
        rating=float(data.get("rating") or 0),
        is_new=bool(data.get("is_new", False)),
        status=data.get("status") or "active",
        images=images,
        badges=normalize_badges(data.get("badges")),
    )
    db.add(product)
    _commit(db, product)
    logger.info("product created id=%s sku=%s stock=%s", product.id, product.sku, product.stock)
    return product


def update_product(db: Session, product: Product, patch: dict[str, Any]) -> Product:
    _validate_numbers(patch)

    try:
        if patch.get("name") is not None:
            if not patch["name"].strip():
                raise ValidationError("Product name is required")
            product.name = patch["name"].strip()
        if patch.get("sku") is not None:
            sku = patch["sku"].strip().upper()
            if not sku:
                raise ValidationError("SKU is required")
            _ensure_unique_sku(db, sku, exclude_id=product.id)
            product.sku = sku
        if patch.get("category_id") is not None:
            product.category_id = _require_category(db, patch["category_id"])
        if patch.get("images") is not None:
            images = [image for image in patch["images"] if image]
            if not images:
                raise ValidationError("At least one product image is required")
            product.images = images
        if "badges" in patch:
            product.badges = normalize_badges(patch["badges"])

        for field in ("brand", "description"):
            if field in patch:
                setattr(product, field, patch[field])
        for field in ("original_price", "discount", "rating", "is_new", "status"):
            if patch.get(field) is not None:
                setattr(product, field, patch[field])

        if patch.get("stock") is not None:
            product.stock = int(patch["stock"])
            product.in_stock = product.stock > 0
        if patch.get("in_stock") is not None:
            product.in_stock = bool(patch["in_stock"])

        product.price = compute_price(product.original_price, product.discount)
    except Exception:
        db.rollback()
        raise
    return _commit(db, product)


def get_product(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def delete_product(db: Session, product: Product) -> None:
    # Orders keep their snapshot of the product
    db.query(Order).filter(Order.product_id == product.id).update(
        {Order.product_id: None},
        synchronize_session=False,
    )
    product_id, sku = product.id, product.sku
    db.delete(product)
    db.commit()
    logger.info("product deleted id=%s sku=%s", product_id, sku)


def list_products(
    db: Session,
    *,
    search: str | None = None,
    category_id: int | None = None,
    status: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    in_stock: bool | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Product], int]:
    query = db.query(Product)

    clean_search = (search or "").strip()
    if clean_search:
        search_like = f"%{clean_search}%"
        query = query.filter(
            or_(
                Product.name.ilike(search_like),
                Product.sku.ilike(search_like),
                Product.description.ilike(search_like),
            )
        )
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if status:
        query = query.filter(Product.status == status)
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)
    if in_stock is not None:
        query = query.filter(Product.in_stock.is_(in_stock))

    total = query.count()

    column = SORT_COLUMNS.get(sort_by, Product.created_at)
    ordering = column.asc() if sort_order == "asc" else column.desc()
    items = (
        query.order_by(ordering, Product.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total
