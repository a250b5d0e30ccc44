from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.core.errors import NotFoundError, ValidationError
from storefront.models.category import Category
from storefront.models.product import Product
from storefront.utils.slug import slugify

logger = logging.getLogger(__name__)

_EMPTY_PARENT_VALUES = {"", "null", "undefined", "none", "root"}


def clean_parent_id(value: Any) -> Optional[int]:
    """Turn the loose parent values sent by admin forms into an id or None."""
    if value is None:
        return None
    if isinstance(value, str):
        raw = value.strip()
        if raw.lower() in _EMPTY_PARENT_VALUES:
            return None
        if not raw.isdigit():
            raise ValidationError("Invalid parent category ID")
        return int(raw)
    return int(value)


def get_category(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFoundError("Category not found")
    return category


def _require_parent(db: Session, parent_id: Optional[int]) -> None:
    if parent_id is None:
        return
    if not db.query(Category.id).filter(Category.id == parent_id).first():
        raise ValidationError("Invalid parent category ID")


def _ensure_unique_name(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Category.id).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise ValidationError("Category with this name already exists")


def _creates_cycle(db: Session, category_id: int, parent_id: int) -> bool:
    seen: set[int] = set()
    current: Optional[int] = parent_id
    while current is not None and current not in seen:
        if current == category_id:
            return True
        seen.add(current)
        current = db.query(Category.parent_id).filter(Category.id == current).scalar()
    return False


def create_category(
    db: Session,
    *,
    name: str,
    description: str | None = None,
    parent_id: Any = None,
    image: str | None = None,
    is_active: bool = True,
    sort_order: int = 0,
    slug: str | None = None,
) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required")
    _ensure_unique_name(db, name)

    parent = clean_parent_id(parent_id)
    _require_parent(db, parent)

    category = Category(
        name=name,
        slug=slugify(slug or name),
        description=description,
        parent_id=parent,
        image=image,
        is_active=is_active,
        sort_order=sort_order,
    )
    db.add(category)
    db.commit()
    db.refresh(category)
    logger.info("category created id=%s parent_id=%s", category.id, category.parent_id)
    return category


def update_category(db: Session, category: Category, patch: dict[str, Any]) -> Category:
    try:
        if patch.get("name") is not None:
            name = patch["name"].strip()
            if not name:
                raise ValidationError("Category name is required")
            _ensure_unique_name(db, name, exclude_id=category.id)
            category.name = name
            if patch.get("slug") is None:
                category.slug = slugify(name)

        if patch.get("slug") is not None:
            category.slug = slugify(patch["slug"])

        if "parent_id" in patch:
            parent = clean_parent_id(patch["parent_id"])
            if parent == category.id:
                raise ValidationError("Category cannot be its own parent")
            _require_parent(db, parent)
            if parent is not None and _creates_cycle(db, category.id, parent):
                raise ValidationError("Category cannot be moved under one of its subcategories")
            category.parent_id = parent

        for field in ("description", "image"):
            if field in patch:
                setattr(category, field, patch[field])
        for field in ("is_active", "sort_order"):
            if patch.get(field) is not None:
                setattr(category, field, patch[field])
    except Exception:
        db.rollback()
        raise

    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category: Category) -> None:
    children = db.query(func.count(Category.id)).filter(Category.parent_id == category.id).scalar() or 0
    if children:
        raise ValidationError(
            "Cannot delete category with subcategories. Delete or move subcategories first."
        )

    products = db.query(func.count(Product.id)).filter(Product.category_id == category.id).scalar() or 0
    if products:
        raise ValidationError(
            f"Cannot delete category with {products} product(s). Move or delete the products first."
        )

    category_id = category.id
    db.delete(category)
    db.commit()
    logger.info("category deleted id=%s", category_id)


def list_categories(
    db: Session,
    *,
    parent: str | None = None,
    is_active: bool | None = None,
) -> list[Category]:
    """``parent`` omitted returns every category; empty/``root`` returns top level only."""
    query = db.query(Category)
    if parent is not None:
        parent_id = clean_parent_id(parent)
        if parent_id is None:
            query = query.filter(Category.parent_id.is_(None))
        else:
            query = query.filter(Category.parent_id == parent_id)
    if is_active is not None:
        query = query.filter(Category.is_active.is_(is_active))
    return query.order_by(Category.sort_order.asc(), Category.name.asc()).all()


def list_children(db: Session, category_id: int) -> list[Category]:
    return (
        db.query(Category)
        .filter(Category.parent_id == category_id)
        .order_by(Category.sort_order.asc(), Category.name.asc())
        .all()
    )


def product_counts(db: Session, category_ids: Iterable[int]) -> dict[int, int]:
    ids = list(category_ids)
    if not ids:
        return {}
    rows = (
        db.query(Product.category_id, func.count(Product.id))
        .filter(Product.category_id.in_(ids))
        .group_by(Product.category_id)
        .all()
    )
    return {category_id: count for category_id, count in rows}
