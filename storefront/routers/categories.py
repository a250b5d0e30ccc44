from typing import Optional, Union

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.core.database import get_db
from storefront.core.responses import envelope, iso, list_envelope
from storefront.deps import require_admin
from storefront.models.category import Category
from storefront.models.user import User
from storefront.services import categories as category_service
from storefront.services.category_tree import build_category_tree

router = APIRouter(prefix="/api/categories", tags=["categories"])


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: Optional[str] = None
    description: Optional[str] = None
    parent_id: Union[int, str, None] = None
    image: Optional[str] = None
    is_active: bool = True
    sort_order: int = Field(0, alias="order")

    model_config = {"populate_by_name": True}


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = None
    description: Optional[str] = None
    parent_id: Union[int, str, None] = None
    image: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = Field(None, alias="order")

    model_config = {"populate_by_name": True}


def _category_summary(category: Category) -> dict:
    return {"id": category.id, "name": category.name, "slug": category.slug}


def category_to_dict(category: Category, product_count: Optional[int] = None) -> dict:
    data = {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "description": category.description,
        "parent_id": category.parent_id,
        "image": category.image,
        "is_active": category.is_active,
        "order": category.sort_order,
        "created_at": iso(category.created_at),
        "updated_at": iso(category.updated_at),
    }
    if product_count is not None:
        data["product_count"] = product_count
    return data


@router.get("")
def list_categories(
    parent: Optional[str] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    nested: bool = Query(default=False),
    include_products: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    categories = category_service.list_categories(db, parent=parent, is_active=is_active)
    counts = category_service.product_counts(db, [c.id for c in categories]) if include_products else None

    items = [
        category_to_dict(category, counts.get(category.id, 0) if counts is not None else None)
        for category in categories
    ]
    if nested:
        return list_envelope(build_category_tree(items))
    return list_envelope(items)


@router.get("/{category_id}")
def get_category(category_id: int, db: Session = Depends(get_db)):
    category = category_service.get_category(db, category_id)
    counts = category_service.product_counts(db, [category.id])

    data = category_to_dict(category, counts.get(category.id, 0))
    parent = db.get(Category, category.parent_id) if category.parent_id else None
    data["parent"] = _category_summary(parent) if parent else None
    data["children"] = [_category_summary(child) for child in category_service.list_children(db, category.id)]
    return envelope(data)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    category = category_service.create_category(db, **payload.model_dump())
    return envelope(category_to_dict(category), "Category created successfully")


@router.put("/{category_id}")
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    category = category_service.get_category(db, category_id)
    category = category_service.update_category(db, category, payload.model_dump(exclude_unset=True))
    return envelope(category_to_dict(category), "Category updated successfully")


@router.delete("/{category_id}")
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    category = category_service.get_category(db, category_id)
    category_service.delete_category(db, category)
    return envelope(message="Category deleted successfully")
