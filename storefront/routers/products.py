from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.core.database import get_db
from storefront.core.responses import envelope, iso, pagination_block
from storefront.deps import require_admin
from storefront.models.product import Product
from storefront.models.user import User
from storefront.services import products as product_service

router = APIRouter(prefix="/api/products", tags=["products"])


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    sku: str = Field(..., min_length=1, max_length=64)
    category_id: int
    original_price: float = Field(..., ge=0)
    discount: float = Field(0, ge=0, le=100)
    stock: int = Field(0, ge=0)
    in_stock: Optional[bool] = None
    brand: Optional[str] = None
    description: Optional[str] = None
    rating: float = Field(0, ge=0, le=5)
    is_new: bool = False
    status: str = Field("active", pattern="^(active|inactive|draft)$")
    images: List[str] = Field(..., min_length=1)
    badges: Union[List[str], str, None] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    sku: Optional[str] = Field(None, min_length=1, max_length=64)
    category_id: Optional[int] = None
    original_price: Optional[float] = Field(None, ge=0)
    discount: Optional[float] = Field(None, ge=0, le=100)
    stock: Optional[int] = Field(None, ge=0)
    in_stock: Optional[bool] = None
    brand: Optional[str] = None
    description: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    is_new: Optional[bool] = None
    status: Optional[str] = Field(None, pattern="^(active|inactive|draft)$")
    images: Optional[List[str]] = None
    badges: Union[List[str], str, None] = None


def product_to_dict(product: Product) -> dict:
    category = product.category
    return {
        "id": product.id,
        "name": product.name,
        "sku": product.sku,
        "category_id": product.category_id,
        "category": {"id": category.id, "name": category.name, "slug": category.slug} if category else None,
        "brand": product.brand,
        "description": product.description,
        "stock": product.stock,
        "in_stock": product.in_stock,
        "original_price": product.original_price,
        "discount": product.discount,
        "price": product.price,
        "rating": product.rating,
        "is_new": product.is_new,
        "status": product.status,
        "images": list(product.images or []),
        "badges": list(product.badges or []),
        "created_at": iso(product.created_at),
        "updated_at": iso(product.updated_at),
    }


@router.get("")
def list_products(
    search: Optional[str] = Query(default=None),
    category: Optional[int] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    min_price: Optional[float] = Query(default=None, ge=0),
    max_price: Optional[float] = Query(default=None, ge=0),
    in_stock: Optional[bool] = Query(default=None),
    sort_by: str = Query(default="created_at", pattern="^(name|price|stock|rating|created_at|updated_at)$"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    products, total = product_service.list_products(
        db,
        search=search,
        category_id=category,
        status=status_filter,
        min_price=min_price,
        max_price=max_price,
        in_stock=in_stock,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return envelope(
        [product_to_dict(product) for product in products],
        count=len(products),
        pagination=pagination_block(page, limit, total),
    )


@router.get("/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db)):
    return envelope(product_to_dict(product_service.get_product(db, product_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    product = product_service.create_product(db, payload.model_dump())
    return envelope(product_to_dict(product), "Product created successfully")


@router.put("/{product_id}")
def update_product(
    product_id: int,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    product = product_service.get_product(db, product_id)
    product = product_service.update_product(db, product, payload.model_dump(exclude_unset=True))
    return envelope(product_to_dict(product), "Product updated successfully")


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    product = product_service.get_product(db, product_id)
    product_service.delete_product(db, product)
    return envelope(message="Product deleted successfully")
