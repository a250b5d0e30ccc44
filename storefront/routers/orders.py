from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from storefront.core.database import get_db
from storefront.core.responses import envelope, iso, list_envelope
from storefront.deps import get_current_user, get_optional_user, require_admin
from storefront.models.order import Order
from storefront.models.user import User
from storefront.services import orders as order_service
from storefront.services.customer_stats import orders_for_user

router = APIRouter(prefix="/api/orders", tags=["orders"])

_STATUS_PATTERN = "^(pending|in-progress|completed|cancelled)$"
_CREATE_STATUS_PATTERN = "^(pending|in-progress|completed)$"


class OrderCreate(BaseModel):
    order_number: str = Field(..., min_length=1, max_length=64)
    product_id: Optional[int] = None
    product_name: str = Field(..., min_length=1)
    product_image: Optional[str] = None
    quantity: int = Field(1, ge=1)
    customer_name: str = Field(..., min_length=1)
    customer_email: Optional[EmailStr] = None
    customer_location: str = Field(..., min_length=1)
    amount: float = Field(0, ge=0)
    shipping_method: str = Field("shipping", pattern="^(shipping|pickup)$")
    shipping_cost: float = Field(0, ge=0)
    coupon_code: Optional[str] = Field(None, max_length=50)
    discount_percent: Optional[float] = Field(None, ge=0, le=100)
    discount_amount: Optional[float] = Field(None, ge=0)
    subtotal: Optional[float] = Field(None, ge=0)
    total_amount: Optional[float] = Field(None, ge=0)
    payment_method: str = Field("card", pattern="^(card|cash|qr)$")
    order_date: Optional[datetime] = None
    order_time: Optional[str] = None
    delivery_date: Optional[datetime] = None
    delivery_time: Optional[str] = None
    status: str = Field("pending", pattern=_CREATE_STATUS_PATTERN)


class OrderUpdate(BaseModel):
    product_image: Optional[str] = None
    customer_name: Optional[str] = Field(None, min_length=1)
    customer_email: Optional[EmailStr] = None
    customer_location: Optional[str] = Field(None, min_length=1)
    amount: Optional[float] = Field(None, ge=0)
    shipping_method: Optional[str] = Field(None, pattern="^(shipping|pickup)$")
    shipping_cost: Optional[float] = Field(None, ge=0)
    discount_percent: Optional[float] = Field(None, ge=0, le=100)
    discount_amount: Optional[float] = Field(None, ge=0)
    subtotal: Optional[float] = Field(None, ge=0)
    total_amount: Optional[float] = Field(None, ge=0)
    payment_method: Optional[str] = Field(None, pattern="^(card|cash|qr)$")
    order_time: Optional[str] = None
    delivery_date: Optional[datetime] = None
    delivery_time: Optional[str] = None
    status: Optional[str] = Field(None, pattern=_STATUS_PATTERN)


def order_to_dict(order: Order) -> dict:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "user_id": order.user_id,
        "product_id": order.product_id,
        "product_name": order.product_name,
        "product_image": order.product_image,
        "quantity": order.quantity,
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
        "customer_location": order.customer_location,
        "amount": order.amount,
        "shipping_method": order.shipping_method,
        "shipping_cost": order.shipping_cost,
        "coupon_code": order.coupon_code,
        "discount_percent": order.discount_percent,
        "discount_amount": order.discount_amount,
        "subtotal": order.subtotal,
        "total_amount": order.total_amount,
        "payment_method": order.payment_method,
        "order_date": iso(order.order_date),
        "order_time": order.order_time,
        "delivery_date": iso(order.delivery_date),
        "delivery_time": order.delivery_time,
        "status": order.status,
        "created_at": iso(order.created_at),
        "updated_at": iso(order.updated_at),
    }


def _can_view(user: User, order: Order) -> bool:
    if user.role == "admin" or order.user_id == user.id:
        return True
    return bool(order.customer_email) and order.customer_email == (user.email or "").lower()


@router.get("")
def list_orders(
    status_filter: Optional[str] = Query(default=None, alias="status", pattern=_STATUS_PATTERN),
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    orders = order_service.list_orders(db, status=status_filter)
    return list_envelope([order_to_dict(order) for order in orders])


@router.get("/mine")
def list_my_orders(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return list_envelope([order_to_dict(order) for order in orders_for_user(db, user)])


@router.get("/{order_id}")
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order = order_service.get_order(db, order_id)
    if not _can_view(user, order):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to view this order")
    return envelope(order_to_dict(order))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    data = payload.model_dump()
    if user is not None and not data.get("customer_email"):
        data["customer_email"] = user.email
    order = order_service.create_order(db, data, user_id=user.id if user else None)
    return envelope(order_to_dict(order), "Order created successfully")


@router.put("/{order_id}")
def update_order(
    order_id: int,
    payload: OrderUpdate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    order = order_service.get_order(db, order_id)
    order = order_service.update_order(db, order, payload.model_dump(exclude_unset=True))
    return envelope(order_to_dict(order), "Order updated successfully")


@router.delete("/{order_id}")
def delete_order(
    order_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    order = order_service.get_order(db, order_id)
    order_service.delete_order(db, order)
    return envelope(message="Order deleted successfully")
