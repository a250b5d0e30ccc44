from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from storefront.core.database import get_db
from storefront.core.responses import envelope
from storefront.deps import require_admin
from storefront.models.user import User
from storefront.routers.auth import user_to_dict
from storefront.services import users as user_service

router = APIRouter(prefix="/api/customers", tags=["customers"])

CUSTOMER_ROLE = "customer"


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    purchased_items: Optional[int] = Field(None, ge=0)
    reward_points: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


@router.get("")
def list_customers(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    customers, total = user_service.search_users(
        db,
        role=CUSTOMER_ROLE,
        search=search,
        page=page,
        page_size=page_size,
    )
    return envelope(
        [user_to_dict(customer) for customer in customers],
        count=len(customers),
        total=total,
        page=page,
        totalPages=(total + page_size - 1) // page_size,
    )


@router.get("/{customer_id}")
def get_customer(
    customer_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    return envelope(user_to_dict(user_service.get_user(db, customer_id, role=CUSTOMER_ROLE)))


@router.put("/{customer_id}")
def update_customer(
    customer_id: int,
    payload: CustomerUpdate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    customer = user_service.get_user(db, customer_id, role=CUSTOMER_ROLE)
    customer = user_service.update_profile(db, customer, payload.model_dump(exclude_unset=True))
    return envelope(user_to_dict(customer), "Customer updated successfully")


@router.delete("/{customer_id}")
def delete_customer(
    customer_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    customer = user_service.get_user(db, customer_id, role=CUSTOMER_ROLE)
    user_service.delete_user(db, customer)
    return envelope(message="Customer deleted successfully")
