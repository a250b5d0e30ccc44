from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.core.database import get_db
from storefront.core.responses import envelope, iso, list_envelope
from storefront.deps import require_admin
from storefront.models.coupon import Coupon
from storefront.models.user import User
from storefront.services import coupons as coupon_service
from storefront.services.temporal import utcnow

router = APIRouter(prefix="/api/coupons", tags=["coupons"])

_STATUS_PATTERN = "^(active|inactive|expired)$"


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    discount: float = Field(..., ge=0, le=100)
    description: Optional[str] = Field(None, max_length=500)
    start_date: Optional[datetime] = None
    validity_days: int = Field(..., ge=1)
    status: str = Field("active", pattern=_STATUS_PATTERN)
    usage_limit: Optional[int] = Field(None, ge=0)


class CouponUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    discount: Optional[float] = Field(None, ge=0, le=100)
    description: Optional[str] = Field(None, max_length=500)
    start_date: Optional[datetime] = None
    validity_days: Optional[int] = Field(None, ge=1)
    status: Optional[str] = Field(None, pattern=_STATUS_PATTERN)
    usage_limit: Optional[int] = Field(None, ge=0)


def coupon_to_dict(coupon: Coupon, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    return {
        "id": coupon.id,
        "code": coupon.code,
        "discount": coupon.discount,
        "description": coupon.description,
        "start_date": iso(coupon.start_date),
        "validity_days": coupon.validity_days,
        "end_date": iso(coupon.end_date),
        "status": coupon.status,
        "usage_limit": coupon.usage_limit,
        "used_count": coupon.used_count,
        "remaining_uses": coupon_service.remaining_uses(coupon),
        "is_valid": coupon_service.is_eligible(coupon, now),
        "created_at": iso(coupon.created_at),
        "updated_at": iso(coupon.updated_at),
    }


@router.get("")
def list_coupons(
    status_filter: Optional[str] = Query(default=None, alias="status", pattern=_STATUS_PATTERN),
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    coupons = coupon_service.list_coupons(db, status=status_filter)
    return list_envelope([coupon_to_dict(coupon) for coupon in coupons])


@router.get("/code/{code}")
def check_coupon_code(code: str, db: Session = Depends(get_db)):
    coupon = coupon_service.check_redeemable(db, code)
    return envelope(coupon_to_dict(coupon), "Coupon is valid")


@router.get("/{coupon_id}")
def get_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    return envelope(coupon_to_dict(coupon_service.get_coupon(db, coupon_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_coupon(
    payload: CouponCreate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    coupon = coupon_service.create_coupon(db, **payload.model_dump())
    return envelope(coupon_to_dict(coupon), "Coupon created successfully")


@router.put("/{coupon_id}")
def update_coupon(
    coupon_id: int,
    payload: CouponUpdate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    coupon = coupon_service.get_coupon(db, coupon_id)
    coupon = coupon_service.update_coupon(db, coupon, payload.model_dump(exclude_unset=True))
    return envelope(coupon_to_dict(coupon), "Coupon updated successfully")


@router.delete("/{coupon_id}")
def delete_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    coupon = coupon_service.get_coupon(db, coupon_id)
    coupon_service.delete_coupon(db, coupon)
    return envelope(message="Coupon deleted successfully")
