from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.core.database import get_db
from storefront.core.responses import envelope, iso, list_envelope
from storefront.deps import require_admin
from storefront.models.banner import Banner
from storefront.models.user import User
from storefront.services import banners as banner_service

router = APIRouter(prefix="/api/banners", tags=["banners"])

_STATUS_PATTERN = "^(pending|active|expired|inactive)$"


class BannerCreate(BaseModel):
    image: str = Field(..., min_length=1)
    days: int = Field(..., ge=1)
    start_date: datetime
    requested_date: Optional[datetime] = None
    link: Optional[str] = None
    status: Optional[str] = Field(None, pattern=_STATUS_PATTERN)


class BannerUpdate(BaseModel):
    image: Optional[str] = Field(None, min_length=1)
    days: Optional[int] = Field(None, ge=1)
    start_date: Optional[datetime] = None
    requested_date: Optional[datetime] = None
    link: Optional[str] = None
    status: Optional[str] = Field(None, pattern=_STATUS_PATTERN)


def _banner_to_dict(banner: Banner) -> dict:
    return {
        "id": banner.id,
        "image": banner.image,
        "days": banner.days,
        "requested_date": iso(banner.requested_date),
        "start_date": iso(banner.start_date),
        "end_date": iso(banner.end_date),
        "link": banner.link,
        "status": banner.status,
        "current_status": banner_service.current_status(banner),
        "created_at": iso(banner.created_at),
        "updated_at": iso(banner.updated_at),
    }


@router.get("")
def list_banners(
    status_filter: Optional[str] = Query(default=None, alias="status", pattern=_STATUS_PATTERN),
    db: Session = Depends(get_db),
):
    banners = banner_service.list_banners(db, status=status_filter)
    return list_envelope([_banner_to_dict(banner) for banner in banners])


@router.get("/{banner_id}")
def get_banner(banner_id: int, db: Session = Depends(get_db)):
    return envelope(_banner_to_dict(banner_service.get_banner(db, banner_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_banner(
    payload: BannerCreate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    banner = banner_service.create_banner(db, **payload.model_dump())
    return envelope(_banner_to_dict(banner), "Banner created successfully")


@router.put("/{banner_id}")
def update_banner(
    banner_id: int,
    payload: BannerUpdate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    banner = banner_service.get_banner(db, banner_id)
    banner = banner_service.update_banner(db, banner, payload.model_dump(exclude_unset=True))
    return envelope(_banner_to_dict(banner), "Banner updated successfully")


@router.delete("/{banner_id}")
def delete_banner(
    banner_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin),
):
    banner = banner_service.get_banner(db, banner_id)
    banner_service.delete_banner(db, banner)
    return envelope(message="Banner deleted successfully")
