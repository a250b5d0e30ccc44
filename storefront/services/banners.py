from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from storefront.core.errors import NotFoundError, ValidationError
from storefront.models.banner import Banner
from storefront.services.temporal import ACTIVE, EXPIRED, PENDING, as_utc, classify, compute_end, utcnow

logger = logging.getLogger(__name__)

INACTIVE = "inactive"
BANNER_STATUSES = {PENDING, ACTIVE, EXPIRED, INACTIVE}


def _validate_days(days: Any) -> int:
    if days is None or int(days) < 1:
        raise ValidationError("Days must be at least 1")
    return int(days)


def current_status(banner: Banner, now: datetime | None = None) -> str:
    return classify(now or utcnow(), banner.start_date, banner.end_date)


def apply_status_transition(banner: Banner, now: datetime | None = None) -> Banner:
    """Bring the stored status in line with the date window before a write.

    ``inactive`` is set by an admin and is never overridden here.
    """
    if banner.status == INACTIVE:
        return banner
    status = current_status(banner, now)
    if status != banner.status:
        logger.info("banner status changed id=%s from=%s to=%s", banner.id, banner.status, status)
        banner.status = status
    return banner


def create_banner(
    db: Session,
    *,
    image: str,
    days: int,
    start_date: datetime,
    link: str | None = None,
    status: str | None = None,
    requested_date: datetime | None = None,
    now: datetime | None = None,
) -> Banner:
    if not image:
        raise ValidationError("Banner image is required")
    if start_date is None:
        raise ValidationError("Start date is required")
    days = _validate_days(days)
    if status is not None and status not in BANNER_STATUSES:
        raise ValidationError(f"Invalid banner status: {status}")

    now = as_utc(now or utcnow())
    start = as_utc(start_date)
    banner = Banner(
        image=image,
        days=days,
        requested_date=as_utc(requested_date) if requested_date else now,
        start_date=start,
        end_date=compute_end(start, days),
        link=link,
    )
    if status == INACTIVE:
        banner.status = INACTIVE
    else:
        # A banner is never born expired
        initial = classify(now, banner.start_date, banner.end_date)
        banner.status = ACTIVE if initial == ACTIVE else PENDING

    db.add(banner)
    db.commit()
    db.refresh(banner)
    logger.info("banner created id=%s status=%s end_date=%s", banner.id, banner.status, banner.end_date)
    return banner


def update_banner(db: Session, banner: Banner, patch: dict[str, Any], now: datetime | None = None) -> Banner:
    start_date = patch.get("start_date")
    days = patch.get("days")
    status = patch.get("status")

    if days is not None:
        days = _validate_days(days)
    if status is not None and status not in BANNER_STATUSES:
        raise ValidationError(f"Invalid banner status: {status}")

    if patch.get("image") is not None:
        banner.image = patch["image"]
    if "link" in patch:
        banner.link = patch["link"]
    if patch.get("requested_date") is not None:
        banner.requested_date = as_utc(patch["requested_date"])
    if start_date is not None:
        banner.start_date = as_utc(start_date)
    if days is not None:
        banner.days = days
    if start_date is not None or days is not None:
        banner.end_date = compute_end(banner.start_date, banner.days)
    if status is not None:
        banner.status = status

    apply_status_transition(banner, now)
    db.commit()
    db.refresh(banner)
    return banner


def list_banners(db: Session, status: str | None = None) -> list[Banner]:
    query = db.query(Banner)
    if status:
        query = query.filter(Banner.status == status)
    return query.order_by(Banner.created_at.desc(), Banner.id.desc()).all()


def get_banner(db: Session, banner_id: int) -> Banner:
    banner = db.query(Banner).filter(Banner.id == banner_id).first()
    if not banner:
        raise NotFoundError("Banner not found")
    return banner


def delete_banner(db: Session, banner: Banner) -> None:
    db.delete(banner)
    db.commit()
