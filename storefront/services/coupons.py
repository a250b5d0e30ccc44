from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.core.errors import NotFoundError, ValidationError
from storefront.models.coupon import Coupon
from storefront.services.temporal import as_utc, compute_end, utcnow

logger = logging.getLogger(__name__)

COUPON_STATUSES = {"active", "inactive", "expired"}
MAX_CODE_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 500


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def _normalize_usage_limit(value: Any) -> Optional[int]:
    # 0 and empty mean "no limit"
    if value in (None, "", 0):
        return None
    limit = int(value)
    if limit < 0:
        raise ValidationError("Usage limit cannot be negative")
    return limit


def _validate_code(code: str) -> None:
    if not code:
        raise ValidationError("Coupon code is required")
    if len(code) > MAX_CODE_LENGTH:
        raise ValidationError(f"Coupon code cannot exceed {MAX_CODE_LENGTH} characters")


def _validate_terms(discount: Any, validity_days: Any, status: str, description: Optional[str]) -> None:
    if discount is None or not 0 <= float(discount) <= 100:
        raise ValidationError("Discount must be between 0 and 100")
    if validity_days is None or int(validity_days) < 1:
        raise ValidationError("Validity days must be at least 1")
    if status not in COUPON_STATUSES:
        raise ValidationError(f"Invalid coupon status: {status}")
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters")


def _find_by_code(db: Session, code: str) -> Optional[Coupon]:
    return db.query(Coupon).filter(Coupon.code == code).first()


def create_coupon(
    db: Session,
    *,
    code: str,
    discount: float,
    validity_days: int,
    start_date: datetime | None = None,
    usage_limit: int | None = None,
    description: str | None = None,
    status: str = "active",
    now: datetime | None = None,
) -> Coupon:
    code = normalize_code(code)
    _validate_code(code)
    _validate_terms(discount, validity_days, status, description)
    limit = _normalize_usage_limit(usage_limit)

    if _find_by_code(db, code):
        raise ValidationError("Coupon code already exists")

    start = as_utc(start_date) if start_date else as_utc(now or utcnow())
    coupon = Coupon(
        code=code,
        discount=float(discount),
        description=description,
        start_date=start,
        validity_days=int(validity_days),
        end_date=compute_end(start, int(validity_days)),
        status=status,
        usage_limit=limit,
        used_count=0,
    )
    db.add(coupon)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError("Coupon code already exists") from exc
    db.refresh(coupon)
    logger.info("coupon created code=%s end_date=%s", coupon.code, coupon.end_date)
    return coupon


def is_eligible(coupon: Coupon, now: datetime) -> bool:
    return rejection_reason(coupon, now) is None


def rejection_reason(coupon: Coupon, now: datetime) -> Optional[str]:
    now = as_utc(now)
    if now < as_utc(coupon.start_date):
        return "Coupon is not yet active"
    if now > as_utc(coupon.end_date):
        return "Coupon has expired"
    if coupon.status != "active":
        return "Coupon is not active"
    if coupon.usage_limit is not None and (coupon.used_count or 0) >= coupon.usage_limit:
        return "Coupon usage limit reached"
    return None


def remaining_uses(coupon: Coupon) -> Optional[int]:
    if coupon.usage_limit is None:
        return None
    return max(0, coupon.usage_limit - (coupon.used_count or 0))


def record_usage(coupon: Coupon) -> Coupon:
    """Count one redemption without re-checking eligibility. The caller commits."""
    coupon.used_count = (coupon.used_count or 0) + 1
    return coupon


def check_expiration(coupon: Coupon, now: datetime | None = None) -> bool:
    """Flip the status to ``expired`` once the window has closed. Never flips back."""
    now = as_utc(now or utcnow())
    if coupon.status != "expired" and now > as_utc(coupon.end_date):
        coupon.status = "expired"
        logger.info("coupon expired code=%s", coupon.code)
        return True
    return False


def get_coupon(db: Session, coupon_id: int) -> Coupon:
    coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
    if not coupon:
        raise NotFoundError("Coupon not found")
    return coupon


def get_coupon_by_code(db: Session, code: str) -> Coupon:
    coupon = _find_by_code(db, normalize_code(code))
    if not coupon:
        raise NotFoundError("Coupon not found")
    return coupon


def check_redeemable(db: Session, code: str, now: datetime | None = None) -> Coupon:
    now = as_utc(now or utcnow())
    coupon = get_coupon_by_code(db, code)
    if check_expiration(coupon, now):
        db.commit()
        db.refresh(coupon)
    reason = rejection_reason(coupon, now)
    if reason:
        raise ValidationError(reason)
    return coupon


def redeem_coupon(db: Session, code: str, now: datetime | None = None) -> Coupon:
    """Consume one use of the coupon if it is eligible right now.

    Eligibility and the increment happen in a single conditional UPDATE, so two
    concurrent redemptions cannot both take the last use. Runs inside the
    caller's transaction.
    """
    now = as_utc(now or utcnow())
    code = normalize_code(code)
    result = db.execute(
        update(Coupon)
        .where(
            Coupon.code == code,
            Coupon.status == "active",
            Coupon.start_date <= now,
            Coupon.end_date >= now,
            or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
        )
        .values(used_count=Coupon.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    coupon = _find_by_code(db, code)
    if coupon is None:
        raise NotFoundError("Coupon not found")
    db.refresh(coupon)

    if result.rowcount == 0:
        check_expiration(coupon, now)
        raise ValidationError(rejection_reason(coupon, now) or "Coupon cannot be redeemed")

    logger.info(
        "coupon redeemed code=%s used_count=%s usage_limit=%s",
        coupon.code,
        coupon.used_count,
        coupon.usage_limit,
    )
    return coupon


def update_coupon(db: Session, coupon: Coupon, patch: dict[str, Any]) -> Coupon:
    """Apply ``patch`` to ``coupon`` or nothing at all.

    A new start date or validity recomputes the end date from the merged values.
    """
    merged = {
        "code": coupon.code,
        "discount": coupon.discount,
        "description": coupon.description,
        "start_date": coupon.start_date,
        "validity_days": coupon.validity_days,
        "end_date": coupon.end_date,
        "status": coupon.status,
        "usage_limit": coupon.usage_limit,
    }

    if patch.get("code") is not None:
        new_code = normalize_code(patch["code"])
        _validate_code(new_code)
        if new_code != coupon.code and _find_by_code(db, new_code):
            raise ValidationError("Coupon code already exists")
        merged["code"] = new_code

    for field in ("discount", "validity_days", "status"):
        if patch.get(field) is not None:
            merged[field] = patch[field]
    if patch.get("start_date") is not None:
        merged["start_date"] = as_utc(patch["start_date"])
    if "description" in patch:
        merged["description"] = patch["description"]
    if "usage_limit" in patch:
        merged["usage_limit"] = _normalize_usage_limit(patch["usage_limit"])

    _validate_terms(merged["discount"], merged["validity_days"], merged["status"], merged["description"])

    if patch.get("start_date") is not None or patch.get("validity_days") is not None:
        merged["end_date"] = compute_end(merged["start_date"], int(merged["validity_days"]))

    for field, value in merged.items():
        setattr(coupon, field, value)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError("Coupon code already exists") from exc
    db.refresh(coupon)
    return coupon


def list_coupons(db: Session, status: str | None = None) -> list[Coupon]:
    query = db.query(Coupon)
    if status:
        query = query.filter(Coupon.status == status)
    return query.order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()


def delete_coupon(db: Session, coupon: Coupon) -> None:
    db.delete(coupon)
    db.commit()
