from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from storefront.core.database import get_db
from storefront.core.errors import NotFoundError, ValidationError, register_exception_handlers
from storefront.routers.coupons import router as coupons_router
from storefront.services import coupons as coupon_service
from storefront.services.temporal import as_utc

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def _coupon(**overrides):
    data = {
        "start_date": NOW - timedelta(days=1),
        "end_date": NOW + timedelta(days=1),
        "status": "active",
        "usage_limit": None,
        "used_count": 0,
    }
    data.update(overrides)
    return SimpleNamespace(**data)


def test_create_coupon_normalizes_code_and_derives_end_date(db):
    coupon = coupon_service.create_coupon(
        db,
        code="  save10 ",
        discount=10,
        validity_days=1,
        start_date=datetime(2024, 1, 31, tzinfo=timezone.utc),
    )

    assert coupon.code == "SAVE10"
    assert as_utc(coupon.end_date) == datetime(2024, 2, 1, tzinfo=timezone.utc)
    assert coupon.status == "active"
    assert coupon.used_count == 0


def test_create_coupon_rejects_duplicate_code_case_insensitively(db):
    coupon_service.create_coupon(db, code="SUMMER", discount=15, validity_days=7, now=NOW)

    with pytest.raises(ValidationError, match="already exists"):
        coupon_service.create_coupon(db, code="summer", discount=20, validity_days=7, now=NOW)


@pytest.mark.parametrize(
    "discount, validity_days, message",
    [(101, 5, "Discount"), (-1, 5, "Discount"), (10, 0, "Validity")],
)
def test_create_coupon_validates_bounds(db, discount, validity_days, message):
    with pytest.raises(ValidationError, match=message):
        coupon_service.create_coupon(db, code="BAD", discount=discount, validity_days=validity_days, now=NOW)


def test_zero_usage_limit_means_unlimited(db):
    coupon = coupon_service.create_coupon(db, code="FREE", discount=5, validity_days=3, usage_limit=0, now=NOW)

    assert coupon.usage_limit is None
    assert coupon_service.remaining_uses(coupon) is None


def test_eligibility_flips_exactly_at_usage_limit():
    assert coupon_service.is_eligible(_coupon(usage_limit=3, used_count=2), NOW) is True
    assert coupon_service.is_eligible(_coupon(usage_limit=3, used_count=3), NOW) is False
    assert coupon_service.is_eligible(_coupon(usage_limit=None, used_count=500), NOW) is True


def test_eligibility_requires_active_status_and_open_window():
    assert coupon_service.is_eligible(_coupon(status="inactive"), NOW) is False
    assert coupon_service.is_eligible(_coupon(start_date=NOW + timedelta(hours=1)), NOW) is False
    assert coupon_service.is_eligible(_coupon(end_date=NOW - timedelta(seconds=1)), NOW) is False
    assert coupon_service.is_eligible(_coupon(end_date=NOW), NOW) is True


def test_record_usage_increments_without_checking():
    coupon = _coupon(usage_limit=1, used_count=1)

    coupon_service.record_usage(coupon)

    assert coupon.used_count == 2


def test_redeem_consumes_uses_until_limit(db):
    coupon_service.create_coupon(
        db,
        code="TWICE",
        discount=10,
        validity_days=10,
        start_date=NOW - timedelta(days=1),
        usage_limit=2,
    )

    coupon_service.redeem_coupon(db, "twice", NOW)
    coupon = coupon_service.redeem_coupon(db, "TWICE", NOW)
    db.commit()
    assert coupon.used_count == 2
    assert coupon_service.remaining_uses(coupon) == 0

    with pytest.raises(ValidationError, match="usage limit reached"):
        coupon_service.redeem_coupon(db, "TWICE", NOW)
    db.rollback()

    assert coupon_service.get_coupon_by_code(db, "TWICE").used_count == 2


def test_redeem_unknown_code_is_not_found(db):
    with pytest.raises(NotFoundError):
        coupon_service.redeem_coupon(db, "MISSING", NOW)


def test_check_redeemable_persists_expiration(db):
    coupon_service.create_coupon(
        db,
        code="OLD",
        discount=10,
        validity_days=2,
        start_date=NOW - timedelta(days=10),
    )

    with pytest.raises(ValidationError, match="Coupon has expired"):
        coupon_service.check_redeemable(db, "OLD", NOW)

    db.expire_all()
    assert coupon_service.get_coupon_by_code(db, "OLD").status == "expired"


def test_check_redeemable_reports_not_yet_active(db):
    coupon_service.create_coupon(
        db,
        code="SOON",
        discount=10,
        validity_days=2,
        start_date=NOW + timedelta(days=3),
    )

    with pytest.raises(ValidationError, match="not yet active"):
        coupon_service.check_redeemable(db, "SOON", NOW)


def test_check_expiration_never_reactivates(db):
    coupon = coupon_service.create_coupon(
        db,
        code="GONE",
        discount=10,
        validity_days=1,
        start_date=NOW - timedelta(days=5),
    )

    assert coupon_service.check_expiration(coupon, NOW) is True
    assert coupon.status == "expired"
    assert coupon_service.check_expiration(coupon, NOW - timedelta(days=5)) is False
    assert coupon.status == "expired"


def test_update_recomputes_end_date_from_merged_values(db):
    coupon = coupon_service.create_coupon(
        db,
        code="MOVE",
        discount=10,
        validity_days=5,
        start_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )

    coupon_service.update_coupon(db, coupon, {"validity_days": 10})
    assert as_utc(coupon.end_date) == datetime(2025, 1, 11, tzinfo=timezone.utc)

    coupon_service.update_coupon(db, coupon, {"start_date": datetime(2025, 2, 1, tzinfo=timezone.utc), "code": "moved"})
    assert coupon.code == "MOVED"
    assert as_utc(coupon.end_date) == datetime(2025, 2, 11, tzinfo=timezone.utc)


def test_update_is_all_or_nothing(db):
    coupon = coupon_service.create_coupon(db, code="KEEP", discount=10, validity_days=5, now=NOW)
    original_end = coupon.end_date

    with pytest.raises(ValidationError):
        coupon_service.update_coupon(db, coupon, {"validity_days": 20, "discount": 150})

    db.refresh(coupon)
    assert coupon.discount == 10
    assert coupon.validity_days == 5
    assert coupon.end_date == original_end


def _build_client(db) -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(coupons_router)
    app.dependency_overrides[get_db] = lambda: db
    return TestClient(app)


def test_coupon_code_route_reports_validity(db):
    coupon_service.create_coupon(db, code="WELCOME", discount=15, validity_days=30, usage_limit=10)
    coupon_service.create_coupon(
        db,
        code="LAPSED",
        discount=15,
        validity_days=1,
        start_date=datetime.now(timezone.utc) - timedelta(days=3),
    )
    client = _build_client(db)

    valid = client.get("/api/coupons/code/welcome")
    expired = client.get("/api/coupons/code/LAPSED")
    missing = client.get("/api/coupons/code/NOPE")

    assert valid.status_code == 200
    assert valid.json()["data"]["code"] == "WELCOME"
    assert valid.json()["data"]["remaining_uses"] == 10
    assert valid.json()["data"]["is_valid"] is True
    assert expired.status_code == 400
    assert expired.json() == {"success": False, "message": "Coupon has expired"}
    assert missing.status_code == 404
