from datetime import datetime, timedelta, timezone

import pytest

from storefront.core.errors import ValidationError
from storefront.models.banner import Banner
from storefront.services import banners as banner_service
from storefront.services.temporal import as_utc

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_banner_inside_window_is_created_active(db):
    banner = banner_service.create_banner(
        db,
        image="hero.jpg",
        days=2,
        start_date=NOW - timedelta(days=1),
        now=NOW,
    )

    assert banner.status == "active"
    assert as_utc(banner.end_date) == NOW + timedelta(days=1)
    assert as_utc(banner.requested_date) == NOW


def test_banner_is_never_created_expired(db):
    future = banner_service.create_banner(db, image="a.jpg", days=3, start_date=NOW + timedelta(days=2), now=NOW)
    past = banner_service.create_banner(db, image="b.jpg", days=3, start_date=NOW - timedelta(days=30), now=NOW)

    assert future.status == "pending"
    assert past.status == "pending"


def test_explicit_inactive_status_is_kept_on_create(db):
    banner = banner_service.create_banner(
        db,
        image="hero.jpg",
        days=5,
        start_date=NOW,
        status="inactive",
        now=NOW,
    )

    assert banner.status == "inactive"


def test_create_banner_requires_positive_days(db):
    with pytest.raises(ValidationError, match="Days must be at least 1"):
        banner_service.create_banner(db, image="hero.jpg", days=0, start_date=NOW, now=NOW)


@pytest.mark.parametrize(
    "start_offset, end_offset, expected",
    [
        (timedelta(days=1), timedelta(days=3), "pending"),
        (timedelta(days=-1), timedelta(days=1), "active"),
        (timedelta(days=-5), timedelta(days=-1), "expired"),
    ],
)
def test_status_transition_follows_window(start_offset, end_offset, expected):
    banner = Banner(id=7, status="active", start_date=NOW + start_offset, end_date=NOW + end_offset)

    banner_service.apply_status_transition(banner, NOW)

    assert banner.status == expected


def test_inactive_banner_is_not_reactivated():
    banner = Banner(id=8, status="inactive", start_date=NOW - timedelta(days=1), end_date=NOW + timedelta(days=1))

    banner_service.apply_status_transition(banner, NOW)

    assert banner.status == "inactive"
    assert banner_service.current_status(banner, NOW) == "active"


def test_update_days_recomputes_end_from_stored_start(db):
    banner = banner_service.create_banner(db, image="hero.jpg", days=2, start_date=NOW, now=NOW)

    banner_service.update_banner(db, banner, {"days": 10}, now=NOW)

    assert banner.days == 10
    assert as_utc(banner.end_date) == NOW + timedelta(days=10)
    assert banner.status == "active"


def test_update_moves_window_and_expires_banner(db):
    banner = banner_service.create_banner(db, image="hero.jpg", days=2, start_date=NOW, now=NOW)

    banner_service.update_banner(db, banner, {"start_date": NOW - timedelta(days=10)}, now=NOW)

    assert as_utc(banner.end_date) == NOW - timedelta(days=8)
    assert banner.status == "expired"


def test_update_link_only_keeps_window(db):
    banner = banner_service.create_banner(db, image="hero.jpg", days=4, start_date=NOW, now=NOW)
    original_end = as_utc(banner.end_date)

    banner_service.update_banner(db, banner, {"link": "/promo"}, now=NOW)

    assert banner.link == "/promo"
    assert as_utc(banner.end_date) == original_end


def test_list_banners_filters_by_status(db):
    banner_service.create_banner(db, image="live.jpg", days=4, start_date=NOW, now=NOW)
    banner_service.create_banner(db, image="later.jpg", days=4, start_date=NOW + timedelta(days=7), now=NOW)

    pending = banner_service.list_banners(db, status="pending")

    assert [banner.image for banner in pending] == ["later.jpg"]
    assert len(banner_service.list_banners(db)) == 2
