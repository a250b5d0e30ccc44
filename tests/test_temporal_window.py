from datetime import datetime, timedelta, timezone

from storefront.services.temporal import as_utc, classify, compute_end, start_of_day, within_window

UTC = timezone.utc


def test_compute_end_rolls_over_month_boundary():
    start = datetime(2024, 1, 31, 9, 30, tzinfo=UTC)

    assert compute_end(start, 1) == datetime(2024, 2, 1, 9, 30, tzinfo=UTC)
    assert compute_end(start, 30) == datetime(2024, 3, 1, 9, 30, tzinfo=UTC)


def test_classify_treats_both_bounds_as_inclusive():
    start = datetime(2024, 3, 1, tzinfo=UTC)
    end = compute_end(start, 10)

    assert classify(start, start, end) == "active"
    assert classify(end, start, end) == "active"
    assert classify(start - timedelta(seconds=1), start, end) == "pending"
    assert classify(end + timedelta(seconds=1), start, end) == "expired"
    assert within_window(start + timedelta(days=5), start, end) is True


def test_naive_values_are_read_as_utc():
    naive_start = datetime(2024, 3, 1, 12, 0)

    assert as_utc(naive_start) == datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
    assert classify(datetime(2024, 3, 1, 18, 0, tzinfo=UTC), naive_start, naive_start + timedelta(days=1)) == "active"


def test_aware_values_are_converted_to_utc():
    brasilia = timezone(timedelta(hours=-3))
    value = datetime(2024, 3, 1, 22, 0, tzinfo=brasilia)

    assert as_utc(value) == datetime(2024, 3, 2, 1, 0, tzinfo=UTC)


def test_start_of_day_truncates_time():
    assert start_of_day(datetime(2024, 5, 10, 17, 45, 3, tzinfo=UTC)) == datetime(2024, 5, 10, tzinfo=UTC)
