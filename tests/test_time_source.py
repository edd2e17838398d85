from datetime import datetime, timedelta, timezone

from guestbook.core.time_source import FixedTimeSource, SystemTimeSource


def test_system_time_is_utc_aware():
    now = SystemTimeSource().now()

    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)


def test_fixed_time_never_moves():
    source = FixedTimeSource(datetime(2024, 1, 1, tzinfo=timezone.utc))

    assert source.now() == source.now() == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_fixed_time_naive_value_is_treated_as_utc():
    source = FixedTimeSource(datetime(2024, 1, 1, 8, 0))

    assert source.now() == datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)


def test_fixed_time_is_converted_to_utc():
    plus_two = timezone(timedelta(hours=2))
    source = FixedTimeSource(datetime(2024, 1, 1, 10, 0, tzinfo=plus_two))

    assert source.now() == datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
    assert source.now().tzinfo == timezone.utc
