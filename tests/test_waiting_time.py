from datetime import datetime, timedelta

from services.waiting_time import format_waiting_time

START = datetime(2025, 3, 1, 9, 0, 0)


def test_minutes_and_seconds_under_an_hour():
    assert format_waiting_time(START, START + timedelta(minutes=5, seconds=7)) == "5:07 dk"
    assert format_waiting_time(START, START) == "0:00 dk"


def test_hours_with_padded_minutes():
    assert format_waiting_time(START, START + timedelta(hours=2, minutes=3, seconds=59)) == "2:03 saat"


def test_days_only_once_a_full_day_passed():
    assert format_waiting_time(START, START + timedelta(hours=23, minutes=59)) == "23:59 saat"
    assert format_waiting_time(START, START + timedelta(days=3, hours=5)) == "3 gün"


def test_negative_span_is_clamped_to_zero():
    assert format_waiting_time(START, START - timedelta(minutes=10)) == "0:00 dk"
