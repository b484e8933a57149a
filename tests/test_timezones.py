from datetime import datetime, timedelta, timezone

import pytest

from app.utils.timezones import as_utc, from_local, to_local, utc_now


def test_as_utc_tags_naive_values():
    naive = datetime(2030, 1, 1, 9, 0)
    assert as_utc(naive) == datetime(2030, 1, 1, 9, 0, tzinfo=timezone.utc)


def test_as_utc_converts_offsets():
    ist = timezone(timedelta(hours=5, minutes=30))
    assert as_utc(datetime(2030, 1, 1, 14, 30, tzinfo=ist)) == datetime(
        2030, 1, 1, 9, 0, tzinfo=timezone.utc
    )


def test_from_local_reads_wall_clock_in_zone():
    assert from_local(datetime(2030, 1, 1, 10, 0), "Asia/Kolkata") == datetime(
        2030, 1, 1, 4, 30, tzinfo=timezone.utc
    )


def test_to_local_round_trips_instant():
    instant = datetime(2030, 7, 1, 12, 0, tzinfo=timezone.utc)
    local = to_local(instant, "America/Los_Angeles")
    assert local.hour == 5
    assert local == instant


def test_unknown_zone_is_rejected():
    with pytest.raises(ValueError, match="not a valid Olson timezone"):
        to_local(utc_now(), "Mars/Olympus")
