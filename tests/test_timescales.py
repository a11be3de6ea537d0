# tests/test_timescales.py
from __future__ import annotations

import logging

import pytest

from birthmap.core.timescales import local_to_jd_ut, local_to_utc_fields

TZS = [
    "UTC",
    "Asia/Jerusalem",       # default site
    "Asia/Kolkata",         # +05:30 no DST
    "Australia/Eucla",      # +08:45 quarter-hour
    "America/New_York",     # DST region
    "America/St_Johns",     # -03:30
    "Pacific/Kiritimati",   # +14:00 extreme positive
]


def test_j2000_from_tel_aviv_wall_clock():
    assert local_to_jd_ut(2000, 1, 1, 14, 0, "Asia/Jerusalem") == pytest.approx(2451545.0, abs=1e-9)


def test_utc_midnight():
    assert local_to_jd_ut(2000, 1, 1, 0, 0, "UTC") == pytest.approx(2451544.5, abs=1e-9)


def test_seconds_and_minutes():
    a = local_to_jd_ut(2000, 1, 1, 12, 0, "UTC")
    b = local_to_jd_ut(2000, 1, 1, 12, 30, "UTC", second=30)
    assert (b - a) * 86400.0 == pytest.approx(1830.0, abs=1e-4)


@pytest.mark.parametrize("tz", TZS)
def test_zone_offsets_cancel(tz):
    y, m, d, h, mi, s = local_to_utc_fields(2020, 6, 1, 12, 0, tz)
    assert local_to_jd_ut(2020, 6, 1, 12, 0, tz) == pytest.approx(local_to_jd_ut(y, m, d, h, mi, "UTC", s), abs=1e-9)


def test_summer_time_in_israel():
    # IDT is UTC+3
    assert local_to_utc_fields(2020, 7, 1, 12, 0, "Asia/Jerusalem") == (2020, 7, 1, 9, 0, 0)
    assert local_to_utc_fields(2020, 1, 1, 0, 30, "Asia/Jerusalem") == (2019, 12, 31, 22, 30, 0)


def test_ambiguous_time_uses_first_occurrence(caplog):
    caplog.set_level(logging.INFO, logger="birthmap.core.timescales")
    # 2021-11-07 01:30 happens twice in New York; fold=0 is EDT (UTC-4)
    assert local_to_utc_fields(2021, 11, 7, 1, 30, "America/New_York") == (2021, 11, 7, 5, 30, 0)
    assert any("dst_ambiguous" in r.getMessage() for r in caplog.records)


def test_nonexistent_time_uses_pre_transition_offset():
    # 2021-03-14 02:30 is skipped in New York; fold=0 keeps EST (UTC-5)
    assert local_to_utc_fields(2021, 3, 14, 2, 30, "America/New_York") == (2021, 3, 14, 7, 30, 0)


def test_unknown_zone():
    with pytest.raises(ValueError):
        local_to_jd_ut(2000, 1, 1, 0, 0, "Mars/Olympus_Mons")


@pytest.mark.parametrize("fields", [
    (2021, 2, 30, 12, 0),
    (2021, 13, 1, 12, 0),
    (2021, 1, 1, 25, 0),
    (2021, 1, 1, 12, 61),
])
def test_impossible_dates(fields):
    with pytest.raises(ValueError):
        local_to_jd_ut(*fields, "UTC")


def test_repeatability():
    a = local_to_jd_ut(1999, 12, 31, 23, 59, "Asia/Kolkata", second=59)
    b = local_to_jd_ut(1999, 12, 31, 23, 59, "Asia/Kolkata", second=59)
    assert a == b
