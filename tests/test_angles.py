# tests/test_angles.py
from __future__ import annotations

import math

import pytest
from hypothesis import given, strategies as st

from birthmap.core.angles import DmsMode, format_dms, normalize360, parse_dms, snap_to_centiseconds, split_dms
from birthmap.core.errors import InvalidAngleInput

finite = st.floats(min_value=-1e6, max_value=1e6, allow_nan=False, allow_infinity=False)


# ─────────────────────────────────────────────────────────────────────────────
# normalize360
# ─────────────────────────────────────────────────────────────────────────────
@pytest.mark.parametrize("x, expected", [
    (0.0, 0.0),
    (360.0, 0.0),
    (-360.0, 0.0),
    (720.0, 0.0),
    (-30.0, 330.0),
    (370.5, 10.5),
    (359.999, 359.999),
])
def test_normalize360_examples(x, expected):
    assert normalize360(x) == pytest.approx(expected, abs=1e-9)


def test_normalize360_tiny_negative_never_returns_360():
    assert normalize360(-1e-17) == 0.0


@given(finite)
def test_normalize360_range(x):
    r = normalize360(x)
    assert 0.0 <= r < 360.0


@given(finite)
def test_normalize360_idempotent(x):
    once = normalize360(x)
    assert normalize360(once) == once


@given(st.floats(min_value=-1e4, max_value=1e4, allow_nan=False), st.integers(min_value=-50, max_value=50))
def test_normalize360_invariant_under_full_turns(x, k):
    a = normalize360(x)
    b = normalize360(x + 360.0 * k)
    d = abs(a - b)
    assert min(d, 360.0 - d) < 1e-7


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), -float("inf"), None, "12", True])
def test_normalize360_rejects_non_finite(bad):
    with pytest.raises(InvalidAngleInput):
        normalize360(bad)


# ─────────────────────────────────────────────────────────────────────────────
# DMS
# ─────────────────────────────────────────────────────────────────────────────
def test_format_basic():
    assert format_dms(0.0) == "0°0'0.00\""
    assert format_dms(12.5) == "12°30'0.00\""
    assert format_dms(280.372555) == "280°22'21.20\""


def test_carry_mode_never_shows_sixty_seconds():
    assert format_dms(29.9999999, DmsMode.CARRY) == "30°0'0.00\""
    assert format_dms(10.999999, DmsMode.CARRY) == "11°0'0.00\""


def test_legacy_mode_reproduces_sixty_seconds():
    assert format_dms(29.9999999, DmsMode.LEGACY) == "29°59'60.00\""


def test_modes_agree_away_from_rounding_edges():
    for v in (0.25, 45.123456, 123.5, 359.5):
        assert format_dms(v, DmsMode.LEGACY) == format_dms(v, DmsMode.CARRY)


def test_mode_coercion_from_strings():
    assert split_dms(29.9999999, "legacy") == (29, 59, 60.0)
    assert split_dms(29.9999999, "CARRY") == (30, 0, 0.0)
    with pytest.raises(ValueError):
        split_dms(1.0, "sloppy")


@given(st.floats(min_value=0.0, max_value=359.999999, allow_nan=False), st.sampled_from(list(DmsMode)))
def test_format_parse_round_trip(x, mode):
    back = parse_dms(format_dms(x, mode))
    assert math.isclose(back, x, abs_tol=1.0 / 360000.0 + 1e-12)


@given(st.floats(min_value=0.0, max_value=359.999999, allow_nan=False))
def test_carry_fields_in_range(x):
    deg, minutes, seconds = split_dms(snap_to_centiseconds(x), DmsMode.CARRY)
    assert 0 <= minutes < 60
    assert 0.0 <= seconds < 60.0
    assert 0 <= deg < 360


def test_parse_rejects_garbage():
    with pytest.raises(ValueError):
        parse_dms("12 degrees")


@pytest.mark.parametrize("x, expected", [
    (59.9999999, 60.0),
    (359.9999999, 0.0),
    (-1e-9, 0.0),
    (12.5, 12.5),
])
def test_snap_to_centiseconds(x, expected):
    assert snap_to_centiseconds(x) == expected
