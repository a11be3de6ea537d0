# tests/test_fortune.py
from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from birthmap.core.errors import InvalidAngleInput, MissingDependency
from birthmap.core.fortune import SectArc, fortune_longitude, is_day_chart, part_of_fortune

lon_st = st.floats(min_value=0.0, max_value=359.999, allow_nan=False)


def test_day_formula():
    assert fortune_longitude(100.0, 150.0, 200.0, True) == pytest.approx(150.0)


def test_night_formula():
    assert fortune_longitude(100.0, 150.0, 200.0, False) == pytest.approx(50.0)


def test_result_wraps():
    assert fortune_longitude(350.0, 10.0, 40.0, True) == pytest.approx(20.0)
    assert fortune_longitude(5.0, 10.0, 300.0, False) == pytest.approx(75.0)


@pytest.mark.parametrize("sun, asc, day", [
    (5.0, 350.0, True),      # arc crosses 0° Aries
    (100.0, 10.0, True),
    (10.0, 10.0, True),      # on the ascendant
    (190.0, 10.0, True),     # on the descendant
    (190.1, 10.0, False),
    (300.0, 10.0, False),
    (200.0, 350.0, False),
])
def test_sect(sun, asc, day):
    assert is_day_chart(sun, asc) is day


def test_opposite_arc_inverts_sect_off_the_horizon():
    assert is_day_chart(100.0, 10.0, arc=SectArc.DESC_TO_ASC) is False
    assert is_day_chart(300.0, 10.0, arc="descendant_to_ascendant") is True


@given(st.integers(min_value=0, max_value=359), st.integers(min_value=0, max_value=359), st.integers(min_value=-3, max_value=3))
def test_sect_depends_only_on_offset(sun, asc, turns):
    assert is_day_chart(sun, asc) == is_day_chart(sun + 360 * turns, asc - 360 * turns)


@given(lon_st, lon_st, lon_st)
def test_day_and_night_fortunes_are_mirror_images_about_ac(asc, sun, moon):
    day = fortune_longitude(asc, sun, moon, True)
    night = fortune_longitude(asc, sun, moon, False)
    d = abs(((day - asc) + (night - asc)) % 360.0)
    assert min(d, 360.0 - d) < 1e-9


def test_part_of_fortune_from_points():
    points = {"AC": 100.0, "Sun": 150.0, "moon": 200.0}
    assert part_of_fortune(points) == pytest.approx(150.0)


def test_part_of_fortune_accepts_asc_alias():
    assert part_of_fortune({"asc": 100.0, "sun": 300.0, "moon": 200.0}) == pytest.approx(200.0)


def test_missing_inputs_are_named():
    with pytest.raises(MissingDependency) as ei:
        part_of_fortune({"AC": 10.0, "sun": 20.0})
    assert ei.value.point == "Fortune"
    assert ei.value.context["missing"] == ["moon"]


def test_non_finite_input():
    with pytest.raises(InvalidAngleInput):
        fortune_longitude(float("nan"), 1.0, 2.0, True)
