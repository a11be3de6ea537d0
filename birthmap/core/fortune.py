# birthmap/core/fortune.py
"""
Sect (day/night) and the Part of Fortune.

Conventions, both pinned by tests:
- A chart is a day chart when the Sun lies on the arc that starts at the
  Ascendant and runs counter-clockwise (increasing longitude) 180° to the
  Descendant, both ends included. The test is done on the wrapped offset
  normalize360(sun - asc), so an arc crossing 0° Aries is handled
  (AC 350°, Sun 5° -> day). `SectArc.DESC_TO_ASC` selects the opposite arc.
- Fortune = AC + Moon - Sun by day, AC + Sun - Moon by night, mod 360.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional

from birthmap.core.angles import ensure_finite, normalize360
from birthmap.core.errors import MissingDependency

__all__ = ["SectArc", "is_day_chart", "fortune_longitude", "part_of_fortune"]

_ASC_KEYS = ("ac", "asc", "ascendant")


class SectArc(str, Enum):
    ASC_TO_DESC = "ascendant_to_descendant"
    DESC_TO_ASC = "descendant_to_ascendant"

    @classmethod
    def coerce(cls, value: Any) -> "SectArc":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"unknown sect arc {value!r}") from None


def is_day_chart(sun_longitude: float, ascendant_longitude: float, *, arc: SectArc = SectArc.ASC_TO_DESC) -> bool:
    sun = ensure_finite(sun_longitude, "sun longitude")
    start = ensure_finite(ascendant_longitude, "ascendant longitude")
    if SectArc.coerce(arc) is SectArc.DESC_TO_ASC:
        start += 180.0
    return normalize360(sun - start) <= 180.0


def fortune_longitude(ascendant: float, sun: float, moon: float, is_day: bool) -> float:
    asc = ensure_finite(ascendant, "ascendant")
    sun = ensure_finite(sun, "sun")
    moon = ensure_finite(moon, "moon")
    if is_day:
        return normalize360(asc + moon - sun)
    return normalize360(asc + sun - moon)


def _lookup(points: Mapping[str, float], keys) -> Optional[float]:
    by_lower = {str(k).lower(): v for k, v in points.items()}
    for k in keys:
        if k in by_lower and by_lower[k] is not None:
            return by_lower[k]
    return None


def part_of_fortune(points: Mapping[str, float], *, arc: SectArc = SectArc.ASC_TO_DESC) -> float:
    asc = _lookup(points, _ASC_KEYS)
    sun = _lookup(points, ("sun",))
    moon = _lookup(points, ("moon",))
    missing = [nm for nm, v in (("AC", asc), ("sun", sun), ("moon", moon)) if v is None]
    if missing:
        raise MissingDependency(
            f"Part of Fortune needs AC, sun and moon; missing: {', '.join(missing)}",
            point="Fortune",
            missing=missing,
        )
    return fortune_longitude(asc, sun, moon, is_day_chart(sun, asc, arc=arc))
