# birthmap/core/chart_points.py
"""
Angular chart points from sidereal time, obliquity and observer latitude.

    midheaven(ramc, ε)            MC = atan2(sin RAMC, cos RAMC · cos ε)
    ascendant(ramc, ε, φ)         AC = atan2(cos RAMC, −(sin RAMC · cos ε + tan φ · sin ε))
    vertex(ramc, ε, φ)            Vx = atan2(cos RAMC, sin ε · cot φ − cos ε · sin RAMC) + 180°

RAMC and φ are in degrees, ε in radians; results are ecliptic longitudes in
[0, 360). The Ascendant of a chart is taken from the provider's house
computation (`ascendant_from_houses`); `ascendant` here is the formula the
analytic providers use to answer that call.

Latitude policy for the Vertex (cot φ is unbounded at the equator and the
prime vertical degenerates at the poles):
  |φ| > 90                   InvalidAngleInput
  |φ| >= polar_limit_deg     DegenerateGeometry
  |φ| <  equator_epsilon_deg clamped to ±equator_epsilon_deg (sign kept)
"""
from __future__ import annotations

from typing import Dict, Optional, TYPE_CHECKING
import logging
import math

from birthmap.core.angles import ensure_finite, normalize360
from birthmap.core.errors import DegenerateGeometry, InvalidAngleInput, ProviderFailure, call_provider
from birthmap.core.sidereal import SiderealFrame, sidereal_frame

if TYPE_CHECKING:  # pragma: no cover
    from birthmap.core.ephemeris_adapter import EphemerisProvider

log = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_POLAR_LIMIT_DEG",
    "DEFAULT_EQUATOR_EPSILON_DEG",
    "midheaven",
    "ascendant",
    "vertex",
    "ascendant_from_houses",
    "derive_angles",
]

DEFAULT_POLAR_LIMIT_DEG = 89.9
DEFAULT_EQUATOR_EPSILON_DEG = 1e-6


def _atan2d(y: float, x: float) -> float:
    return normalize360(math.degrees(math.atan2(y, x)))


def _latitude(latitude_deg: float) -> float:
    lat = ensure_finite(latitude_deg, "latitude")
    if abs(lat) > 90.0:
        raise InvalidAngleInput(f"latitude {lat} outside [-90, 90]")
    return lat


def midheaven(ramc_deg: float, obliquity_rad: float) -> float:
    r = math.radians(ensure_finite(ramc_deg, "ramc"))
    eps = ensure_finite(obliquity_rad, "obliquity")
    return _atan2d(math.sin(r), math.cos(r) * math.cos(eps))


def ascendant(ramc_deg: float, obliquity_rad: float, latitude_deg: float) -> float:
    r = math.radians(ensure_finite(ramc_deg, "ramc"))
    eps = ensure_finite(obliquity_rad, "obliquity")
    phi = math.radians(_latitude(latitude_deg))
    return _atan2d(math.cos(r), -(math.sin(r) * math.cos(eps) + math.tan(phi) * math.sin(eps)))


def vertex(
    ramc_deg: float,
    obliquity_rad: float,
    latitude_deg: float,
    *,
    polar_limit_deg: float = DEFAULT_POLAR_LIMIT_DEG,
    equator_epsilon_deg: float = DEFAULT_EQUATOR_EPSILON_DEG,
) -> float:
    r = math.radians(ensure_finite(ramc_deg, "ramc"))
    eps = ensure_finite(obliquity_rad, "obliquity")
    lat = _latitude(latitude_deg)
    if abs(lat) >= polar_limit_deg:
        raise DegenerateGeometry(
            f"Vertex undefined at latitude {lat} (|lat| >= {polar_limit_deg})", latitude=lat
        )
    if abs(lat) < equator_epsilon_deg:
        lat = math.copysign(equator_epsilon_deg, lat)

    cot_phi = 1.0 / math.tan(math.radians(lat))
    numerator = math.cos(r)
    denominator = math.sin(eps) * cot_phi - math.cos(eps) * math.sin(r)
    raw = _atan2d(numerator, denominator)
    # atan2 lands on the eastern (anti-vertex) solution; rotate to the western one
    return normalize360(raw + 180.0)


def ascendant_from_houses(
    provider: "EphemerisProvider",
    julian_day: float,
    latitude_deg: float,
    longitude_deg: float,
    house_system: str = "P",
) -> float:
    angles = call_provider(provider.houses, "houses", julian_day, latitude_deg, longitude_deg, house_system)
    asc = getattr(angles, "ascendant", None)
    if asc is None:
        raise ProviderFailure("houses returned no ascendant", capability="houses")
    try:
        return normalize360(asc)
    except InvalidAngleInput as e:
        raise ProviderFailure(f"houses returned an invalid ascendant: {asc!r}", capability="houses") from e


def derive_angles(
    provider: "EphemerisProvider",
    julian_day: float,
    latitude_deg: float,
    longitude_deg: float,
    *,
    house_system: str = "P",
    frame: Optional[SiderealFrame] = None,
    polar_limit_deg: float = DEFAULT_POLAR_LIMIT_DEG,
    equator_epsilon_deg: float = DEFAULT_EQUATOR_EPSILON_DEG,
) -> Dict[str, float]:
    """AC, MC and Vertex for one instant/place; any failure raises, tagged with its point."""
    frame = frame or sidereal_frame(provider, julian_day, longitude_deg)
    out: Dict[str, float] = {}
    try:
        out["AC"] = ascendant_from_houses(provider, julian_day, latitude_deg, longitude_deg, house_system)
    except ProviderFailure as e:
        raise e.with_point("AC")
    out["MC"] = midheaven(frame.ramc_deg, frame.obliquity_rad)
    try:
        out["Vertex"] = vertex(
            frame.ramc_deg, frame.obliquity_rad, latitude_deg,
            polar_limit_deg=polar_limit_deg, equator_epsilon_deg=equator_epsilon_deg,
        )
    except (DegenerateGeometry, InvalidAngleInput) as e:
        raise e.with_point("Vertex")
    log.debug("angles jd=%s ramc=%.6f eps=%.6f -> %s", julian_day, frame.ramc_deg, frame.obliquity_deg, out)
    return out
