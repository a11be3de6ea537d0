# birthmap/core/sidereal.py
"""
Sidereal time and obliquity, the two inputs every angle formula needs.

    obliquity_of_ecliptic(provider, jd)       -> ε  [rad]
    local_sidereal_time(provider, jd, lon)    -> LST [h]
    ramc_degrees(lst_hours)                   -> RAMC [deg]
    sidereal_frame(provider, jd, lon)         -> SiderealFrame (all three, once)

Greenwich sidereal time is requested at jd + ΔT(jd); longitude is
east-positive degrees.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TYPE_CHECKING
import math
import numbers

from birthmap.core.angles import ensure_finite, normalize360
from birthmap.core.errors import ProviderFailure, call_provider

if TYPE_CHECKING:  # pragma: no cover
    from birthmap.core.ephemeris_adapter import EphemerisProvider

__all__ = [
    "SiderealFrame",
    "obliquity_of_ecliptic",
    "local_sidereal_time",
    "ramc_degrees",
    "sidereal_frame",
]

_HALF_PI = math.pi / 2.0


@dataclass(frozen=True)
class SiderealFrame:
    obliquity_rad: float
    lst_hours: float
    ramc_deg: float

    @property
    def obliquity_deg(self) -> float:
        return math.degrees(self.obliquity_rad)


def _provider_number(value: Any, what: str) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(float(value)):
        raise ProviderFailure(f"{what} returned a non-finite value: {value!r}", capability=what)
    return float(value)


def obliquity_of_ecliptic(provider: "EphemerisProvider", julian_day: float) -> float:
    jd = ensure_finite(julian_day, "julian_day")
    eps = _provider_number(call_provider(provider.obliquity, "obliquity", jd), "obliquity")
    if not 0.0 <= eps <= _HALF_PI:
        raise ProviderFailure(f"obliquity {eps!r} rad outside [0, pi/2]", capability="obliquity")
    return eps


def local_sidereal_time(provider: "EphemerisProvider", julian_day: float, longitude_deg: float) -> float:
    jd = ensure_finite(julian_day, "julian_day")
    lon = ensure_finite(longitude_deg, "longitude")
    dt = _provider_number(call_provider(provider.delta_t, "delta_t", jd), "delta_t")
    gst = _provider_number(call_provider(provider.sidereal_time, "sidereal_time", jd + dt), "sidereal_time")
    lst = (gst + lon / 15.0) % 24.0
    return 0.0 if lst >= 24.0 else lst


def ramc_degrees(lst_hours: float) -> float:
    return normalize360(ensure_finite(lst_hours, "lst_hours") * 15.0)


def sidereal_frame(provider: "EphemerisProvider", julian_day: float, longitude_deg: float) -> SiderealFrame:
    eps = obliquity_of_ecliptic(provider, julian_day)
    lst = local_sidereal_time(provider, julian_day, longitude_deg)
    return SiderealFrame(obliquity_rad=eps, lst_hours=lst, ramc_deg=ramc_degrees(lst))
