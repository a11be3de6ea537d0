# birthmap/core/ephemeris_adapter.py
# -----------------------------------------------------------------------------
# Ephemeris providers for the chart-point engine
#
# The engine only ever talks to the EphemerisProvider interface:
#   raw_longitude(jd, body)            -> apparent ecliptic longitude [deg]
#   obliquity(jd)                      -> obliquity of the ecliptic   [rad]
#   sidereal_time(jd_ut)               -> Greenwich sidereal time     [h]
#   delta_t(jd)                        -> TT − UT                     [days]
#   houses(jd, lat, lon, system)       -> HouseAngles (AC/MC/Vertex)  [deg]
#
# Implementations
# • MeeusProvider    analytic series (Meeus Sun, Moon and lunar points; Keplerian
#                    planets; Espenak–Meeus ΔT); no data files
# • SkyfieldProvider JPL kernel via Skyfield for bodies, ERFA for ε and GAST;
#                    lunar points always, and every body when the kernel is
#                    missing, come from the analytic series
# -----------------------------------------------------------------------------
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import partial
from typing import Any, Dict, Optional, Tuple
import logging
import math
import os
import threading

from birthmap.core.angles import ensure_finite, normalize360
from birthmap.core.chart_points import (
    DEFAULT_EQUATOR_EPSILON_DEG,
    DEFAULT_POLAR_LIMIT_DEG,
    ascendant,
    midheaven,
    vertex,
)
from birthmap.core.errors import DegenerateGeometry, InvalidAngleInput, ProviderFailure
from birthmap.core.sidereal import sidereal_frame

log = logging.getLogger(__name__)

__all__ = [
    "BODIES",
    "HOUSE_SYSTEM_CODES",
    "HouseAngles",
    "EphemerisProvider",
    "MeeusProvider",
    "SkyfieldProvider",
    "make_provider",
]

J2000 = 2451545.0
DAYS_PER_CENTURY = 36525.0

BODIES: Tuple[str, ...] = (
    "sun", "moon", "mercury", "venus", "mars", "jupiter", "saturn",
    "uranus", "neptune", "pluto", "node", "mean_node", "lilith", "chiron",
)

# Placidus, Koch, Porphyry, Regiomontanus, Campanus, Equal (ASC), Equal (MC),
# Whole sign, Alcabitius, Morinus, Topocentric. AC/MC do not depend on the choice.
HOUSE_SYSTEM_CODES = frozenset("PKORCAEWBMT")


@dataclass(frozen=True)
class HouseAngles:
    ascendant: float
    midheaven: float
    vertex: Optional[float] = None


# ─────────────────────────────────────────────────────────────────────────────
# Interface
# ─────────────────────────────────────────────────────────────────────────────
class EphemerisProvider(ABC):
    name = "abstract"

    @abstractmethod
    def raw_longitude(self, julian_day: float, body: str) -> float: ...

    @abstractmethod
    def obliquity(self, julian_day: float) -> float: ...

    @abstractmethod
    def sidereal_time(self, julian_day_ut: float) -> float: ...

    @abstractmethod
    def delta_t(self, julian_day: float) -> float: ...

    @abstractmethod
    def houses(self, julian_day: float, latitude: float, longitude: float, system: str = "P") -> HouseAngles: ...


# ─────────────────────────────────────────────────────────────────────────────
# Analytic series
# ─────────────────────────────────────────────────────────────────────────────
def _centuries(jd: float) -> float:
    return (jd - J2000) / DAYS_PER_CENTURY


def _sind(a: float) -> float: return math.sin(math.radians(a))
def _cosd(a: float) -> float: return math.cos(math.radians(a))


def delta_t_seconds(julian_day: float) -> float:
    """Espenak–Meeus polynomial ΔT (TT − UT) in seconds."""
    y = 2000.0 + (julian_day - J2000) / 365.25
    if 1900.0 <= y < 1920.0:
        t = y - 1900.0
        return -2.79 + 1.494119*t - 0.0598939*t**2 + 0.0061966*t**3 - 0.000197*t**4
    if 1920.0 <= y < 1941.0:
        t = y - 1920.0
        return 21.20 + 0.84493*t - 0.076100*t**2 + 0.0020936*t**3
    if 1941.0 <= y < 1961.0:
        t = y - 1950.0
        return 29.07 + 0.407*t - t**2/233.0 + t**3/2547.0
    if 1961.0 <= y < 1986.0:
        t = y - 1975.0
        return 45.45 + 1.067*t - t**2/260.0 - t**3/718.0
    if 1986.0 <= y < 2005.0:
        t = y - 2000.0
        return (63.86 + 0.3345*t - 0.060374*t**2 + 0.0017275*t**3
                + 0.000651814*t**4 + 0.00002373599*t**5)
    if 2005.0 <= y < 2050.0:
        t = y - 2000.0
        return 62.92 + 0.32217*t + 0.005589*t**2
    u = (y - 1820.0) / 100.0
    if 2050.0 <= y < 2150.0:
        return -20.0 + 32.0*u**2 - 0.5628*(2150.0 - y)
    return -20.0 + 32.0*u**2


def _nutation_arcsec(jd_tt: float) -> Tuple[float, float]:
    """Low-precision (Δψ, Δε) in arc-seconds, Meeus ch. 22."""
    T = _centuries(jd_tt)
    omega = 125.04452 - 1934.136261*T
    L = 280.4665 + 36000.7698*T
    Lm = 218.3165 + 481267.8813*T
    dpsi = -17.20*_sind(omega) - 1.32*_sind(2*L) - 0.23*_sind(2*Lm) + 0.21*_sind(2*omega)
    deps = 9.20*_cosd(omega) + 0.57*_cosd(2*L) + 0.10*_cosd(2*Lm) - 0.09*_cosd(2*omega)
    return dpsi, deps


def _sun_apparent(jd_tt: float) -> float:
    T = _centuries(jd_tt)
    L0 = 280.46646 + 36000.76983*T + 0.0003032*T**2
    M = 357.52911 + 35999.05029*T - 0.0001537*T**2
    C = ((1.914602 - 0.004817*T - 0.000014*T**2)*_sind(M)
         + (0.019993 - 0.000101*T)*_sind(2*M)
         + 0.000289*_sind(3*M))
    omega = 125.04 - 1934.136*T
    return normalize360(L0 + C - 0.00569 - 0.00478*_sind(omega))


# Largest periodic terms of ELP-2000/82 (Meeus table 47.A), degrees
_MOON_TERMS = (
    # D, M, M', F, coefficient
    (0, 0, 1, 0, 6.288774),
    (2, 0, -1, 0, 1.274027),
    (2, 0, 0, 0, 0.658314),
    (0, 0, 2, 0, 0.213618),
    (0, 1, 0, 0, -0.185116),
    (0, 0, 0, 2, -0.114332),
    (2, 0, -2, 0, 0.058793),
    (2, -1, -1, 0, 0.057066),
    (2, 0, 1, 0, 0.053322),
    (2, -1, 0, 0, 0.045758),
    (0, 1, -1, 0, -0.040923),
    (1, 0, 0, 0, -0.034720),
    (0, 1, 1, 0, -0.030383),
)


def _lunar_arguments(T: float) -> Tuple[float, float, float, float]:
    """Delaunay arguments D, M, M', F in degrees (Meeus ch. 47)."""
    D = 297.8501921 + 445267.1114034*T
    M = 357.5291092 + 35999.0502909*T
    Mp = 134.9633964 + 477198.8675055*T
    F = 93.2720950 + 483202.0175233*T
    return D, M, Mp, F


def _moon_apparent(jd_tt: float) -> float:
    T = _centuries(jd_tt)
    Lp = 218.3164477 + 481267.88123421*T
    D, M, Mp, F = _lunar_arguments(T)
    E = 1.0 - 0.002516*T - 0.0000074*T**2
    lon = Lp
    for d, m, mp, f, coeff in _MOON_TERMS:
        term = coeff * _sind(d*D + m*M + mp*Mp + f*F)
        if m:
            term *= E ** abs(m)
        lon += term
    dpsi, _ = _nutation_arcsec(jd_tt)
    return normalize360(lon + dpsi / 3600.0)


def _mean_node(jd_tt: float) -> float:
    T = _centuries(jd_tt)
    return normalize360(125.04452 - 1934.136261*T + 0.0020708*T**2 + T**3/450000.0)


def _true_node(jd_tt: float) -> float:
    # mean node plus the five largest periodic terms (Meeus ch. 47)
    T = _centuries(jd_tt)
    D, M, Mp, F = _lunar_arguments(T)
    return normalize360(
        _mean_node(jd_tt)
        - 1.4979*_sind(2*(D - F))
        - 0.1500*_sind(M)
        - 0.1226*_sind(2*D)
        + 0.1176*_sind(2*F)
        - 0.0801*_sind(2*(Mp - F))
    )


def _mean_apogee(jd_tt: float) -> float:
    # mean lunar perigee (Meeus ch. 50) + 180°
    T = _centuries(jd_tt)
    perigee = 83.3532465 + 4069.0137287*T - 0.0103200*T**2 - T**3/80053.0 + T**4/18999000.0
    return normalize360(perigee + 180.0)


# Keplerian elements, J2000 ecliptic, valid 1800-2050 (Standish, JPL "Approximate
# Positions of the Planets", table 1): a [AU], e, I, L, ϖ, Ω [deg] and rates per
# Julian century. Good to about 0.01° except Jupiter and Saturn (about 0.2°).
_ELEMENTS: Dict[str, Tuple[Tuple[float, ...], Tuple[float, ...]]] = {
    "mercury": ((0.38709927, 0.20563593, 7.00497902, 252.25032350, 77.45779628, 48.33076593),
                (0.00000037, 0.00001906, -0.00594749, 149472.67411175, 0.16047689, -0.12534081)),
    "venus": ((0.72333566, 0.00677672, 3.39467605, 181.97909950, 131.60246718, 76.67984255),
              (0.00000390, -0.00004107, -0.00078890, 58517.81538729, 0.00268329, -0.27769418)),
    "earth": ((1.00000261, 0.01671123, -0.00001531, 100.46457166, 102.93768193, 0.0),
              (0.00000562, -0.00004392, -0.01294668, 35999.37244981, 0.32327364, 0.0)),
    "mars": ((1.52371034, 0.09339410, 1.84969142, -4.55343205, -23.94362959, 49.55953891),
             (0.00001847, 0.00007882, -0.00813131, 19140.30268499, 0.44441088, -0.29257343)),
    "jupiter": ((5.20288700, 0.04838624, 1.30439695, 34.39644051, 14.72847983, 100.47390909),
                (-0.00011607, -0.00013253, -0.00183714, 3034.74612775, 0.21252668, 0.20469106)),
    "saturn": ((9.53667594, 0.05386179, 2.48599187, 49.95424423, 92.59887831, 113.66242448),
               (-0.00125060, -0.00050991, 0.00193609, 1222.49362201, -0.41897216, -0.28867794)),
    "uranus": ((19.18916464, 0.04725744, 0.77263783, 313.23810451, 170.95427630, 74.01692503),
               (-0.00196176, -0.00004397, -0.00242939, 428.48202785, 0.40805281, 0.04240589)),
    "neptune": ((30.06992276, 0.00859048, 1.77004347, -55.12002969, 44.96476227, 131.78422574),
                (0.00026291, 0.00005105, 0.00035372, 218.45945325, -0.32241464, -0.00508664)),
    "pluto": ((39.48211675, 0.24882730, 17.14001206, 238.92903833, 224.06891629, 110.30393684),
              (-0.00031596, 0.00005170, 0.00004818, 145.20780515, -0.04062942, -0.01183482)),
}

_LIGHT_DAYS_PER_AU = 1.0 / 173.1446327


def _heliocentric(name: str, T: float) -> Tuple[float, float, float]:
    base, rate = _ELEMENTS[name]
    a, e, inc, L, peri, node = (b + r*T for b, r in zip(base, rate))
    M = math.radians((L - peri + 180.0) % 360.0 - 180.0)
    E = M + e*math.sin(M)
    for _ in range(30):
        step = (E - e*math.sin(E) - M) / (1.0 - e*math.cos(E))
        E -= step
        if abs(step) < 1e-12:
            break
    xp = a*(math.cos(E) - e)
    yp = a*math.sqrt(1.0 - e*e)*math.sin(E)
    w, om, i = math.radians(peri - node), math.radians(node), math.radians(inc)
    cw, sw, co, so, ci, si = math.cos(w), math.sin(w), math.cos(om), math.sin(om), math.cos(i), math.sin(i)
    x = (cw*co - sw*so*ci)*xp + (-sw*co - cw*so*ci)*yp
    y = (cw*so + sw*co*ci)*xp + (-sw*so + cw*co*ci)*yp
    z = (sw*si)*xp + (cw*si)*yp
    return x, y, z


def _planet_apparent(name: str, jd_tt: float) -> float:
    T = _centuries(jd_tt)
    ex, ey, ez = _heliocentric("earth", T)
    px, py, pz = _heliocentric(name, T)
    dist = math.sqrt((px - ex)**2 + (py - ey)**2 + (pz - ez)**2)
    # one light-time iteration
    px, py, _pz = _heliocentric(name, _centuries(jd_tt - dist*_LIGHT_DAYS_PER_AU))
    lon_j2000 = math.degrees(math.atan2(py - ey, px - ex))
    dpsi, _ = _nutation_arcsec(jd_tt)
    # precess to the ecliptic of date, then add nutation
    return normalize360(lon_j2000 + (5029.0966*T + 1.11113*T**2 + dpsi) / 3600.0)


_ANALYTIC_BODIES = {
    "sun": _sun_apparent,
    "moon": _moon_apparent,
    **{name: partial(_planet_apparent, name) for name in _ELEMENTS if name != "earth"},
    "node": _true_node,
    "mean_node": _mean_node,
    "lilith": _mean_apogee,
}


def _canon_body(body: str) -> str:
    return str(body or "").strip().lower()


class MeeusProvider(EphemerisProvider):
    """Deterministic analytic provider; no kernel, no network."""

    name = "meeus"

    def __init__(
        self,
        *,
        obliquity_kind: str = "mean",
        polar_limit_deg: float = DEFAULT_POLAR_LIMIT_DEG,
        equator_epsilon_deg: float = DEFAULT_EQUATOR_EPSILON_DEG,
    ):
        kind = str(obliquity_kind).strip().lower()
        if kind not in ("mean", "true"):
            raise ValueError(f"obliquity_kind must be 'mean' or 'true', got {obliquity_kind!r}")
        self.obliquity_kind = kind
        self.polar_limit_deg = polar_limit_deg
        self.equator_epsilon_deg = equator_epsilon_deg

    def _jd_tt(self, julian_day: float) -> float:
        jd = ensure_finite(julian_day, "julian_day")
        return jd + self.delta_t(jd)

    def raw_longitude(self, julian_day: float, body: str) -> float:
        fn = _ANALYTIC_BODIES.get(_canon_body(body))
        if fn is None:
            raise ProviderFailure(f"no analytic theory for body {body!r}", point=body, capability="raw_longitude")
        return fn(self._jd_tt(julian_day))

    def obliquity(self, julian_day: float) -> float:
        T = _centuries(ensure_finite(julian_day, "julian_day"))
        eps_arcsec = 84381.448 - 46.8150*T - 0.00059*T**2 + 0.001813*T**3
        if self.obliquity_kind == "true":
            eps_arcsec += _nutation_arcsec(julian_day)[1]
        return math.radians(eps_arcsec / 3600.0)

    def sidereal_time(self, julian_day_ut: float) -> float:
        jd = ensure_finite(julian_day_ut, "julian_day_ut")
        T = _centuries(jd)
        theta = (280.46061837 + 360.98564736629*(jd - J2000)
                 + 0.000387933*T**2 - T**3/38710000.0)
        return normalize360(theta) / 15.0

    def delta_t(self, julian_day: float) -> float:
        return delta_t_seconds(ensure_finite(julian_day, "julian_day")) / 86400.0

    def houses(self, julian_day: float, latitude: float, longitude: float, system: str = "P") -> HouseAngles:
        code = str(system or "").strip().upper()[:1]
        if code not in HOUSE_SYSTEM_CODES:
            raise ProviderFailure(f"unsupported house system {system!r}", capability="houses")
        frame = sidereal_frame(self, julian_day, longitude)
        asc = ascendant(frame.ramc_deg, frame.obliquity_rad, latitude)
        mc = midheaven(frame.ramc_deg, frame.obliquity_rad)
        try:
            vx: Optional[float] = vertex(
                frame.ramc_deg, frame.obliquity_rad, latitude,
                polar_limit_deg=self.polar_limit_deg, equator_epsilon_deg=self.equator_epsilon_deg,
            )
        except (DegenerateGeometry, InvalidAngleInput):
            vx = None
        return HouseAngles(ascendant=asc, midheaven=mc, vertex=vx)


# ─────────────────────────────────────────────────────────────────────────────
# Skyfield + ERFA
# ─────────────────────────────────────────────────────────────────────────────
_SKYFIELD_TARGETS: Dict[str, str] = {
    "sun": "sun",
    "moon": "moon",
    "mercury": "mercury",
    "venus": "venus",
    "mars": "mars barycenter",
    "jupiter": "jupiter barycenter",
    "saturn": "saturn barycenter",
    "uranus": "uranus barycenter",
    "neptune": "neptune barycenter",
    "pluto": "pluto barycenter",
}


def _split_jd(jd: float) -> Tuple[float, float]:
    d = math.floor(jd)
    return float(d), float(jd - d)


def _resolve_kernel_path(explicit: Optional[str] = None) -> Optional[str]:
    path = explicit or os.getenv("OCP_EPHEMERIS")
    if path and os.path.isfile(path):
        return path
    fallback = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "de421.bsp")
    return fallback if os.path.isfile(fallback) else None


def _looks_like_lfs_pointer(path: str) -> bool:
    try:
        if os.path.getsize(path) <= 512:
            with open(path, "rb") as f:
                head = f.read(128)
            return head.startswith(b"version https://git-lfs.github.com/spec/v1")
    except OSError:
        pass
    return False


class SkyfieldProvider(MeeusProvider):
    """
    Apparent geocentric longitudes (ecliptic of date) from a local JPL kernel.
    The kernel is loaded on first use; ε and sidereal time come from ERFA and
    need no kernel at all. With analytic_fallback on, a missing or unreadable
    kernel degrades every body to the analytic series (logged once).
    """

    name = "skyfield"

    def __init__(self, kernel_path: Optional[str] = None, analytic_fallback: bool = True, **kwargs: Any):
        super().__init__(**kwargs)
        self._kernel_path = kernel_path
        self.analytic_fallback = bool(analytic_fallback)
        self._lock = threading.Lock()
        self._ts = None
        self._kernel = None
        self._degraded = False

    # ---- kernel -------------------------------------------------------------
    def _load(self):
        if self._kernel is not None:
            return self._ts, self._kernel
        with self._lock:
            if self._kernel is None:
                path = _resolve_kernel_path(self._kernel_path)
                if not path:
                    raise ProviderFailure(
                        "no local DE421 kernel (set OCP_EPHEMERIS or place birthmap/data/de421.bsp)",
                        capability="kernel",
                    )
                if _looks_like_lfs_pointer(path):
                    raise ProviderFailure(f"kernel looks like a Git LFS pointer: {path}", capability="kernel")
                from skyfield.api import load
                try:
                    self._ts = load.timescale()
                    self._kernel = load(path)
                except Exception as e:
                    raise ProviderFailure(f"Skyfield failed to load kernel {path}: {e}", capability="kernel") from e
                log.info("ephemeris kernel loaded: %s", path)
        return self._ts, self._kernel

    @property
    def kernel_name(self) -> str:
        path = _resolve_kernel_path(self._kernel_path)
        return os.path.basename(path) if path else "de421(missing)"

    # ---- capabilities -------------------------------------------------------
    def raw_longitude(self, julian_day: float, body: str) -> float:
        key = _canon_body(body)
        target = _SKYFIELD_TARGETS.get(key)
        if target is None:
            if key in _ANALYTIC_BODIES:
                return super().raw_longitude(julian_day, key)
            raise ProviderFailure(f"body {body!r} not available in {self.kernel_name}",
                                  point=body, capability="raw_longitude")
        try:
            ts, kernel = self._load()
        except ProviderFailure as e:
            if not self.analytic_fallback:
                raise
            if not self._degraded:
                self._degraded = True
                log.warning("ephemeris kernel unavailable (%s); using analytic series", e.message)
            return super().raw_longitude(julian_day, key)
        from skyfield.framelib import ecliptic_frame
        try:
            t = ts.tt_jd(self._jd_tt(julian_day))
            apparent = kernel["earth"].at(t).observe(kernel[target]).apparent()
            _lat, lon, _dist = apparent.frame_latlon(ecliptic_frame)
            return normalize360(float(lon.degrees))
        except Exception as e:
            raise ProviderFailure(f"skyfield failed for {body!r}: {e}", point=body,
                                  capability="raw_longitude") from e

    def obliquity(self, julian_day: float) -> float:
        import erfa
        d1, d2 = _split_jd(self._jd_tt(julian_day))
        eps = erfa.obl06(d1, d2)
        if self.obliquity_kind == "true":
            _dpsi, deps = erfa.nut06a(d1, d2)
            eps += deps
        return float(eps)

    def sidereal_time(self, julian_day_ut: float) -> float:
        import erfa
        jd = ensure_finite(julian_day_ut, "julian_day_ut")
        ut1, ut2 = _split_jd(jd)
        tt1, tt2 = _split_jd(jd + self.delta_t(jd))
        gast = erfa.gst06a(ut1, ut2, tt1, tt2)
        return normalize360(math.degrees(gast)) / 15.0


# ─────────────────────────────────────────────────────────────────────────────
# Factory
# ─────────────────────────────────────────────────────────────────────────────
def make_provider(settings: Any = None) -> EphemerisProvider:
    """Build the provider named by EngineSettings.provider ('skyfield' | 'meeus')."""
    kind = getattr(settings, "provider", "skyfield")
    common = dict(
        obliquity_kind=getattr(settings, "obliquity", "mean"),
        polar_limit_deg=getattr(settings, "polar_limit_deg", DEFAULT_POLAR_LIMIT_DEG),
        equator_epsilon_deg=getattr(settings, "equator_epsilon_deg", DEFAULT_EQUATOR_EPSILON_DEG),
    )
    if kind == "meeus":
        return MeeusProvider(**common)
    if kind == "skyfield":
        return SkyfieldProvider(
            kernel_path=getattr(settings, "kernel_path", None),
            analytic_fallback=getattr(settings, "analytic_fallback", True),
            **common,
        )
    raise ValueError(f"unknown ephemeris provider {kind!r}; expected 'skyfield' or 'meeus'")
