# birthmap/core/assembler.py
"""
Public API:
    compute_chart_points(context, provider, *, partial=False, settings=None, cache=None) -> AssemblyResult
    assemble(raw_points, *, partial=False, cache=None, dms_mode=DmsMode.CARRY)   -> AssemblyResult
    gather_raw_longitudes(provider, jd, bodies, *, partial=False)               -> (dict, dict)
    build_record(name, longitude, *, cache=None, dms_mode=DmsMode.CARRY)       -> PointRecord

Output order: the supplied bodies in input order, then AC, MC, Vertex, Fortune.

Strict mode (the default) raises the first AstroError, tagged with the point
it belongs to. Partial mode is opt-in: every failing point is kept out of
`records` and reported under its name in `failures`; nothing fails silently.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, TYPE_CHECKING
import logging

from birthmap.core.angles import DmsMode, ensure_finite, format_dms, normalize360, snap_to_centiseconds
from birthmap.core.chart_points import ascendant_from_houses, midheaven, vertex
from birthmap.core.errors import AstroError, ProviderFailure, call_provider
from birthmap.core.fortune import part_of_fortune
from birthmap.core.sidereal import SiderealFrame, sidereal_frame
from birthmap.core.zodiac import SignCache, ZodiacSign, sign_of
from birthmap.utils.config import EngineSettings

if TYPE_CHECKING:  # pragma: no cover
    from birthmap.core.ephemeris_adapter import EphemerisProvider

log = logging.getLogger(__name__)

__all__ = [
    "DERIVED_POINTS",
    "ChartPoint",
    "PointRecord",
    "ObservationContext",
    "AssemblyResult",
    "build_record",
    "assemble",
    "gather_raw_longitudes",
    "compute_chart_points",
]

DERIVED_POINTS: Tuple[str, ...] = ("AC", "MC", "Vertex", "Fortune")
_RESERVED = {p.lower() for p in DERIVED_POINTS} | {"asc", "ascendant"}


# ───────────────────────────── Types ─────────────────────────────
@dataclass(frozen=True)
class ChartPoint:
    name: str
    longitude_deg: float

    @classmethod
    def of(cls, name: str, longitude: Any) -> "ChartPoint":
        return cls(str(name), normalize360(longitude))


@dataclass(frozen=True)
class PointRecord:
    dms30: str
    dms360: str
    decimal_degrees: float
    zodiac_sign: Optional[ZodiacSign]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "long30": self.dms30,
            "long360": self.dms360,
            "longDd": self.decimal_degrees,
            "zodiacSign": self.zodiac_sign.label if self.zodiac_sign is not None else None,
        }


@dataclass(frozen=True)
class ObservationContext:
    julian_day: float
    latitude: float
    longitude: float
    raw_longitudes: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        # read-only snapshot; later edits to the caller's dict are not seen
        object.__setattr__(self, "raw_longitudes", MappingProxyType(dict(self.raw_longitudes)))


@dataclass
class AssemblyResult:
    records: Dict[str, PointRecord] = field(default_factory=dict)
    failures: Dict[str, AstroError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        for err in self.failures.values():
            raise err

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {name: rec.to_dict() for name, rec in self.records.items()}

    def failures_to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {name: err.to_dict() for name, err in self.failures.items()}


# ───────────────────────────── Records ─────────────────────────────
def build_record(
    name: str,
    longitude: Any,
    *,
    cache: Optional[SignCache] = None,
    dms_mode: DmsMode = DmsMode.CARRY,
) -> PointRecord:
    try:
        point = ChartPoint.of(name, longitude)
        lon = point.longitude_deg
        # carry mode: sign and both DMS forms come from the rounded angle, so a
        # value a hair below a cusp renders as 0° of the next sign
        shown = snap_to_centiseconds(lon) if DmsMode.coerce(dms_mode) is DmsMode.CARRY else lon
        sign = cache.sign_of(shown) if cache is not None else sign_of(shown)
        return PointRecord(
            dms30=format_dms(shown % 30.0, dms_mode),
            dms360=format_dms(shown, dms_mode),
            decimal_degrees=lon,
            zodiac_sign=sign,
        )
    except AstroError as e:
        raise e.with_point(name)


class _Collector:
    """Holds one result and applies the strict/partial policy per point."""

    def __init__(self, partial: bool, cache: Optional[SignCache], dms_mode: DmsMode):
        self.partial = partial
        self.cache = cache
        self.dms_mode = dms_mode
        self.result = AssemblyResult()
        self.longitudes: Dict[str, float] = {}

    def fail(self, name: str, err: AstroError) -> None:
        err.with_point(name)
        if not self.partial:
            raise err
        log.warning("point %s omitted: %s", name, err)
        self.result.failures[name] = err

    def keep(self, name: str, compute: Callable[[], Any]) -> None:
        try:
            lon = compute()
            self.result.records[name] = build_record(name, lon, cache=self.cache, dms_mode=self.dms_mode)
            self.longitudes[name] = self.result.records[name].decimal_degrees
        except AstroError as e:
            self.fail(name, e)


def assemble(
    raw_points: Mapping[str, Any],
    *,
    partial: bool = False,
    cache: Optional[SignCache] = None,
    dms_mode: DmsMode = DmsMode.CARRY,
) -> AssemblyResult:
    c = _Collector(partial, cache, DmsMode.coerce(dms_mode))
    for name, lon in raw_points.items():
        c.keep(name, lambda lon=lon: lon)
    return c.result


# ───────────────────────────── Provider → raw longitudes ─────────────────────────────
def gather_raw_longitudes(
    provider: "EphemerisProvider",
    julian_day: float,
    bodies: Iterable[str],
    *,
    partial: bool = False,
) -> Tuple[Dict[str, float], Dict[str, AstroError]]:
    """Ask the provider for every body; failures are tagged with the body name."""
    jd = ensure_finite(julian_day, "julian_day")
    out: Dict[str, float] = {}
    failures: Dict[str, AstroError] = {}
    for body in bodies:
        try:
            lon = call_provider(provider.raw_longitude, "raw_longitude", jd, body)
            try:
                out[body] = ensure_finite(lon, body)
            except AstroError as e:
                raise ProviderFailure(f"raw_longitude returned {lon!r}", capability="raw_longitude") from e
        except AstroError as e:
            e.with_point(body)
            if not partial:
                raise
            log.warning("body %s unavailable: %s", body, e)
            failures[body] = e
    return out, failures


# ───────────────────────────── Entry point ─────────────────────────────
def _check_reserved(raw: Mapping[str, Any]) -> None:
    clash = sorted(k for k in raw if str(k).lower() in _RESERVED)
    if clash:
        raise ValueError(f"raw_longitudes may not contain derived point names: {', '.join(clash)}")


def compute_chart_points(
    context: ObservationContext,
    provider: "EphemerisProvider",
    *,
    partial: bool = False,
    settings: Optional[EngineSettings] = None,
    cache: Optional[SignCache] = None,
) -> AssemblyResult:
    s = settings or EngineSettings()
    _check_reserved(context.raw_longitudes)
    c = _Collector(partial, cache, DmsMode.coerce(s.dms_mode))

    for name, lon in context.raw_longitudes.items():
        c.keep(name, lambda lon=lon: lon)

    frame: Optional[SiderealFrame] = None
    frame_error: Optional[AstroError] = None
    try:
        frame = sidereal_frame(provider, context.julian_day, context.longitude)
    except AstroError as e:
        frame_error = e

    def from_frame(fn: Callable[[SiderealFrame], float]) -> Callable[[], float]:
        def run() -> float:
            if frame is None:
                # fresh instance per point so each carries its own tag
                raise type(frame_error)(frame_error.message, **frame_error.context) from frame_error
            return fn(frame)
        return run

    c.keep("AC", lambda: ascendant_from_houses(
        provider, context.julian_day, context.latitude, context.longitude, s.house_system))
    c.keep("MC", from_frame(lambda f: midheaven(f.ramc_deg, f.obliquity_rad)))
    c.keep("Vertex", from_frame(lambda f: vertex(
        f.ramc_deg, f.obliquity_rad, context.latitude,
        polar_limit_deg=s.polar_limit_deg, equator_epsilon_deg=s.equator_epsilon_deg)))
    c.keep("Fortune", lambda: part_of_fortune(c.longitudes, arc=s.sect_arc))

    if frame is not None:
        log.debug("chart jd=%s lat=%s lon=%s ramc=%.6f -> %d points, %d failures",
                  context.julian_day, context.latitude, context.longitude, frame.ramc_deg,
                  len(c.result.records), len(c.result.failures))
    return c.result
