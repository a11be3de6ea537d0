# birthmap/utils/config.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Tuple
import logging
import os

import yaml

from birthmap.core.angles import DmsMode
from birthmap.core.fortune import SectArc

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
    "config", "defaults.yaml",
)

DEFAULT_BODIES: Tuple[str, ...] = (
    "sun", "moon", "mercury", "venus", "mars", "jupiter", "saturn",
    "uranus", "neptune", "pluto", "node", "lilith",
)


class AttrDict(dict):
    """Dict that also supports attribute access: cfg.angles and cfg['angles'] both work."""
    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError as e:
            raise AttributeError(item) from e
    def __setattr__(self, key, value):
        self[key] = value


def _to_attr(obj):
    if isinstance(obj, dict):
        return AttrDict({k: _to_attr(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return [_to_attr(x) for x in obj]
    return obj


def load_config(path: Optional[str] = None) -> AttrDict:
    """
    Load YAML config from `path` (default: $ASTRO_CONFIG, then config/defaults.yaml).
    A missing file yields an empty AttrDict; engine_settings() fills in defaults.
    """
    path = path or os.getenv("ASTRO_CONFIG") or DEFAULT_CONFIG_PATH
    if not os.path.exists(path):
        log.warning("config file %s not found; using built-in defaults", path)
        return AttrDict()
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"config file {path} must contain a mapping at top level")
    return _to_attr(data)


# ───────────────────────────── env helpers ─────────────────────────────
def _bool_env(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")


def _float_env(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return float(v)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {v!r}") from e


def _str_env(name: str, default: str) -> str:
    v = os.getenv(name)
    return v.strip() if v and v.strip() else default


def _section(cfg: Any, name: str) -> dict:
    sec = (cfg or {}).get(name) if isinstance(cfg, dict) else None
    return sec if isinstance(sec, dict) else {}


# ───────────────────────────── settings ─────────────────────────────
@dataclass(frozen=True)
class EngineSettings:
    dms_mode: DmsMode = DmsMode.CARRY
    sect_arc: SectArc = SectArc.ASC_TO_DESC
    partial_results: bool = True
    provider: str = "skyfield"
    kernel_path: Optional[str] = None
    analytic_fallback: bool = True
    obliquity: str = "mean"
    house_system: str = "P"
    polar_limit_deg: float = 89.9
    equator_epsilon_deg: float = 1e-6
    sign_cache_size: int = 4096
    latitude: float = 32.0853
    longitude: float = 34.7818
    timezone: str = "Asia/Jerusalem"
    bodies: Tuple[str, ...] = field(default=DEFAULT_BODIES)

    def __post_init__(self):
        if self.provider not in ("skyfield", "meeus"):
            raise ValueError(f"ephemeris provider must be 'skyfield' or 'meeus', got {self.provider!r}")
        if self.obliquity not in ("mean", "true"):
            raise ValueError(f"obliquity must be 'mean' or 'true', got {self.obliquity!r}")
        if not 0.0 < self.polar_limit_deg <= 90.0:
            raise ValueError("polar_limit_deg must be in (0, 90]")
        if not 0.0 < self.equator_epsilon_deg < self.polar_limit_deg:
            raise ValueError("equator_epsilon_deg must be positive and below polar_limit_deg")
        if self.sign_cache_size < 1:
            raise ValueError("sign_cache_size must be >= 1")


def engine_settings(cfg: Any = None) -> EngineSettings:
    """YAML sections `angles`, `ephemeris`, `vertex`, `location`, `api`, overridden by ASTRO_* env vars."""
    angles = _section(cfg, "angles")
    eph = _section(cfg, "ephemeris")
    vx = _section(cfg, "vertex")
    loc = _section(cfg, "location")
    api = _section(cfg, "api")
    d = EngineSettings()

    bodies = eph.get("bodies") or d.bodies
    env_bodies = os.getenv("ASTRO_BODIES")
    if env_bodies:
        bodies = [b for b in env_bodies.split(",") if b.strip()]

    return EngineSettings(
        dms_mode=DmsMode.coerce(_str_env("ASTRO_DMS_MODE", str(angles.get("dms_mode", d.dms_mode.value)))),
        sect_arc=SectArc.coerce(_str_env("ASTRO_SECT_ARC", str(angles.get("sect_arc", d.sect_arc.value)))),
        partial_results=_bool_env("ASTRO_PARTIAL_RESULTS", bool(api.get("partial_results", d.partial_results))),
        provider=_str_env("ASTRO_EPHEMERIS_PROVIDER", str(eph.get("provider", d.provider))).lower(),
        kernel_path=os.getenv("OCP_EPHEMERIS") or eph.get("kernel_path") or None,
        analytic_fallback=_bool_env("ASTRO_ANALYTIC_FALLBACK", bool(eph.get("analytic_fallback", d.analytic_fallback))),
        obliquity=_str_env("ASTRO_OBLIQUITY", str(eph.get("obliquity", d.obliquity))).lower(),
        house_system=_str_env("ASTRO_HOUSE_SYSTEM", str(eph.get("house_system", d.house_system))).upper(),
        polar_limit_deg=_float_env("ASTRO_VERTEX_POLAR_LIMIT", float(vx.get("polar_limit_deg", d.polar_limit_deg))),
        equator_epsilon_deg=_float_env("ASTRO_VERTEX_EQUATOR_EPS",
                                       float(vx.get("equator_epsilon_deg", d.equator_epsilon_deg))),
        sign_cache_size=int(_float_env("ASTRO_SIGN_CACHE_SIZE", float(angles.get("sign_cache_size", d.sign_cache_size)))),
        latitude=float(loc.get("latitude", d.latitude)),
        longitude=float(loc.get("longitude", d.longitude)),
        timezone=str(loc.get("timezone", d.timezone)),
        bodies=tuple(str(b).strip().lower() for b in bodies),
    )
