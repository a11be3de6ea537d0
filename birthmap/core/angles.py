# birthmap/core/angles.py
"""
Angle arithmetic and degree/minute/second rendering.

Public API:
    normalize360(x)            -> float in [0, 360)
    snap_to_centiseconds(x)    -> float in [0, 360) on the 0.01" grid
    split_dms(x, mode)         -> (deg, min, sec)
    format_dms(x, mode)        -> 'D°M'S.SS"'
    parse_dms(text)            -> float degrees

Two DMS rounding modes are supported:

  carry   (default) the angle is rounded to 0.01" before it is split, so the
          seconds field never shows 60.00 and the overflow lands in minutes
          or degrees ( 29.9999999 -> 30°0'0.00" ).
  legacy  integer degrees, integer minutes, seconds rounded on their own.
          A remainder of 59.995" or more renders as 60.00 (29°59'60.00").
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Tuple
import math
import numbers
import re

from birthmap.core.errors import InvalidAngleInput

__all__ = [
    "DmsMode", "normalize360", "snap_to_centiseconds", "ensure_finite", "split_dms", "format_dms", "parse_dms",
]

_CS_PER_DEG = 360_000  # hundredths of an arc-second per degree
_CS_PER_MIN = 6_000


class DmsMode(str, Enum):
    CARRY = "carry"
    LEGACY = "legacy"

    @classmethod
    def coerce(cls, value: Any) -> "DmsMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"unknown DMS mode {value!r}; expected 'carry' or 'legacy'") from None


# ───────────────────────────── Normalisation ─────────────────────────────
def ensure_finite(x: Any, what: str = "angle") -> float:
    """Return x as float or raise InvalidAngleInput for None/NaN/inf/non-numbers."""
    if isinstance(x, bool) or not isinstance(x, numbers.Real):
        raise InvalidAngleInput(f"{what} must be a real number, got {type(x).__name__}")
    v = float(x)
    if not math.isfinite(v):
        raise InvalidAngleInput(f"{what} must be finite, got {v!r}")
    return v


def normalize360(x: Any) -> float:
    r = ((ensure_finite(x) % 360.0) + 360.0) % 360.0
    # -1e-17 % 360 rounds to 360.0 in binary floating point
    return 0.0 if r >= 360.0 else r


def snap_to_centiseconds(x: Any) -> float:
    """Round an angle to the nearest 0.01" and bring it back into [0, 360)."""
    return normalize360(round(normalize360(x) * _CS_PER_DEG) / _CS_PER_DEG)


# ───────────────────────────── DMS rendering ─────────────────────────────
def _split_legacy(v: float) -> Tuple[int, int, float]:
    frac = math.fmod(v, 1.0)
    minutes = math.floor(frac * 60.0)
    seconds = round(math.fmod(frac * 60.0, 1.0) * 60.0, 2)
    return math.floor(v), int(minutes), seconds


def _split_carry(v: float) -> Tuple[int, int, float]:
    total = int(round(abs(v) * _CS_PER_DEG))
    deg, rem = divmod(total, _CS_PER_DEG)
    minutes, cs = divmod(rem, _CS_PER_MIN)
    if v < 0:
        deg = -deg
    return deg, minutes, cs / 100.0


def split_dms(x: Any, mode: DmsMode = DmsMode.CARRY) -> Tuple[int, int, float]:
    v = ensure_finite(x)
    if DmsMode.coerce(mode) is DmsMode.LEGACY:
        return _split_legacy(v)
    return _split_carry(v)


def format_dms(x: Any, mode: DmsMode = DmsMode.CARRY) -> str:
    """
    Render an angle already reduced by the caller (to [0, 360) or [0, 30)).
    """
    v = ensure_finite(x)
    deg, minutes, seconds = split_dms(v, mode)
    sign = "-" if (v < 0 and deg == 0) else ""
    return f"{sign}{deg}°{minutes}'{seconds:.2f}\""


_DMS_RE = re.compile(r"""^\s*(?P<sign>-)?(?P<d>\d+)°(?P<m>\d+)'(?P<s>\d+(?:\.\d+)?)"\s*$""")


def parse_dms(text: str) -> float:
    m = _DMS_RE.match(text or "")
    if not m:
        raise ValueError(f"not a DMS string: {text!r}")
    value = int(m.group("d")) + int(m.group("m")) / 60.0 + float(m.group("s")) / 3600.0
    return -value if m.group("sign") else value
