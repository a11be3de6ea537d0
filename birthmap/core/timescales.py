# birthmap/core/timescales.py
# -----------------------------------------------------------------------------
# Local civil time → Julian Day (UTC)
#
# Public API:
#   local_to_jd_ut(year, month, day, hour, minute, tz_name, second=0) -> float
#
#   • Zone offset via zoneinfo; DST ambiguity resolved with fold=0 and logged.
#   • Calendar → JD via erfa.dtf2d("UTC", ...); no POSIX timestamp math.
# -----------------------------------------------------------------------------
from __future__ import annotations

from datetime import datetime, timezone
from typing import Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging
import math

import erfa  # pyERFA

log = logging.getLogger(__name__)

__all__ = ["local_to_jd_ut", "local_to_utc_fields"]


def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(str(tz_name))
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown IANA time zone '{tz_name}'") from e


def local_to_utc_fields(
    year: int, month: int, day: int, hour: int, minute: int, tz_name: str, second: int = 0
) -> Tuple[int, int, int, int, int, int]:
    """UTC calendar fields (Y, M, D, h, m, s) for a wall-clock time in `tz_name`."""
    z = _zone(tz_name)
    try:
        naive = datetime(int(year), int(month), int(day), int(hour), int(minute), int(second))
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid civil date/time: {e}") from e

    aware0 = naive.replace(tzinfo=z, fold=0)
    off0 = aware0.utcoffset()
    off1 = naive.replace(tzinfo=z, fold=1).utcoffset()
    if off1 is not None and off1 != off0:
        log.info("dst_ambiguous %s in %s: using fold=0 (offset %s)", naive.isoformat(), tz_name, off0)

    u = aware0.astimezone(timezone.utc)
    return u.year, u.month, u.day, u.hour, u.minute, u.second


def local_to_jd_ut(
    year: int, month: int, day: int, hour: int, minute: int, tz_name: str, second: int = 0
) -> float:
    iy, im, iday, ih, imin, isec = local_to_utc_fields(year, month, day, hour, minute, tz_name, second)
    try:
        utc1, utc2 = erfa.dtf2d("UTC", iy, im, iday, ih, imin, float(isec))
    except Exception as e:
        raise ValueError(f"ERFA dtf2d failed: {e}") from e
    return math.fsum((float(utc1), float(utc2)))
