# birthmap/api/routes.py
"""
Birth-map API

POST /api/birth-map
    {year, month, day, hour, minute=0, country?, city?,
     latitude?, longitude?, timezone?, strict?}
 -> {"<point>": {"long30", "long360", "longDd", "zodiacSign"}, ...}

Location and zone default to the configured site (Tel Aviv). Partial results
are the configured default here; names that could not be computed are listed
in the X-Chart-Failures header. `strict: true` turns any failure into an error
response instead.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import BadRequest

from birthmap.core.assembler import ObservationContext, compute_chart_points, gather_raw_longitudes
from birthmap.core.timescales import local_to_jd_ut
from birthmap.utils.config import EngineSettings
from birthmap.utils.metrics import record_failures

log = logging.getLogger(__name__)
api = Blueprint("api", __name__)

FAILURES_HEADER = "X-Chart-Failures"
_REQUIRED = ("year", "month", "day", "hour")


# ───────────────────────── helpers ─────────────────────────
def _body_json() -> Dict[str, Any]:
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise BadRequest("JSON body must be an object")
    return data


def _missing(data: Dict[str, Any]) -> bool:
    # hour 0 (midnight) is a valid value; empty strings are not
    return any(data.get(k) is None or data.get(k) == "" for k in _REQUIRED)


def _int_field(data: Dict[str, Any], name: str, default: Optional[int] = None) -> int:
    v = data.get(name, default)
    if isinstance(v, bool):
        raise BadRequest(f"{name} must be an integer")
    try:
        f = float(v)
    except (TypeError, ValueError):
        raise BadRequest(f"{name} must be an integer") from None
    if not f.is_integer():
        raise BadRequest(f"{name} must be an integer")
    return int(f)


def _coord(data: Dict[str, Any], name: str, default: float, limit: float) -> float:
    v = data.get(name)
    if v is None or v == "":
        return default
    if isinstance(v, bool):
        raise BadRequest(f"{name} must be a number")
    try:
        f = float(v)
    except (TypeError, ValueError):
        raise BadRequest(f"{name} must be a number") from None
    if not -limit <= f <= limit:
        raise BadRequest(f"{name} must be within [-{limit:g}, {limit:g}]")
    return f


def _strict_flag(data: Dict[str, Any]) -> bool:
    v = data.get("strict", False)
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "on")
    return bool(v)


# ───────────────────────── routes ─────────────────────────
@api.post("/api/birth-map")
def birth_map():
    data = _body_json()
    if _missing(data):
        return jsonify(message="Please fill all the fields"), 400

    settings: EngineSettings = current_app.config["BIRTHMAP_SETTINGS"]
    provider = current_app.config["BIRTHMAP_PROVIDER"]
    cache = current_app.config.get("BIRTHMAP_SIGN_CACHE")

    year = _int_field(data, "year")
    month = _int_field(data, "month")
    day = _int_field(data, "day")
    hour = _int_field(data, "hour")
    minute = _int_field(data, "minute", 0)
    latitude = _coord(data, "latitude", settings.latitude, 90.0)
    longitude = _coord(data, "longitude", settings.longitude, 180.0)
    tz_name = str(data.get("timezone") or settings.timezone)

    try:
        jd = local_to_jd_ut(year, month, day, hour, minute, tz_name)
    except ValueError as e:
        raise BadRequest(str(e)) from e

    partial = settings.partial_results and not _strict_flag(data)
    raw, body_failures = gather_raw_longitudes(provider, jd, settings.bodies, partial=partial)
    context = ObservationContext(julian_day=jd, latitude=latitude, longitude=longitude, raw_longitudes=raw)
    result = compute_chart_points(context, provider, partial=partial, settings=settings, cache=cache)

    failures = {**body_failures, **result.failures}
    record_failures(failures)
    log.info(
        "birth-map %04d-%02d-%02d %02d:%02d %s (%s, %s) jd=%.6f points=%d failed=%s",
        year, month, day, hour, minute, tz_name, data.get("city") or "-", data.get("country") or "-",
        jd, len(result.records), ",".join(failures) or "-",
    )

    resp = jsonify(result.to_dict())
    if failures:
        resp.headers[FAILURES_HEADER] = ",".join(failures)
    return resp, 200
