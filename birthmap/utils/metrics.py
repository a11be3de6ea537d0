# birthmap/utils/metrics.py
from __future__ import annotations

from typing import Final, Mapping

from prometheus_client import Counter, Gauge, Histogram

from birthmap.core.errors import AstroError

# Keep names stable; dashboards key on them.
MET_REQUESTS: Final = Counter("birthmap_requests_total", "API requests", ["route"])
MET_POINT_FAILURES: Final = Counter(
    "birthmap_point_failures_total", "Chart points omitted or failed", ["point", "code"]
)
REQ_LATENCY: Final = Histogram("birthmap_request_seconds", "API request latency", ["route"])
GAUGE_APP_UP: Final = Gauge("birthmap_app_up", "1 if app is running")


def record_failures(failures: Mapping[str, AstroError]) -> None:
    for name, err in failures.items():
        MET_POINT_FAILURES.labels(point=name, code=err.code).inc()
