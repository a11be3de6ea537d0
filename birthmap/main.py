# birthmap/main.py
from __future__ import annotations

import logging
import os
import traceback
from time import perf_counter
from typing import Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from birthmap.api.routes import api as _routes_bp
from birthmap.core.ephemeris_adapter import EphemerisProvider, make_provider
from birthmap.core.errors import AstroError, DegenerateGeometry, InvalidAngleInput, MissingDependency
from birthmap.core.zodiac import SignCache
from birthmap.utils.config import EngineSettings, engine_settings, load_config
from birthmap.utils.metrics import GAUGE_APP_UP, MET_REQUESTS, REQ_LATENCY
from birthmap.version import VERSION

_TRACKED = ("/", "/health", "/metrics")


# ───────────────────────── helpers: logging & errors ─────────────────────────
def _configure_logging(app: Flask) -> None:
    gerr = logging.getLogger("gunicorn.error")
    if gerr.handlers:
        app.logger.handlers = gerr.handlers
        app.logger.setLevel(gerr.level)
    else:
        logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))


def _astro_status(e: AstroError) -> int:
    if isinstance(e, InvalidAngleInput):
        return 400
    if isinstance(e, (DegenerateGeometry, MissingDependency)):
        return 422
    return 502


def _register_errors(app: Flask) -> None:
    @app.errorhandler(AstroError)
    def _astro(e: AstroError):
        status = _astro_status(e)
        app.logger.warning("%s at %s %s: %s", e.code, request.method, request.path, e)
        return jsonify(ok=False, **e.to_dict()), status

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        app.logger.warning("HTTP %s at %s %s: %s", e.code, request.method, request.path, e.description)
        return jsonify(
            ok=False,
            error="http_error",
            code=e.code,
            name=e.name,
            message=e.description,
            path=request.path,
        ), e.code

    @app.errorhandler(Exception)
    def _any(e: Exception):
        tb = traceback.format_exc()
        app.logger.error("UNHANDLED %s at %s %s\n%s", type(e).__name__, request.method, request.path, tb)
        return jsonify(
            ok=False,
            error="internal_error",
            type=type(e).__name__,
            message=str(e),
            path=request.path,
        ), 500


# ───────────────────────── health & metrics ─────────────────────────
def _register_health(app: Flask) -> None:
    @app.route("/", methods=["GET"])
    def root():
        return "Server Is Running", 200

    @app.route("/health", methods=["GET"])
    def health():
        settings: EngineSettings = app.config["BIRTHMAP_SETTINGS"]
        provider: EphemerisProvider = app.config["BIRTHMAP_PROVIDER"]
        return jsonify(ok=True, version=VERSION, provider=provider.name, dms_mode=settings.dms_mode.value), 200


def _metrics_auth_ok() -> bool:
    auth = request.authorization
    user = os.getenv("METRICS_USER", "")
    pw = os.getenv("METRICS_PASS", "")
    return bool(
        auth and auth.type == "basic" and auth.username == user and auth.password == pw and user and pw
    )


def _route_label() -> str:
    rule = request.url_rule
    return rule.rule if rule is not None else "unmatched"


def _register_metrics(app: Flask) -> None:
    @app.before_request
    def _before():
        p = request.path or ""
        if p.startswith("/api/") or p in _TRACKED:
            MET_REQUESTS.labels(route=_route_label()).inc()
            request._t0 = perf_counter()

    @app.after_request
    def _after(resp):
        p = request.path or ""
        if hasattr(request, "_t0") and p != "/metrics":
            REQ_LATENCY.labels(route=_route_label()).observe(perf_counter() - request._t0)
        return resp

    @app.route("/metrics", methods=["GET"])
    def metrics_endpoint():
        if not _metrics_auth_ok():
            return Response("Unauthorized", 401, {"WWW-Authenticate": 'Basic realm="metrics"'})
        data = generate_latest(REGISTRY)
        return Response(data, mimetype=CONTENT_TYPE_LATEST)


# ───────────────────────── app factory ─────────────────────────
def create_app(
    provider: Optional[EphemerisProvider] = None,
    settings: Optional[EngineSettings] = None,
) -> Flask:
    app = Flask(__name__)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)
    app.json.sort_keys = False  # points keep their chart order on the wire
    _configure_logging(app)

    settings = settings or engine_settings(load_config())
    app.config["BIRTHMAP_SETTINGS"] = settings
    app.config["BIRTHMAP_PROVIDER"] = provider or make_provider(settings)
    app.config["BIRTHMAP_SIGN_CACHE"] = SignCache(settings.sign_cache_size)
    GAUGE_APP_UP.set(1.0)

    _register_health(app)
    _register_errors(app)
    _register_metrics(app)
    app.register_blueprint(_routes_bp)

    allowed_origin = os.environ.get("CORS_ALLOW_ORIGIN") or "*"
    CORS(
        app,
        resources={r"/.*": {"origins": allowed_origin}},
        supports_credentials=False,
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["X-Chart-Failures"],
        max_age=600,
    )

    app.logger.info(
        "App initialized; version=%s provider=%s dms_mode=%s partial=%s",
        VERSION, app.config["BIRTHMAP_PROVIDER"].name, settings.dms_mode.value, settings.partial_results,
    )
    return app


# ───────────────────────── app instance ─────────────────────────
app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
