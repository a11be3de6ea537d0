# tests/conftest.py
from __future__ import annotations

"""
Pytest configuration for the birthmap suite.

- Registers Hypothesis profiles for local dev and CI.
- Freezes the process TZ to UTC (we always pass IANA zones explicitly).
- Provides deterministic ephemeris providers: no kernel file, no network.
"""

import os
from typing import Dict

import pytest
from hypothesis import settings, HealthCheck

from birthmap.core.ephemeris_adapter import MeeusProvider
from birthmap.core.errors import ProviderFailure
from birthmap.utils.config import EngineSettings


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(
        deadline=None,
        max_examples=60,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)
settings.register_profile(
    "ci",
    settings(
        deadline=None,
        max_examples=120,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: mark test as slow")
    config.addinivalue_line("filterwarnings", "ignore::DeprecationWarning")


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Reference values: J2000.0, Tel Aviv, MeeusProvider (mean obliquity)
# ──────────────────────────────────────────────────────────────────────────────
J2000 = 2451545.0
TLV_LAT = 32.0853
TLV_LON = 34.7818


class FixedProvider(MeeusProvider):
    """Analytic angles with caller-chosen body longitudes."""

    name = "fixed"

    def __init__(self, longitudes: Dict[str, float], **kwargs):
        super().__init__(**kwargs)
        self.longitudes = dict(longitudes)
        self.calls = 0

    def raw_longitude(self, julian_day: float, body: str) -> float:
        self.calls += 1
        try:
            return self.longitudes[body]
        except KeyError:
            raise ProviderFailure(f"no fixture longitude for {body!r}", capability="raw_longitude") from None


FIXED_LONGITUDES = {"sun": 280.0, "moon": 200.0, "mercury": 271.5}


# ──────────────────────────────────────────────────────────────────────────────
# Global fixtures
# ──────────────────────────────────────────────────────────────────────────────
@pytest.fixture(scope="session", autouse=True)
def freeze_tz_env():
    prev = os.environ.get("TZ")
    os.environ["TZ"] = "UTC"
    try:
        yield
    finally:
        if prev is None:
            os.environ.pop("TZ", None)
        else:
            os.environ["TZ"] = prev


@pytest.fixture
def meeus() -> MeeusProvider:
    return MeeusProvider()


@pytest.fixture
def fixed_provider() -> FixedProvider:
    return FixedProvider(FIXED_LONGITUDES)


@pytest.fixture
def engine_settings_meeus() -> EngineSettings:
    return EngineSettings(provider="meeus", bodies=("sun", "moon", "mercury"))


@pytest.fixture
def client(fixed_provider, engine_settings_meeus):
    from birthmap.main import create_app
    app = create_app(provider=fixed_provider, settings=engine_settings_meeus)
    app.testing = True
    return app.test_client()
