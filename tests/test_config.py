# tests/test_config.py
from __future__ import annotations

import pytest

from birthmap.core.angles import DmsMode
from birthmap.core.fortune import SectArc
from birthmap.utils.config import AttrDict, EngineSettings, engine_settings, load_config

_ENV = (
    "ASTRO_CONFIG", "ASTRO_DMS_MODE", "ASTRO_SECT_ARC", "ASTRO_PARTIAL_RESULTS", "ASTRO_EPHEMERIS_PROVIDER",
    "ASTRO_OBLIQUITY", "ASTRO_HOUSE_SYSTEM", "ASTRO_VERTEX_POLAR_LIMIT", "ASTRO_VERTEX_EQUATOR_EPS",
    "ASTRO_SIGN_CACHE_SIZE", "ASTRO_BODIES", "ASTRO_ANALYTIC_FALLBACK", "OCP_EPHEMERIS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for k in _ENV:
        monkeypatch.delenv(k, raising=False)


def test_bundled_defaults():
    cfg = load_config()
    assert isinstance(cfg, AttrDict)
    assert cfg.location.timezone == "Asia/Jerusalem"
    s = engine_settings(cfg)
    assert s.dms_mode is DmsMode.CARRY
    assert s.provider == "skyfield"
    assert s.partial_results is True
    assert s.latitude == pytest.approx(32.0853)
    assert s.bodies[0] == "sun" and "node" in s.bodies
    assert "chiron" not in s.bodies
    assert s.analytic_fallback is True


def test_missing_file_gives_builtin_defaults(tmp_path):
    cfg = load_config(str(tmp_path / "nope.yaml"))
    assert cfg == {}
    assert engine_settings(cfg) == EngineSettings()


def test_yaml_values(tmp_path):
    p = tmp_path / "astro.yaml"
    p.write_text(
        "angles: {dms_mode: legacy, sect_arc: descendant_to_ascendant}\n"
        "ephemeris: {provider: meeus, obliquity: true_, bodies: [Sun, Moon]}\n",
        encoding="utf-8",
    )
    with pytest.raises(ValueError):
        engine_settings(load_config(str(p)))
    p.write_text(
        "angles: {dms_mode: legacy, sect_arc: descendant_to_ascendant}\n"
        "ephemeris: {provider: meeus, obliquity: 'true', bodies: [Sun, Moon]}\n"
        "vertex: {polar_limit_deg: 85}\n",
        encoding="utf-8",
    )
    s = engine_settings(load_config(str(p)))
    assert s.dms_mode is DmsMode.LEGACY
    assert s.sect_arc is SectArc.DESC_TO_ASC
    assert s.obliquity == "true"
    assert s.bodies == ("sun", "moon")
    assert s.polar_limit_deg == 85.0


def test_env_overrides_yaml(monkeypatch):
    monkeypatch.setenv("ASTRO_DMS_MODE", "legacy")
    monkeypatch.setenv("ASTRO_PARTIAL_RESULTS", "0")
    monkeypatch.setenv("ASTRO_EPHEMERIS_PROVIDER", "MEEUS")
    monkeypatch.setenv("ASTRO_VERTEX_POLAR_LIMIT", "88.5")
    monkeypatch.setenv("ASTRO_SIGN_CACHE_SIZE", "128")
    monkeypatch.setenv("ASTRO_BODIES", "sun, moon ,node")
    monkeypatch.setenv("ASTRO_HOUSE_SYSTEM", "k")
    s = engine_settings(load_config())
    assert s.dms_mode is DmsMode.LEGACY
    assert s.partial_results is False
    assert s.provider == "meeus"
    assert s.polar_limit_deg == 88.5
    assert s.sign_cache_size == 128
    assert s.bodies == ("sun", "moon", "node")
    assert s.house_system == "K"


@pytest.mark.parametrize("name, value", [
    ("ASTRO_DMS_MODE", "sloppy"),
    ("ASTRO_VERTEX_POLAR_LIMIT", "north"),
    ("ASTRO_VERTEX_POLAR_LIMIT", "95"),
    ("ASTRO_EPHEMERIS_PROVIDER", "swiss"),
    ("ASTRO_SIGN_CACHE_SIZE", "0"),
])
def test_bad_env_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        engine_settings(load_config())


def test_attrdict_access():
    d = AttrDict(a=1)
    d.b = 2
    assert d["b"] == 2 and d.a == 1
    with pytest.raises(AttributeError):
        d.missing
