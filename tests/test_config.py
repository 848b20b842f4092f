# -*- encoding: utf-8 -*-
"""
Tests for configuration loading and discovery.
"""

import logging

import pytest

from sigil_governance.config import (
    DEFAULT_REGISTRIES,
    DEFAULT_ZONE,
    DEFAULT_ZONE_PATTERNS,
    ZoneConfig,
    default_config,
    find_config,
    load_config,
    parse_config,
)
from sigil_governance.primitives import MotionEnvelope, RegistryTier


# ── Discovery Tests ──────────────────────────────────────────────────


class TestFindConfig:
    """Upward search bounded by a root."""

    def test_finds_in_start_dir(self, tmp_path):
        (tmp_path / ".sigilrc.yaml").write_text("zones: {}\n")
        assert find_config(tmp_path) == (tmp_path / ".sigilrc.yaml").resolve()

    def test_walks_upward(self, tmp_path):
        (tmp_path / ".sigilrc.yaml").write_text("zones: {}\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config(nested, root_boundary=tmp_path) == (tmp_path / ".sigilrc.yaml").resolve()

    def test_stops_at_boundary(self, tmp_path):
        (tmp_path / ".sigilrc.yaml").write_text("zones: {}\n")
        project = tmp_path / "project"
        nested = project / "src"
        nested.mkdir(parents=True)
        assert find_config(nested, root_boundary=project) is None

    def test_nearest_wins(self, tmp_path):
        (tmp_path / ".sigilrc.yaml").write_text("zones: {}\n")
        inner = tmp_path / "inner"
        inner.mkdir()
        (inner / "sigil.yaml").write_text("zones: {}\n")
        assert find_config(inner, root_boundary=tmp_path) == (inner / "sigil.yaml").resolve()


# ── Loading Tests ────────────────────────────────────────────────────


class TestLoadConfig:
    """YAML loading and defaults."""

    def test_missing_file_uses_defaults(self, tmp_path, caplog):
        with caplog.at_level(logging.INFO, logger="sigil_governance.config"):
            config = load_config(tmp_path / "nope.yaml")
        assert set(config.zones) == {"critical", "admin", "marketing", DEFAULT_ZONE}
        assert "built-in defaults" in caplog.text

    def test_none_uses_defaults(self):
        assert load_config(None).zones == default_config().zones

    def test_loads_zones_in_order(self, tmp_path):
        path = tmp_path / ".sigilrc.yaml"
        path.write_text(
            "zones:\n"
            "  critical:\n"
            "    paths: ['**/checkout/**']\n"
            "    motion: deliberate\n"
            "    material: clay\n"
            "  marketing:\n"
            "    motion: warm\n"
        )
        config = load_config(path)
        assert [z.name for z in config.ordered_zones()] == ["critical", "marketing"]
        assert config.zones["critical"].paths == ("**/checkout/**",)
        assert config.source == path

    def test_default_zone_always_present(self, tmp_path):
        path = tmp_path / ".sigilrc.yaml"
        path.write_text("zones:\n  admin: {}\n")
        config = load_config(path)
        assert DEFAULT_ZONE in config.zones
        assert config.default_zone.motion == "warm"

    def test_zone_without_motion_inherits_default(self, tmp_path):
        path = tmp_path / ".sigilrc.yaml"
        path.write_text("physics:\n  motion: snappy\nzones:\n  admin: {}\n")
        assert load_config(path).zones["admin"].motion == "snappy"

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / ".sigilrc.yaml"
        path.write_text("zones: [unclosed\n")
        with pytest.raises(ValueError):
            load_config(path)

    def test_empty_file_is_defaults(self, tmp_path):
        path = tmp_path / ".sigilrc.yaml"
        path.write_text("")
        assert set(load_config(path).zones) == set(default_config().zones)


class TestParseConfig:
    """Document shape validation."""

    def test_physics_overrides(self):
        config = parse_config({
            "physics": {
                "motion_timings": {"snappy": 120},
                "motion_envelopes": {"bouncy": {"min": 300, "max": 600}},
            },
        })
        assert config.physics.motion_timings["snappy"] == 120
        assert config.physics.envelope("bouncy") == MotionEnvelope(300, 600)
        assert config.physics.envelope("warm") == MotionEnvelope(200, 400)

    def test_envelope_min_above_max(self):
        with pytest.raises(ValueError):
            parse_config({"physics": {"motion_envelopes": {"x": {"min": 9, "max": 1}}}})

    def test_registries(self):
        config = parse_config({"registries": {"gold": "lib/gold.ts"}})
        assert config.registries[RegistryTier.GOLD] == "lib/gold.ts"
        assert config.registries[RegistryTier.DRAFT] == DEFAULT_REGISTRIES[RegistryTier.DRAFT]

    def test_unknown_registry_tier(self):
        with pytest.raises(ValueError):
            parse_config({"registries": {"bronze": "x.ts"}})

    def test_allowed_patterns(self):
        config = parse_config({"contagion": {"allowed_patterns": ["^@/icons/"]}})
        assert config.allowed_patterns == ["^@/icons/"]

    def test_allow_direct_component_imports(self):
        assert not parse_config({}).allow_direct_component_imports
        config = parse_config({"contagion": {"allow_direct_component_imports": True}})
        assert config.allow_direct_component_imports

    def test_allow_direct_component_imports_must_be_boolean(self):
        with pytest.raises(ValueError, match="allow_direct_component_imports"):
            parse_config({"contagion": {"allow_direct_component_imports": "yes"}})

    def test_root_must_be_mapping(self):
        with pytest.raises(ValueError):
            parse_config(["zones"])

    def test_zone_paths_must_be_strings(self):
        with pytest.raises(ValueError):
            parse_config({"zones": {"critical": {"paths": [1, 2]}}})


class TestZoneConfig:
    """Built-in pattern fallback."""

    def test_effective_paths_fall_back(self):
        zone = ZoneConfig("critical")
        assert zone.effective_paths == DEFAULT_ZONE_PATTERNS["critical"]

    def test_explicit_paths_win(self):
        zone = ZoneConfig("critical", paths=("**/vault/**",))
        assert zone.effective_paths == ("**/vault/**",)

    def test_unknown_zone_has_no_patterns(self):
        assert ZoneConfig("lab").effective_paths == ()
