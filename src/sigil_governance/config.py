# -*- encoding: utf-8 -*-
"""
Sigil Configuration - zones, physics tables, registries and scan settings.

The configuration document is YAML (`.sigilrc.yaml`):

    zones:
      critical:
        paths: ["**/checkout/**", "**/payment/**"]
        material: clay
        motion: deliberate
        sync: pessimistic
        constraints:
          motion: [deliberate, reassuring]
    physics:
      motion_timings: {snappy: 150}
      motion_easings: {snappy: ease-out}
      motion_envelopes: {snappy: {min: 100, max: 200}}
    registries:
      gold: src/gold/index.ts
    contagion:
      allowed_patterns: ["^@/components/icons/"]
      allow_direct_component_imports: false
    workshop:
      manifest: package.json
      source_dirs: [src]

Zones are evaluated in document order. A zone without `paths` falls back to
the built-in patterns for its name. The `default` zone is always present and
always evaluated last.

Discovery is explicit: find_config() walks upward from a caller-supplied
directory and never past a caller-supplied boundary.
"""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from sigil_governance.errors import ConfigNotFound
from sigil_governance.primitives import (
    DEFAULT_MOTION,
    MOTION_EASINGS,
    MOTION_ENVELOPES,
    MOTION_TIMINGS,
    MotionEnvelope,
    RegistryTier,
    parse_tier,
)


logger = logging.getLogger(__name__)


CONFIG_FILENAMES = (".sigilrc.yaml", ".sigilrc.yml", "sigil.yaml")

DEFAULT_ZONE = "default"

# Built-in path patterns used when a zone declares no `paths`
DEFAULT_ZONE_PATTERNS: dict[str, tuple[str, ...]] = {
    "critical": (
        "**/checkout/**",
        "**/claim/**",
        "**/payment/**",
        "**/transfer/**",
        "**/withdraw/**",
        "**/deposit/**",
        "**/critical/**",
    ),
    "admin": (
        "**/admin/**",
        "**/dashboard/**",
        "**/settings/**",
        "**/machinery/**",
    ),
    "marketing": (
        "**/marketing/**",
        "**/landing/**",
        "**/showcase/**",
        "**/glass/**",
    ),
}

DEFAULT_REGISTRIES: dict[RegistryTier, str] = {
    RegistryTier.GOLD: "src/gold/index.ts",
    RegistryTier.SILVER: "src/silver/index.ts",
    RegistryTier.DRAFT: "src/draft/index.ts",
}

DEFAULT_SOURCE_DIRS = ("src",)
DEFAULT_SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")
DEFAULT_MANIFEST = "package.json"


@dataclass(frozen=True)
class ZoneConfig:
    """
    A configured zone.

    Args:
        name: Zone identifier (e.g. 'critical')
        paths: Glob patterns; empty means "use the built-in patterns for this name"
        material: Material name (glass, clay, machinery) or None
        motion: Motion category expected in this zone
        sync: Default sync strategy for mutations in this zone
        constraints: Extra constraints (e.g. {'motion': ['deliberate']})
        description: Free-form description
    """
    name: str
    paths: tuple[str, ...] = ()
    material: Optional[str] = None
    motion: Optional[str] = None
    sync: Optional[str] = None
    constraints: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    description: str = ""

    @property
    def effective_paths(self) -> tuple[str, ...]:
        return self.paths or DEFAULT_ZONE_PATTERNS.get(self.name, ())

    def to_dict(self) -> dict:
        return {
            "paths": list(self.paths),
            "material": self.material,
            "motion": self.motion,
            "sync": self.sync,
            "constraints": dict(self.constraints),
            "description": self.description,
        }


@dataclass
class PhysicsConfig:
    """Motion tables: default duration, easing and envelope per motion category."""
    motion_timings: dict[str, int] = field(default_factory=lambda: dict(MOTION_TIMINGS))
    motion_easings: dict[str, str] = field(default_factory=lambda: dict(MOTION_EASINGS))
    motion_envelopes: dict[str, MotionEnvelope] = field(
        default_factory=lambda: dict(MOTION_ENVELOPES)
    )
    default_motion: str = DEFAULT_MOTION

    def envelope(self, motion: str) -> Optional[MotionEnvelope]:
        return self.motion_envelopes.get(motion)

    def motions(self) -> list[str]:
        return list(self.motion_envelopes)


@dataclass
class SigilConfig:
    """Complete governance configuration."""
    zones: dict[str, ZoneConfig] = field(default_factory=dict)
    physics: PhysicsConfig = field(default_factory=PhysicsConfig)
    registries: dict[RegistryTier, str] = field(default_factory=lambda: dict(DEFAULT_REGISTRIES))
    allowed_patterns: list[str] = field(default_factory=list)
    allow_direct_component_imports: bool = False
    manifest: str = DEFAULT_MANIFEST
    source_dirs: tuple[str, ...] = DEFAULT_SOURCE_DIRS
    source_extensions: tuple[str, ...] = DEFAULT_SOURCE_EXTENSIONS
    source: Optional[Path] = None

    def zone(self, name: str) -> Optional[ZoneConfig]:
        return self.zones.get(name)

    @property
    def default_zone(self) -> ZoneConfig:
        return self.zones.get(DEFAULT_ZONE) or ZoneConfig(
            DEFAULT_ZONE, motion=self.physics.default_motion, sync="optimistic",
        )

    def ordered_zones(self) -> list[ZoneConfig]:
        """Zones in evaluation order, excluding the default zone."""
        return [z for name, z in self.zones.items() if name != DEFAULT_ZONE]


# ── Defaults ─────────────────────────────────────────────────────────


def default_zones() -> dict[str, ZoneConfig]:
    """Built-in zones used when no configuration file declares any."""
    return {
        "critical": ZoneConfig(
            "critical", material="clay", motion="deliberate", sync="pessimistic",
            description="Irreversible, high-stakes flows",
        ),
        "admin": ZoneConfig(
            "admin", material="machinery", motion="snappy", sync="optimistic",
            description="Operator tooling and dashboards",
        ),
        "marketing": ZoneConfig(
            "marketing", material="glass", motion="warm", sync="optimistic",
            description="Showcase and landing surfaces",
        ),
        DEFAULT_ZONE: ZoneConfig(
            DEFAULT_ZONE, motion=DEFAULT_MOTION, sync="optimistic",
            description="Everything else",
        ),
    }


def default_config() -> SigilConfig:
    return SigilConfig(zones=default_zones())


# ── Discovery ────────────────────────────────────────────────────────


def find_config(
    start_dir: Path,
    root_boundary: Optional[Path] = None,
    filenames: tuple[str, ...] = CONFIG_FILENAMES,
) -> Optional[Path]:
    """
    Locate the nearest configuration file at or above start_dir.

    Args:
        start_dir: Directory to start searching from
        root_boundary: Highest directory to consult; None means filesystem root
        filenames: Candidate file names, in priority order

    Returns:
        Path to the configuration file, or None if not found
    """
    current = Path(start_dir).resolve()
    boundary = Path(root_boundary).resolve() if root_boundary is not None else None
    while True:
        for name in filenames:
            candidate = current / name
            if candidate.is_file():
                return candidate
        if boundary is not None and current == boundary:
            return None
        parent = current.parent
        if parent == current:
            return None
        current = parent


# ── Parsing ──────────────────────────────────────────────────────────


def _as_str_tuple(value: Any, where: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise ValueError(f"{where}: expected a string or list of strings")


def _parse_zone(name: str, raw: Any) -> ZoneConfig:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"zones.{name}: expected a mapping")
    constraints = raw.get("constraints") or {}
    if not isinstance(constraints, dict):
        raise ValueError(f"zones.{name}.constraints: expected a mapping")
    return ZoneConfig(
        name=name,
        paths=_as_str_tuple(raw.get("paths"), f"zones.{name}.paths"),
        material=raw.get("material"),
        motion=raw.get("motion"),
        sync=raw.get("sync"),
        constraints=dict(constraints),
        description=str(raw.get("description", "")),
    )


def _parse_physics(raw: Any) -> PhysicsConfig:
    physics = PhysicsConfig()
    if raw is None:
        return physics
    if not isinstance(raw, dict):
        raise ValueError("physics: expected a mapping")
    for motion, ms in (raw.get("motion_timings") or {}).items():
        physics.motion_timings[str(motion)] = int(ms)
    for motion, easing in (raw.get("motion_easings") or {}).items():
        physics.motion_easings[str(motion)] = str(easing)
    for motion, bounds in (raw.get("motion_envelopes") or {}).items():
        if not isinstance(bounds, dict) or "min" not in bounds or "max" not in bounds:
            raise ValueError(f"physics.motion_envelopes.{motion}: expected {{min, max}}")
        lo, hi = int(bounds["min"]), int(bounds["max"])
        if lo > hi:
            raise ValueError(f"physics.motion_envelopes.{motion}: min exceeds max")
        physics.motion_envelopes[str(motion)] = MotionEnvelope(lo, hi)
    if "motion" in raw:
        physics.default_motion = str(raw["motion"])
    return physics


def parse_config(data: Optional[dict], source: Optional[Path] = None) -> SigilConfig:
    """
    Build a SigilConfig from a decoded YAML document.

    Raises:
        ValueError: if the document shape is invalid
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Configuration root must be a mapping")

    config = SigilConfig(source=source)
    config.physics = _parse_physics(data.get("physics"))

    raw_zones = data.get("zones")
    if raw_zones is None:
        config.zones = default_zones()
    elif not isinstance(raw_zones, dict):
        raise ValueError("zones: expected a mapping")
    else:
        zones = {str(name): _parse_zone(str(name), raw) for name, raw in raw_zones.items()}
        if DEFAULT_ZONE not in zones:
            zones[DEFAULT_ZONE] = ZoneConfig(
                DEFAULT_ZONE, motion=config.physics.default_motion, sync="optimistic",
            )
        config.zones = zones

    # Zones without explicit motion inherit the physics default
    for name, zone in list(config.zones.items()):
        if zone.motion is None:
            config.zones[name] = replace(zone, motion=config.physics.default_motion)

    raw_registries = data.get("registries") or {}
    if not isinstance(raw_registries, dict):
        raise ValueError("registries: expected a mapping")
    for tier_key, entry in raw_registries.items():
        config.registries[parse_tier(str(tier_key))] = str(entry)

    contagion = data.get("contagion") or {}
    config.allowed_patterns = list(
        _as_str_tuple(contagion.get("allowed_patterns"), "contagion.allowed_patterns")
    )
    allow_direct = contagion.get("allow_direct_component_imports", False)
    if not isinstance(allow_direct, bool):
        raise ValueError("contagion.allow_direct_component_imports: expected a boolean")
    config.allow_direct_component_imports = allow_direct

    workshop = data.get("workshop") or {}
    if "manifest" in workshop:
        config.manifest = str(workshop["manifest"])
    if "source_dirs" in workshop:
        config.source_dirs = _as_str_tuple(workshop["source_dirs"], "workshop.source_dirs")
    if "extensions" in workshop:
        config.source_extensions = _as_str_tuple(workshop["extensions"], "workshop.extensions")

    return config


def load_config(path: Optional[Path]) -> SigilConfig:
    """
    Load configuration from a YAML file.

    A missing file is not fatal: ConfigNotFound is logged and the built-in
    defaults are returned.

    Raises:
        ValueError: if the file exists but is not valid configuration
    """
    if path is None or not Path(path).is_file():
        err = ConfigNotFound(f"No configuration at {path}" if path else "No configuration file")
        logger.info("%s; using built-in defaults", err)
        return default_config()

    with open(path, encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ValueError(f"{path}: invalid YAML: {exc}") from exc
    logger.debug("Loaded configuration from %s", path)
    return parse_config(data, source=Path(path))
