# -*- encoding: utf-8 -*-
"""
Zone Resolver - maps a file path to exactly one zone.

Zones are matched with glob patterns:
    *   any characters within one path segment
    **  any number of path segments, including none
    ?   one character within a segment

Zones are evaluated in configuration order and the first match wins. A path
matching no zone resolves to the default zone, so every path belongs to
exactly one zone.

Example:
    resolver = ZoneResolver(config)
    resolver.resolve_zone("app/checkout/Pay.tsx").name   # 'critical'
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Optional

from sigil_governance.config import (
    DEFAULT_ZONE,
    SigilConfig,
    ZoneConfig,
    default_config,
)


# Zones whose interactive elements use input physics (keyboard-first, instant feedback)
INPUT_PHYSICS_ZONES = frozenset({"admin"})


def normalize_path(path: str) -> str:
    """Forward slashes, no leading './'."""
    normalized = str(path).replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def _translate(pattern: str) -> str:
    out: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        if pattern.startswith("/**/", i):
            out.append("/(?:.*/)?")
            i += 4
        elif pattern[i:] == "/**":
            out.append("(?:/.*)?")
            i = n
        elif pattern.startswith("**/", i) and i == 0:
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return "".join(out)


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> "re.Pattern[str]":
    """Compile a glob pattern into an anchored regular expression."""
    return re.compile(_translate(normalize_path(pattern)))


def match_path(pattern: str, path: str) -> bool:
    """Check whether a path matches a glob pattern."""
    return compile_pattern(pattern).fullmatch(normalize_path(path)) is not None


@dataclass(frozen=True)
class Zone:
    """
    A resolved zone.

    Args:
        name: Zone identifier
        path_patterns: Patterns that select this zone
        material: Material name, if the zone prescribes one
        motion: Motion category expected in this zone
        sync: Default sync strategy for the zone
        constraints: Extra constraints declared for the zone
    """
    name: str
    path_patterns: tuple[str, ...] = ()
    material: Optional[str] = None
    motion: Optional[str] = None
    sync: Optional[str] = None
    constraints: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_config(cls, zone: ZoneConfig) -> "Zone":
        return cls(
            name=zone.name,
            path_patterns=zone.effective_paths,
            material=zone.material,
            motion=zone.motion,
            sync=zone.sync,
            constraints=dict(zone.constraints),
        )

    @property
    def is_default(self) -> bool:
        return self.name == DEFAULT_ZONE

    @property
    def requires_input_physics(self) -> bool:
        return self.name in INPUT_PHYSICS_ZONES

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path_patterns": list(self.path_patterns),
            "material": self.material,
            "motion": self.motion,
            "sync": self.sync,
            "constraints": dict(self.constraints),
        }


class ZoneResolver:
    """
    Resolves paths to zones for one configuration.

    Usage:
        resolver = ZoneResolver(load_config(path))
        zone = resolver.resolve_zone("src/admin/Users.tsx")
    """

    def __init__(self, config: Optional[SigilConfig] = None):
        self._config = config or default_config()
        self._zones = [Zone.from_config(z) for z in self._config.ordered_zones()]
        self._default = Zone.from_config(self._config.default_zone)

    @property
    def zones(self) -> list[Zone]:
        """Non-default zones in evaluation order."""
        return list(self._zones)

    @property
    def default(self) -> Zone:
        return self._default

    def get(self, name: str) -> Optional[Zone]:
        if name == self._default.name:
            return self._default
        for zone in self._zones:
            if zone.name == name:
                return zone
        return None

    def resolve_zone(self, path: str) -> Zone:
        """
        Resolve a file path to its zone.

        Args:
            path: File path, relative or absolute, any separator style

        Returns:
            The first zone whose patterns match, else the default zone
        """
        normalized = normalize_path(path)
        for zone in self._zones:
            for pattern in zone.path_patterns:
                if compile_pattern(pattern).fullmatch(normalized):
                    return zone
        return self._default

    def is_in_zone(self, path: str, zone_name: str) -> bool:
        return self.resolve_zone(path).name == zone_name


def resolve_zone(path: str, config: Optional[SigilConfig] = None) -> Zone:
    """Resolve a path to a zone without keeping a resolver around."""
    return ZoneResolver(config).resolve_zone(path)


def is_in_zone(path: str, zone_name: str, config: Optional[SigilConfig] = None) -> bool:
    return ZoneResolver(config).is_in_zone(path, zone_name)
