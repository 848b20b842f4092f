# -*- encoding: utf-8 -*-
"""
Virtual Sanctuary - seed catalogs of virtual components for empty projects.

A new project has no real components to learn from. A seed supplies a
starting taste: physics defaults per zone plus a set of virtual components
the context resolver can answer with until real ones exist.

Seeds:
    1. linear-like   - Minimal, monochrome, snappy
    2. vercel-like   - Bold, high-contrast, sharp
    3. stripe-like   - Soft gradients, smooth, premium
    4. blank         - No opinions, just physics constraints

Eviction:
    Once a real component with the same name as a virtual one is observed,
    the virtual component is evicted. Eviction is permanent: deleting the real
    component later does not bring the virtual one back. Only reset_seed()
    clears eviction.

Usage:
    seeds = SeedManager(ctx)
    seeds.select_seed("linear-like")
    seeds.query_virtual_component("Button")
    seeds.sync_evictions()            # after real components appear
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sigil_governance.context import GovernanceContext
from sigil_governance.primitives import RegistryTier
from sigil_governance.workshop import WorkshopBuilder


logger = logging.getLogger(__name__)


SEED_STATE_KEY = "seed"


@dataclass(frozen=True)
class VirtualComponent:
    """A component supplied by a seed rather than by the codebase."""
    name: str
    tier: RegistryTier
    zone: str
    physics: str
    vocabulary: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "tier": self.tier.name.lower(),
            "zone": self.zone,
            "physics": self.physics,
            "vocabulary": list(self.vocabulary),
        }


@dataclass
class Seed:
    """Catalog entry describing a seed."""
    id: str
    name: str
    description: str
    physics_defaults: dict[str, str]
    virtual_components: dict[str, VirtualComponent] = field(default_factory=dict)
    materials: dict[str, str] = field(default_factory=dict)
    typography: dict[str, object] = field(default_factory=dict)
    spacing: dict[str, object] = field(default_factory=dict)


def _components(*items: VirtualComponent) -> dict[str, VirtualComponent]:
    return {c.name: c for c in items}


# ---------------------------------------------------------------------------
# Seed Catalog
# ---------------------------------------------------------------------------

AVAILABLE_SEEDS: dict[str, Seed] = {
    "linear-like": Seed(
        id="linear-like",
        name="Linear-like",
        description="Minimal, monochrome, snappy",
        physics_defaults={"default": "snappy", "critical": "deliberate",
                          "marketing": "warm", "admin": "snappy"},
        virtual_components=_components(
            VirtualComponent("Button", RegistryTier.GOLD, "default", "snappy", ("action", "submit")),
            VirtualComponent("Input", RegistryTier.GOLD, "default", "snappy", ("field", "form")),
            VirtualComponent("Card", RegistryTier.GOLD, "default", "snappy", ("container",)),
            VirtualComponent("CommandPalette", RegistryTier.SILVER, "admin", "snappy",
                             ("search", "command")),
            VirtualComponent("ConfirmDialog", RegistryTier.SILVER, "critical", "deliberate",
                             ("confirm", "delete")),
        ),
        materials={"background": "#0A0A0B", "surface": "#141415", "text": "#EDEDEF",
                   "muted": "#8A8F98", "accent": "#5E6AD2"},
        typography={"family": "Inter", "scale": "compact"},
        spacing={"unit": 4, "scale": [4, 8, 12, 16, 24, 32]},
    ),
    "vercel-like": Seed(
        id="vercel-like",
        name="Vercel-like",
        description="Bold, high-contrast, sharp",
        physics_defaults={"default": "snappy", "critical": "deliberate",
                          "marketing": "warm"},
        virtual_components=_components(
            VirtualComponent("Button", RegistryTier.GOLD, "default", "snappy", ("action", "submit")),
            VirtualComponent("Card", RegistryTier.GOLD, "default", "snappy", ("container",)),
            VirtualComponent("Hero", RegistryTier.GOLD, "marketing", "warm", ("landing", "hero")),
            VirtualComponent("DataTable", RegistryTier.SILVER, "admin", "snappy",
                             ("table", "list")),
            VirtualComponent("DeployButton", RegistryTier.SILVER, "critical", "deliberate",
                             ("deploy", "release")),
        ),
        materials={"background": "#000000", "surface": "#111111", "text": "#EDEDED",
                   "muted": "#A1A1A1", "accent": "#0070F3"},
        typography={"family": "Geist", "scale": "bold"},
        spacing={"unit": 4, "scale": [4, 8, 16, 24, 48]},
    ),
    "stripe-like": Seed(
        id="stripe-like",
        name="Stripe-like",
        description="Soft gradients, smooth, premium",
        physics_defaults={"default": "warm", "critical": "deliberate",
                          "marketing": "celebratory", "admin": "snappy"},
        virtual_components=_components(
            VirtualComponent("Button", RegistryTier.GOLD, "default", "warm", ("action", "submit")),
            VirtualComponent("PaymentForm", RegistryTier.GOLD, "critical", "deliberate",
                             ("payment", "checkout")),
            VirtualComponent("PricingCard", RegistryTier.SILVER, "marketing", "celebratory",
                             ("pricing", "plan")),
            VirtualComponent("SuccessBanner", RegistryTier.SILVER, "critical", "reassuring",
                             ("success", "receipt")),
        ),
        materials={"background": "#FFFFFF", "surface": "#F6F9FC", "text": "#0A2540",
                   "muted": "#425466", "accent": "#635BFF"},
        typography={"family": "Sohne", "scale": "comfortable"},
        spacing={"unit": 8, "scale": [8, 16, 24, 32, 64]},
    ),
    "blank": Seed(
        id="blank",
        name="Blank",
        description="No opinions, just physics constraints",
        physics_defaults={"default": "warm", "critical": "deliberate", "marketing": "warm"},
    ),
}


def get_seed(seed_id: str) -> Optional[Seed]:
    return AVAILABLE_SEEDS.get(seed_id)


@dataclass
class SeedResult:
    """Result of a seed selection or reset."""
    success: bool
    seed_id: Optional[str] = None
    reason: str = ""


@dataclass
class VirtualComponentResult:
    """Answer to a virtual component query."""
    found: bool
    component: Optional[VirtualComponent] = None
    evicted: bool = False
    source: str = "seed"

    @property
    def available(self) -> bool:
        return self.found and not self.evicted


class SeedManager:
    """
    Manages the active seed and its permanent eviction ledger.

    Args:
        context: Governance context
        real_components: Optional callable returning the names of real
            components; defaults to a workshop scan of `@sigil-tier` files
    """

    def __init__(self, context: GovernanceContext, real_components=None):
        self._ctx = context
        self._real_components = real_components or self._scan_real_components

    def _scan_real_components(self) -> set[str]:
        return set(WorkshopBuilder(self._ctx).scan().components)

    def _state(self) -> dict:
        return self._ctx.store.read(SEED_STATE_KEY) or {}

    def _save(self, state: dict) -> None:
        self._ctx.store.write(SEED_STATE_KEY, state)

    # ── Selection ───────────────────────────────────────────────────

    def active_seed_id(self) -> Optional[str]:
        return self._state().get("seed")

    def active_seed(self) -> Optional[Seed]:
        seed_id = self.active_seed_id()
        return get_seed(seed_id) if seed_id else None

    def select_seed(self, seed_id: str) -> SeedResult:
        """
        Choose the seed for a project that has none yet.

        Switching to another seed goes through reset_seed(), which is also
        the only operation that clears eviction.
        """
        if seed_id not in AVAILABLE_SEEDS:
            return SeedResult(False, seed_id, f"Seed '{seed_id}' not found")
        current = self.active_seed_id()
        if current == seed_id:
            return SeedResult(True, seed_id, "Seed already selected")
        if current is not None:
            return SeedResult(
                False, seed_id,
                f"Seed '{current}' is active; use reset_seed to switch",
            )
        self._save({"seed": seed_id, "selected_at": self._ctx.now_iso(), "evicted": {}})
        logger.info("Selected seed %s", seed_id)
        return SeedResult(True, seed_id, "Seed selected")

    def load_seed(self) -> Optional[Seed]:
        """The active seed with its physics and virtual components, or None."""
        return self.active_seed()

    # ── Eviction ────────────────────────────────────────────────────

    def eviction_status(self) -> dict[str, dict]:
        """Evicted component names mapped to their eviction record."""
        return dict(self._state().get("evicted", {}))

    def is_seed_evicted(self, name: str) -> bool:
        return name in self.eviction_status()

    def _evict(self, names: Iterable[str]) -> list[str]:
        state = self._state()
        evicted = state.setdefault("evicted", {})
        added = []
        for name in names:
            if name not in evicted:
                evicted[name] = {"evicted_at": self._ctx.now_iso()}
                added.append(name)
        if added:
            self._save(state)
            logger.info("Evicted virtual components: %s", ", ".join(sorted(added)))
        return added

    def check_faded_status(
        self,
        name: str,
        real_components: Optional[Iterable[str]] = None,
    ) -> bool:
        """
        Check whether a virtual component has faded, evicting it if a real
        component of the same name now exists.

        Returns:
            True if the virtual component is (now) evicted
        """
        if self.is_seed_evicted(name):
            return True
        seed = self.active_seed()
        if seed is None or name not in seed.virtual_components:
            return False
        real = set(real_components) if real_components is not None else self._real_components()
        if name in real:
            self._evict([name])
            return True
        return False

    def sync_evictions(self, real_components: Optional[Iterable[str]] = None) -> list[str]:
        """Evict every virtual component that now has a real counterpart."""
        seed = self.active_seed()
        if seed is None:
            return []
        real = set(real_components) if real_components is not None else self._real_components()
        return self._evict(n for n in seed.virtual_components if n in real)

    # ── Queries ─────────────────────────────────────────────────────

    def query_virtual_component(self, name: str) -> VirtualComponentResult:
        seed = self.active_seed()
        if seed is None or name not in seed.virtual_components:
            return VirtualComponentResult(found=False)
        return VirtualComponentResult(
            found=True,
            component=seed.virtual_components[name],
            evicted=self.is_seed_evicted(name),
        )

    def _live_components(self) -> list[VirtualComponent]:
        seed = self.active_seed()
        if seed is None:
            return []
        evicted = self.eviction_status()
        return [c for n, c in seed.virtual_components.items() if n not in evicted]

    def find_virtual_by_tier(self, tier: RegistryTier) -> list[VirtualComponent]:
        return [c for c in self._live_components() if c.tier == tier]

    def find_virtual_by_zone(self, zone: str) -> list[VirtualComponent]:
        return [c for c in self._live_components() if c.zone == zone]

    def find_virtual_by_vocabulary(self, term: str) -> list[VirtualComponent]:
        term = term.lower()
        return [c for c in self._live_components() if term in c.vocabulary]

    def get_seed_physics(self, zone: str) -> Optional[str]:
        """Motion the active seed prescribes for a zone, falling back to its default."""
        seed = self.active_seed()
        if seed is None:
            return None
        return seed.physics_defaults.get(zone) or seed.physics_defaults.get("default")

    def get_seed_material(self, key: str) -> Optional[str]:
        seed = self.active_seed()
        return seed.materials.get(key) if seed else None

    def get_seed_typography(self, key: str) -> Optional[object]:
        seed = self.active_seed()
        return seed.typography.get(key) if seed else None

    def get_seed_spacing(self, index: int) -> Optional[int]:
        """Step of the spacing scale; an out-of-range index gives the first step."""
        seed = self.active_seed()
        scale = seed.spacing.get("scale") if seed else None
        if not scale:
            return None
        if index < 0 or index >= len(scale):
            return scale[0]
        return scale[index]

    def is_sanctuary_empty(self, real_components: Optional[Iterable[str]] = None) -> bool:
        """True if the project has no real components yet."""
        real = set(real_components) if real_components is not None else self._real_components()
        return not real

    # ── Reset ───────────────────────────────────────────────────────

    def reset_seed(
        self,
        seed_id: Optional[str] = None,
        force: bool = False,
        real_components: Optional[Iterable[str]] = None,
    ) -> SeedResult:
        """
        Clear eviction and (optionally) switch to another seed.

        Refuses while real components exist unless force is set.

        Args:
            seed_id: Seed to activate; defaults to the current seed
            force: Reset even if real components exist
            real_components: Names of real components (scanned if omitted)
        """
        target = seed_id or self.active_seed_id()
        if target is None:
            return SeedResult(False, None, "No seed selected")
        if target not in AVAILABLE_SEEDS:
            return SeedResult(False, target, f"Seed '{target}' not found")
        if not force and not self.is_sanctuary_empty(real_components):
            return SeedResult(
                False, target,
                "Real components exist; pass force=True to reset the seed anyway",
            )
        previous = self._state()
        self._save({
            "seed": target,
            "selected_at": self._ctx.now_iso(),
            "evicted": {},
            "reset_from": {
                "seed": previous.get("seed"),
                "evicted_count": len(previous.get("evicted", {})),
            },
        })
        logger.info("Reset seed to %s (force=%s)", target, force)
        return SeedResult(True, target, "Seed reset")
