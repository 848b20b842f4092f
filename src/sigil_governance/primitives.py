# -*- encoding: utf-8 -*-
"""
Sigil Governance Primitives.

Partial orders and lookup tables shared by every governance component:

1. RegistryTier: Component maturity tiers (GOLD > SILVER > DRAFT)
   Used by the contagion validator to decide which import directions are legal.

2. PatternStatus: Survival promotion ladder
   (CANONICAL > PENDING_CANONICAL > SURVIVING > EXPERIMENTAL, REJECTED terminal)
   Used by the survival observer to enforce upgrade-only promotion.

3. Motion envelopes: Allowed duration range per motion category.
   Used by the physics validator for timing and zone compliance.

4. Effect classes: Side-effect classification for user actions, each with
   a required sync strategy and confirmation policy.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum


class RegistryTier(IntEnum):
    """
    Registry tiers for design components.

    Partial order: GOLD > SILVER > DRAFT

    - GOLD: Canonical, production-approved components
    - SILVER: Reviewed components, may depend on Gold
    - DRAFT: Quarantined experiments, may depend on anything
    """
    DRAFT = 0
    SILVER = 1
    GOLD = 2


# Which tiers each tier may import from
ALLOWED_IMPORTS: dict[RegistryTier, frozenset[RegistryTier]] = {
    RegistryTier.GOLD: frozenset({RegistryTier.GOLD}),
    RegistryTier.SILVER: frozenset({RegistryTier.GOLD, RegistryTier.SILVER}),
    RegistryTier.DRAFT: frozenset({
        RegistryTier.GOLD, RegistryTier.SILVER, RegistryTier.DRAFT,
    }),
}


def tier_may_import(importer: RegistryTier, target: RegistryTier) -> bool:
    """
    Check if code in one tier may depend on code in another.

    A tier may only depend on tiers at least as mature as itself:
        GOLD -> GOLD
        SILVER -> GOLD, SILVER
        DRAFT -> anything

    Args:
        importer: Tier of the importing file
        target: Tier of the imported file

    Returns:
        True if the dependency direction is allowed
    """
    return target in ALLOWED_IMPORTS[importer]


def tier_name(tier: RegistryTier) -> str:
    """Human-readable name for a registry tier."""
    return tier.name.capitalize()


def parse_tier(value: str) -> RegistryTier:
    """Parse a tier name such as 'gold' or 'Gold'. Raises ValueError if unknown."""
    try:
        return RegistryTier[value.strip().upper()]
    except KeyError:
        raise ValueError(f"Unknown registry tier: {value!r}") from None


class PatternStatus(Enum):
    """
    Survival status of a recurring implementation pattern.

    Promotion ladder (upgrade-only):
        EXPERIMENTAL -> SURVIVING -> PENDING_CANONICAL -> CANONICAL

    REJECTED is reachable from any non-canonical status by curation
    and is sticky until an explicit operator reset.
    """
    EXPERIMENTAL = "experimental"
    SURVIVING = "surviving"
    PENDING_CANONICAL = "pending-canonical"
    CANONICAL = "canonical"
    REJECTED = "rejected"


# Rank along the promotion ladder (REJECTED is off-ladder)
STATUS_RANK: dict[PatternStatus, int] = {
    PatternStatus.EXPERIMENTAL: 0,
    PatternStatus.SURVIVING: 1,
    PatternStatus.PENDING_CANONICAL: 2,
    PatternStatus.CANONICAL: 3,
}


def status_at_least(actual: PatternStatus, required: PatternStatus) -> bool:
    """
    Check if a status is at or above another on the promotion ladder.

    REJECTED never satisfies and is never satisfied by anything but itself.
    """
    if actual is PatternStatus.REJECTED or required is PatternStatus.REJECTED:
        return actual is required
    return STATUS_RANK[actual] >= STATUS_RANK[required]


class EffectClass(Enum):
    """
    Side-effect classification for a user-facing action.

    - FINANCIAL: Moves money or value (irreversible, high stakes)
    - DESTRUCTIVE: Permanently deletes data
    - SOFT_DELETE: Reversible removal (undo available)
    - STANDARD: Ordinary server mutation
    - LOCAL: Client-only state change
    - NAVIGATION: Route change, no mutation
    - QUERY: Read-only fetch
    """
    FINANCIAL = "financial"
    DESTRUCTIVE = "destructive"
    SOFT_DELETE = "soft-delete"
    STANDARD = "standard"
    LOCAL = "local"
    NAVIGATION = "navigation"
    QUERY = "query"


class SyncStrategy(Enum):
    """How UI state is reconciled with the server."""
    OPTIMISTIC = "optimistic"     # Update UI first, reconcile later
    PESSIMISTIC = "pessimistic"   # Wait for server before updating UI
    HYBRID = "hybrid"             # Optimistic UI with blocking confirmation
    IMMEDIATE = "immediate"       # Local-only, no server round trip


class ConfirmationPolicy(Enum):
    """What confirmation an action requires before it commits."""
    REQUIRED = "required"   # Explicit confirm step
    TOAST = "toast"         # Undo toast after the fact
    NONE = "none"


# Effect class human-readable names
EFFECT_NAMES: dict[EffectClass, str] = {
    EffectClass.FINANCIAL: "Financial",
    EffectClass.DESTRUCTIVE: "Destructive",
    EffectClass.SOFT_DELETE: "Soft Delete",
    EffectClass.STANDARD: "Standard",
    EffectClass.LOCAL: "Local",
    EffectClass.NAVIGATION: "Navigation",
    EffectClass.QUERY: "Query",
}


def effect_name(effect: EffectClass) -> str:
    """Human-readable name for an effect class."""
    return EFFECT_NAMES.get(effect, effect.value)


# ============================================================================
# Motion Physics
# ============================================================================
#
# Each motion category names a feel (snappy, deliberate, ...) and carries a
# default duration, an easing curve and an allowed duration envelope.
# ============================================================================


@dataclass(frozen=True)
class MotionEnvelope:
    """Allowed duration range (inclusive, milliseconds) for a motion category."""
    min_ms: int
    max_ms: int

    def contains(self, duration_ms: float) -> bool:
        return self.min_ms <= duration_ms <= self.max_ms

    def overlaps(self, other: "MotionEnvelope") -> bool:
        return self.min_ms <= other.max_ms and other.min_ms <= self.max_ms


MOTION_ENVELOPES: dict[str, MotionEnvelope] = {
    "instant": MotionEnvelope(0, 50),
    "snappy": MotionEnvelope(100, 200),
    "warm": MotionEnvelope(200, 400),
    "deliberate": MotionEnvelope(500, 1000),
    "reassuring": MotionEnvelope(800, 1500),
    "celebratory": MotionEnvelope(800, 1500),
    "reduced": MotionEnvelope(0, 0),
}

MOTION_TIMINGS: dict[str, int] = {
    "instant": 0,
    "snappy": 150,
    "warm": 300,
    "deliberate": 800,
    "reassuring": 1200,
    "celebratory": 1200,
    "reduced": 0,
}

MOTION_EASINGS: dict[str, str] = {
    "instant": "linear",
    "snappy": "ease-out",
    "warm": "ease-in-out",
    "deliberate": "ease-out",
    "reassuring": "ease-in-out",
    "celebratory": "cubic-bezier(0.34, 1.56, 0.64, 1)",
    "reduced": "linear",
}

DEFAULT_MOTION = "warm"

# Accessibility motion: always permitted regardless of zone
REDUCED_MOTION = "reduced"


def motion_envelope(motion: str) -> MotionEnvelope:
    """Envelope for a motion category, falling back to the default motion."""
    return MOTION_ENVELOPES.get(motion, MOTION_ENVELOPES[DEFAULT_MOTION])


def is_known_motion(motion: str) -> bool:
    """Check if a motion category is defined."""
    return motion in MOTION_ENVELOPES
