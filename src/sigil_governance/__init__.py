# -*- encoding: utf-8 -*-
"""
sigil-governance - Design-pattern governance engine.

Answers "is this proposed code or location allowed, and what constraints
apply", and keeps the evidence ledger that drives pattern promotion.

Provides:
- Primitives: RegistryTier, PatternStatus and EffectClass orders, motion envelopes
- Configuration: YAML zones, physics tables and registry entry points
- ZoneResolver: path patterns to exactly one zone
- PhysicsValidator: zone, material, timing and effect-class checks
- Workshop Index: staleness-aware cache of materials, components, physics, zones
- SurvivalObserver: pattern markers, occurrence counting, curation-gated promotion
- EraManager: era transitions with immutable archives
- SeedManager: Virtual Sanctuary seeds with permanent eviction
- ContagionValidator: transitive Gold/Silver/Draft isolation and pre-write hook
- resolve_context: prompt to vocabulary, zone and physics
"""

__version__ = "0.1.0"

from sigil_governance.primitives import (
    RegistryTier,
    PatternStatus,
    EffectClass,
    SyncStrategy,
    ConfirmationPolicy,
    MotionEnvelope,
    ALLOWED_IMPORTS,
    MOTION_ENVELOPES,
    tier_may_import,
    status_at_least,
)

from sigil_governance.errors import (
    GovernanceError,
    ConfigNotFound,
    CorruptRecord,
    ArchiveExists,
    IndexMissing,
    IndexCorrupt,
    StalenessMismatch,
    LockTimeout,
    PatternMarkerMalformed,
    ContagionViolation,
)

from sigil_governance.results import (
    Violation,
    ValidationResult,
)

from sigil_governance.config import (
    SigilConfig,
    ZoneConfig,
    PhysicsConfig,
    DEFAULT_ZONE_PATTERNS,
    default_config,
    find_config,
    load_config,
    parse_config,
)

from sigil_governance.store import (
    Store,
    InMemoryStore,
    JsonFileStore,
)

from sigil_governance.lock import RebuildLock

from sigil_governance.context import GovernanceContext

from sigil_governance.zones import (
    Zone,
    ZoneResolver,
    match_path,
    resolve_zone,
    is_in_zone,
)

from sigil_governance.physics import (
    EffectRule,
    EffectRuleSet,
    PhysicsValidator,
    default_effect_rules,
    validate_zone_constraints,
    validate_material_constraints,
    validate_physics_effect,
)

from sigil_governance.workshop import (
    WorkshopIndex,
    MaterialEntry,
    ComponentEntry,
    PhysicsDefinition,
    ZoneDefinition,
    WorkshopBuilder,
    WorkshopQuery,
    WorkshopSentinel,
    StalenessResult,
    SentinelResult,
)

from sigil_governance.survival import (
    MarkerSyntax,
    PatternDetection,
    PatternEntry,
    SurvivalLedger,
    CurationLedger,
    SurvivalObserver,
    DEFAULT_MARKERS,
    PROMOTION_THRESHOLDS,
    detect_patterns,
    determine_status,
)

from sigil_governance.eras import (
    Era,
    EraSnapshot,
    EraManager,
    EraTransitionResult,
    is_valid_era_name,
)

from sigil_governance.seeds import (
    Seed,
    VirtualComponent,
    SeedManager,
    AVAILABLE_SEEDS,
)

from sigil_governance.registry import (
    ContagionValidator,
    ContagionReport,
    WriteDecision,
)

from sigil_governance.orchestration import (
    ResolvedContext,
    resolve_context,
)

__all__ = [
    # Primitives
    "RegistryTier",
    "PatternStatus",
    "EffectClass",
    "SyncStrategy",
    "ConfirmationPolicy",
    "MotionEnvelope",
    "ALLOWED_IMPORTS",
    "MOTION_ENVELOPES",
    "tier_may_import",
    "status_at_least",
    # Errors
    "GovernanceError",
    "ConfigNotFound",
    "CorruptRecord",
    "ArchiveExists",
    "IndexMissing",
    "IndexCorrupt",
    "StalenessMismatch",
    "LockTimeout",
    "PatternMarkerMalformed",
    "ContagionViolation",
    # Results
    "Violation",
    "ValidationResult",
    # Configuration
    "SigilConfig",
    "ZoneConfig",
    "PhysicsConfig",
    "DEFAULT_ZONE_PATTERNS",
    "default_config",
    "find_config",
    "load_config",
    "parse_config",
    # Persistence
    "Store",
    "InMemoryStore",
    "JsonFileStore",
    "RebuildLock",
    "GovernanceContext",
    # Zones
    "Zone",
    "ZoneResolver",
    "match_path",
    "resolve_zone",
    "is_in_zone",
    # Physics
    "EffectRule",
    "EffectRuleSet",
    "PhysicsValidator",
    "default_effect_rules",
    "validate_zone_constraints",
    "validate_material_constraints",
    "validate_physics_effect",
    # Workshop
    "WorkshopIndex",
    "MaterialEntry",
    "ComponentEntry",
    "PhysicsDefinition",
    "ZoneDefinition",
    "WorkshopBuilder",
    "WorkshopQuery",
    "WorkshopSentinel",
    "StalenessResult",
    "SentinelResult",
    # Survival
    "MarkerSyntax",
    "PatternDetection",
    "PatternEntry",
    "SurvivalLedger",
    "CurationLedger",
    "SurvivalObserver",
    "DEFAULT_MARKERS",
    "PROMOTION_THRESHOLDS",
    "detect_patterns",
    "determine_status",
    # Eras
    "Era",
    "EraSnapshot",
    "EraManager",
    "EraTransitionResult",
    "is_valid_era_name",
    # Seeds
    "Seed",
    "VirtualComponent",
    "SeedManager",
    "AVAILABLE_SEEDS",
    # Registry
    "ContagionValidator",
    "ContagionReport",
    "WriteDecision",
    # Orchestration
    "ResolvedContext",
    "resolve_context",
]
