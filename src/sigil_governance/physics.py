# -*- encoding: utf-8 -*-
"""
Physics Validator - motion, material and effect-class governance.

Physics is the "feel" contract of a zone: how long transitions take, which
materials may animate instantly, and how a side effect must be synced and
confirmed before it commits.

Checks:
    - Zone constraints: the proposed motion must be compatible with the zone's
      motion envelope (reduced motion is always permitted)
    - Material constraints: some materials (clay) never transition instantly
    - Timing: a duration must fall inside its motion category's envelope
    - Effects: each EffectClass carries a required sync strategy,
      confirmation policy and minimum duration

Effect rules are indexed by EffectClass for O(1) lookup.

Every check returns a ValidationResult. Nothing here raises on a violation.

Example:
    validator = PhysicsValidator(config)
    result = validator.validate_timing("deliberate", 200, zone="critical")
    result.valid                  # False
    result.violations[0].rule     # 'timing-too-fast'
"""

import re
from dataclasses import dataclass
from typing import Optional, Union

from sigil_governance.config import SigilConfig, default_config
from sigil_governance.primitives import (
    REDUCED_MOTION,
    ConfirmationPolicy,
    EffectClass,
    MotionEnvelope,
    SyncStrategy,
    effect_name,
)
from sigil_governance.results import (
    SEVERITY_WARNING,
    ValidationResult,
    Violation,
)
from sigil_governance.zones import Zone, ZoneResolver


@dataclass(frozen=True)
class MaterialRule:
    """
    Physical behaviour of a surface material.

    Args:
        name: Material identifier
        forbids_instant: True if 0ms transitions are not allowed
        description: What the material feels like
    """
    name: str
    forbids_instant: bool = False
    description: str = ""


MATERIALS: dict[str, MaterialRule] = {
    "glass": MaterialRule("glass", False, "Light, translucent, quick to react"),
    "clay": MaterialRule("clay", True, "Heavy, tactile, always shows its weight"),
    "machinery": MaterialRule("machinery", False, "Precise, instant, utilitarian"),
}


@dataclass(frozen=True)
class EffectRule:
    """
    Requirements for one effect class.

    Args:
        effect: The effect class this rule governs
        required_sync: Sync strategy the effect must use, or None for any
        confirmation: Confirmation the effect must have
        min_timing_ms: Minimum feedback duration for the effect
        rationale: Why these requirements exist
    """
    effect: EffectClass
    required_sync: Optional[SyncStrategy]
    confirmation: ConfirmationPolicy
    min_timing_ms: int
    rationale: str = ""


class EffectRuleSet:
    """Effect rules indexed by EffectClass."""

    def __init__(self, rules: list[EffectRule] | None = None):
        self._rules: dict[EffectClass, EffectRule] = {}
        if rules:
            for rule in rules:
                self.add(rule)

    def add(self, rule: EffectRule) -> None:
        """Add or replace an effect rule."""
        self._rules[rule.effect] = rule

    def get(self, effect: EffectClass) -> Optional[EffectRule]:
        return self._rules.get(effect)

    def all_rules(self) -> list[EffectRule]:
        return list(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, effect: EffectClass) -> bool:
        return effect in self._rules


def default_effect_rules() -> EffectRuleSet:
    """Baseline effect rules for every EffectClass."""
    return EffectRuleSet([
        EffectRule(
            EffectClass.FINANCIAL, SyncStrategy.PESSIMISTIC, ConfirmationPolicy.REQUIRED, 800,
            "Money moves once; the UI waits for the server and the user confirms",
        ),
        EffectRule(
            EffectClass.DESTRUCTIVE, SyncStrategy.PESSIMISTIC, ConfirmationPolicy.REQUIRED, 600,
            "Permanent deletion cannot be rolled back optimistically",
        ),
        EffectRule(
            EffectClass.SOFT_DELETE, None, ConfirmationPolicy.TOAST, 200,
            "Reversible removal offers undo instead of a blocking confirm",
        ),
        EffectRule(
            EffectClass.STANDARD, None, ConfirmationPolicy.NONE, 200,
            "Ordinary mutation, optimistic by default",
        ),
        EffectRule(
            EffectClass.LOCAL, None, ConfirmationPolicy.NONE, 100,
            "Client-only state",
        ),
        EffectRule(
            EffectClass.NAVIGATION, None, ConfirmationPolicy.NONE, 150,
            "Route change without mutation",
        ),
        EffectRule(
            EffectClass.QUERY, None, ConfirmationPolicy.NONE, 150,
            "Read-only fetch",
        ),
    ])


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SEPARATORS = re.compile(r"[\s_]+")


def _normalise(value) -> str:
    """'SoftDelete', 'soft_delete' and 'Soft Delete' all become 'soft-delete'."""
    text = _CAMEL_BOUNDARY.sub("-", str(value).strip())
    return _SEPARATORS.sub("-", text).lower()


def _coerce(enum_type, value):
    """
    Map a member or any spelling of its value onto enum_type.

    Raises:
        ValueError: if the value names no member
    """
    if value is None or isinstance(value, enum_type):
        return value
    text = _normalise(value)
    try:
        return enum_type(text)
    except ValueError:
        if text in ("", "none"):
            return None
        raise


def _coerce_fields(result: ValidationResult, **fields) -> Optional[dict]:
    """
    Coerce each (enum_type, value) pair, recording unknown names on result.

    Returns None when any value was unknown.
    """
    coerced = {}
    for field, (enum_type, value) in fields.items():
        try:
            coerced[field] = _coerce(enum_type, value)
        except ValueError:
            result.add(Violation(
                rule=f"unknown-{field}",
                message=f"Unknown {field} {value!r}",
                details={field: str(value), "allowed": [m.value for m in enum_type]},
            ))
    return coerced if result.valid else None


class PhysicsValidator:
    """
    Evaluates motion, material and effect proposals against physics rules.

    Usage:
        validator = PhysicsValidator(config)
        result = validator.validate_zone_constraints("critical", "playful")
        if not result.valid:
            print(result.violations[0].message)
    """

    def __init__(
        self,
        config: Optional[SigilConfig] = None,
        effect_rules: Optional[EffectRuleSet] = None,
        materials: Optional[dict[str, MaterialRule]] = None,
    ):
        self._config = config or default_config()
        self._resolver = ZoneResolver(self._config)
        self._effects = effect_rules or default_effect_rules()
        self._materials = materials if materials is not None else dict(MATERIALS)

    @property
    def resolver(self) -> ZoneResolver:
        return self._resolver

    @property
    def effect_rules(self) -> EffectRuleSet:
        return self._effects

    def _zone(self, zone: Union[Zone, str]) -> Zone:
        if isinstance(zone, Zone):
            return zone
        found = self._resolver.get(zone)
        return found if found is not None else Zone(name=zone)

    def motion_envelope(self, motion: str) -> Optional[MotionEnvelope]:
        return self._config.physics.envelope(motion)

    # ── Zone ────────────────────────────────────────────────────────

    def validate_zone_constraints(self, zone: Union[Zone, str], motion: str) -> ValidationResult:
        """
        Check whether a motion category is compatible with a zone.

        When the zone declares a `constraints.motion` allow-list, the motion
        must be in it. Otherwise the motion's envelope must overlap the zone's
        motion envelope. Reduced motion is always allowed.

        Args:
            zone: Zone object or zone name
            motion: Proposed motion category

        Returns:
            ValidationResult with a 'zone-motion-mismatch' violation if incompatible
        """
        result = ValidationResult()
        resolved = self._zone(zone)
        if motion == REDUCED_MOTION:
            return result

        zone_motion = resolved.motion or self._config.physics.default_motion
        details = {"zone": resolved.name, "motion": motion, "zone_motion": zone_motion}

        proposed = self.motion_envelope(motion)
        if proposed is None:
            result.add(Violation(
                rule="zone-motion-mismatch",
                message=f"Motion '{motion}' is not defined and cannot be used in "
                        f"{resolved.name} zone (expects {zone_motion})",
                details=details,
            ))
            return result

        allowed = resolved.constraints.get("motion")
        if allowed:
            allowed_list = [allowed] if isinstance(allowed, str) else list(allowed)
            if motion not in allowed_list:
                result.add(Violation(
                    rule="zone-motion-mismatch",
                    message=f"Motion '{motion}' is not allowed in {resolved.name} zone "
                            f"(allowed: {', '.join(allowed_list)})",
                    details={**details, "allowed": allowed_list},
                ))
            # An explicit allow-list replaces the envelope comparison
            return result

        expected = self.motion_envelope(zone_motion)
        if expected is not None and not proposed.overlaps(expected):
            result.add(Violation(
                rule="zone-motion-mismatch",
                message=f"Motion '{motion}' ({proposed.min_ms}-{proposed.max_ms}ms) is "
                        f"incompatible with {resolved.name} zone "
                        f"({zone_motion}: {expected.min_ms}-{expected.max_ms}ms)",
                details=details,
            ))
        return result

    # ── Material ────────────────────────────────────────────────────

    def validate_material_constraints(self, material: str, timing_ms: float) -> ValidationResult:
        """
        Check a transition duration against a material's behaviour.

        Unknown materials carry no constraints.
        """
        result = ValidationResult()
        rule = self._materials.get(material)
        if rule is None:
            return result
        if rule.forbids_instant and timing_ms <= 0:
            result.add(Violation(
                rule="material-instant-forbidden",
                message=f"Material '{material}' cannot transition instantly "
                        f"(got {timing_ms}ms)",
                details={"material": material, "timing_ms": timing_ms},
            ))
        return result

    # ── Timing ──────────────────────────────────────────────────────

    def validate_timing(
        self,
        motion: str,
        duration_ms: float,
        zone: Union[Zone, str, None] = None,
    ) -> ValidationResult:
        """
        Check a duration against the envelope of its motion category.

        Args:
            motion: Motion category
            duration_ms: Proposed duration
            zone: Optional zone, used only to word the message

        Returns:
            ValidationResult with 'timing-too-fast' (citing min) or
            'timing-too-slow' (citing max) when outside the envelope
        """
        result = ValidationResult()
        envelope = self.motion_envelope(motion)
        if envelope is None:
            result.add(Violation(
                rule="unknown-motion",
                message=f"Motion '{motion}' is not defined",
                details={"motion": motion, "duration_ms": duration_ms},
            ))
            return result

        zone_name = self._zone(zone).name if zone is not None else None
        where = f"{zone_name} zone (motion: {motion})" if zone_name else f"motion '{motion}'"
        details = {
            "motion": motion,
            "zone": zone_name,
            "duration_ms": duration_ms,
            "min": envelope.min_ms,
            "max": envelope.max_ms,
        }
        if duration_ms < envelope.min_ms:
            result.add(Violation(
                rule="timing-too-fast",
                message=f"Duration {duration_ms}ms is too fast for {where}. "
                        f"Minimum: {envelope.min_ms}ms.",
                details=details,
            ))
        elif duration_ms > envelope.max_ms:
            result.add(Violation(
                rule="timing-too-slow",
                message=f"Duration {duration_ms}ms is too slow for {where}. "
                        f"Maximum: {envelope.max_ms}ms.",
                details=details,
            ))
        return result

    # ── Effects ─────────────────────────────────────────────────────

    def validate_physics_effect(
        self,
        effect: Union[EffectClass, str],
        sync: Union[SyncStrategy, str, None],
        confirmation: Union[ConfirmationPolicy, str, None],
        inside_confirming_container: bool = False,
    ) -> ValidationResult:
        """
        Check an action's sync strategy and confirmation against its effect class.

        inside_confirming_container is a heuristic: an action rendered inside a
        form, dialog or modal is assumed to have been confirmed by that
        container. It can produce false negatives when the container does not
        actually ask for confirmation.

        Args:
            effect: Effect class of the action
            sync: Sync strategy the action uses
            confirmation: Confirmation the action has
            inside_confirming_container: Action lives in a form/dialog/modal

        Returns:
            ValidationResult with 'effect-sync-mismatch' and/or
            'effect-confirmation-missing' violations, or an 'unknown-effect',
            'unknown-sync' or 'unknown-confirmation' violation for a name that
            maps to no member
        """
        result = ValidationResult()
        coerced = _coerce_fields(
            result,
            effect=(EffectClass, effect),
            sync=(SyncStrategy, sync),
            confirmation=(ConfirmationPolicy, confirmation),
        )
        if coerced is None:
            return result
        effect, sync, confirmation = coerced["effect"], coerced["sync"], coerced["confirmation"]

        rule = self._effects.get(effect)
        if rule is None:
            return result
        label = effect_name(effect)

        if rule.required_sync is not None and sync is not rule.required_sync:
            result.add(Violation(
                rule="effect-sync-mismatch",
                message=f"{label} actions must use {rule.required_sync.value} sync, "
                        f"not {sync.value if sync else 'none'}",
                details={
                    "effect": effect.value,
                    "required": rule.required_sync.value,
                    "actual": sync.value if sync else None,
                },
            ))

        if rule.confirmation is ConfirmationPolicy.REQUIRED:
            confirmed = confirmation is ConfirmationPolicy.REQUIRED or inside_confirming_container
            if not confirmed:
                result.add(Violation(
                    rule="effect-confirmation-missing",
                    message=f"{label} actions require an explicit confirmation step",
                    details={
                        "effect": effect.value,
                        "actual": confirmation.value if confirmation else None,
                    },
                ))
        elif rule.confirmation is ConfirmationPolicy.TOAST:
            if confirmation in (None, ConfirmationPolicy.NONE):
                result.add(Violation(
                    rule="effect-undo-missing",
                    message=f"{label} actions should offer an undo toast",
                    severity=SEVERITY_WARNING,
                    details={"effect": effect.value},
                ))
        return result

    def validate_effect_timing(
        self,
        effect: Union[EffectClass, str],
        duration_ms: float,
    ) -> ValidationResult:
        """Advisory check that high-stakes effects are not rushed."""
        result = ValidationResult()
        coerced = _coerce_fields(result, effect=(EffectClass, effect))
        if coerced is None:
            return result
        effect = coerced["effect"]
        rule = self._effects.get(effect)
        if rule is None or effect not in (EffectClass.FINANCIAL, EffectClass.DESTRUCTIVE):
            return result
        if duration_ms < rule.min_timing_ms:
            result.add(Violation(
                rule="effect-timing-too-fast",
                message=f"{effect_name(effect)} feedback of {duration_ms}ms is below "
                        f"the recommended {rule.min_timing_ms}ms",
                severity=SEVERITY_WARNING,
                details={"effect": effect.value, "min": rule.min_timing_ms,
                         "duration_ms": duration_ms},
            ))
        return result

    # ── Composite ───────────────────────────────────────────────────

    def validate_file(
        self,
        path: str,
        motion: Optional[str] = None,
        duration_ms: Optional[float] = None,
        material: Optional[str] = None,
        effect: Union[EffectClass, str, None] = None,
        sync: Union[SyncStrategy, str, None] = None,
        confirmation: Union[ConfirmationPolicy, str, None] = None,
        inside_confirming_container: bool = False,
    ) -> ValidationResult:
        """
        Resolve a file's zone and run every check that the given facts allow.

        The zone's own motion and material are used when none are supplied.
        """
        zone = self._resolver.resolve_zone(path)
        result = ValidationResult()
        effective_motion = motion or zone.motion or self._config.physics.default_motion

        if motion is not None:
            result.extend(self.validate_zone_constraints(zone, motion))
        if duration_ms is not None:
            result.extend(self.validate_timing(effective_motion, duration_ms, zone=zone))
            effective_material = material or zone.material
            if effective_material:
                result.extend(self.validate_material_constraints(effective_material, duration_ms))
        if effect is not None:
            result.extend(self.validate_physics_effect(
                effect, sync, confirmation, inside_confirming_container,
            ))
            if duration_ms is not None:
                result.extend(self.validate_effect_timing(effect, duration_ms))

        violations = [
            Violation(v.rule, v.message, v.paths or (path,), v.severity, v.details)
            for v in result.violations
        ]
        return ValidationResult(violations)


def validate_zone_constraints(
    zone: Union[Zone, str],
    motion: str,
    config: Optional[SigilConfig] = None,
) -> ValidationResult:
    return PhysicsValidator(config).validate_zone_constraints(zone, motion)


def validate_material_constraints(material: str, timing_ms: float) -> ValidationResult:
    return PhysicsValidator().validate_material_constraints(material, timing_ms)


def validate_physics_effect(
    effect: Union[EffectClass, str],
    sync: Union[SyncStrategy, str, None],
    confirmation: Union[ConfirmationPolicy, str, None],
    inside_confirming_container: bool = False,
) -> ValidationResult:
    return PhysicsValidator().validate_physics_effect(
        effect, sync, confirmation, inside_confirming_container,
    )
