# -*- encoding: utf-8 -*-
"""
Survival Observer - evidence-based promotion of recurring patterns.

Developers tag implementation patterns in source with markers:

    // @sigil-pattern: animation:spring-entrance (2026-01-08)
    /** @sigil-pattern card-hover-lift */
    <div data-sigil-pattern="stagger-list">

Each observation pass counts every distinct pattern name at most once, no
matter how many times it appears. A pattern that keeps surviving passes
climbs the promotion ladder:

    occurrences   status
    1-2           experimental
    3-4           surviving
    5+            pending-canonical   (queued for human curation)

Canonical status is never automatic. A curator approves a pending-canonical
pattern, or rejects any non-canonical one. Rejection is sticky: the pattern
keeps counting occurrences but stays rejected, across eras, until an
operator resets it.

Marker syntaxes are a declarative table (DEFAULT_MARKERS), so new syntaxes
are added as data rather than code.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Union

from sigil_governance.context import GovernanceContext
from sigil_governance.errors import PatternMarkerMalformed
from sigil_governance.primitives import PatternStatus, status_at_least
from sigil_governance.sources import SourceTree


logger = logging.getLogger(__name__)


LEDGER_KEY = "survival"
CURATION_KEY = "curation"

DEFAULT_ERA = "v1"

SURVIVING_THRESHOLD = 3
CANONICAL_THRESHOLD = 5

PROMOTION_THRESHOLDS: dict[PatternStatus, int] = {
    PatternStatus.SURVIVING: SURVIVING_THRESHOLD,
    PatternStatus.PENDING_CANONICAL: CANONICAL_THRESHOLD,
}

# Number of distinct locations remembered per pattern
MAX_LOCATIONS = 10


# ── Markers ──────────────────────────────────────────────────────────

_NAME_RE = re.compile(r"[a-z0-9][a-z0-9:_./-]*", re.I)
_PAYLOAD_RE = re.compile(
    r"(?P<name>[A-Za-z0-9][A-Za-z0-9:_./-]*)(?:\s*\((?P<date>\d{4}-\d{2}-\d{2})\))?"
)


def _comment_payload(match: re.Match) -> str:
    payload = match.group(1).strip()
    parsed = _PAYLOAD_RE.fullmatch(payload)
    if parsed is None:
        raise PatternMarkerMalformed(match.group(0).strip())
    return parsed.group("name").lower()


def _attribute_payload(match: re.Match) -> str:
    value = match.group(1).strip()
    if not _NAME_RE.fullmatch(value):
        raise PatternMarkerMalformed(match.group(0).strip())
    return value.lower()


@dataclass(frozen=True)
class MarkerSyntax:
    """
    One way of tagging a pattern in source.

    Args:
        name: Syntax identifier
        pattern: Regex locating candidate markers
        extractor: Returns the pattern name from a match, or raises
            PatternMarkerMalformed
    """
    name: str
    pattern: "re.Pattern[str]"
    extractor: Callable[[re.Match], str]


DEFAULT_MARKERS: tuple[MarkerSyntax, ...] = (
    MarkerSyntax(
        "comment",
        re.compile(r"@sigil-pattern\b:?[ \t]*([^\n*]*)"),
        _comment_payload,
    ),
    MarkerSyntax(
        "data-attribute",
        re.compile(r"""data-sigil-pattern\s*=\s*["']([^"'\n]*)["']"""),
        _attribute_payload,
    ),
)


@dataclass(frozen=True)
class PatternDetection:
    """A pattern marker found in source."""
    name: str
    location_hint: str


def detect_patterns(
    source_text: str,
    location: Optional[str] = None,
    markers: Iterable[MarkerSyntax] = DEFAULT_MARKERS,
) -> list[PatternDetection]:
    """
    Find pattern markers in a source text.

    Malformed markers are logged and skipped; they are never counted.

    Args:
        source_text: File contents
        location: File path used to build location hints
        markers: Marker syntaxes to recognise

    Returns:
        Detections ordered by syntax then position
    """
    found: list[PatternDetection] = []
    for syntax in markers:
        for match in syntax.pattern.finditer(source_text):
            line = source_text.count("\n", 0, match.start()) + 1
            hint = f"{location}:{line}" if location else f"line {line}"
            try:
                name = syntax.extractor(match)
            except PatternMarkerMalformed as exc:
                logger.warning("%s (%s)", exc, hint)
                continue
            found.append(PatternDetection(name, hint))
    return found


def determine_status(occurrences: int, approved: bool = False) -> PatternStatus:
    """
    Status implied by an occurrence count.

    Never yields CANONICAL unless the pattern has been approved.
    """
    if approved:
        return PatternStatus.CANONICAL
    if occurrences >= CANONICAL_THRESHOLD:
        return PatternStatus.PENDING_CANONICAL
    if occurrences >= SURVIVING_THRESHOLD:
        return PatternStatus.SURVIVING
    return PatternStatus.EXPERIMENTAL


# ── Ledgers ──────────────────────────────────────────────────────────


@dataclass
class PatternEntry:
    """Survival record for one pattern in the active era."""
    name: str
    status: PatternStatus = PatternStatus.EXPERIMENTAL
    occurrences: int = 0
    first_seen_era: str = DEFAULT_ERA
    first_seen_at: str = ""
    last_seen_at: str = ""
    locations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "occurrences": self.occurrences,
            "first_seen_era": self.first_seen_era,
            "first_seen_at": self.first_seen_at,
            "last_seen_at": self.last_seen_at,
            "locations": list(self.locations),
        }

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "PatternEntry":
        return cls(
            name=name,
            status=PatternStatus(data.get("status", PatternStatus.EXPERIMENTAL.value)),
            occurrences=int(data.get("occurrences", 0)),
            first_seen_era=str(data.get("first_seen_era", DEFAULT_ERA)),
            first_seen_at=str(data.get("first_seen_at", "")),
            last_seen_at=str(data.get("last_seen_at", "")),
            locations=list(data.get("locations", [])),
        )


@dataclass
class SurvivalLedger:
    """The active era's pattern survival ledger."""
    era: str = DEFAULT_ERA
    era_started: str = ""
    era_description: str = ""
    patterns: dict[str, PatternEntry] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "era": self.era,
            "era_started": self.era_started,
            "era_description": self.era_description,
            "patterns": {k: v.to_dict() for k, v in self.patterns.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SurvivalLedger":
        return cls(
            era=str(data.get("era", DEFAULT_ERA)),
            era_started=str(data.get("era_started", "")),
            era_description=str(data.get("era_description", "")),
            patterns={
                k: PatternEntry.from_dict(k, v)
                for k, v in (data.get("patterns") or {}).items()
            },
        )


def load_ledger(context: GovernanceContext) -> SurvivalLedger:
    """Load the active ledger, starting the default era if none exists."""
    data = context.store.read(LEDGER_KEY)
    if data is None:
        return SurvivalLedger(era=DEFAULT_ERA, era_started=context.now_iso())
    return SurvivalLedger.from_dict(data)


def save_ledger(context: GovernanceContext, ledger: SurvivalLedger) -> None:
    context.store.write(LEDGER_KEY, ledger.to_dict())


@dataclass
class CurationEntry:
    """A curation queue or decision record."""
    pattern: str
    occurrences: int = 0
    actor: str = ""
    rationale: str = ""
    at: str = ""
    era: str = ""

    def to_dict(self) -> dict:
        return {
            "pattern": self.pattern,
            "occurrences": self.occurrences,
            "actor": self.actor,
            "rationale": self.rationale,
            "at": self.at,
            "era": self.era,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CurationEntry":
        return cls(
            pattern=str(data["pattern"]),
            occurrences=int(data.get("occurrences", 0)),
            actor=str(data.get("actor", "")),
            rationale=str(data.get("rationale", "")),
            at=str(data.get("at", "")),
            era=str(data.get("era", "")),
        )


@dataclass
class CurationLedger:
    """Human curation state: promotions awaiting review and past decisions."""
    pending: dict[str, CurationEntry] = field(default_factory=dict)
    approved: dict[str, CurationEntry] = field(default_factory=dict)
    rejected: dict[str, CurationEntry] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "pending": [e.to_dict() for e in self.pending.values()],
            "approved": [e.to_dict() for e in self.approved.values()],
            "rejected": [e.to_dict() for e in self.rejected.values()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CurationLedger":
        def section(name: str) -> dict[str, CurationEntry]:
            entries = [CurationEntry.from_dict(d) for d in data.get(name) or []]
            return {e.pattern: e for e in entries}
        return cls(
            pending=section("pending"),
            approved=section("approved"),
            rejected=section("rejected"),
        )


def load_curation(context: GovernanceContext) -> CurationLedger:
    data = context.store.read(CURATION_KEY)
    return CurationLedger.from_dict(data) if data else CurationLedger()


def save_curation(context: GovernanceContext, curation: CurationLedger) -> None:
    context.store.write(CURATION_KEY, curation.to_dict())


# ── Observer ─────────────────────────────────────────────────────────


@dataclass
class Promotion:
    """A status change made by the promotion rules."""
    pattern: str
    previous: PatternStatus
    status: PatternStatus


@dataclass
class ObservationResult:
    """Outcome of one observation pass."""
    detected: list[PatternDetection] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    promotions: list[Promotion] = field(default_factory=list)


@dataclass
class CurationResult:
    """Result of a curation action."""
    success: bool
    pattern: str
    status: Optional[PatternStatus] = None
    reason: str = ""


class SurvivalObserver:
    """
    Counts pattern survival and applies promotion and curation rules.

    Usage:
        observer = SurvivalObserver(ctx)
        observer.observe(source_text, location="src/Card.tsx")
        observer.approve_promotion("card-hover-lift", actor="design-lead")
    """

    def __init__(self, context: GovernanceContext, markers: Iterable[MarkerSyntax] = DEFAULT_MARKERS):
        self._ctx = context
        self._markers = tuple(markers)

    @property
    def ledger(self) -> SurvivalLedger:
        return load_ledger(self._ctx)

    @property
    def curation(self) -> CurationLedger:
        return load_curation(self._ctx)

    # ── Counting ────────────────────────────────────────────────────

    def _update(
        self,
        ledger: SurvivalLedger,
        curation: CurationLedger,
        patterns: Iterable[Union[str, PatternDetection]],
    ) -> list[str]:
        now = self._ctx.now_iso()
        seen: dict[str, list[str]] = {}
        for item in patterns:
            if isinstance(item, PatternDetection):
                seen.setdefault(item.name, []).append(item.location_hint)
            else:
                seen.setdefault(str(item).lower(), [])

        for name, hints in seen.items():
            entry = ledger.patterns.get(name)
            if entry is None:
                entry = PatternEntry(
                    name=name,
                    first_seen_era=ledger.era,
                    first_seen_at=now,
                )
                if name in curation.rejected:
                    entry.status = PatternStatus.REJECTED
                elif name in curation.approved:
                    entry.status = PatternStatus.CANONICAL
                ledger.patterns[name] = entry
            entry.occurrences += 1
            entry.last_seen_at = now
            for hint in hints:
                if hint not in entry.locations:
                    entry.locations.append(hint)
            del entry.locations[:-MAX_LOCATIONS]
        return list(seen)

    def _promote(self, ledger: SurvivalLedger, curation: CurationLedger) -> list[Promotion]:
        promotions = []
        for entry in ledger.patterns.values():
            if entry.status in (PatternStatus.REJECTED, PatternStatus.CANONICAL):
                continue
            target = determine_status(entry.occurrences)
            if status_at_least(entry.status, target):
                continue
            promotions.append(Promotion(entry.name, entry.status, target))
            entry.status = target
            if target is PatternStatus.PENDING_CANONICAL:
                curation.pending[entry.name] = CurationEntry(
                    pattern=entry.name,
                    occurrences=entry.occurrences,
                    at=self._ctx.now_iso(),
                    era=ledger.era,
                )
                logger.info("Pattern %s queued for canonical review", entry.name)
        return promotions

    def update_survival_index(
        self,
        patterns: Iterable[Union[str, PatternDetection]],
    ) -> list[str]:
        """
        Record one observation pass.

        Each distinct name is incremented once, however often it appears.

        Returns:
            Names whose entries were updated
        """
        ledger, curation = load_ledger(self._ctx), load_curation(self._ctx)
        updated = self._update(ledger, curation, patterns)
        save_ledger(self._ctx, ledger)
        return updated

    def apply_promotion_rules(self) -> list[Promotion]:
        """
        Upgrade statuses whose occurrence counts crossed a threshold.

        Never downgrades, never touches rejected or canonical patterns and
        never grants canonical status.
        """
        ledger, curation = load_ledger(self._ctx), load_curation(self._ctx)
        promotions = self._promote(ledger, curation)
        if promotions:
            save_ledger(self._ctx, ledger)
            save_curation(self._ctx, curation)
        return promotions

    def observe(self, source_text: str, location: Optional[str] = None) -> ObservationResult:
        """Detect markers in one text, count them and apply promotion rules."""
        return self.observe_pass([(location, source_text)])

    def observe_tree(self, tree: SourceTree) -> ObservationResult:
        """One observation pass over every file of a source tree."""
        return self.observe_pass((path, tree.read(path) or "") for path in tree.files())

    def observe_pass(self, sources: Iterable[tuple[Optional[str], str]]) -> ObservationResult:
        detected: list[PatternDetection] = []
        for location, text in sources:
            detected.extend(detect_patterns(text, location, self._markers))

        ledger, curation = load_ledger(self._ctx), load_curation(self._ctx)
        updated = self._update(ledger, curation, detected)
        promotions = self._promote(ledger, curation)
        save_ledger(self._ctx, ledger)
        if promotions:
            save_curation(self._ctx, curation)
        logger.debug("Observed %d markers, %d patterns", len(detected), len(updated))
        return ObservationResult(detected, updated, promotions)

    # ── Queries ─────────────────────────────────────────────────────

    def get_pattern(self, name: str) -> Optional[PatternEntry]:
        return load_ledger(self._ctx).patterns.get(name.lower())

    def get_pattern_status(self, name: str) -> Optional[PatternStatus]:
        entry = self.get_pattern(name)
        return entry.status if entry else None

    def get_pending_promotions(self) -> list[CurationEntry]:
        return list(load_curation(self._ctx).pending.values())

    # ── Curation ────────────────────────────────────────────────────

    def approve_promotion(self, name: str, actor: str, rationale: str = "") -> CurationResult:
        """Promote a pending-canonical pattern to canonical."""
        name = name.lower()
        ledger, curation = load_ledger(self._ctx), load_curation(self._ctx)
        entry = ledger.patterns.get(name)
        if entry is None:
            return CurationResult(False, name, reason=f"Pattern '{name}' has not been observed")
        if entry.status is not PatternStatus.PENDING_CANONICAL:
            return CurationResult(
                False, name, entry.status,
                f"Only pending-canonical patterns can be approved (status: {entry.status.value})",
            )
        entry.status = PatternStatus.CANONICAL
        curation.pending.pop(name, None)
        curation.approved[name] = CurationEntry(
            name, entry.occurrences, actor, rationale, self._ctx.now_iso(), ledger.era,
        )
        save_ledger(self._ctx, ledger)
        save_curation(self._ctx, curation)
        logger.info("Pattern %s approved as canonical by %s", name, actor)
        return CurationResult(True, name, entry.status, "Approved")

    def reject_promotion(self, name: str, actor: str, rationale: str = "") -> CurationResult:
        """Reject a non-canonical pattern. Sticky until reset_pattern()."""
        name = name.lower()
        ledger, curation = load_ledger(self._ctx), load_curation(self._ctx)
        entry = ledger.patterns.get(name)
        if entry is None:
            return CurationResult(False, name, reason=f"Pattern '{name}' has not been observed")
        if entry.status is PatternStatus.CANONICAL:
            return CurationResult(False, name, entry.status, "Canonical patterns cannot be rejected")
        if entry.status is PatternStatus.REJECTED:
            return CurationResult(True, name, entry.status, "Already rejected")
        entry.status = PatternStatus.REJECTED
        curation.pending.pop(name, None)
        curation.rejected[name] = CurationEntry(
            name, entry.occurrences, actor, rationale, self._ctx.now_iso(), ledger.era,
        )
        save_ledger(self._ctx, ledger)
        save_curation(self._ctx, curation)
        logger.info("Pattern %s rejected by %s", name, actor)
        return CurationResult(True, name, entry.status, "Rejected")

    def reset_pattern(self, name: str, actor: str) -> CurationResult:
        """Operator reset: lift a rejection and re-derive status from occurrences."""
        name = name.lower()
        ledger, curation = load_ledger(self._ctx), load_curation(self._ctx)
        entry = ledger.patterns.get(name)
        if name not in curation.rejected and (entry is None or entry.status is not PatternStatus.REJECTED):
            return CurationResult(
                False, name, entry.status if entry else None, f"Pattern '{name}' is not rejected",
            )
        curation.rejected.pop(name, None)
        if entry is not None:
            entry.status = PatternStatus.EXPERIMENTAL
            self._promote(ledger, curation)
            save_ledger(self._ctx, ledger)
        save_curation(self._ctx, curation)
        logger.info("Pattern %s reset by %s", name, actor)
        return CurationResult(True, name, entry.status if entry else None, "Reset")
