# -*- encoding: utf-8 -*-
"""
Registry Contagion Validator - tier isolation for component registries.

Each tier exposes its components through a registry entry point
(`src/gold/index.ts`, `src/silver/index.ts`, `src/draft/index.ts`). A tier
may only depend on tiers at least as mature as itself:

    Gold   -> Gold
    Silver -> Gold, Silver
    Draft  -> anything

The check is transitive. Starting at a registry entry point, every file
reachable through re-exports and imports belongs to that registry's
reachable set. A file in Gold's reachable set that imports Draft code,
however many hops away, contaminates Gold:

    src/gold/index.ts -> src/silver/Card.tsx -> src/lib/helper.ts -> src/draft/Fx.tsx
                                                                     ^ gold-imports-draft

A file's tier comes from its path (a `gold`, `silver` or `draft` directory
segment, or the `@/draft` alias) or from being re-exported directly by a
registry entry point. Draft files are not expanded further: anything behind
them is already quarantined.

Rules:
    gold-imports-draft             Gold reach imports Draft
    gold-imports-silver            Gold reach imports Silver
    silver-imports-draft           Silver reach imports Draft
    gold-direct-component-import   Gold file imports from components/ directly

The pre-write hook `validate(file_path, proposed_import)` answers whether
adding one import to one file would break isolation, before the write lands.
"""

import logging
import posixpath
import re
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sigil_governance.config import DEFAULT_REGISTRIES, SigilConfig
from sigil_governance.context import GovernanceContext
from sigil_governance.errors import ContagionViolation
from sigil_governance.primitives import (
    RegistryTier,
    tier_may_import,
    tier_name,
)
from sigil_governance.results import ValidationResult, Violation
from sigil_governance.sources import (
    SOURCE_EXTENSIONS,
    DirectorySourceTree,
    SourceTree,
    is_alias,
    is_package,
    is_relative,
    parse_exports,
    parse_imports,
)


logger = logging.getLogger(__name__)


ALIAS_ROOT = "src"

_TIER_SEGMENTS: dict[str, RegistryTier] = {
    "gold": RegistryTier.GOLD,
    "silver": RegistryTier.SILVER,
    "draft": RegistryTier.DRAFT,
}

_COMPONENTS_RE = re.compile(r"(^|/)components(/|$)")

# Guidance per forbidden direction
CONTAGION_MESSAGES: dict[tuple[RegistryTier, RegistryTier], str] = {
    (RegistryTier.GOLD, RegistryTier.DRAFT): (
        "Gold components cannot import Draft code. Draft is quarantined. "
        "Either promote the Draft component to Silver, or remove this import."
    ),
    (RegistryTier.GOLD, RegistryTier.SILVER): (
        "Gold components cannot import Silver code. "
        "Either promote the Silver component to Gold, or remove this import."
    ),
    (RegistryTier.SILVER, RegistryTier.DRAFT): (
        "Silver components cannot import Draft code. Draft is quarantined. "
        "Either promote the Draft component to Silver, or remove this import."
    ),
}

DIRECT_COMPONENT_MESSAGE = (
    "Gold components must reach other components through a registry, "
    "not by importing from components/ directly."
)


def contagion_rule(importer: RegistryTier, target: RegistryTier) -> str:
    """Rule identifier for a forbidden import direction, e.g. 'gold-imports-draft'."""
    return f"{importer.name.lower()}-imports-{target.name.lower()}"


def tier_from_segments(segments: Iterable[str]) -> Optional[RegistryTier]:
    """Tier named by the innermost gold/silver/draft segment, if any."""
    found = None
    for segment in segments:
        tier = _TIER_SEGMENTS.get(segment.lower())
        if tier is not None:
            found = tier
    return found


def tier_of_path(path: str) -> Optional[RegistryTier]:
    """Tier of a project file from its directories."""
    return tier_from_segments(path.split("/")[:-1])


def tier_of_specifier(specifier: str) -> Optional[RegistryTier]:
    """Tier named by an import specifier such as '@/draft' or '../silver/Card'."""
    normalized = specifier.replace("\\", "/")
    if is_alias(normalized):
        normalized = ALIAS_ROOT + normalized[1:]
    elif is_package(normalized):
        # Only baseUrl-style specifiers such as "draft/Fx" name a tier
        return _TIER_SEGMENTS.get(normalized.split("/")[0].lower())
    return tier_from_segments(s for s in normalized.split("/") if s not in (".", ".."))


def resolve_specifier(
    tree: SourceTree,
    from_file: str,
    specifier: str,
    extensions: tuple[str, ...] = SOURCE_EXTENSIONS,
) -> Optional[str]:
    """
    Resolve an import specifier to a project file.

    Relative specifiers resolve against the importing file and `@/x`
    against `src/x`. Extensions and `index.*` files are tried in order.

    Returns:
        The project-relative path, or None for packages and missing files
    """
    if is_relative(specifier):
        base = posixpath.normpath(posixpath.join(posixpath.dirname(from_file), specifier))
    elif is_alias(specifier):
        base = posixpath.normpath(ALIAS_ROOT + specifier[1:])
    else:
        return None
    if base.startswith("../"):
        return None
    if tree.exists(base):
        return base
    for ext in extensions:
        if tree.exists(base + ext):
            return base + ext
    for ext in extensions:
        candidate = posixpath.join(base, "index" + ext)
        if tree.exists(candidate):
            return candidate
    return None


@dataclass(frozen=True)
class Edge:
    """A dependency edge from one project file."""
    source: str
    specifier: str
    target: Optional[str]
    line: int = 0


@dataclass
class ContagionReport:
    """Result of a whole-repository contagion scan."""
    violations: list[Violation] = field(default_factory=list)
    members: dict[RegistryTier, set[str]] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.violations

    def rules(self) -> list[str]:
        return [v.rule for v in self.violations]

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "violations": [v.to_dict() for v in self.violations],
            "members": {t.name.lower(): sorted(m) for t, m in self.members.items()},
        }


@dataclass
class WriteDecision:
    """Answer of the pre-write hook."""
    allowed: bool
    reason: str = ""
    rule: Optional[str] = None
    paths: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "rule": self.rule,
            "paths": list(self.paths),
        }


class ContagionValidator:
    """
    Checks registry tier isolation over a source tree.

    Usage:
        validator = ContagionValidator.from_context(ctx)
        report = validator.scan()
        decision = validator.validate("src/gold/Button.tsx", "@/draft/Sparkle")
        if not decision.allowed:
            print(decision.reason)
    """

    def __init__(
        self,
        tree: SourceTree,
        registries: Optional[dict[RegistryTier, str]] = None,
        allowed_patterns: Iterable[str] = (),
        allow_direct_component_imports: bool = False,
    ):
        self._tree = tree
        self._registries = dict(registries or DEFAULT_REGISTRIES)
        self._allowed = [re.compile(p) for p in allowed_patterns]
        self._allow_direct = allow_direct_component_imports
        self._edges: dict[str, list[Edge]] = {}
        self._exports: dict[RegistryTier, set[str]] = {}

    @classmethod
    def from_context(cls, context: GovernanceContext) -> "ContagionValidator":
        config: SigilConfig = context.config
        tree = DirectorySourceTree(context.project_root, extensions=config.source_extensions)
        return cls(
            tree, config.registries, config.allowed_patterns,
            config.allow_direct_component_imports,
        )

    # ── Graph ───────────────────────────────────────────────────────

    def edges_of(self, path: str) -> list[Edge]:
        """Outgoing dependency edges of a file (imports and re-exports)."""
        cached = self._edges.get(path)
        if cached is not None:
            return cached
        text = self._tree.read(path)
        edges: list[Edge] = []
        if text is not None:
            seen = set()
            for ref in parse_imports(text):
                if ref.specifier in seen:
                    continue
                seen.add(ref.specifier)
                edges.append(Edge(
                    path, ref.specifier,
                    resolve_specifier(self._tree, path, ref.specifier), ref.line,
                ))
        self._edges[path] = edges
        return edges

    def registry_exports(self, tier: RegistryTier) -> set[str]:
        """Files re-exported directly by a tier's registry entry point."""
        cached = self._exports.get(tier)
        if cached is not None:
            return cached
        entry = self._registries.get(tier)
        if entry is None:
            return set()
        text = self._tree.read(entry)
        if text is None:
            return set()
        targets = set()
        for export in parse_exports(text):
            resolved = resolve_specifier(self._tree, entry, export.specifier)
            if resolved is not None:
                targets.add(resolved)
        self._exports[tier] = targets
        return targets

    def tier_of(self, path: str) -> Optional[RegistryTier]:
        """Tier of a file by path segment, else by direct registry membership."""
        tier = tier_of_path(path)
        if tier is not None:
            return tier
        for candidate in (RegistryTier.DRAFT, RegistryTier.SILVER, RegistryTier.GOLD):
            entry = self._registries.get(candidate)
            if path == entry or path in self.registry_exports(candidate):
                return candidate
        return None

    def _edge_tier(self, edge: Edge) -> Optional[RegistryTier]:
        if edge.target is not None:
            return self.tier_of(edge.target)
        return tier_of_specifier(edge.specifier)

    def _reach(self, starts: Iterable[str]) -> dict[str, Optional[str]]:
        """BFS over dependency edges; returns {file: parent} for every reached file."""
        parents: dict[str, Optional[str]] = {}
        queue: deque[str] = deque()
        for start in starts:
            if start not in parents and self._tree.exists(start):
                parents[start] = None
                queue.append(start)
        while queue:
            current = queue.popleft()
            if self.tier_of(current) is RegistryTier.DRAFT and parents[current] is not None:
                continue
            for edge in self.edges_of(current):
                if edge.target is not None and edge.target not in parents:
                    parents[edge.target] = current
                    queue.append(edge.target)
        return parents

    @staticmethod
    def _chain(parents: dict[str, Optional[str]], node: str) -> list[str]:
        chain = [node]
        while parents.get(chain[-1]) is not None:
            chain.append(parents[chain[-1]])
        chain.reverse()
        return chain

    def tier_members(self, tier: RegistryTier) -> set[str]:
        """Every file reachable from a tier's registry entry point."""
        entry = self._registries.get(tier)
        if entry is None:
            return set()
        return set(self._reach([entry]))

    def governing_tier(self, path: str) -> Optional[RegistryTier]:
        """
        The most restrictive tier whose rules apply to a file: its own tier,
        or the tier of any registry that reaches it. Draft files stay Draft
        since reachability stops at them.
        """
        tiers = set()
        own = self.tier_of(path)
        if own is RegistryTier.DRAFT:
            return own
        if own is not None:
            tiers.add(own)
        for tier in (RegistryTier.GOLD, RegistryTier.SILVER):
            if tier not in tiers and path in self.tier_members(tier):
                tiers.add(tier)
        return max(tiers) if tiers else None

    # ── Rules ───────────────────────────────────────────────────────

    def _is_allowed_specifier(self, specifier: str) -> bool:
        return any(p.search(specifier) for p in self._allowed)

    def _edge_violation(
        self,
        tier: RegistryTier,
        edge: Edge,
        chain: list[str],
    ) -> Optional[Violation]:
        target_tier = self._edge_tier(edge)
        if target_tier is not None and not tier_may_import(tier, target_tier):
            if self._is_allowed_specifier(edge.specifier):
                return None
            paths = tuple(chain + [edge.target or edge.specifier])
            message = CONTAGION_MESSAGES[(tier, target_tier)]
            if len(paths) > 2:
                message += " Chain: " + " -> ".join(paths)
            return Violation(
                rule=contagion_rule(tier, target_tier),
                message=message,
                paths=paths,
                details={
                    "tier": tier_name(tier),
                    "target_tier": tier_name(target_tier),
                    "specifier": edge.specifier,
                    "line": edge.line,
                },
            )
        entry = self._registries.get(RegistryTier.GOLD)
        if (
            not self._allow_direct
            and tier is RegistryTier.GOLD
            and edge.source != entry
            and tier_of_path(edge.source) is RegistryTier.GOLD
            and _COMPONENTS_RE.search(edge.target or edge.specifier.lstrip("@/"))
            and not self._is_allowed_specifier(edge.specifier)
        ):
            return Violation(
                rule="gold-direct-component-import",
                message=DIRECT_COMPONENT_MESSAGE,
                paths=tuple(chain + [edge.target or edge.specifier]),
                details={"specifier": edge.specifier, "line": edge.line},
            )
        return None

    def _scan_tier(self, tier: RegistryTier) -> tuple[set[str], list[Violation]]:
        entry = self._registries.get(tier)
        if entry is None or not self._tree.exists(entry):
            logger.debug("No %s registry entry point", tier_name(tier))
            return set(), []
        parents = self._reach([entry])
        violations = []
        for path in parents:
            if self.tier_of(path) is RegistryTier.DRAFT:
                continue
            chain = self._chain(parents, path)
            for edge in self.edges_of(path):
                violation = self._edge_violation(tier, edge, chain)
                if violation is not None:
                    violations.append(violation)
        return set(parents), violations

    def scan(self) -> ContagionReport:
        """Check every registry's reachable set."""
        report = ContagionReport()
        for tier in (RegistryTier.GOLD, RegistryTier.SILVER, RegistryTier.DRAFT):
            members, violations = self._scan_tier(tier)
            report.members[tier] = members
            if tier is not RegistryTier.DRAFT:
                report.violations.extend(violations)
        for violation in report.violations:
            logger.warning("%s: %s", violation.rule, " -> ".join(violation.paths))
        return report

    def scan_result(self) -> ValidationResult:
        return ValidationResult(self.scan().violations)

    # ── Pre-write hook ──────────────────────────────────────────────

    def validate(self, file_path: str, proposed_import_path: str) -> WriteDecision:
        """
        Decide whether adding an import to a file keeps tiers isolated.

        The proposed target is checked directly and through everything it
        reaches, so importing a helper that imports Draft is refused too.

        Args:
            file_path: Project-relative path of the file being written
            proposed_import_path: Import specifier to be added

        Returns:
            WriteDecision; allowed=False carries rule, reason and the chain
        """
        file_path = file_path.replace("\\", "/")
        tier = self.governing_tier(file_path)
        if tier is None or tier is RegistryTier.DRAFT:
            return WriteDecision(True, "No registry constraint applies")

        parents: dict[str, Optional[str]] = {}
        entry = self._registries.get(tier)
        if entry is not None and file_path != entry:
            parents = self._reach([entry])
        chain = self._chain(parents, file_path) if file_path in parents else [file_path]

        target = resolve_specifier(self._tree, file_path, proposed_import_path)
        edge = Edge(file_path, proposed_import_path, target)
        violation = self._edge_violation(tier, edge, chain)
        if violation is None and target is not None:
            violation = self._transitive_violation(tier, chain, target)

        if violation is not None:
            return WriteDecision(False, violation.message, violation.rule, list(violation.paths))
        return WriteDecision(True, f"{tier_name(tier)} may import {proposed_import_path}")

    def _transitive_violation(
        self,
        tier: RegistryTier,
        chain: list[str],
        target: str,
    ) -> Optional[Violation]:
        parents = self._reach([target])
        for path in parents:
            if self.tier_of(path) is RegistryTier.DRAFT:
                continue
            sub_chain = chain + self._chain(parents, path)
            for edge in self.edges_of(path):
                target_tier = self._edge_tier(edge)
                if target_tier is None or tier_may_import(tier, target_tier):
                    continue
                violation = self._edge_violation(tier, edge, sub_chain)
                if violation is not None:
                    return violation
        return None

    def validate_content(self, file_path: str, text: str) -> WriteDecision:
        """Check every import in a proposed file body."""
        for ref in parse_imports(text):
            decision = self.validate(file_path, ref.specifier)
            if not decision.allowed:
                return decision
        return WriteDecision(True, "All imports respect registry tiers")

    def guard_write(self, file_path: str, proposed_import_path: str) -> WriteDecision:
        """
        Like validate(), but refuses the write by raising.

        Raises:
            ContagionViolation: if the import would break tier isolation
        """
        decision = self.validate(file_path, proposed_import_path)
        if not decision.allowed:
            raise ContagionViolation(decision.rule or "contagion", decision.paths, decision.reason)
        return decision
