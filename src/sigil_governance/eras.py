# -*- encoding: utf-8 -*-
"""
Era Manager - named periods of survival evidence.

An era scopes the survival ledger. Starting a new era archives the active
ledger as an immutable snapshot and begins a fresh, empty ledger, so old
evidence stops counting toward promotion while remaining inspectable.

Snapshots are written create-only under `eras/<name>.<sequence>`. A second
snapshot of the same era gets the next sequence number rather than replacing
the first.

Curation decisions are not era-scoped: a pattern rejected in one era starts
the next era already rejected.

Usage:
    eras = EraManager(ctx)
    result = eras.create_new_era("v2", "Post-rebrand")
    if not result.success:
        print(result.reason)
    for snapshot in eras.get_era_history():
        print(snapshot.era, len(snapshot.patterns))
"""

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from sigil_governance.context import GovernanceContext
from sigil_governance.errors import ArchiveExists, CorruptRecord
from sigil_governance.survival import (
    PatternEntry,
    SurvivalLedger,
    load_curation,
    load_ledger,
    save_curation,
    save_ledger,
)


logger = logging.getLogger(__name__)


ARCHIVE_PREFIX = "eras/"
MAX_ERA_NAME = 50

_ERA_NAME_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]{0,%d}" % (MAX_ERA_NAME - 1))


def is_valid_era_name(name: str) -> bool:
    """Alphanumeric start, then letters, digits, '-' or '_'; at most 50 characters."""
    return bool(name) and _ERA_NAME_RE.fullmatch(name) is not None


@dataclass(frozen=True)
class Era:
    """The active era."""
    name: str
    started_at: str
    description: str = ""


@dataclass(frozen=True)
class EraSnapshot:
    """An archived, read-only copy of an era's survival ledger."""
    era: str
    started_at: str
    archived_at: str
    sequence: int
    description: str = ""
    patterns: Mapping[str, PatternEntry] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def key(self) -> str:
        return f"{ARCHIVE_PREFIX}{self.era}.{self.sequence}"

    def to_dict(self) -> dict:
        return {
            "era": self.era,
            "started_at": self.started_at,
            "archived_at": self.archived_at,
            "sequence": self.sequence,
            "description": self.description,
            "patterns": {k: v.to_dict() for k, v in self.patterns.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EraSnapshot":
        return cls(
            era=str(data["era"]),
            started_at=str(data.get("started_at", "")),
            archived_at=str(data.get("archived_at", "")),
            sequence=int(data.get("sequence", 0)),
            description=str(data.get("description", "")),
            patterns=MappingProxyType({
                k: PatternEntry.from_dict(k, v)
                for k, v in (data.get("patterns") or {}).items()
            }),
        )


@dataclass
class EraTransitionResult:
    """Result of an era transition."""
    success: bool
    previous_era: Optional[str] = None
    new_era: Optional[str] = None
    snapshot: Optional[EraSnapshot] = None
    reason: str = ""


def _split_key(key: str) -> Optional[tuple[str, int]]:
    stem = key[len(ARCHIVE_PREFIX):]
    name, _, seq = stem.rpartition(".")
    if not name or not seq.isdigit():
        return None
    return name, int(seq)


class EraManager:
    """
    Creates eras and archives their survival ledgers.

    Args:
        context: Governance context
    """

    def __init__(self, context: GovernanceContext):
        self._ctx = context

    def current_era(self) -> Era:
        ledger = load_ledger(self._ctx)
        return Era(ledger.era, ledger.era_started, ledger.era_description)

    def _archive_keys(self) -> list[tuple[str, int, str]]:
        found = []
        for key in self._ctx.store.keys(ARCHIVE_PREFIX):
            parsed = _split_key(key)
            if parsed is not None:
                found.append((parsed[0], parsed[1], key))
        return found

    def archived_era_names(self) -> set[str]:
        return {name for name, _, _ in self._archive_keys()}

    def can_transition_to(self, name: str) -> tuple[bool, str]:
        """
        Check whether a new era may be started under a name.

        Returns:
            (allowed, reason)
        """
        if not is_valid_era_name(name):
            return False, (
                f"Invalid era name '{name}': must start with an alphanumeric character, "
                f"contain only letters, digits, '-' or '_', and be at most "
                f"{MAX_ERA_NAME} characters"
            )
        if name == self.current_era().name:
            return False, f"Already in era '{name}'"
        if name in self.archived_era_names():
            return False, f"Era '{name}' already exists in history"
        return True, ""

    def archive_current_era(self) -> EraSnapshot:
        """
        Write an immutable snapshot of the active ledger.

        The active ledger is left untouched. Repeated snapshots of one era
        receive increasing sequence numbers.
        """
        ledger = load_ledger(self._ctx)
        sequences = [seq for name, seq, _ in self._archive_keys() if name == ledger.era]
        sequence = max(sequences, default=0) + 1
        while True:
            snapshot = EraSnapshot(
                era=ledger.era,
                started_at=ledger.era_started,
                archived_at=self._ctx.now_iso(),
                sequence=sequence,
                description=ledger.era_description,
                patterns=MappingProxyType(dict(ledger.patterns)),
            )
            try:
                self._ctx.store.write_new(snapshot.key, snapshot.to_dict())
            except ArchiveExists:
                # Another writer took this sequence number
                sequence += 1
                continue
            logger.info("Archived era %s as %s", ledger.era, snapshot.key)
            return snapshot

    def create_new_era(self, name: str, description: str = "") -> EraTransitionResult:
        """
        Archive the active era and start a new one with an empty ledger.

        Pending promotions belong to the archived evidence and are dropped.
        Curation approvals and rejections carry over.
        """
        allowed, reason = self.can_transition_to(name)
        if not allowed:
            return EraTransitionResult(False, self.current_era().name, name, reason=reason)

        snapshot = self.archive_current_era()
        save_ledger(self._ctx, SurvivalLedger(
            era=name,
            era_started=self._ctx.now_iso(),
            era_description=description,
        ))
        curation = load_curation(self._ctx)
        if curation.pending:
            curation.pending.clear()
            save_curation(self._ctx, curation)

        logger.info("Transitioned from era %s to %s", snapshot.era, name)
        return EraTransitionResult(
            True, snapshot.era, name, snapshot, f"Transitioned from {snapshot.era} to {name}",
        )

    def load_era_archive(self, name: str) -> Optional[EraSnapshot]:
        """Latest snapshot of an era, or None."""
        matches = sorted(
            (seq, key) for era, seq, key in self._archive_keys() if era == name
        )
        if not matches:
            return None
        data = self._ctx.store.read(matches[-1][1])
        return EraSnapshot.from_dict(data) if data else None

    def get_era_history(self) -> list[EraSnapshot]:
        """All readable snapshots in chronological order. Corrupt archives are skipped."""
        snapshots = []
        for _, _, key in self._archive_keys():
            try:
                data = self._ctx.store.read(key)
            except CorruptRecord as exc:
                logger.warning("Skipping unreadable era archive %s: %s", key, exc)
                continue
            if data is not None:
                snapshots.append(EraSnapshot.from_dict(data))
        snapshots.sort(key=lambda s: (s.started_at, s.sequence))
        return snapshots

