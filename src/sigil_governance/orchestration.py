# -*- encoding: utf-8 -*-
"""
Context resolution - which zone and physics a request is talking about.

Given a free-text prompt and optionally a component name, resolve_context()
answers with the vocabulary terms it recognised, the zone they imply and the
motion physics that zone expects.

Precedence:
    1. A component known to the workshop index (zone/physics pragmas)
    2. A live (non-evicted) virtual component of the active seed
    3. Vocabulary terms in the prompt and component name, where
       critical > admin > marketing > standard

Vocabulary comes from `.sigil/vocabulary.yaml` when present:

    terms:
      claim:
        user_facing: Claim rewards
        zone: critical
        physics: deliberate

and from DEFAULT_VOCABULARY otherwise.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from sigil_governance.context import GovernanceContext
from sigil_governance.seeds import SeedManager
from sigil_governance.workshop import WorkshopQuery


logger = logging.getLogger(__name__)


VOCABULARY_FILE = "vocabulary.yaml"

STANDARD_ZONE = "standard"
STANDARD_PHYSICS = "warm"

# Higher wins when a prompt mentions terms from several zones
ZONE_PRIORITY: dict[str, int] = {
    "critical": 3,
    "admin": 2,
    "marketing": 1,
    STANDARD_ZONE: 0,
}


@dataclass(frozen=True)
class VocabularyTerm:
    """A domain word and the zone it implies."""
    id: str
    user_facing: str
    zone: str
    physics: str


def _terms(zone: str, physics: str, *words: str) -> dict[str, VocabularyTerm]:
    return {w: VocabularyTerm(w, w.capitalize(), zone, physics) for w in words}


DEFAULT_VOCABULARY: dict[str, VocabularyTerm] = {
    **_terms("critical", "deliberate",
             "claim", "deposit", "withdraw", "transfer", "payment", "pay",
             "checkout", "purchase", "refund", "stake", "swap"),
    **_terms("admin", "snappy",
             "admin", "dashboard", "settings", "manage", "table", "audit"),
    **_terms("marketing", "warm",
             "landing", "hero", "pricing", "showcase", "testimonial"),
}


def load_vocabulary(path: Optional[Path]) -> dict[str, VocabularyTerm]:
    """
    Load vocabulary terms from YAML, or the defaults if path is missing.

    Raises:
        ValueError: if the file exists but is malformed
    """
    if path is None or not Path(path).is_file():
        return dict(DEFAULT_VOCABULARY)
    with open(path, encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"{path}: invalid YAML: {exc}") from exc
    terms = data.get("terms") if isinstance(data, dict) else None
    if not isinstance(terms, dict):
        raise ValueError(f"{path}: expected a 'terms' mapping")
    vocabulary = {}
    for term_id, raw in terms.items():
        raw = raw or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{path}: terms.{term_id}: expected a mapping")
        key = str(term_id).lower()
        vocabulary[key] = VocabularyTerm(
            id=key,
            user_facing=str(raw.get("user_facing", str(term_id).capitalize())),
            zone=str(raw.get("zone", STANDARD_ZONE)),
            physics=str(raw.get("physics", STANDARD_PHYSICS)),
        )
    return vocabulary


_WORD_RE = re.compile(r"[a-z][a-z0-9-]*")
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def extract_words(text: str) -> list[str]:
    """Lower-case words of a prompt or identifier; CamelCase is split."""
    return _WORD_RE.findall(_CAMEL_RE.sub(" ", text or "").lower())


@dataclass
class ResolvedContext:
    """What a request is about."""
    vocabulary_terms: list[str] = field(default_factory=list)
    zone: str = STANDARD_ZONE
    physics: str = STANDARD_PHYSICS
    source: str = "default"

    def to_dict(self) -> dict:
        return {
            "vocabulary_terms": list(self.vocabulary_terms),
            "zone": self.zone,
            "physics": self.physics,
            "source": self.source,
        }


class ContextResolver:
    """
    Resolves prompts to zone and physics.

    Args:
        context: Governance context; without one only vocabulary is used
        vocabulary: Terms to recognise; loaded from the state directory if omitted
    """

    def __init__(
        self,
        context: Optional[GovernanceContext] = None,
        vocabulary: Optional[dict[str, VocabularyTerm]] = None,
    ):
        self._ctx = context
        if vocabulary is None:
            path = context.state_dir / VOCABULARY_FILE if context else None
            vocabulary = load_vocabulary(path)
        self._vocabulary = vocabulary

    def _zone_physics(self, zone: str) -> str:
        if self._ctx is not None:
            configured = self._ctx.config.zone(zone)
            if configured is not None and configured.motion:
                return configured.motion
        return STANDARD_PHYSICS

    def from_vocabulary(self, prompt: str, component_name: Optional[str] = None) -> ResolvedContext:
        words = extract_words(prompt) + extract_words(component_name or "")
        matched = [self._vocabulary[w] for w in dict.fromkeys(words) if w in self._vocabulary]
        if not matched:
            return ResolvedContext()
        best = max(matched, key=lambda t: ZONE_PRIORITY.get(t.zone, 0))
        return ResolvedContext(
            vocabulary_terms=[t.id for t in matched],
            zone=best.zone,
            physics=best.physics,
            source="vocabulary",
        )

    def resolve_context(self, prompt: str, component_name: Optional[str] = None) -> ResolvedContext:
        resolved = self.from_vocabulary(prompt, component_name)
        if self._ctx is None or not component_name:
            return resolved

        component = WorkshopQuery.load(self._ctx).query_component(component_name)
        if component is not None and component.zone:
            resolved.zone = component.zone
            resolved.physics = component.physics or self._zone_physics(component.zone)
            resolved.source = "workshop"
            return resolved

        virtual = SeedManager(self._ctx).query_virtual_component(component_name)
        if virtual.available:
            resolved.zone = virtual.component.zone
            resolved.physics = virtual.component.physics
            resolved.source = "seed"
        return resolved


def resolve_context(
    prompt: str,
    component_name: Optional[str] = None,
    context: Optional[GovernanceContext] = None,
) -> ResolvedContext:
    """
    Resolve a prompt (and optional component name) to vocabulary, zone and physics.

    Unknown prompts resolve to the standard zone with warm physics.
    """
    return ContextResolver(context).resolve_context(prompt, component_name)
