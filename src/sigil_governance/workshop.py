# -*- encoding: utf-8 -*-
"""
Workshop Index - a staleness-aware cache of the project's design primitives.

The index records, in one document:
    - materials:  dependencies declared in the manifest, with installed
                  version, exported names and type/README availability
    - components: source files declaring a `@sigil-tier` pragma
    - physics:    motion categories with timing, easing and envelope
    - zones:      configured zones

Freshness is decided by two content hashes:
    manifest_hash  hash of the dependency manifest text
    imports_hash   hash of the sorted, de-duplicated import statements
                   found in the source tree

Identical manifest and import set produce identical hashes, so the index is
fresh. Any change to either triggers a rebuild. Changes that touch neither
(e.g. a new `@sigil-zone` pragma in an existing file) are not detected until
the next manifest or import change.

Component pragmas live in JSDoc comments:

    /**
     * @sigil-tier gold
     * @sigil-zone critical
     * @sigil-physics deliberate
     * @sigil-vocabulary claim, deposit
     */

Rebuilds happen under a lease lock (RebuildLock). When the lease cannot be
acquired in time the existing index is served as-is and a warning is logged.

Usage:
    result = WorkshopSentinel(ctx).ensure_fresh()
    query = WorkshopQuery(result.index)
    query.query_component("ClaimButton")
"""

import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from sigil_governance.context import GovernanceContext
from sigil_governance.errors import (
    CorruptRecord,
    IndexCorrupt,
    IndexMissing,
    LockTimeout,
    StalenessMismatch,
)
from sigil_governance.primitives import RegistryTier, parse_tier
from sigil_governance.sources import (
    DirectorySourceTree,
    SourceTree,
    import_statements,
    is_package,
    package_name,
    parse_imports,
)


logger = logging.getLogger(__name__)


INDEX_KEY = "workshop"

REASON_FRESH = "fresh"
REASON_MISSING = "missing"
REASON_CORRUPTED = "corrupted"
REASON_MANIFEST_CHANGED = "manifest_changed"
REASON_IMPORTS_CHANGED = "imports_changed"


def content_hash(text: str) -> str:
    """32-hex-character content hash."""
    return hashlib.blake2b(text.encode("utf-8"), digest_size=16).hexdigest()


# ── Index Model ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class MaterialEntry:
    """A dependency declared in the manifest."""
    name: str
    version: str
    exports: tuple[str, ...] = ()
    types_available: bool = False
    readme_available: bool = False

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "exports": list(self.exports),
            "types_available": self.types_available,
            "readme_available": self.readme_available,
        }

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "MaterialEntry":
        return cls(
            name=name,
            version=str(data["version"]),
            exports=tuple(data.get("exports", ())),
            types_available=bool(data.get("types_available", False)),
            readme_available=bool(data.get("readme_available", False)),
        )


@dataclass(frozen=True)
class ComponentEntry:
    """A source file that declares itself a design component."""
    name: str
    path: str
    tier: RegistryTier
    zone: Optional[str] = None
    physics: Optional[str] = None
    vocabulary: tuple[str, ...] = ()
    imports: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "tier": self.tier.name.lower(),
            "zone": self.zone,
            "physics": self.physics,
            "vocabulary": list(self.vocabulary),
            "imports": list(self.imports),
        }

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "ComponentEntry":
        return cls(
            name=name,
            path=str(data["path"]),
            tier=parse_tier(str(data["tier"])),
            zone=data.get("zone"),
            physics=data.get("physics"),
            vocabulary=tuple(data.get("vocabulary", ())),
            imports=tuple(data.get("imports", ())),
        )


@dataclass(frozen=True)
class PhysicsDefinition:
    """A motion category."""
    name: str
    timing_ms: int
    easing: str
    min_ms: int
    max_ms: int

    def to_dict(self) -> dict:
        return {
            "timing": self.timing_ms,
            "easing": self.easing,
            "min": self.min_ms,
            "max": self.max_ms,
        }

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "PhysicsDefinition":
        return cls(
            name=name,
            timing_ms=int(data["timing"]),
            easing=str(data["easing"]),
            min_ms=int(data["min"]),
            max_ms=int(data["max"]),
        )


@dataclass(frozen=True)
class ZoneDefinition:
    """A configured zone as recorded in the index."""
    name: str
    path_patterns: tuple[str, ...] = ()
    material: Optional[str] = None
    motion: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "paths": list(self.path_patterns),
            "material": self.material,
            "motion": self.motion,
        }

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "ZoneDefinition":
        return cls(
            name=name,
            path_patterns=tuple(data.get("paths", ())),
            material=data.get("material"),
            motion=data.get("motion"),
        )


@dataclass
class WorkshopIndex:
    """The persisted workshop index."""
    indexed_at: str
    manifest_hash: str
    imports_hash: str
    materials: dict[str, MaterialEntry] = field(default_factory=dict)
    components: dict[str, ComponentEntry] = field(default_factory=dict)
    physics: dict[str, PhysicsDefinition] = field(default_factory=dict)
    zones: dict[str, ZoneDefinition] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "WorkshopIndex":
        return cls(indexed_at="", manifest_hash="", imports_hash="")

    def to_dict(self) -> dict:
        return {
            "indexedAt": self.indexed_at,
            "manifestHash": self.manifest_hash,
            "importsHash": self.imports_hash,
            "materials": {k: v.to_dict() for k, v in self.materials.items()},
            "components": {k: v.to_dict() for k, v in self.components.items()},
            "physics": {k: v.to_dict() for k, v in self.physics.items()},
            "zones": {k: v.to_dict() for k, v in self.zones.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WorkshopIndex":
        """
        Decode a persisted index.

        Raises:
            IndexCorrupt: if required fields are missing or malformed
        """
        try:
            return cls(
                indexed_at=str(data["indexedAt"]),
                manifest_hash=str(data["manifestHash"]),
                imports_hash=str(data["importsHash"]),
                materials={
                    k: MaterialEntry.from_dict(k, v) for k, v in data["materials"].items()
                },
                components={
                    k: ComponentEntry.from_dict(k, v) for k, v in data["components"].items()
                },
                physics={
                    k: PhysicsDefinition.from_dict(k, v) for k, v in data["physics"].items()
                },
                zones={k: ZoneDefinition.from_dict(k, v) for k, v in data["zones"].items()},
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise IndexCorrupt(f"Workshop index is malformed: {exc!r}") from exc


def load_index(context: GovernanceContext) -> WorkshopIndex:
    """
    Load the persisted index.

    Raises:
        IndexMissing: if no index has been written
        IndexCorrupt: if the stored document cannot be decoded
    """
    try:
        data = context.store.read(INDEX_KEY)
    except CorruptRecord as exc:
        raise IndexCorrupt(str(exc)) from exc
    if data is None:
        raise IndexMissing("Workshop index has not been built")
    return WorkshopIndex.from_dict(data)


def save_index(context: GovernanceContext, index: WorkshopIndex) -> None:
    context.store.write(INDEX_KEY, index.to_dict())


# ── Builder ──────────────────────────────────────────────────────────

_PRAGMA_RE = re.compile(r"@sigil-(tier|zone|physics|vocabulary)[ \t]+([^\n*]+)")

_DTS_DECL_RE = re.compile(
    r"^\s*export\s+(?:declare\s+)?(?:abstract\s+)?"
    r"(?:const|let|var|function|class|interface|type|enum|namespace)\s+([A-Za-z_$][\w$]*)",
    re.M,
)
_DTS_BRACE_RE = re.compile(r"^\s*export\s+(?:type\s+)?\{([^}]*)\}", re.M)
_DTS_DEFAULT_RE = re.compile(r"^\s*export\s+default\b", re.M)


def parse_pragmas(text: str) -> dict[str, str]:
    """Extract `@sigil-*` pragmas; the first occurrence of each wins."""
    found: dict[str, str] = {}
    for m in _PRAGMA_RE.finditer(text):
        found.setdefault(m.group(1), m.group(2).strip())
    return found


def parse_dts_exports(text: str) -> list[str]:
    """Exported names declared in a .d.ts file, in order, without duplicates."""
    names: list[str] = []
    for m in _DTS_DECL_RE.finditer(text):
        names.append(m.group(1))
    for m in _DTS_BRACE_RE.finditer(text):
        for item in m.group(1).split(","):
            item = item.strip()
            if item.startswith("type "):
                item = item[5:].strip()
            if item:
                names.append(item.split(" as ")[-1].strip())
    if _DTS_DEFAULT_RE.search(text):
        names.append("default")
    return list(dict.fromkeys(names))


def component_name(path: str) -> str:
    """Component name for a file: its stem, or its directory for index files."""
    p = Path(path)
    if p.stem == "index" and p.parent.name:
        return p.parent.name
    return p.stem


@dataclass
class ProjectScan:
    """Raw facts gathered from the project in one pass."""
    manifest_text: str
    import_statements: list[str]
    components: dict[str, ComponentEntry]

    @property
    def manifest_hash(self) -> str:
        return content_hash(self.manifest_text)

    @property
    def imports_hash(self) -> str:
        return content_hash("\n".join(sorted(set(self.import_statements))))


@dataclass
class StalenessResult:
    """Outcome of comparing a stored index against the project."""
    stale: bool
    reason: str
    current_manifest_hash: str = ""
    current_imports_hash: str = ""
    stored_manifest_hash: str = ""
    stored_imports_hash: str = ""


class WorkshopBuilder:
    """
    Scans the project and builds a WorkshopIndex.

    Args:
        context: Governance context (project root, config, clock)
        tree: Source tree to scan; defaults to the project directory
    """

    def __init__(self, context: GovernanceContext, tree: Optional[SourceTree] = None):
        self._ctx = context
        self._tree = tree or DirectorySourceTree(
            context.project_root, extensions=context.config.source_extensions,
        )

    @property
    def manifest_path(self) -> Path:
        return self._ctx.project_root / self._ctx.config.manifest

    def _read_manifest(self) -> str:
        path = self.manifest_path
        if not path.is_file():
            logger.warning("Dependency manifest %s not found", path)
            return ""
        return path.read_text("utf-8")

    def _source_files(self) -> list[str]:
        files: list[str] = []
        for directory in self._ctx.config.source_dirs:
            if isinstance(self._tree, DirectorySourceTree):
                files.extend(self._tree.files(directory))
            else:
                prefix = directory.rstrip("/") + "/"
                files.extend(p for p in self._tree.files() if p.startswith(prefix))
        return sorted(set(files))

    def scan(self) -> ProjectScan:
        """Read the manifest and source tree once."""
        statements: list[str] = []
        components: dict[str, ComponentEntry] = {}
        for path in self._source_files():
            text = self._tree.read(path)
            if text is None:
                continue
            statements.extend(import_statements(text))
            entry = self._component_entry(path, text)
            if entry is not None:
                if entry.name in components:
                    logger.warning(
                        "Component %s declared in both %s and %s; keeping the first",
                        entry.name, components[entry.name].path, path,
                    )
                    continue
                components[entry.name] = entry
        return ProjectScan(self._read_manifest(), statements, components)

    def _component_entry(self, path: str, text: str) -> Optional[ComponentEntry]:
        pragmas = parse_pragmas(text)
        if "tier" not in pragmas:
            return None
        try:
            tier = parse_tier(pragmas["tier"])
        except ValueError:
            logger.warning("Ignoring %s: unknown @sigil-tier %r", path, pragmas["tier"])
            return None
        vocabulary = tuple(
            term.strip() for term in pragmas.get("vocabulary", "").split(",") if term.strip()
        )
        packages = tuple(dict.fromkeys(
            package_name(ref.specifier) for ref in parse_imports(text)
            if is_package(ref.specifier)
        ))
        logger.debug("Indexed component %s (%s)", path, tier.name.lower())
        return ComponentEntry(
            name=component_name(path),
            path=path,
            tier=tier,
            zone=pragmas.get("zone"),
            physics=pragmas.get("physics"),
            vocabulary=vocabulary,
            imports=packages,
        )

    def _materials(self, manifest_text: str) -> dict[str, MaterialEntry]:
        if not manifest_text.strip():
            return {}
        try:
            manifest = json.loads(manifest_text)
        except json.JSONDecodeError:
            logger.warning("Dependency manifest is not JSON; no materials recorded")
            return {}
        declared: dict[str, str] = {}
        for section in ("dependencies", "devDependencies"):
            deps = manifest.get(section) or {}
            if isinstance(deps, dict):
                declared.update({str(k): str(v) for k, v in deps.items()})
        return {name: self._material_entry(name, version) for name, version in sorted(declared.items())}

    def _material_entry(self, name: str, declared_version: str) -> MaterialEntry:
        pkg_dir = self._ctx.project_root / "node_modules" / name
        meta: dict[str, Any] = {}
        meta_path = pkg_dir / "package.json"
        if meta_path.is_file():
            try:
                meta = json.loads(meta_path.read_text("utf-8"))
            except json.JSONDecodeError:
                logger.warning("Unreadable package metadata %s", meta_path)

        types_rel = meta.get("types") or meta.get("typings") or "index.d.ts"
        types_path = pkg_dir / str(types_rel)
        exports: tuple[str, ...] = ()
        if types_path.is_file():
            exports = tuple(parse_dts_exports(types_path.read_text("utf-8")))
        definitely_typed = self._ctx.project_root / "node_modules" / "@types" / name.lstrip("@").replace("/", "__")

        readme = pkg_dir.is_dir() and any(
            p.name.lower().startswith("readme") for p in pkg_dir.iterdir() if p.is_file()
        )
        return MaterialEntry(
            name=name,
            version=str(meta.get("version", declared_version)),
            exports=exports,
            types_available=types_path.is_file() or definitely_typed.is_dir(),
            readme_available=readme,
        )

    def build(self, scan: Optional[ProjectScan] = None) -> WorkshopIndex:
        """Build a fresh index from the project."""
        scan = scan or self.scan()
        config = self._ctx.config
        physics = {
            name: PhysicsDefinition(
                name=name,
                timing_ms=config.physics.motion_timings.get(name, envelope.min_ms),
                easing=config.physics.motion_easings.get(name, "ease-in-out"),
                min_ms=envelope.min_ms,
                max_ms=envelope.max_ms,
            )
            for name, envelope in config.physics.motion_envelopes.items()
        }
        zones = {
            name: ZoneDefinition(name, zone.effective_paths, zone.material, zone.motion)
            for name, zone in config.zones.items()
        }
        index = WorkshopIndex(
            indexed_at=self._ctx.now_iso(),
            manifest_hash=scan.manifest_hash,
            imports_hash=scan.imports_hash,
            materials=self._materials(scan.manifest_text),
            components=scan.components,
            physics=physics,
            zones=zones,
        )
        logger.info(
            "Built workshop index: %d materials, %d components",
            len(index.materials), len(index.components),
        )
        return index

    def check_staleness(
        self,
        existing: Optional[WorkshopIndex],
        scan: Optional[ProjectScan] = None,
    ) -> StalenessResult:
        """Compare a stored index's hashes with the project's current ones."""
        scan = scan or self.scan()
        current_manifest, current_imports = scan.manifest_hash, scan.imports_hash
        if existing is None:
            return StalenessResult(True, REASON_MISSING, current_manifest, current_imports)
        result = StalenessResult(
            stale=False,
            reason=REASON_FRESH,
            current_manifest_hash=current_manifest,
            current_imports_hash=current_imports,
            stored_manifest_hash=existing.manifest_hash,
            stored_imports_hash=existing.imports_hash,
        )
        if existing.manifest_hash != current_manifest:
            result.stale, result.reason = True, REASON_MANIFEST_CHANGED
        elif existing.imports_hash != current_imports:
            result.stale, result.reason = True, REASON_IMPORTS_CHANGED
        return result

    def verify(self, existing: Optional[WorkshopIndex]) -> None:
        """
        Raises:
            StalenessMismatch: if the index is missing or stale
        """
        staleness = self.check_staleness(existing)
        if staleness.stale:
            raise StalenessMismatch(staleness.reason)


# ── Query ────────────────────────────────────────────────────────────


class WorkshopQuery:
    """
    Read-only lookups against a loaded index.

    All lookups are dictionary reads; nothing here writes to the index or
    the store.
    """

    def __init__(self, index: WorkshopIndex):
        self._index = index

    @classmethod
    def load(cls, context: GovernanceContext) -> "WorkshopQuery":
        """Cold load from the store; an unusable index yields an empty query."""
        try:
            return cls(load_index(context))
        except (IndexMissing, IndexCorrupt) as exc:
            logger.warning("Workshop index unavailable (%s); serving empty index", exc)
            return cls(WorkshopIndex.empty())

    @property
    def index(self) -> WorkshopIndex:
        return self._index

    def query_material(self, name: str) -> Optional[MaterialEntry]:
        return self._index.materials.get(name)

    def query_component(self, name: str) -> Optional[ComponentEntry]:
        return self._index.components.get(name)

    def query_physics(self, name: str) -> Optional[PhysicsDefinition]:
        return self._index.physics.get(name)

    def query_zone(self, name: str) -> Optional[ZoneDefinition]:
        return self._index.zones.get(name)

    def find_by_tier(self, tier: RegistryTier) -> list[ComponentEntry]:
        return [c for c in self._index.components.values() if c.tier == tier]

    def find_by_zone(self, zone: str) -> list[ComponentEntry]:
        return [c for c in self._index.components.values() if c.zone == zone]

    def find_by_vocabulary(self, term: str) -> list[ComponentEntry]:
        term = term.lower()
        return [
            c for c in self._index.components.values()
            if term in (v.lower() for v in c.vocabulary)
        ]


# ── Startup Sentinel ─────────────────────────────────────────────────


@dataclass
class SentinelResult:
    """Outcome of ensure_fresh()."""
    index: WorkshopIndex
    rebuilt: bool
    reason: str
    lock_timed_out: bool = False


class WorkshopSentinel:
    """
    Keeps the persisted index fresh at startup.

    Usage:
        result = WorkshopSentinel(ctx).ensure_fresh()
        if result.rebuilt:
            print(f"Index rebuilt ({result.reason})")
    """

    def __init__(self, context: GovernanceContext, builder: Optional[WorkshopBuilder] = None):
        self._ctx = context
        self._builder = builder or WorkshopBuilder(context)

    @property
    def builder(self) -> WorkshopBuilder:
        return self._builder

    def _load(self) -> tuple[Optional[WorkshopIndex], str]:
        try:
            return load_index(self._ctx), REASON_FRESH
        except IndexMissing:
            return None, REASON_MISSING
        except IndexCorrupt as exc:
            logger.warning("Workshop index corrupt, rebuilding: %s", exc)
            return None, REASON_CORRUPTED

    def ensure_fresh(self) -> SentinelResult:
        """
        Return a fresh index, rebuilding it if it is missing, corrupt or stale.

        Returns:
            SentinelResult; when the rebuild lease times out, the existing
            index (or an empty one) with rebuilt=False and lock_timed_out=True
        """
        existing, reason = self._load()
        scan = self._builder.scan()
        if existing is not None:
            staleness = self._builder.check_staleness(existing, scan)
            if not staleness.stale:
                return SentinelResult(existing, False, REASON_FRESH)
            reason = staleness.reason

        lock = self._ctx.rebuild_lock()
        try:
            lock.acquire(self._ctx.lock_timeout)
        except LockTimeout as exc:
            logger.warning("%s; serving existing workshop index", exc)
            return SentinelResult(
                existing or WorkshopIndex.empty(), False, reason, lock_timed_out=True,
            )
        try:
            index = self._builder.build(scan)
            save_index(self._ctx, index)
        finally:
            lock.release()
        logger.info("Workshop index rebuilt (%s)", reason)
        return SentinelResult(index, True, reason)

    def rebuild(self) -> WorkshopIndex:
        """Unconditional rebuild under the lease lock."""
        with self._ctx.rebuild_lock().hold(self._ctx.lock_timeout):
            index = self._builder.build()
            save_index(self._ctx, index)
        return index
