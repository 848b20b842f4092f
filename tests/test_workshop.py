# -*- encoding: utf-8 -*-
"""
Tests for the Workshop Index: building, staleness, querying and the
startup sentinel.
"""

import json
import time

import pytest

from sigil_governance.errors import IndexCorrupt, IndexMissing, StalenessMismatch
from sigil_governance.primitives import RegistryTier
from sigil_governance.store import JsonFileStore
from sigil_governance.workshop import (
    INDEX_KEY,
    REASON_CORRUPTED,
    REASON_FRESH,
    REASON_IMPORTS_CHANGED,
    REASON_MANIFEST_CHANGED,
    REASON_MISSING,
    WorkshopBuilder,
    WorkshopIndex,
    WorkshopQuery,
    WorkshopSentinel,
    component_name,
    content_hash,
    load_index,
    parse_dts_exports,
    parse_pragmas,
    save_index,
)


MANIFEST = json.dumps({
    "name": "app",
    "dependencies": {"framer-motion": "^11.0.0", "react": "^18.2.0"},
    "devDependencies": {"typescript": "^5.3.0"},
}, indent=2)

CLAIM_BUTTON = """\
import { motion } from 'framer-motion';
import React from 'react';

/**
 * @sigil-tier gold
 * @sigil-zone critical
 * @sigil-physics deliberate
 * @sigil-vocabulary claim, deposit
 */
export function ClaimButton() {
  return null;
}
"""

CARD = """\
import React from 'react';
/** @sigil-tier silver */
export const Card = () => null;
"""

HELPER = """\
import { clsx } from 'clsx';
export const cx = clsx;
"""


@pytest.fixture
def project(write):
    write("package.json", MANIFEST)
    write("src/gold/ClaimButton.tsx", CLAIM_BUTTON)
    write("src/silver/Card/index.tsx", CARD)
    write("src/lib/cx.ts", HELPER)
    write("node_modules/framer-motion/package.json", json.dumps({"version": "11.0.8", "types": "dist/index.d.ts"}))
    write(
        "node_modules/framer-motion/dist/index.d.ts",
        "export declare const motion: any;\n"
        "export declare function useAnimate(): void;\n"
        "export { AnimatePresence, type Variants } from './presence';\n",
    )
    write("node_modules/framer-motion/README.md", "# framer-motion\n")
    write("node_modules/react/package.json", json.dumps({"version": "18.2.0"}))
    write("node_modules/@types/react/index.d.ts", "export = React;\n")


# ── Parsing Tests ────────────────────────────────────────────────────


class TestParsing:
    """Pragma and declaration parsing."""

    def test_pragmas(self):
        pragmas = parse_pragmas(CLAIM_BUTTON)
        assert pragmas == {
            "tier": "gold",
            "zone": "critical",
            "physics": "deliberate",
            "vocabulary": "claim, deposit",
        }

    def test_first_pragma_wins(self):
        assert parse_pragmas("// @sigil-tier gold\n// @sigil-tier draft\n")["tier"] == "gold"

    def test_dts_exports(self):
        text = (
            "export declare const a: number;\n"
            "export interface B {}\n"
            "export { c, d as e } from './x';\n"
            "export default a;\n"
        )
        assert parse_dts_exports(text) == ["a", "B", "c", "e", "default"]

    @pytest.mark.parametrize("path, expected", [
        ("src/gold/ClaimButton.tsx", "ClaimButton"),
        ("src/silver/Card/index.tsx", "Card"),
        ("index.ts", "index"),
    ])
    def test_component_name(self, path, expected):
        assert component_name(path) == expected


# ── Builder Tests ────────────────────────────────────────────────────


class TestBuilder:
    """Index contents."""

    def test_components(self, ctx, project):
        index = WorkshopBuilder(ctx).build()
        assert set(index.components) == {"ClaimButton", "Card"}
        claim = index.components["ClaimButton"]
        assert claim.tier == RegistryTier.GOLD
        assert claim.zone == "critical"
        assert claim.physics == "deliberate"
        assert claim.vocabulary == ("claim", "deposit")
        assert claim.imports == ("framer-motion", "react")
        assert index.components["Card"].path == "src/silver/Card/index.tsx"

    def test_materials(self, ctx, project):
        index = WorkshopBuilder(ctx).build()
        assert sorted(index.materials) == ["framer-motion", "react", "typescript"]
        motion = index.materials["framer-motion"]
        assert motion.version == "11.0.8"
        assert motion.exports == ("motion", "useAnimate", "AnimatePresence", "Variants")
        assert motion.types_available
        assert motion.readme_available

    def test_definitely_typed_and_declared_version(self, ctx, project):
        index = WorkshopBuilder(ctx).build()
        assert index.materials["react"].types_available
        typescript = index.materials["typescript"]
        assert typescript.version == "^5.3.0"
        assert not typescript.types_available

    def test_physics_and_zones(self, ctx, project):
        index = WorkshopBuilder(ctx).build()
        deliberate = index.physics["deliberate"]
        assert (deliberate.min_ms, deliberate.max_ms) == (500, 1000)
        assert "critical" in index.zones
        assert "**/checkout/**" in index.zones["critical"].path_patterns

    def test_hashes(self, ctx, project):
        builder = WorkshopBuilder(ctx)
        first, second = builder.build(), builder.build()
        assert len(first.manifest_hash) == 32
        assert first.manifest_hash == second.manifest_hash == content_hash(MANIFEST)
        assert first.imports_hash == second.imports_hash

    def test_import_order_does_not_matter(self, ctx, project, write):
        before = WorkshopBuilder(ctx).build().imports_hash
        write("src/lib/cx.ts", "export const cx = clsx;\nimport { clsx } from 'clsx';\n")
        assert WorkshopBuilder(ctx).build().imports_hash == before

    def test_unknown_tier_is_skipped(self, ctx, project, write):
        write("src/x/Odd.tsx", "/** @sigil-tier bronze */\nexport const Odd = 1;\n")
        assert "Odd" not in WorkshopBuilder(ctx).build().components

    def test_missing_manifest(self, ctx, write):
        write("src/a.ts", "import 'x';\n")
        index = WorkshopBuilder(ctx).build()
        assert index.materials == {}
        assert index.manifest_hash == content_hash("")

    def test_indexed_at_uses_clock(self, ctx, project):
        assert WorkshopBuilder(ctx).build().indexed_at == "2026-01-08T12:00:00+00:00"


# ── Staleness Tests ──────────────────────────────────────────────────


class TestStaleness:
    """Hash comparison."""

    def test_unchanged_is_fresh(self, ctx, project):
        builder = WorkshopBuilder(ctx)
        index = builder.build()
        result = builder.check_staleness(index)
        assert not result.stale
        assert result.reason == REASON_FRESH

    def test_one_character_manifest_change(self, ctx, project, write):
        builder = WorkshopBuilder(ctx)
        index = builder.build()
        write("package.json", MANIFEST.replace("18.2.0", "18.2.1"))
        result = builder.check_staleness(index)
        assert result.stale
        assert result.reason == REASON_MANIFEST_CHANGED
        assert result.stored_manifest_hash != result.current_manifest_hash

    def test_new_import(self, ctx, project, write):
        builder = WorkshopBuilder(ctx)
        index = builder.build()
        write("src/lib/extra.ts", "import { format } from 'date-fns';\n")
        assert builder.check_staleness(index).reason == REASON_IMPORTS_CHANGED

    def test_pragma_only_change_is_not_detected(self, ctx, project, write):
        builder = WorkshopBuilder(ctx)
        index = builder.build()
        write("src/silver/Card/index.tsx", CARD.replace("silver", "gold"))
        assert not builder.check_staleness(index).stale

    def test_missing(self, ctx, project):
        assert WorkshopBuilder(ctx).check_staleness(None).reason == REASON_MISSING

    def test_verify(self, ctx, project, write):
        builder = WorkshopBuilder(ctx)
        index = builder.build()
        builder.verify(index)
        write("src/lib/extra.ts", "import 'polyfill';\n")
        with pytest.raises(StalenessMismatch):
            builder.verify(index)


# ── Persistence Tests ────────────────────────────────────────────────


class TestPersistence:
    """Store round trip and failure modes."""

    def test_save_and_load(self, ctx, project):
        index = WorkshopBuilder(ctx).build()
        save_index(ctx, index)
        assert load_index(ctx) == index

    def test_persisted_keys(self, ctx, project, store):
        save_index(ctx, WorkshopBuilder(ctx).build())
        data = store.read(INDEX_KEY)
        assert {"indexedAt", "manifestHash", "importsHash", "materials", "components"} <= set(data)
        assert data["components"]["ClaimButton"]["tier"] == "gold"

    def test_missing(self, ctx):
        with pytest.raises(IndexMissing):
            load_index(ctx)

    def test_undecodable(self, ctx, store):
        store.write_raw(INDEX_KEY, "{oops")
        with pytest.raises(IndexCorrupt):
            load_index(ctx)

    def test_wrong_shape(self, ctx, store):
        store.write(INDEX_KEY, {"indexedAt": "x"})
        with pytest.raises(IndexCorrupt):
            load_index(ctx)


# ── Query Tests ──────────────────────────────────────────────────────


class TestQuery:
    """Read-only lookups."""

    @pytest.fixture
    def query(self, ctx, project):
        return WorkshopQuery(WorkshopBuilder(ctx).build())

    def test_lookups(self, query):
        assert query.query_component("ClaimButton").zone == "critical"
        assert query.query_material("react").version == "18.2.0"
        assert query.query_physics("snappy").max_ms == 200
        assert query.query_zone("admin") is not None
        assert query.query_component("Nope") is None

    def test_finders(self, query):
        assert [c.name for c in query.find_by_tier(RegistryTier.GOLD)] == ["ClaimButton"]
        assert [c.name for c in query.find_by_zone("critical")] == ["ClaimButton"]
        assert [c.name for c in query.find_by_vocabulary("Deposit")] == ["ClaimButton"]
        assert query.find_by_tier(RegistryTier.DRAFT) == []

    def test_idempotent_and_fast(self, query):
        first = query.query_component("ClaimButton")
        started = time.perf_counter()
        for _ in range(100):
            assert query.query_component("ClaimButton") == first
        assert (time.perf_counter() - started) / 100 < 0.005

    def test_cold_load_from_disk_is_fast(self, ctx, project):
        ctx.store = JsonFileStore(ctx.state_dir)
        WorkshopSentinel(ctx).ensure_fresh()
        first = WorkshopQuery.load(ctx).query_component("ClaimButton")
        started = time.perf_counter()
        for _ in range(100):
            assert WorkshopQuery.load(ctx).query_component("ClaimButton") == first
        assert (time.perf_counter() - started) / 100 < 0.005

    def test_load_without_index_is_empty(self, ctx):
        query = WorkshopQuery.load(ctx)
        assert query.index.components == {}


# ── Sentinel Tests ───────────────────────────────────────────────────


class TestSentinel:
    """Startup freshness."""

    def test_missing_then_fresh(self, ctx, project):
        sentinel = WorkshopSentinel(ctx)
        first = sentinel.ensure_fresh()
        assert first.rebuilt
        assert first.reason == REASON_MISSING
        second = sentinel.ensure_fresh()
        assert not second.rebuilt
        assert second.reason == REASON_FRESH
        assert second.index == first.index

    def test_corrupted_is_rebuilt(self, ctx, project, store):
        store.write_raw(INDEX_KEY, "not json")
        result = WorkshopSentinel(ctx).ensure_fresh()
        assert result.rebuilt
        assert result.reason == REASON_CORRUPTED
        assert load_index(ctx) == result.index

    def test_undecodable_index_file_is_rebuilt(self, ctx, project):
        ctx.store = JsonFileStore(ctx.state_dir)
        ctx.state_dir.mkdir(parents=True, exist_ok=True)
        (ctx.state_dir / "workshop.json").write_bytes(b"\xff\xfe\x00garbage")
        result = WorkshopSentinel(ctx).ensure_fresh()
        assert result.rebuilt
        assert result.reason == REASON_CORRUPTED
        assert load_index(ctx) == result.index

    def test_stale_is_rebuilt(self, ctx, project, write):
        sentinel = WorkshopSentinel(ctx)
        sentinel.ensure_fresh()
        write("package.json", MANIFEST + "\n")
        result = sentinel.ensure_fresh()
        assert result.rebuilt
        assert result.reason == REASON_MANIFEST_CHANGED

    def test_lock_released_after_rebuild(self, ctx, project):
        WorkshopSentinel(ctx).ensure_fresh()
        assert not (ctx.state_dir / "rebuild.lock").exists()

    def test_lock_timeout_serves_existing(self, ctx, project, write):
        sentinel = WorkshopSentinel(ctx)
        existing = sentinel.ensure_fresh().index
        write("package.json", MANIFEST + "\n")
        write(".sigil/rebuild.lock", json.dumps({
            "owner": "other", "acquired_at": time.time(), "expires_at": time.time() + 3600,
        }))
        ctx.lock_timeout = 0
        result = sentinel.ensure_fresh()
        assert result.lock_timed_out
        assert not result.rebuilt
        assert result.index == existing

    def test_lock_timeout_without_index_is_empty(self, ctx, project, write):
        write(".sigil/rebuild.lock", json.dumps({
            "owner": "other", "acquired_at": time.time(), "expires_at": time.time() + 3600,
        }))
        ctx.lock_timeout = 0
        result = WorkshopSentinel(ctx).ensure_fresh()
        assert result.lock_timed_out
        assert result.index == WorkshopIndex.empty()

    def test_rebuild(self, ctx, project):
        index = WorkshopSentinel(ctx).rebuild()
        assert load_index(ctx) == index
