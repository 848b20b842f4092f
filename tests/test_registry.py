# -*- encoding: utf-8 -*-
"""
Tests for the Registry Contagion Validator.

Tests transitive tier isolation over registry reachable sets and the
pre-write import hook.
"""

import pytest

from sigil_governance.errors import ContagionViolation
from sigil_governance.primitives import RegistryTier
from sigil_governance.registry import (
    CONTAGION_MESSAGES,
    ContagionValidator,
    contagion_rule,
    resolve_specifier,
    tier_of_path,
    tier_of_specifier,
)
from sigil_governance.sources import (
    InMemorySourceTree,
    import_statements,
    parse_exports,
    parse_imports,
)


def clean_tree(**extra):
    files = {
        "src/gold/index.ts": "export { Button } from './Button';\n",
        "src/gold/Button.tsx": "import { format } from '../lib/format';\nexport const Button = 1;\n",
        "src/lib/format.ts": "export const format = (x) => x;\n",
        "src/silver/index.ts": "export { Card } from './Card';\n",
        "src/silver/Card.tsx": "import clsx from 'clsx';\nexport const Card = 1;\n",
        "src/draft/index.ts": "export { Fx } from './Fx';\n",
        "src/draft/Fx.tsx": "import { Card } from '@/silver';\nexport const Fx = 1;\n",
    }
    files.update(extra)
    return InMemorySourceTree(files)


def contaminated_tree():
    """Gold reaches Draft three hops away."""
    return clean_tree(**{
        "src/lib/format.ts": "import { clean } from './helper';\nexport const format = clean;\n",
        "src/lib/helper.ts": "import { Fx } from '@/draft/Fx';\nexport const clean = Fx;\n",
    })


# ── Parsing Tests ────────────────────────────────────────────────────


class TestSourceParsing:
    """Import and export extraction."""

    def test_import_kinds(self):
        text = (
            "import React from 'react';\n"
            "import type { Props } from './types';\n"
            "import './styles.css';\n"
            "export * from './re';\n"
            "const x = require('cjs');\n"
            "const y = import('./lazy');\n"
        )
        refs = parse_imports(text)
        assert [(r.specifier, r.kind) for r in refs] == [
            ("react", "static"),
            ("./types", "static"),
            ("./styles.css", "side-effect"),
            ("./re", "re-export"),
            ("cjs", "require"),
            ("./lazy", "dynamic"),
        ]
        assert refs[1].type_only
        assert refs[4].line == 5

    def test_comments_are_ignored(self):
        text = "// import x from '@/draft/Fx';\n/* import y from 'z'; */\nimport a from 'b';\n"
        assert [r.specifier for r in parse_imports(text)] == ["b"]

    def test_multiline_import(self):
        text = "import {\n  a,\n  b,\n} from './ab';\n"
        assert parse_imports(text)[0].specifier == "./ab"
        assert import_statements(text) == ["import { a, b, } from './ab'"]

    def test_exports(self):
        text = (
            "export { A, B as C } from './x';\n"
            "export * from './y';\n"
            "export * as ns from './z';\n"
            "export type { T } from './t';\n"
        )
        exports = parse_exports(text)
        assert [e.names for e in exports] == [("A", "C"), ("*",), ("ns",), ("T",)]
        assert exports[3].type_only


class TestResolution:
    """Specifier and path tiers."""

    @pytest.fixture
    def tree(self):
        return InMemorySourceTree({
            "src/lib/a.ts": "",
            "src/ui/index.tsx": "",
            "src/gold/B.tsx": "",
        })

    def test_relative(self, tree):
        assert resolve_specifier(tree, "src/gold/B.tsx", "../lib/a") == "src/lib/a.ts"

    def test_alias_to_index(self, tree):
        assert resolve_specifier(tree, "src/gold/B.tsx", "@/ui") == "src/ui/index.tsx"

    def test_packages_and_escapes(self, tree):
        assert resolve_specifier(tree, "src/gold/B.tsx", "react") is None
        assert resolve_specifier(tree, "src/gold/B.tsx", "../../../x") is None
        assert resolve_specifier(tree, "src/gold/B.tsx", "./Missing") is None

    @pytest.mark.parametrize("specifier, expected", [
        ("@/draft/Fx", RegistryTier.DRAFT),
        ("../silver/Card", RegistryTier.SILVER),
        ("draft/Fx", RegistryTier.DRAFT),
        ("react", None),
        ("@radix-ui/react-dialog", None),
    ])
    def test_specifier_tier(self, specifier, expected):
        assert tier_of_specifier(specifier) == expected

    def test_path_tier_uses_directories(self):
        assert tier_of_path("src/gold/Button.tsx") == RegistryTier.GOLD
        assert tier_of_path("src/gold/draft/Wip.tsx") == RegistryTier.DRAFT
        assert tier_of_path("src/lib/gold.ts") is None

    def test_rule_names(self):
        assert contagion_rule(RegistryTier.GOLD, RegistryTier.DRAFT) == "gold-imports-draft"


# ── Scan Tests ───────────────────────────────────────────────────────


class TestScan:
    """Whole-repository checks."""

    def test_clean_tree(self):
        report = ContagionValidator(clean_tree()).scan()
        assert report.valid
        assert report.members[RegistryTier.GOLD] == {
            "src/gold/index.ts", "src/gold/Button.tsx", "src/lib/format.ts",
        }

    def test_transitive_draft_import(self):
        report = ContagionValidator(contaminated_tree()).scan()
        assert report.rules() == ["gold-imports-draft"]
        violation = report.violations[0]
        assert violation.paths == (
            "src/gold/index.ts",
            "src/gold/Button.tsx",
            "src/lib/format.ts",
            "src/lib/helper.ts",
            "src/draft/Fx.tsx",
        )
        assert violation.message.startswith(CONTAGION_MESSAGES[(RegistryTier.GOLD, RegistryTier.DRAFT)])
        assert "Chain: src/gold/index.ts -> " in violation.message
        assert violation.details["line"] == 1

    def test_gold_imports_silver(self):
        tree = clean_tree(**{"src/gold/Button.tsx": "import { Card } from '@/silver/Card';\n"})
        assert ContagionValidator(tree).scan().rules() == ["gold-imports-silver"]

    def test_silver_imports_draft(self):
        tree = clean_tree(**{"src/silver/Card.tsx": "import { Fx } from '../draft/Fx';\n"})
        report = ContagionValidator(tree).scan()
        assert report.rules() == ["silver-imports-draft"]
        assert report.violations[0].paths[-1] == "src/draft/Fx.tsx"

    def test_unresolved_draft_specifier(self):
        tree = clean_tree(**{"src/gold/Button.tsx": "import { X } from '@/draft/Missing';\n"})
        violation = ContagionValidator(tree).scan().violations[0]
        assert violation.rule == "gold-imports-draft"
        assert violation.paths[-1] == "@/draft/Missing"

    def test_registry_membership_defines_tier(self):
        tree = clean_tree(**{
            "src/draft/index.ts": "export { Wip } from '../lab/Wip';\n",
            "src/lab/Wip.tsx": "export const Wip = 1;\n",
            "src/gold/Button.tsx": "import { Wip } from '../lab/Wip';\n",
        })
        assert ContagionValidator(tree).scan().rules() == ["gold-imports-draft"]

    def test_draft_may_import_anything(self):
        tree = clean_tree(**{"src/draft/Fx.tsx": "import { B } from '@/gold';\nimport { C } from '@/silver';\n"})
        assert ContagionValidator(tree).scan().valid

    def test_allowed_patterns(self):
        validator = ContagionValidator(contaminated_tree(), allowed_patterns=[r"^@/draft/Fx$"])
        assert validator.scan().valid

    def test_direct_component_import(self):
        tree = clean_tree(**{
            "src/gold/Button.tsx": "import { Spinner } from '@/components/Spinner';\n",
            "src/components/Spinner.tsx": "export const Spinner = 1;\n",
        })
        assert ContagionValidator(tree).scan().rules() == ["gold-direct-component-import"]

    def test_direct_component_import_switch(self):
        tree = clean_tree(**{
            "src/gold/Button.tsx": "import { Spinner } from '@/components/Spinner';\n",
            "src/components/Spinner.tsx": "export const Spinner = 1;\n",
        })
        assert ContagionValidator(tree, allow_direct_component_imports=True).scan().valid

    def test_missing_registries(self):
        report = ContagionValidator(InMemorySourceTree({"src/a.ts": ""})).scan()
        assert report.valid
        assert report.members[RegistryTier.GOLD] == set()

    def test_scan_result(self):
        result = ContagionValidator(contaminated_tree()).scan_result()
        assert not result.valid
        assert result.to_dict()["violations"][0]["rule"] == "gold-imports-draft"

    def test_custom_registry_paths(self):
        tree = InMemorySourceTree({
            "lib/stable.ts": "import { x } from './wip/x';\n",
            "lib/wip/x.ts": "export const x = 1;\n",
            "lib/experimental.ts": "export { x } from './wip/x';\n",
        })
        validator = ContagionValidator(tree, registries={
            RegistryTier.GOLD: "lib/stable.ts",
            RegistryTier.DRAFT: "lib/experimental.ts",
        })
        assert validator.scan().rules() == ["gold-imports-draft"]


# ── Pre-write Hook Tests ─────────────────────────────────────────────


class TestValidate:
    """Decisions before a write lands."""

    def test_direct_draft_import_refused(self):
        decision = ContagionValidator(clean_tree()).validate("src/gold/Button.tsx", "@/draft/Fx")
        assert not decision.allowed
        assert decision.rule == "gold-imports-draft"
        assert decision.paths == ["src/gold/index.ts", "src/gold/Button.tsx", "src/draft/Fx.tsx"]
        assert "Draft is quarantined" in decision.reason

    def test_transitive_draft_import_refused(self):
        tree = clean_tree(**{
            "src/lib/clean.ts": "import { h } from './helper';\n",
            "src/lib/helper.ts": "import { Fx } from '@/draft/Fx';\n",
        })
        decision = ContagionValidator(tree).validate("src/gold/Button.tsx", "../lib/clean")
        assert not decision.allowed
        assert decision.paths[-3:] == ["src/lib/clean.ts", "src/lib/helper.ts", "src/draft/Fx.tsx"]

    def test_reached_helper_is_governed(self):
        decision = ContagionValidator(clean_tree()).validate("src/lib/format.ts", "@/draft/Fx")
        assert not decision.allowed
        assert decision.rule == "gold-imports-draft"

    def test_allowed_import(self):
        decision = ContagionValidator(clean_tree()).validate("src/silver/Card.tsx", "@/gold/Button")
        assert decision.allowed

    def test_unreached_file_is_unconstrained(self):
        decision = ContagionValidator(clean_tree()).validate("src/lib/other.ts", "@/draft/Fx")
        assert decision.allowed

    def test_draft_file_is_unconstrained(self):
        tree = contaminated_tree()
        assert ContagionValidator(tree).validate("src/draft/Fx.tsx", "@/draft/index").allowed

    def test_validate_content(self):
        validator = ContagionValidator(clean_tree())
        body = "import React from 'react';\nimport { Fx } from '@/draft/Fx';\n"
        assert not validator.validate_content("src/gold/New.tsx", body).allowed
        assert validator.validate_content("src/gold/New.tsx", "import React from 'react';\n").allowed

    def test_guard_write_raises(self):
        validator = ContagionValidator(clean_tree())
        with pytest.raises(ContagionViolation) as excinfo:
            validator.guard_write("src/silver/Card.tsx", "../draft/Fx")
        assert excinfo.value.rule == "silver-imports-draft"
        assert excinfo.value.paths[-1] == "src/draft/Fx.tsx"

    def test_guard_write_allows(self):
        assert ContagionValidator(clean_tree()).guard_write("src/gold/Button.tsx", "./index").allowed
