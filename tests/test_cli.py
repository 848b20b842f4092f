# -*- encoding: utf-8 -*-
"""
Tests for the command line.
"""

import json

import pytest

from sigil_governance.cli import main


def run(capsys, root, *argv):
    code = main(["--root", str(root), *argv])
    return code, json.loads(capsys.readouterr().out)


@pytest.fixture
def project(write, tmp_path):
    write("src/gold/index.ts", "export { Button } from './Button';\n")
    write("src/gold/Button.tsx", "/** @sigil-tier gold */\nexport const Button = 1;\n")
    write("src/draft/Fx.tsx", "// @sigil-pattern spring-entrance\nexport const Fx = 1;\n")
    return tmp_path


class TestCommands:
    """One invocation per command."""

    def test_validate_refuses(self, capsys, project):
        code, out = run(capsys, project, "validate", "src/gold/Button.tsx", "@/draft/Fx")
        assert code == 1
        assert out["rule"] == "gold-imports-draft"

    def test_validate_allows(self, capsys, project):
        code, out = run(capsys, project, "validate", "src/gold/Button.tsx", "react")
        assert code == 0
        assert out["allowed"]

    def test_scan(self, capsys, project):
        code, out = run(capsys, project, "scan")
        assert code == 0
        assert out["members"]["gold"] == ["src/gold/Button.tsx", "src/gold/index.ts"]

    def test_build_then_fresh(self, capsys, project):
        _, first = run(capsys, project, "build")
        _, second = run(capsys, project, "build")
        assert first["rebuilt"] and first["components"] == 1
        assert not second["rebuilt"]
        assert (project / ".sigil" / "workshop.json").is_file()

    def test_observe_and_reject(self, capsys, project):
        _, out = run(capsys, project, "observe")
        assert out["patterns"] == ["spring-entrance"]
        code, out = run(capsys, project, "reject", "spring-entrance", "--by", "lead")
        assert code == 0
        assert out["status"] == "rejected"

    def test_approve_unobserved(self, capsys, project):
        code, out = run(capsys, project, "approve", "ghost", "--by", "lead")
        assert code == 1
        assert not out["success"]

    def test_era(self, capsys, project):
        code, out = run(capsys, project, "era", "new", "v2", "--description", "Rebrand")
        assert code == 0
        assert (out["previous_era"], out["new_era"]) == ("v1", "v2")
        _, out = run(capsys, project, "era", "history")
        assert out["current"]["name"] == "v2"
        assert [h["era"] for h in out["history"]] == ["v1"]

    def test_zone(self, capsys, project):
        _, out = run(capsys, project, "zone", "app/checkout/Pay.tsx")
        assert out["name"] == "critical"

    def test_context(self, capsys, project):
        _, out = run(capsys, project, "context", "add a claim button")
        assert out["zone"] == "critical"

    def test_seed(self, capsys, project):
        code, _ = run(capsys, project, "seed", "select", "linear-like")
        assert code == 0
        code, out = run(capsys, project, "seed", "reset", "--seed", "blank")
        assert code == 1
        assert "force=True" in out["reason"]
        code, _ = run(capsys, project, "seed", "reset", "--seed", "blank", "--force")
        assert code == 0

    def test_config_option(self, capsys, project, write):
        config = write("conf/sigil.yaml", "zones:\n  vault:\n    paths: ['**/vault/**']\n")
        _, out = run(capsys, project, "--config", str(config), "zone", "src/vault/Safe.tsx")
        assert out["name"] == "vault"
