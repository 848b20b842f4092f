# -*- encoding: utf-8 -*-
"""
sigil-governance command line.

Every command prints a JSON document and exits 0 on success. `validate`
and `scan` exit 1 when a contagion violation is found, so they can serve as
a pre-write or pre-commit gate.

    sigil-governance validate src/gold/Button.tsx @/draft/Sparkle
    sigil-governance scan
    sigil-governance build
    sigil-governance observe
    sigil-governance approve card-hover-lift --by design-lead
    sigil-governance era new v2 --description "Post-rebrand"
    sigil-governance zone app/checkout/Pay.tsx
    sigil-governance context "add a claim button" --component ClaimButton
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from sigil_governance.context import GovernanceContext
from sigil_governance.eras import EraManager
from sigil_governance.orchestration import resolve_context
from sigil_governance.registry import ContagionValidator
from sigil_governance.seeds import SeedManager
from sigil_governance.sources import DirectorySourceTree
from sigil_governance.survival import SurvivalObserver
from sigil_governance.workshop import WorkshopSentinel
from sigil_governance.zones import ZoneResolver


def _context(args: argparse.Namespace) -> GovernanceContext:
    config = Path(args.config) if args.config else None
    return GovernanceContext.for_project(Path(args.root), config_path=config)


def cmd_validate(args: argparse.Namespace) -> tuple[int, dict]:
    decision = ContagionValidator.from_context(_context(args)).validate(args.file, args.specifier)
    return (0 if decision.allowed else 1), decision.to_dict()


def cmd_scan(args: argparse.Namespace) -> tuple[int, dict]:
    report = ContagionValidator.from_context(_context(args)).scan()
    return (0 if report.valid else 1), report.to_dict()


def cmd_build(args: argparse.Namespace) -> tuple[int, dict]:
    sentinel = WorkshopSentinel(_context(args))
    if args.force:
        index = sentinel.rebuild()
        return 0, {"rebuilt": True, "reason": "forced", "indexed_at": index.indexed_at}
    result = sentinel.ensure_fresh()
    return 0, {
        "rebuilt": result.rebuilt,
        "reason": result.reason,
        "lock_timed_out": result.lock_timed_out,
        "indexed_at": result.index.indexed_at,
        "components": len(result.index.components),
        "materials": len(result.index.materials),
    }


def cmd_observe(args: argparse.Namespace) -> tuple[int, dict]:
    ctx = _context(args)
    tree = DirectorySourceTree(ctx.project_root, extensions=ctx.config.source_extensions)
    sources = [(path, tree.read(path) or "") for d in ctx.config.source_dirs for path in tree.files(d)]
    result = SurvivalObserver(ctx).observe_pass(sources)
    return 0, {
        "patterns": result.updated,
        "promotions": [
            {"pattern": p.pattern, "from": p.previous.value, "to": p.status.value}
            for p in result.promotions
        ],
    }


def cmd_approve(args: argparse.Namespace) -> tuple[int, dict]:
    result = SurvivalObserver(_context(args)).approve_promotion(args.pattern, args.by, args.reason)
    return (0 if result.success else 1), {
        "success": result.success,
        "status": result.status.value if result.status else None,
        "reason": result.reason,
    }


def cmd_reject(args: argparse.Namespace) -> tuple[int, dict]:
    result = SurvivalObserver(_context(args)).reject_promotion(args.pattern, args.by, args.reason)
    return (0 if result.success else 1), {
        "success": result.success,
        "status": result.status.value if result.status else None,
        "reason": result.reason,
    }


def cmd_era_new(args: argparse.Namespace) -> tuple[int, dict]:
    result = EraManager(_context(args)).create_new_era(args.name, args.description)
    return (0 if result.success else 1), {
        "success": result.success,
        "previous_era": result.previous_era,
        "new_era": result.new_era,
        "reason": result.reason,
    }


def cmd_era_history(args: argparse.Namespace) -> tuple[int, dict]:
    eras = EraManager(_context(args))
    current = eras.current_era()
    return 0, {
        "current": {"name": current.name, "started_at": current.started_at},
        "history": [
            {
                "era": s.era,
                "started_at": s.started_at,
                "archived_at": s.archived_at,
                "sequence": s.sequence,
                "patterns": len(s.patterns),
            }
            for s in eras.get_era_history()
        ],
    }


def cmd_zone(args: argparse.Namespace) -> tuple[int, dict]:
    zone = ZoneResolver(_context(args).config).resolve_zone(args.path)
    return 0, zone.to_dict()


def cmd_context(args: argparse.Namespace) -> tuple[int, dict]:
    return 0, resolve_context(args.prompt, args.component, _context(args)).to_dict()


def cmd_seed_select(args: argparse.Namespace) -> tuple[int, dict]:
    result = SeedManager(_context(args)).select_seed(args.seed)
    return (0 if result.success else 1), {"success": result.success, "reason": result.reason}


def cmd_seed_reset(args: argparse.Namespace) -> tuple[int, dict]:
    result = SeedManager(_context(args)).reset_seed(args.seed, force=args.force)
    return (0 if result.success else 1), {"success": result.success, "reason": result.reason}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sigil-governance", description="Design-pattern governance")
    parser.add_argument("--root", default=".", help="Project root (default: current directory)")
    parser.add_argument("--config", help="Configuration file (default: discovered under --root)")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate", help="Pre-write contagion check for one import")
    validate.add_argument("file")
    validate.add_argument("specifier")
    validate.set_defaults(func=cmd_validate)

    scan = sub.add_parser("scan", help="Contagion scan of every registry")
    scan.set_defaults(func=cmd_scan)

    build = sub.add_parser("build", help="Ensure the workshop index is fresh")
    build.add_argument("--force", action="store_true")
    build.set_defaults(func=cmd_build)

    observe = sub.add_parser("observe", help="Run one survival observation pass")
    observe.set_defaults(func=cmd_observe)

    for name, func in (("approve", cmd_approve), ("reject", cmd_reject)):
        curation = sub.add_parser(name, help=f"{name.capitalize()} a pattern promotion")
        curation.add_argument("pattern")
        curation.add_argument("--by", required=True)
        curation.add_argument("--reason", default="")
        curation.set_defaults(func=func)

    era = sub.add_parser("era", help="Era management")
    era_sub = era.add_subparsers(dest="era_command", required=True)
    era_new = era_sub.add_parser("new")
    era_new.add_argument("name")
    era_new.add_argument("--description", default="")
    era_new.set_defaults(func=cmd_era_new)
    era_history = era_sub.add_parser("history")
    era_history.set_defaults(func=cmd_era_history)

    zone = sub.add_parser("zone", help="Resolve a path to its zone")
    zone.add_argument("path")
    zone.set_defaults(func=cmd_zone)

    context = sub.add_parser("context", help="Resolve a prompt to zone and physics")
    context.add_argument("prompt")
    context.add_argument("--component")
    context.set_defaults(func=cmd_context)

    seed = sub.add_parser("seed", help="Virtual Sanctuary seeds")
    seed_sub = seed.add_subparsers(dest="seed_command", required=True)
    seed_select = seed_sub.add_parser("select")
    seed_select.add_argument("seed")
    seed_select.set_defaults(func=cmd_seed_select)
    seed_reset = seed_sub.add_parser("reset")
    seed_reset.add_argument("--seed")
    seed_reset.add_argument("--force", action="store_true")
    seed_reset.set_defaults(func=cmd_seed_reset)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    code, output = args.func(args)
    print(json.dumps(output, indent=2, sort_keys=True))
    return code


if __name__ == "__main__":
    sys.exit(main())
