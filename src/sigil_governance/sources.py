# -*- encoding: utf-8 -*-
"""
Source scanning - module import/export parsing for JS/TS projects.

The governed project is a JavaScript or TypeScript codebase. This module reads
its files through a SourceTree and extracts dependency edges from them with
regular expressions. No JS parser is involved, so exotic syntax (imports built
from template strings, re-exports split across macros) is not seen.

Recognised forms:
    import X from 'a'             static
    import type { X } from 'a'    static (type-only)
    import 'a'                    side-effect
    export { X } from 'a'         re-export
    export * from 'a'             re-export
    require('a')                  require
    import('a')                   dynamic
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional


logger = logging.getLogger(__name__)


SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")
SKIP_DIRS = frozenset({"node_modules", ".git", ".sigil", "dist", "build", ".next", "coverage"})


# ── Source Trees ─────────────────────────────────────────────────────


class SourceTree:
    """Read-only view of project files addressed by POSIX paths relative to the root."""

    def read(self, path: str) -> Optional[str]:
        raise NotImplementedError

    def exists(self, path: str) -> bool:
        raise NotImplementedError

    def files(self) -> list[str]:
        """All source files, sorted."""
        raise NotImplementedError


class DirectorySourceTree(SourceTree):
    """SourceTree over a directory on disk."""

    def __init__(
        self,
        root: Path,
        extensions: tuple[str, ...] = SOURCE_EXTENSIONS,
        skip_dirs: frozenset[str] = SKIP_DIRS,
    ):
        self._root = Path(root)
        self._extensions = tuple(extensions)
        self._skip = skip_dirs

    @property
    def root(self) -> Path:
        return self._root

    def read(self, path: str) -> Optional[str]:
        target = self._root / path
        if not target.is_file():
            return None
        try:
            return target.read_text("utf-8")
        except UnicodeDecodeError:
            logger.warning("Skipping non-UTF-8 source file %s", target)
            return None

    def exists(self, path: str) -> bool:
        return (self._root / path).is_file()

    def _walk(self, directory: Path) -> Iterator[Path]:
        for entry in sorted(directory.iterdir()):
            if entry.is_dir():
                if entry.name not in self._skip:
                    yield from self._walk(entry)
            elif entry.suffix in self._extensions:
                yield entry

    def files(self, under: Optional[str] = None) -> list[str]:
        start = self._root / under if under else self._root
        if not start.is_dir():
            return []
        return [p.relative_to(self._root).as_posix() for p in self._walk(start)]


class InMemorySourceTree(SourceTree):
    """SourceTree over a {path: text} mapping."""

    def __init__(self, files: Optional[dict[str, str]] = None):
        self._files = dict(files or {})

    def add(self, path: str, text: str) -> None:
        self._files[path] = text

    def read(self, path: str) -> Optional[str]:
        return self._files.get(path)

    def exists(self, path: str) -> bool:
        return path in self._files

    def files(self, under: Optional[str] = None) -> list[str]:
        prefix = under.rstrip("/") + "/" if under else ""
        return sorted(p for p in self._files if p.startswith(prefix))


# ── Parsing ──────────────────────────────────────────────────────────

_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.S)
_LINE_COMMENT_RE = re.compile(r"^[ \t]*//.*$", re.M)

_STATIC_IMPORT_RE = re.compile(
    r"""^[ \t]*import\s+(type\s+)?([\w*{}\s,$]+?)\s+from\s*['"]([^'"\n]+)['"]""",
    re.M,
)
_SIDE_EFFECT_IMPORT_RE = re.compile(r"""^[ \t]*import\s*['"]([^'"\n]+)['"]""", re.M)
_EXPORT_FROM_RE = re.compile(
    r"""^[ \t]*export\s+(type\s+)?(\*(?:\s+as\s+[\w$]+)?|\{[^}]*\})\s*from\s*['"]([^'"\n]+)['"]""",
    re.M,
)
_REQUIRE_RE = re.compile(r"""\brequire\(\s*['"]([^'"\n]+)['"]\s*\)""")
_DYNAMIC_IMPORT_RE = re.compile(r"""\bimport\(\s*['"]([^'"\n]+)['"]\s*\)""")


@dataclass(frozen=True)
class ImportRef:
    """
    One dependency edge found in a file.

    Args:
        specifier: Module specifier as written ('./x', '@/draft', 'react')
        kind: static, side-effect, re-export, require or dynamic
        statement: Whitespace-normalised statement text
        line: 1-based line number
        type_only: True for `import type` / `export type`
    """
    specifier: str
    kind: str
    statement: str
    line: int
    type_only: bool = False


@dataclass(frozen=True)
class ExportRef:
    """A re-export: `export {names} from 'specifier'` or `export * from ...`."""
    specifier: str
    names: tuple[str, ...]
    type_only: bool = False


def strip_comments(text: str) -> str:
    """Blank out comments, keeping line numbers stable."""
    text = _BLOCK_COMMENT_RE.sub(lambda m: "\n" * m.group(0).count("\n"), text)
    return _LINE_COMMENT_RE.sub("", text)


def _normalize(statement: str) -> str:
    return " ".join(statement.split())


def _line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def parse_imports(text: str) -> list[ImportRef]:
    """
    Extract every dependency edge from a source file.

    Returns refs ordered by position in the file.
    """
    code = strip_comments(text)
    refs: list[tuple[int, ImportRef]] = []

    for m in _STATIC_IMPORT_RE.finditer(code):
        refs.append((m.start(), ImportRef(
            m.group(3), "static", _normalize(m.group(0)),
            _line_of(code, m.start()), bool(m.group(1)),
        )))
    for m in _SIDE_EFFECT_IMPORT_RE.finditer(code):
        refs.append((m.start(), ImportRef(
            m.group(1), "side-effect", _normalize(m.group(0)), _line_of(code, m.start()),
        )))
    for m in _EXPORT_FROM_RE.finditer(code):
        refs.append((m.start(), ImportRef(
            m.group(3), "re-export", _normalize(m.group(0)),
            _line_of(code, m.start()), bool(m.group(1)),
        )))
    for m in _REQUIRE_RE.finditer(code):
        refs.append((m.start(), ImportRef(
            m.group(1), "require", _normalize(m.group(0)), _line_of(code, m.start()),
        )))
    for m in _DYNAMIC_IMPORT_RE.finditer(code):
        refs.append((m.start(), ImportRef(
            m.group(1), "dynamic", _normalize(m.group(0)), _line_of(code, m.start()),
        )))

    refs.sort(key=lambda item: item[0])
    return [ref for _, ref in refs]


def _export_names(clause: str) -> tuple[str, ...]:
    clause = clause.strip()
    if clause.startswith("*"):
        parts = clause.split()
        return (parts[-1],) if len(parts) == 3 else ("*",)
    names = []
    for item in clause.strip("{}").split(","):
        item = item.strip()
        if item.startswith("type "):
            item = item[5:].strip()
        if not item:
            continue
        names.append(item.split(" as ")[-1].strip())
    return tuple(names)


def parse_exports(text: str) -> list[ExportRef]:
    """Extract re-exports (the edges a registry index file exposes)."""
    code = strip_comments(text)
    return [
        ExportRef(m.group(3), _export_names(m.group(2)), bool(m.group(1)))
        for m in _EXPORT_FROM_RE.finditer(code)
    ]


def import_statements(text: str) -> list[str]:
    """Normalised import declaration texts (static and side-effect) in a file."""
    return [
        ref.statement for ref in parse_imports(text)
        if ref.kind in ("static", "side-effect")
    ]


def is_relative(specifier: str) -> bool:
    return specifier.startswith("./") or specifier.startswith("../") or specifier in (".", "..")


def is_alias(specifier: str) -> bool:
    """Project alias: '@/x' maps to 'src/x'."""
    return specifier == "@" or specifier.startswith("@/")


def is_package(specifier: str) -> bool:
    """Bare package specifier such as 'react' or '@radix-ui/react-dialog'."""
    return not (is_relative(specifier) or is_alias(specifier) or specifier.startswith("/"))


def package_name(specifier: str) -> str:
    """'@scope/pkg/sub' -> '@scope/pkg', 'lodash/fp' -> 'lodash'."""
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]
