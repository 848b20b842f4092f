# -*- encoding: utf-8 -*-
"""
Sigil Governance Store - Injectable persistence for governance state.

Every piece of cross-invocation state (workshop index, survival ledger,
curation ledger, era archives, seed eviction) is a JSON document addressed
by a slash-separated key such as 'workshop' or 'eras/v1.0'.

Backends:
    - JsonFileStore: one file per key under a state directory. Writes go to
      a temp file unique to the write that then replaces the target, so
      readers never observe a partial document. Concurrent writers: last
      writer wins.
      write_new publishes with a hard link, which fails if the key exists.
    - InMemoryStore: dict-backed, for tests and dry runs.

Usage:
    store = JsonFileStore(Path(".sigil"))
    store.write("survival", ledger.to_dict())
    data = store.read("survival")          # None if absent
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional

from sigil_governance.errors import ArchiveExists, CorruptRecord


logger = logging.getLogger(__name__)


class Store:
    """Interface for governance state persistence."""

    backend_name = "abstract"

    def read(self, key: str) -> Optional[dict[str, Any]]:
        """Return the document stored under key, or None. Raises CorruptRecord."""
        raise NotImplementedError

    def write(self, key: str, data: dict[str, Any]) -> None:
        """Replace the whole document stored under key."""
        raise NotImplementedError

    def write_new(self, key: str, data: dict[str, Any]) -> None:
        """Create a document; raises ArchiveExists if key is already taken."""
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        """Remove a document. Returns True if something was removed."""
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def keys(self, prefix: str = "") -> list[str]:
        """All keys starting with prefix, sorted."""
        raise NotImplementedError


class InMemoryStore(Store):
    backend_name = "memory"

    def __init__(self, initial: Optional[dict[str, dict[str, Any]]] = None) -> None:
        self._docs: dict[str, str] = {}
        self._lock = threading.Lock()
        for key, data in (initial or {}).items():
            self.write(key, data)

    def read(self, key: str) -> Optional[dict[str, Any]]:
        with self._lock:
            raw = self._docs.get(key)
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CorruptRecord(key, str(exc)) from exc
        if not isinstance(payload, dict):
            raise CorruptRecord(key, "document is not an object")
        return payload

    def write(self, key: str, data: dict[str, Any]) -> None:
        encoded = json.dumps(data, ensure_ascii=False, sort_keys=True)
        with self._lock:
            self._docs[key] = encoded

    def write_raw(self, key: str, text: str) -> None:
        """Store undecoded text under key. Lets tests simulate corruption."""
        with self._lock:
            self._docs[key] = text

    def write_new(self, key: str, data: dict[str, Any]) -> None:
        encoded = json.dumps(data, ensure_ascii=False, sort_keys=True)
        with self._lock:
            if key in self._docs:
                raise ArchiveExists(key)
            self._docs[key] = encoded

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._docs.pop(key, None) is not None

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._docs

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(k for k in self._docs if k.startswith(prefix))


class JsonFileStore(Store):
    backend_name = "json"

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        """Filesystem path backing a key."""
        parts = [p for p in key.split("/") if p]
        if not parts or any(p in (".", "..") for p in parts):
            raise ValueError(f"Invalid store key: {key!r}")
        return self._root.joinpath(*parts[:-1], parts[-1] + ".json")

    def read(self, key: str) -> Optional[dict[str, Any]]:
        path = self.path_for(key)
        try:
            text = path.read_text("utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise CorruptRecord(key, str(exc)) from exc
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CorruptRecord(key, str(exc)) from exc
        if not isinstance(payload, dict):
            raise CorruptRecord(key, "document is not an object")
        return payload

    def _write_temp(self, path: Path, data: dict[str, Any]) -> Path:
        """Write data to a temp file unique to this call, beside path."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=path.name + ".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True))
        except BaseException:
            os.unlink(tmp_name)
            raise
        return Path(tmp_name)

    def write(self, key: str, data: dict[str, Any]) -> None:
        path = self.path_for(key)
        tmp_path = self._write_temp(path, data)
        try:
            os.replace(tmp_path, path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.debug("Wrote %s", path)

    def write_new(self, key: str, data: dict[str, Any]) -> None:
        path = self.path_for(key)
        tmp_path = self._write_temp(path, data)
        try:
            # link publishes the complete file and fails if the key exists
            os.link(tmp_path, path)
        except FileExistsError:
            raise ArchiveExists(key) from None
        finally:
            tmp_path.unlink(missing_ok=True)
        logger.debug("Created %s", path)

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def keys(self, prefix: str = "") -> list[str]:
        if not self._root.is_dir():
            return []
        found = []
        for path in self._root.rglob("*.json"):
            key = path.relative_to(self._root).with_suffix("").as_posix()
            if key.startswith(prefix):
                found.append(key)
        return sorted(found)
