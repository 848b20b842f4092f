# -*- encoding: utf-8 -*-
"""
Rebuild lease lock.

Only one process rebuilds the workshop index at a time. The lock is a file
holding {owner, acquired_at, expires_at}, written to a private temp file and
published with link(), so the lock file is never seen half-written. A lease
whose expiry has passed belongs to a crashed holder and is reclaimed.

Usage:
    lock = RebuildLock(Path(".sigil/rebuild.lock"))
    with lock.hold(timeout=2.0):
        rebuild()
"""

import json
import logging
import os
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

from sigil_governance.errors import LockTimeout


logger = logging.getLogger(__name__)


DEFAULT_LEASE_SECONDS = 30.0
DEFAULT_ACQUIRE_TIMEOUT = 2.0
POLL_INTERVAL = 0.05


class RebuildLock:
    """
    Lease-style exclusive lock backed by a lock file.

    Args:
        path: Lock file location
        lease_seconds: How long a holder owns the lock before it may be reclaimed
        clock: Wall-clock source in seconds (injectable for tests)
        sleep: Sleep function used while polling (injectable for tests)
    """

    def __init__(
        self,
        path: Path,
        lease_seconds: float = DEFAULT_LEASE_SECONDS,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._path = Path(path)
        self._lease = lease_seconds
        self._clock = clock
        self._sleep = sleep
        self._owner = f"{os.getpid()}-{uuid.uuid4().hex[:8]}"
        self._held = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def held(self) -> bool:
        return self._held

    def _snapshot(self) -> Optional[tuple[bytes, float]]:
        """Raw lease bytes and modification time, or None if there is no lease."""
        try:
            raw = self._path.read_bytes()
            mtime = self._path.stat().st_mtime
        except FileNotFoundError:
            return None
        return raw, mtime

    @staticmethod
    def _parse(raw: bytes) -> Optional[dict]:
        try:
            lease = json.loads(raw.decode("utf-8"))
        except ValueError:
            return None
        return lease if isinstance(lease, dict) else None

    def _expires_at(self, raw: bytes, mtime: float) -> float:
        lease = self._parse(raw)
        expires_at = lease.get("expires_at") if lease else None
        if isinstance(expires_at, (int, float)):
            return expires_at
        # Unreadable lease: live until a full lease period after it was written
        return mtime + self._lease

    def _try_create(self) -> bool:
        """Publish a complete lease with link(), which fails if one exists."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        now = self._clock()
        tmp_path = self._path.with_name(f"{self._path.name}.{self._owner}.tmp")
        fd = os.open(tmp_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(
                    {
                        "owner": self._owner,
                        "acquired_at": now,
                        "expires_at": now + self._lease,
                    },
                    fh,
                )
            os.link(tmp_path, self._path)
        except FileExistsError:
            return False
        finally:
            tmp_path.unlink(missing_ok=True)
        return True

    def _reclaim_if_expired(self) -> bool:
        """
        Remove an expired lease. Returns True if the lock file is now absent.

        The lease is moved aside before it is deleted. If what was moved is not
        the lease judged expired, a new holder published in between and its
        lease is put back.
        """
        snapshot = self._snapshot()
        if snapshot is None:
            return True
        raw, mtime = snapshot
        if self._expires_at(raw, mtime) > self._clock():
            return False

        tombstone = self._path.with_name(f"{self._path.name}.{self._owner}.stale")
        try:
            os.replace(self._path, tombstone)
        except FileNotFoundError:
            return True
        try:
            if tombstone.read_bytes() != raw:
                try:
                    os.link(tombstone, self._path)
                except FileExistsError:
                    pass
                return False
        finally:
            tombstone.unlink(missing_ok=True)

        lease = self._parse(raw) or {}
        logger.warning(
            "Reclaiming expired rebuild lock %s (owner=%s)",
            self._path, lease.get("owner", "unknown"),
        )
        return True

    def try_acquire(self) -> bool:
        """Single non-blocking attempt, reclaiming an expired lease."""
        if self._held:
            return True
        if self._try_create():
            self._held = True
            return True
        if self._reclaim_if_expired() and self._try_create():
            self._held = True
            return True
        return False

    def acquire(self, timeout: float = DEFAULT_ACQUIRE_TIMEOUT) -> None:
        """
        Acquire the lease, polling until timeout.

        Raises:
            LockTimeout: if another live holder keeps the lease past timeout
        """
        deadline = self._clock() + timeout
        while True:
            if self.try_acquire():
                logger.debug("Acquired rebuild lock %s", self._path)
                return
            if self._clock() >= deadline:
                raise LockTimeout(
                    f"Could not acquire rebuild lock {self._path} within {timeout}s"
                )
            self._sleep(POLL_INTERVAL)

    def release(self) -> None:
        """Release the lease if this instance still owns it."""
        if not self._held:
            return
        self._held = False
        snapshot = self._snapshot()
        if snapshot is None:
            return
        lease = self._parse(snapshot[0])
        if lease is None or lease.get("owner") != self._owner:
            logger.warning("Rebuild lock %s was reclaimed by another holder", self._path)
            return
        self._path.unlink(missing_ok=True)

    @contextmanager
    def hold(self, timeout: float = DEFAULT_ACQUIRE_TIMEOUT) -> Iterator["RebuildLock"]:
        self.acquire(timeout)
        try:
            yield self
        finally:
            self.release()
