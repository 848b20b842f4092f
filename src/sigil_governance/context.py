# -*- encoding: utf-8 -*-
"""
Governance Context - the explicit dependencies every component receives.

Components never reach for process-wide singletons or the working
directory. They are handed a GovernanceContext carrying the project root,
configuration, state store, clock and lock settings.

Usage:
    ctx = GovernanceContext.for_project(Path("/repo"))
    observer = SurvivalObserver(ctx)

    # Tests
    ctx = GovernanceContext(project_root=tmp_path, store=InMemoryStore(),
                            clock=lambda: FIXED_NOW)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from sigil_governance.config import SigilConfig, default_config, find_config, load_config
from sigil_governance.lock import (
    DEFAULT_ACQUIRE_TIMEOUT,
    DEFAULT_LEASE_SECONDS,
    RebuildLock,
)
from sigil_governance.store import JsonFileStore, Store


STATE_DIR = ".sigil"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GovernanceContext:
    """
    Dependencies shared by the governance components.

    Args:
        project_root: Root of the governed project
        store: Persistence backend for governance state
        config: Loaded configuration
        clock: Returns the current time as an aware datetime
        lock_lease_seconds: Rebuild lease length
        lock_timeout: How long to wait for the rebuild lease
    """
    project_root: Path
    store: Store
    config: SigilConfig = field(default_factory=default_config)
    clock: Callable[[], datetime] = utc_now
    lock_lease_seconds: float = DEFAULT_LEASE_SECONDS
    lock_timeout: float = DEFAULT_ACQUIRE_TIMEOUT

    @classmethod
    def for_project(
        cls,
        project_root: Path,
        config_path: Optional[Path] = None,
        store: Optional[Store] = None,
        **kwargs,
    ) -> "GovernanceContext":
        """
        Wire a context for a project directory.

        The configuration is looked up from project_root without climbing
        above it unless config_path is given explicitly.
        """
        root = Path(project_root).resolve()
        if config_path is None:
            config_path = find_config(root, root_boundary=root)
        return cls(
            project_root=root,
            store=store if store is not None else JsonFileStore(root / STATE_DIR),
            config=load_config(config_path),
            **kwargs,
        )

    @property
    def state_dir(self) -> Path:
        return self.project_root / STATE_DIR

    def now(self) -> datetime:
        return self.clock()

    def now_iso(self) -> str:
        return self.clock().isoformat()

    def rebuild_lock(self) -> RebuildLock:
        return RebuildLock(
            self.state_dir / "rebuild.lock",
            lease_seconds=self.lock_lease_seconds,
        )
