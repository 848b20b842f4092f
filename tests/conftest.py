# -*- encoding: utf-8 -*-
"""Shared fixtures: a controllable clock and an in-memory governance context."""

from datetime import datetime, timedelta, timezone

import pytest

from sigil_governance.context import GovernanceContext
from sigil_governance.store import InMemoryStore


FIXED_NOW = datetime(2026, 1, 8, 12, 0, tzinfo=timezone.utc)


class Clock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = FIXED_NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def ctx(tmp_path, store, clock):
    return GovernanceContext(project_root=tmp_path, store=store, clock=clock)


@pytest.fixture
def write(tmp_path):
    """Write a file under the project root, creating directories."""
    def _write(rel: str, text: str):
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path
    return _write
