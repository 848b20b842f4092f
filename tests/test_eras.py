# -*- encoding: utf-8 -*-
"""
Tests for the Era Manager.
"""

import pytest

from sigil_governance.eras import (
    ARCHIVE_PREFIX,
    EraManager,
    EraSnapshot,
    is_valid_era_name,
)
from sigil_governance.primitives import PatternStatus
from sigil_governance.store import JsonFileStore
from sigil_governance.survival import SurvivalObserver


SPRING = "// @sigil-pattern spring-entrance\n"


@pytest.fixture
def eras(ctx):
    return EraManager(ctx)


@pytest.fixture
def observer(ctx):
    return SurvivalObserver(ctx)


# ── Name Tests ───────────────────────────────────────────────────────


class TestEraNames:
    """Name rules."""

    @pytest.mark.parametrize("name", ["v2", "2026-q1", "Post_Rebrand", "a" * 50])
    def test_valid(self, name):
        assert is_valid_era_name(name)

    @pytest.mark.parametrize("name", ["", "-v2", "_v2", "v 2", "v2.1", "a" * 51, "v2/x"])
    def test_invalid(self, name):
        assert not is_valid_era_name(name)


# ── Transition Tests ─────────────────────────────────────────────────


class TestTransitions:
    """Archiving and starting eras."""

    def test_default_era(self, eras):
        era = eras.current_era()
        assert era.name == "v1"
        assert era.started_at == "2026-01-08T12:00:00+00:00"

    def test_cannot_reenter_current(self, eras):
        allowed, reason = eras.can_transition_to("v1")
        assert not allowed
        assert reason == "Already in era 'v1'"

    def test_invalid_name_reason(self, eras):
        result = eras.create_new_era("-bad")
        assert not result.success
        assert result.reason.startswith("Invalid era name '-bad'")

    def test_transition_archives_and_resets(self, eras, observer, clock):
        observer.observe(SPRING)
        clock.advance(days=30)
        result = eras.create_new_era("v2", "Post-rebrand")
        assert result.success
        assert (result.previous_era, result.new_era) == ("v1", "v2")
        assert result.snapshot.key == "eras/v1.1"
        assert "spring-entrance" in result.snapshot.patterns

        era = eras.current_era()
        assert (era.name, era.description) == ("v2", "Post-rebrand")
        assert era.started_at == "2026-02-07T12:00:00+00:00"
        assert observer.get_pattern("spring-entrance") is None

    def test_old_evidence_stops_counting(self, eras, observer):
        for _ in range(4):
            observer.observe(SPRING)
        eras.create_new_era("v2")
        observer.observe(SPRING)
        entry = observer.get_pattern("spring-entrance")
        assert entry.occurrences == 1
        assert entry.first_seen_era == "v2"
        assert entry.status == PatternStatus.EXPERIMENTAL

    def test_archived_name_cannot_be_reused(self, eras):
        eras.create_new_era("v2")
        eras.create_new_era("v3")
        result = eras.create_new_era("v1")
        assert not result.success
        assert result.reason == "Era 'v1' already exists in history"

    def test_pending_dropped_on_transition(self, eras, observer):
        for _ in range(5):
            observer.observe(SPRING)
        assert observer.get_pending_promotions()
        eras.create_new_era("v2")
        assert observer.get_pending_promotions() == []

    def test_rejection_carries_over(self, eras, observer):
        observer.observe(SPRING)
        observer.reject_promotion("spring-entrance", actor="lead")
        eras.create_new_era("v2")
        for _ in range(6):
            observer.observe(SPRING)
        assert observer.get_pattern_status("spring-entrance") == PatternStatus.REJECTED


# ── Archive Tests ────────────────────────────────────────────────────


class TestArchives:
    """Immutable snapshots."""

    def test_repeated_archive_gets_next_sequence(self, eras, observer):
        observer.observe(SPRING)
        first = eras.archive_current_era()
        observer.observe(SPRING)
        second = eras.archive_current_era()
        assert (first.sequence, second.sequence) == (1, 2)
        assert first.patterns["spring-entrance"].occurrences == 1
        assert eras.load_era_archive("v1").patterns["spring-entrance"].occurrences == 2

    def test_sequence_follows_existing_archives(self, eras, store):
        store.write_new(ARCHIVE_PREFIX + "v1.1", {"era": "v1", "sequence": 1})
        store.write_new(ARCHIVE_PREFIX + "v1.2", {"era": "v1", "sequence": 2})
        assert eras.archive_current_era().sequence == 3

    def test_snapshot_is_read_only(self, eras, observer):
        observer.observe(SPRING)
        snapshot = eras.archive_current_era()
        with pytest.raises(TypeError):
            snapshot.patterns["new"] = None
        with pytest.raises(AttributeError):
            snapshot.era = "v9"

    def test_archive_survives_later_observations(self, eras, observer):
        observer.observe(SPRING)
        eras.archive_current_era()
        for _ in range(3):
            observer.observe(SPRING)
        assert eras.load_era_archive("v1").patterns["spring-entrance"].occurrences == 1

    def test_unknown_archive(self, eras):
        assert eras.load_era_archive("v9") is None

    def test_history_is_chronological(self, eras, observer, clock):
        observer.observe(SPRING)
        clock.advance(days=1)
        eras.create_new_era("v2")
        clock.advance(days=1)
        eras.create_new_era("v3")
        history = eras.get_era_history()
        assert [s.era for s in history] == ["v1", "v2"]
        assert all(isinstance(s, EraSnapshot) for s in history)

    def test_on_disk_archives(self, tmp_path, ctx, observer):
        ctx.store = JsonFileStore(tmp_path / ".sigil")
        observer.observe(SPRING)
        EraManager(ctx).create_new_era("v2")
        assert (tmp_path / ".sigil" / "eras" / "v1.1.json").is_file()
        assert EraManager(ctx).archived_era_names() == {"v1"}

    def test_history_skips_corrupt_archive(self, eras, observer, store, caplog):
        observer.observe(SPRING)
        eras.archive_current_era()
        store.write_raw(ARCHIVE_PREFIX + "v0.1", "{half")
        with caplog.at_level("WARNING", logger="sigil_governance.eras"):
            history = eras.get_era_history()
        assert [s.era for s in history] == ["v1"]
        assert "eras/v0.1" in caplog.text
