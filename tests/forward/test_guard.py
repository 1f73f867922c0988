"""Tests for expiring flag stores, the re-entrancy guard and the outcome recorder."""

from __future__ import annotations

import os
import threading

import pytest

from forwarder.forward.flags import FileFlagStore, MemoryFlagStore
from forwarder.forward.guard import (
    ReentrancyGuard,
    forwarded_key,
    lock_key,
    processing_key,
)
from forwarder.forward.models import ForwardOutcome
from forwarder.forward.outcome import OutcomeRecorder


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture(params=["memory", "file"])
def clock_and_store(request, tmp_path):
    clock = FakeClock()
    if request.param == "memory":
        return clock, MemoryFlagStore(clock=clock)
    return clock, FileFlagStore(tmp_path / "flags", clock=clock)


# ── Flag stores ──────────────────────────────────────────────────────────


class TestFlagStore:
    def test_add_is_set_if_absent(self, clock_and_store):
        _, store = clock_and_store
        assert store.add("k", 30) is True
        assert store.add("k", 30) is False
        assert store.exists("k") is True

    def test_flags_expire(self, clock_and_store):
        clock, store = clock_and_store
        store.add("k", 30)
        clock.now += 31
        assert store.exists("k") is False
        assert store.add("k", 30) is True

    def test_set_overwrites_expiry(self, clock_and_store):
        clock, store = clock_and_store
        store.set("k", 10)
        store.set("k", 100)
        clock.now += 50
        assert store.exists("k") is True

    def test_delete_missing_is_noop(self, clock_and_store):
        _, store = clock_and_store
        store.delete("never-set")
        assert store.exists("never-set") is False

    def test_purge(self, clock_and_store):
        _, store = clock_and_store
        store.set("a", 10)
        store.set("b", 10)
        assert store.purge() == 2
        assert store.exists("a") is False


class TestFileFlagStore:
    def test_shared_between_instances(self, tmp_path):
        first = FileFlagStore(tmp_path)
        second = FileFlagStore(tmp_path)
        assert first.add("post_forwarding_lock_1", 30) is True
        assert second.add("post_forwarding_lock_1", 30) is False

    def test_unsafe_key_characters(self, tmp_path):
        store = FileFlagStore(tmp_path)
        store.set("../escape/attempt", 30)
        assert store.exists("../escape/attempt")
        assert list(tmp_path.glob("*.flag"))

    def test_old_corrupt_flag_counts_as_expired(self, tmp_path):
        store = FileFlagStore(tmp_path)
        path = tmp_path / "k.flag"
        path.write_text("garbage", encoding="utf-8")
        os.utime(path, (0, 0))
        assert store.add("k", 30) is True
        assert store.exists("k")

    def test_flag_being_written_counts_as_held(self, tmp_path):
        store = FileFlagStore(tmp_path)
        store._path(lock_key(42)).touch()
        assert store.add(lock_key(42), 30) is False
        assert store.exists(lock_key(42))

    def test_abandoned_reclaim_marker_is_cleared(self, tmp_path):
        clock = FakeClock()
        store = FileFlagStore(tmp_path, clock=clock)
        store.add("k", 30)
        clock.now += 31
        marker = tmp_path / "k.flag.reclaim"
        marker.write_text("0", encoding="utf-8")
        os.utime(marker, (0, 0))
        assert store.add("k", 30) is False
        assert not marker.exists()
        assert store.add("k", 30) is True

    def test_no_temp_files_left_behind(self, tmp_path):
        store = FileFlagStore(tmp_path)
        store.add("a", 30)
        store.add("a", 30)
        store.set("b", 30)
        assert sorted(p.name for p in tmp_path.iterdir()) == ["a.flag", "b.flag"]

    def test_purge_missing_directory(self, tmp_path):
        assert FileFlagStore(tmp_path / "nope").purge() == 0


def _contend(add, workers: int = 8) -> list[bool]:
    wins: list[bool] = []
    barrier = threading.Barrier(workers)

    def run() -> None:
        barrier.wait()
        wins.append(add())

    threads = [threading.Thread(target=run) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return wins


def test_memory_add_is_atomic_under_threads():
    store = MemoryFlagStore()
    assert _contend(lambda: store.add("lock", 30)).count(True) == 1


@pytest.mark.parametrize("round_", range(5))
def test_file_add_is_atomic_under_threads(tmp_path, round_):
    directory = tmp_path / str(round_)
    assert _contend(lambda: FileFlagStore(directory).add("lock", 30)).count(True) == 1


def test_file_add_reclaims_expired_flag_once_under_threads(tmp_path):
    clock = FakeClock()
    FileFlagStore(tmp_path, clock=clock).add("lock", 30)
    clock.now += 31
    wins = _contend(lambda: FileFlagStore(tmp_path, clock=clock).add("lock", 30))
    assert wins.count(True) == 1


def test_file_set_from_threads_keeps_one_valid_flag(tmp_path):
    store = FileFlagStore(tmp_path)
    _contend(lambda: store.set("k", 30))
    assert store.exists("k")
    assert [p.name for p in tmp_path.iterdir()] == ["k.flag"]


# ── Guard ────────────────────────────────────────────────────────────────


class TestReentrancyGuard:
    def test_enter_sets_lock_and_processing(self, clock_and_store):
        _, store = clock_and_store
        guard = ReentrancyGuard(store)
        assert guard.try_enter(42) is True
        assert store.exists(lock_key(42))
        assert store.exists(processing_key(42))

    def test_second_enter_rejected_while_held(self, clock_and_store):
        _, store = clock_and_store
        guard = ReentrancyGuard(store)
        assert guard.try_enter(42) is True
        assert guard.try_enter(42) is False
        # the rejected attempt must not clear the holder's flags
        assert store.exists(lock_key(42))
        assert store.exists(processing_key(42))

    def test_release_makes_item_eligible(self, clock_and_store):
        _, store = clock_and_store
        guard = ReentrancyGuard(store)
        guard.try_enter(42)
        guard.release(42)
        assert guard.state(42).eligible
        assert guard.try_enter(42) is True

    def test_items_are_independent(self, clock_and_store):
        _, store = clock_and_store
        guard = ReentrancyGuard(store)
        assert guard.try_enter(1) is True
        assert guard.try_enter(2) is True

    def test_processing_outlives_lock(self, clock_and_store):
        clock, store = clock_and_store
        guard = ReentrancyGuard(store)
        guard.try_enter(42)
        clock.now += 60  # lock (30s) expired, processing (120s) still set
        assert guard.try_enter(42) is False
        assert store.exists(processing_key(42))
        clock.now += 61
        assert guard.try_enter(42) is True

    def test_cooldown_rejects(self, clock_and_store):
        clock, store = clock_and_store
        guard = ReentrancyGuard(store)
        guard.mark_forwarded(42)
        assert guard.try_enter(42) is False
        assert not store.exists(lock_key(42))
        clock.now += 301
        assert guard.try_enter(42) is True

    def test_expired_lock_recovers_after_crash(self, clock_and_store):
        clock, store = clock_and_store
        guard = ReentrancyGuard(store)
        guard.try_enter(42)  # never released
        clock.now += 121
        assert guard.try_enter(42) is True

    def test_custom_ttls(self, clock_and_store):
        clock, store = clock_and_store
        guard = ReentrancyGuard(store, lock_ttl=1, processing_ttl=2, cooldown_ttl=3)
        guard.mark_forwarded(7)
        clock.now += 4
        assert guard.try_enter(7) is True

    def test_reset_clears_everything(self, clock_and_store):
        _, store = clock_and_store
        guard = ReentrancyGuard(store)
        guard.try_enter(42)
        guard.mark_forwarded(42)
        guard.reset(42)
        state = guard.state(42)
        assert not (state.locked or state.processing or state.recently_forwarded)


# ── Outcome recorder ─────────────────────────────────────────────────────


class TestOutcomeRecorder:
    def test_success_sets_cooldown_and_releases(self, clock_and_store):
        _, store = clock_and_store
        guard = ReentrancyGuard(store)
        guard.try_enter(42)
        OutcomeRecorder(guard).finalize(
            42, ForwardOutcome(item_id=42, succeeded_destinations=["b"], failed_destinations=["a"])
        )
        assert store.exists(forwarded_key(42))
        assert not store.exists(lock_key(42))
        assert not store.exists(processing_key(42))

    def test_total_failure_clears_cooldown(self, clock_and_store):
        _, store = clock_and_store
        guard = ReentrancyGuard(store)
        guard.mark_forwarded(42)
        OutcomeRecorder(guard).finalize(42, ForwardOutcome(item_id=42, failed_destinations=["a"]))
        assert not store.exists(forwarded_key(42))
        assert guard.state(42).eligible
