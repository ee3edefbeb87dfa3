"""Tests for toggles/registry.py: shared entries, refcounts, eviction, fan-out."""

import asyncio
import logging

import pytest

from toggles.config import Mode, ToggleConfig
from toggles.nouns import setter_for
from toggles.registry import EntrySnapshot, ToggleNotFoundError, ToggleRegistry
from toggles.verbs import apply_verb, verbs


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def conflict_records(caplog: pytest.LogCaptureFixture) -> list[logging.LogRecord]:
    return [r for r in caplog.records if "conflicting values" in r.getMessage()]


class TestGet:
    @pytest.fixture(autouse=True)
    def _registry(self) -> None:
        self.registry = ToggleRegistry()

    def test_same_key_returns_same_noun(self) -> None:
        a = self.registry.get("ns:modal", False)
        b = self.registry.get("ns:modal", True)
        assert a is b

    def test_initial_value(self) -> None:
        assert self.registry.get("ns:on", True).is_on is True
        assert self.registry.get("ns:off").is_on is False

    def test_noun_is_named_by_key(self) -> None:
        assert self.registry.get("ns:modal").name == "ns:modal"

    def test_open_modal_scenario(self) -> None:
        a = self.registry.get("ns:modal", False)
        apply_verb("open", a)
        assert a.is_open is True
        b = self.registry.get("ns:modal", False)
        assert b is a
        assert b.is_open is True

    def test_has_is_side_effect_free(self) -> None:
        clock = FakeClock()
        registry = ToggleRegistry(clock=clock)
        registry.get("k")
        clock.advance(30)
        assert registry.has("k")
        assert not registry.has("missing")
        snapshot = registry.snapshot("k")
        assert snapshot is not None
        assert snapshot.last_accessed == 1000.0
        assert snapshot.ref_count == 0

    def test_get_refreshes_last_accessed(self) -> None:
        clock = FakeClock()
        registry = ToggleRegistry(clock=clock)
        registry.get("k")
        clock.advance(30)
        registry.get("k")
        assert registry.snapshot("k").last_accessed == 1030.0  # type: ignore[union-attr]


class TestConflicts:
    def test_first_value_wins_with_one_diagnostic(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        registry = ToggleRegistry()
        with caplog.at_level(logging.ERROR, logger="toggles.registry"):
            registry.get("k", True)
            noun = registry.get("k", False)
        assert noun.is_active is True
        records = conflict_records(caplog)
        assert len(records) == 1
        message = records[0].getMessage()
        assert 'Shared toggle "k" initialized with conflicting values!' in message
        assert "First initialization: True" in message
        assert "Second initialization: False" in message
        assert "test_registry.py" in message

    def test_same_value_is_not_a_conflict(self, caplog: pytest.LogCaptureFixture) -> None:
        registry = ToggleRegistry()
        with caplog.at_level(logging.ERROR, logger="toggles.registry"):
            registry.get("k", True)
            registry.get("k", True)
        assert conflict_records(caplog) == []

    def test_conflict_is_against_initial_value_not_state(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        registry = ToggleRegistry()
        noun = registry.get("k", False)
        verbs.open(noun)
        with caplog.at_level(logging.ERROR, logger="toggles.registry"):
            registry.get("k", False)
        assert conflict_records(caplog) == []
        assert noun.is_open is True

    def test_origin_recorded(self) -> None:
        registry = ToggleRegistry()
        registry.get("k")
        snapshot = registry.snapshot("k")
        assert snapshot is not None
        assert "test_registry.py" in snapshot.origin
        assert "test_origin_recorded" in snapshot.origin


class TestReferenceCounting:
    @pytest.fixture(autouse=True)
    def _registry(self) -> None:
        self.clock = FakeClock()
        self.registry = ToggleRegistry(ttl=300, clock=self.clock)

    def test_acquire_then_release(self) -> None:
        self.registry.get("k")
        self.registry.acquire("k")
        assert self.registry.ref_count("k") == 1
        self.registry.release("k")
        assert self.registry.ref_count("k") == 0

    def test_release_floors_at_zero(self) -> None:
        self.registry.get("k")
        self.registry.release("k")
        self.registry.release("k")
        assert self.registry.ref_count("k") == 0

    def test_unknown_keys_are_ignored(self) -> None:
        self.registry.acquire("ghost")
        self.registry.release("ghost")
        assert not self.registry.has("ghost")

    def test_ref_count_of_unknown_key_raises(self) -> None:
        with pytest.raises(ToggleNotFoundError) as excinfo:
            self.registry.ref_count("ghost")
        assert str(excinfo.value) == 'Toggle "ghost" not found in shared registry'
        assert isinstance(excinfo.value, KeyError)

    def test_idle_unreferenced_entry_is_evicted(self) -> None:
        self.registry.get("k")
        self.registry.acquire("k")
        self.registry.release("k")
        self.clock.advance(301)
        assert self.registry.sweep() == ["k"]
        assert not self.registry.has("k")

    def test_entry_within_ttl_survives(self) -> None:
        self.registry.get("k")
        self.clock.advance(299)
        assert self.registry.sweep() == []
        assert self.registry.has("k")

    def test_referenced_entry_survives_any_idle_time(self) -> None:
        self.registry.get("k")
        self.registry.acquire("k")
        self.clock.advance(10 * 24 * 3600)
        assert self.registry.sweep() == []
        assert self.registry.has("k")

    def test_release_restarts_idle_time(self) -> None:
        self.registry.get("k")
        self.registry.acquire("k")
        self.clock.advance(1000)
        self.registry.release("k")
        self.clock.advance(200)
        assert self.registry.sweep() == []
        self.clock.advance(101)
        assert self.registry.sweep() == ["k"]

    def test_recreated_after_eviction_is_a_new_entry(self) -> None:
        first = self.registry.get("k", True)
        self.clock.advance(301)
        self.registry.sweep()
        second = self.registry.get("k", False)
        assert second is not first
        assert second.is_active is False


class TestSubscribe:
    @pytest.fixture(autouse=True)
    def _registry(self) -> None:
        self.registry = ToggleRegistry()
        self.noun = self.registry.get("k")

    def test_unknown_key_raises(self) -> None:
        with pytest.raises(ToggleNotFoundError, match="ghost"):
            self.registry.subscribe("ghost", lambda: None)

    def test_fan_out_once_per_mutation_in_order(self) -> None:
        calls: list[str] = []
        self.registry.subscribe("k", lambda: calls.append("a"))
        self.registry.subscribe("k", lambda: calls.append("b"))
        verbs.open(self.noun)
        assert calls == ["a", "b"]
        verbs.close(self.noun)
        assert calls == ["a", "b", "a", "b"]

    def test_every_write_notifies(self) -> None:
        calls: list[bool] = []
        self.registry.subscribe("k", lambda: calls.append(self.noun.is_active))
        verbs.open(self.noun)
        verbs.open(self.noun)
        assert calls == [True, True]

    def test_unsubscribe_stops_only_that_callback(self) -> None:
        calls: list[str] = []
        unsubscribe_a = self.registry.subscribe("k", lambda: calls.append("a"))
        self.registry.subscribe("k", lambda: calls.append("b"))
        unsubscribe_a()
        verbs.toggle(self.noun)
        assert calls == ["b"]

    def test_unsubscribe_is_idempotent(self) -> None:
        unsubscribe = self.registry.subscribe("k", lambda: None)
        unsubscribe()
        unsubscribe()
        self.registry.clear()
        unsubscribe()
        assert self.registry.snapshots() == ()

    def test_unsubscribe_during_fan_out(self) -> None:
        calls: list[str] = []
        unsubscribers: dict[str, object] = {}

        def first() -> None:
            calls.append("first")
            unsubscribers["first"]()  # type: ignore[operator]
            unsubscribers["third"]()  # type: ignore[operator]

        unsubscribers["first"] = self.registry.subscribe("k", first)
        self.registry.subscribe("k", lambda: calls.append("second"))
        unsubscribers["third"] = self.registry.subscribe("k", lambda: calls.append("third"))

        verbs.open(self.noun)
        assert calls == ["first", "second"]
        verbs.close(self.noun)
        assert calls == ["first", "second", "second"]

    def test_observer_may_mutate_other_entries(self) -> None:
        other = self.registry.get("other")
        self.registry.subscribe("k", lambda: verbs.show(other))
        verbs.open(self.noun)
        assert other.is_shown is True

    def test_runaway_recursion_is_refused(self, caplog: pytest.LogCaptureFixture) -> None:
        registry = ToggleRegistry(max_notify_depth=5)
        noun = registry.get("loop")
        calls: list[bool] = []

        def flip() -> None:
            calls.append(noun.is_active)
            verbs.toggle(noun)

        registry.subscribe("loop", flip)
        with caplog.at_level(logging.ERROR, logger="toggles.registry"):
            verbs.toggle(noun)
        assert len(calls) == 5
        assert any("ignoring set" in r.getMessage() for r in caplog.records)

    def test_subscriber_exceptions_propagate(self) -> None:
        def boom() -> None:
            raise RuntimeError("observer failed")

        self.registry.subscribe("k", boom)
        with pytest.raises(RuntimeError, match="observer failed"):
            verbs.open(self.noun)
        assert self.noun.is_open is True


class TestIntrospection:
    def test_snapshots(self) -> None:
        registry = ToggleRegistry()
        registry.get("a", True)
        registry.get("b")
        registry.acquire("b")
        registry.subscribe("b", lambda: None)
        snapshots = registry.snapshots()
        assert [s.key for s in snapshots] == ["a", "b"]
        b = snapshots[1]
        assert isinstance(b, EntrySnapshot)
        assert b.ref_count == 1
        assert b.subscriber_count == 1
        assert b.to_dict()["key"] == "b"
        assert len(registry) == 2
        assert "a" in registry
        assert list(registry.keys()) == ["a", "b"]

    def test_snapshot_of_missing_key(self) -> None:
        assert ToggleRegistry().snapshot("nope") is None

    def test_from_config(self) -> None:
        config = ToggleConfig(
            mode=Mode.PRODUCTION, ttl_seconds=10, sweep_interval_seconds=2, max_notify_depth=3
        )
        registry = ToggleRegistry.from_config(config)
        assert registry.ttl == 10
        assert registry.sweep_interval == 2
        assert registry.max_notify_depth == 3

    def test_setter_stays_hidden(self) -> None:
        registry = ToggleRegistry()
        noun = registry.get("k")
        assert setter_for(noun) is not None
        assert "set_active" not in repr(noun)


class TestLifecycle:
    def test_start_without_loop_leaves_sweep_off(self) -> None:
        registry = ToggleRegistry()
        registry.start()
        assert registry.running is False

    def test_clear_drops_entries(self) -> None:
        registry = ToggleRegistry()
        registry.get("a")
        registry.clear()
        assert len(registry) == 0
        assert not registry.has("a")

    def test_destroy_is_permanent(self) -> None:
        registry = ToggleRegistry()
        registry.get("a")
        registry.destroy()
        assert len(registry) == 0
        with pytest.raises(RuntimeError, match="destroyed"):
            registry.start()

    @pytest.mark.asyncio
    async def test_timer_sweeps_periodically(self) -> None:
        clock = FakeClock()
        registry = ToggleRegistry(ttl=60, sweep_interval=0.01, clock=clock)
        registry.get("idle")
        registry.get("held")
        registry.acquire("held")
        registry.start()
        try:
            assert registry.running
            clock.advance(61)
            await asyncio.sleep(0.05)
            assert not registry.has("idle")
            assert registry.has("held")
        finally:
            registry.destroy()
        assert registry.running is False

    @pytest.mark.asyncio
    async def test_clear_restarts_timer(self) -> None:
        clock = FakeClock()
        registry = ToggleRegistry(ttl=60, sweep_interval=0.01, clock=clock)
        registry.start()
        try:
            registry.clear()
            assert registry.running
            registry.get("idle")
            clock.advance(61)
            await asyncio.sleep(0.05)
            assert not registry.has("idle")
        finally:
            registry.destroy()

    @pytest.mark.asyncio
    async def test_stop_cancels_timer(self) -> None:
        clock = FakeClock()
        registry = ToggleRegistry(ttl=60, sweep_interval=0.01, clock=clock)
        registry.start(asyncio.get_running_loop())
        registry.stop()
        registry.get("idle")
        clock.advance(61)
        await asyncio.sleep(0.05)
        assert registry.has("idle")

    def test_restart_after_loop_closed(self) -> None:
        clock = FakeClock()
        registry = ToggleRegistry(ttl=60, sweep_interval=0.01, clock=clock)

        async def first() -> None:
            registry.start()
            registry.get("idle")

        async def second() -> None:
            registry.start()
            assert registry.running
            await asyncio.sleep(0.05)

        asyncio.run(first())
        assert registry.running is False
        clock.advance(61)
        try:
            asyncio.run(second())
            assert not registry.has("idle")
        finally:
            registry.destroy()
