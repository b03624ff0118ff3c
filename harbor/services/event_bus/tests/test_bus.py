"""Tests for EventBus dispatch, retry, history and shutdown semantics."""
import asyncio

import pytest
from unittest.mock import MagicMock

from harbor.services.event_bus import (
    EventBus,
    EventBusConfig,
    EventValidationError,
)


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def bus(sleeper):
    return EventBus(sleep=sleeper)


@pytest.mark.asyncio
class TestPriorityOrdering:
    """Handlers on one topic run in non-increasing priority order."""

    async def test_higher_priority_runs_first(self, bus):
        calls = []
        bus.register("topic.a", lambda payload, meta: calls.append(5), priority=5)
        bus.register("topic.a", lambda payload, meta: calls.append(10), priority=10)

        await bus.publish("topic.a", {"k": "v"}, source="test")

        assert calls == [10, 5]

    async def test_processed_counter_increments_once_per_event(self, bus):
        bus.register("topic.a", lambda payload, meta: None, priority=10)
        bus.register("topic.a", lambda payload, meta: None, priority=5)

        await bus.publish("topic.a", {}, source="test")

        metrics = bus.get_metrics()
        assert metrics["events_emitted"] == 1
        assert metrics["events_processed"] == 1

    async def test_ties_keep_registration_order(self, bus):
        calls = []
        for name in ["first", "second", "third"]:
            bus.register("topic.a", lambda payload, meta, n=name: calls.append(n), priority=1)
        bus.register("topic.a", lambda payload, meta: calls.append("top"), priority=2)

        await bus.publish("topic.a", {})

        assert calls == ["top", "first", "second", "third"]

    async def test_async_handlers_start_in_priority_order(self, bus):
        started = []

        async def make_handler(label):
            started.append(label)
            await asyncio.sleep(0)

        bus.register("topic.a", lambda p, m: make_handler("low"), priority=1)
        bus.register("topic.a", lambda p, m: make_handler("high"), priority=9)

        await bus.publish("topic.a", {})

        assert started == ["high", "low"]

    async def test_handler_receives_payload_and_metadata(self, bus):
        received = {}

        def handler(payload, metadata):
            received["payload"] = payload
            received["metadata"] = metadata

        bus.register("topic.a", handler)
        event = await bus.publish(
            "topic.a", {"x": 1}, source="unit", correlation_id="req_1", user_id="u1"
        )

        assert received["payload"] == {"x": 1}
        assert received["metadata"].event_id == event.id
        assert received["metadata"].source == "unit"
        assert received["metadata"].correlation_id == "req_1"
        assert event.id.startswith("evt_")


@pytest.mark.asyncio
class TestFailureIsolation:
    """One handler's failure never blocks siblings or the publisher."""

    async def test_failing_handler_does_not_block_siblings(self, bus):
        calls = []

        def broken(payload, meta):
            raise RuntimeError("boom")

        bus.register("topic.a", broken, priority=10)
        bus.register("topic.a", lambda p, m: calls.append("ok"), priority=5)

        await bus.publish("topic.a", {})

        assert calls == ["ok"]
        assert bus.get_metrics()["error_count"] == 1
        failures = bus.recent_failures()
        assert len(failures) == 1
        assert failures[0].attempts == 1
        assert isinstance(failures[0].cause, RuntimeError)

    async def test_retry_loop_does_not_block_sibling(self, sleeper):
        gate = asyncio.Event()

        async def slow_sleep(delay):
            await gate.wait()

        bus = EventBus(sleep=slow_sleep)
        calls = []

        def broken(payload, meta):
            raise RuntimeError("boom")

        bus.register("topic.a", broken, priority=10, retry=True, max_retries=2)
        bus.register("topic.a", lambda p, m: calls.append("sibling"), priority=1)

        await bus.publish("topic.a", {}, wait=False)
        for _ in range(5):
            await asyncio.sleep(0)

        assert calls == ["sibling"]
        gate.set()
        await bus.shutdown(grace_seconds=1.0)


@pytest.mark.asyncio
class TestRetryPolicy:
    """Retries are bounded with exponential backoff."""

    async def test_always_failing_handler_invoked_max_retries_times(self, bus, sleeper):
        attempts = []

        def broken(payload, meta):
            attempts.append(1)
            raise RuntimeError("still broken")

        bus.register("topic.a", broken, retry=True, max_retries=4)
        await bus.publish("topic.a", {})

        assert len(attempts) == 4
        assert sleeper.delays == [1.0, 2.0, 4.0]
        assert bus.get_metrics()["retry_count"] == 3
        assert bus.get_metrics()["error_count"] == 1

    async def test_backoff_base_is_configurable(self, sleeper):
        bus = EventBus(config=EventBusConfig(backoff_base_seconds=0.5), sleep=sleeper)

        def broken(payload, meta):
            raise RuntimeError("nope")

        bus.register("topic.a", broken, retry=True, max_retries=3)
        await bus.publish("topic.a", {})

        assert sleeper.delays == [0.5, 1.0]

    async def test_retry_disabled_invokes_once(self, bus, sleeper):
        attempts = []

        def broken(payload, meta):
            attempts.append(1)
            raise RuntimeError("broken")

        bus.register("topic.a", broken, retry=False, max_retries=5)
        await bus.publish("topic.a", {})

        assert len(attempts) == 1
        assert sleeper.delays == []

    async def test_recovers_on_later_attempt(self, bus, sleeper):
        attempts = []

        def flaky(payload, meta):
            attempts.append(1)
            if len(attempts) < 2:
                raise RuntimeError("transient")

        bus.register("topic.a", flaky, retry=True, max_retries=3)
        await bus.publish("topic.a", {})

        assert len(attempts) == 2
        assert sleeper.delays == [1.0]
        assert bus.get_metrics()["error_count"] == 0


@pytest.mark.asyncio
class TestTimeouts:
    """A timed-out attempt counts as a failure."""

    async def test_timeout_counts_as_failure(self, bus):
        async def hangs(payload, meta):
            await asyncio.sleep(5)

        bus.register("topic.a", hangs, timeout_ms=10)
        await bus.publish("topic.a", {})

        metrics = bus.get_metrics()
        assert metrics["timeout_count"] == 1
        assert metrics["error_count"] == 1
        assert bus.recent_failures()[0].timed_out is True

    async def test_timeout_is_retried(self, bus, sleeper):
        attempts = []

        async def hangs_once(payload, meta):
            attempts.append(1)
            if len(attempts) == 1:
                await asyncio.sleep(5)

        bus.register("topic.a", hangs_once, retry=True, max_retries=2, timeout_ms=10)
        await bus.publish("topic.a", {})

        assert len(attempts) == 2
        assert sleeper.delays == [1.0]
        assert bus.get_metrics()["error_count"] == 0


@pytest.mark.asyncio
class TestValidation:
    """Malformed publishes raise synchronously."""

    async def test_non_mapping_payload_rejected(self, bus):
        with pytest.raises(EventValidationError):
            await bus.publish("topic.a", ["not", "a", "dict"])

    async def test_empty_topic_rejected(self, bus):
        with pytest.raises(EventValidationError):
            await bus.publish("", {})

    async def test_non_string_keys_rejected(self, bus):
        with pytest.raises(EventValidationError):
            await bus.publish("topic.a", {1: "x"})

    async def test_rejected_publish_not_recorded(self, bus):
        with pytest.raises(EventValidationError):
            await bus.publish("topic.a", "payload")
        assert bus.get_history() == []
        assert bus.get_metrics()["events_emitted"] == 0


@pytest.mark.asyncio
class TestHistory:
    """History is a bounded ring buffer queried newest-first."""

    async def test_oldest_evicted_on_overflow(self, sleeper):
        bus = EventBus(config=EventBusConfig(max_history_size=3), sleep=sleeper)
        for i in range(5):
            await bus.publish("topic.a", {"i": i})

        history = bus.get_history()
        assert [e.payload["i"] for e in history] == [4, 3, 2]

    async def test_filters_by_topic_user_and_limit(self, bus):
        await bus.publish("topic.a", {"i": 1}, user_id="u1")
        await bus.publish("topic.b", {"i": 2}, user_id="u1")
        await bus.publish("topic.a", {"i": 3}, user_id="u2")
        await bus.publish("topic.a", {"i": 4}, user_id="u1")

        assert [e.payload["i"] for e in bus.get_history(topic="topic.a")] == [4, 3, 1]
        assert [e.payload["i"] for e in bus.get_history(user_id="u1")] == [4, 2, 1]
        assert [e.payload["i"] for e in bus.get_history(limit=2)] == [4, 3]

    async def test_clear_history(self, bus):
        await bus.publish("topic.a", {})
        bus.clear_history()
        assert bus.get_history() == []

    async def test_events_without_handlers_still_recorded(self, bus):
        await bus.publish("nobody.listens", {"x": 1})
        assert len(bus.get_history(topic="nobody.listens")) == 1
        assert bus.get_metrics()["events_processed"] == 1


@pytest.mark.asyncio
class TestUnregister:
    """Tests for removing registrations."""

    async def test_unregister_removes_handler(self, bus):
        calls = []
        registration = bus.register("topic.a", lambda p, m: calls.append(1))

        assert bus.unregister(registration) is True
        await bus.publish("topic.a", {})

        assert calls == []
        assert bus.unregister(registration) is False


class TestRegistration:
    """Tests for registration defaults and validation."""

    def test_register_requires_callable(self, bus):
        with pytest.raises(EventValidationError):
            bus.register("topic.a", "not callable")

    def test_default_policy_from_config(self):
        bus = EventBus(config=EventBusConfig(default_max_retries=5, default_timeout_ms=250))
        registration = bus.register("topic.a", lambda p, m: None)

        assert registration.retry_policy.max_retries == 5
        assert registration.retry_policy.timeout_ms == 250
        assert registration.retry_policy.enabled is False

    def test_timeout_can_be_disabled(self, bus):
        registration = bus.register("topic.a", lambda p, m: None, timeout_ms=None)
        assert registration.retry_policy.timeout_ms is None


@pytest.mark.asyncio
class TestPersistentForwarding:
    """Persistent events go to the external stream after dispatch."""

    async def test_persistent_event_forwarded(self, sleeper):
        stream = MagicMock()
        stream.enabled = True
        bus = EventBus(stream=stream, sleep=sleeper)

        event = await bus.publish("topic.a", {"x": 1}, persistent=True)

        stream.publish.assert_called_once_with(event)

    async def test_transient_event_not_forwarded(self, sleeper):
        stream = MagicMock()
        stream.enabled = True
        bus = EventBus(stream=stream, sleep=sleeper)

        await bus.publish("topic.a", {"x": 1})

        stream.publish.assert_not_called()

    async def test_stream_error_does_not_reach_publisher(self, sleeper):
        stream = MagicMock()
        stream.enabled = True
        stream.publish.side_effect = RuntimeError("stream down")
        bus = EventBus(stream=stream, sleep=sleeper)

        event = await bus.publish("topic.a", {"x": 1}, persistent=True)

        assert event is not None


@pytest.mark.asyncio
class TestShutdown:
    """Shutdown drains, then clears state and rejects publishes."""

    async def test_publish_after_shutdown_returns_none(self, bus):
        await bus.shutdown()
        assert await bus.publish("topic.a", {}) is None
        assert bus.accepting is False

    async def test_shutdown_clears_registrations_and_history(self, bus):
        bus.register("topic.a", lambda p, m: None)
        await bus.publish("topic.a", {})

        await bus.shutdown()

        assert bus.handlers_for("topic.a") == []
        assert bus.get_history() == []

    async def test_in_flight_dispatch_finishes_within_grace(self, bus):
        finished = []

        async def quick(payload, meta):
            await asyncio.sleep(0.01)
            finished.append(True)

        bus.register("topic.a", quick)
        await bus.publish("topic.a", {}, wait=False)
        await bus.shutdown(grace_seconds=1.0)

        assert finished == [True]

    async def test_stragglers_cancelled_after_grace(self, bus):
        finished = []

        async def slow(payload, meta):
            await asyncio.sleep(5)
            finished.append(True)

        bus.register("topic.a", slow, timeout_ms=None)
        await bus.publish("topic.a", {}, wait=False)
        await bus.shutdown(grace_seconds=0.01)

        assert finished == []
        assert bus.get_metrics()["in_flight"] == 0
