"""Tests for FallbackCounterStore."""

import asyncio
import logging

import pytest

from shared_counter.store.fallback import (
    FALLBACK_SOURCE,
    BackendState,
    FallbackCounterStore,
    FallbackMetrics,
)

KEY = "lizard:count"


class TestFallbackInitialization:
    """Tests for the startup health check."""

    @pytest.mark.asyncio
    async def test_healthy_backend_is_seeded(self, network_backend):
        """Test a reachable backend starts HEALTHY with the durable value."""
        store = FallbackCounterStore(network_backend)

        state = await store.initialize(KEY, seed=42)

        assert state == BackendState.HEALTHY
        assert network_backend.values[KEY] == 42
        assert store.source == "redis"
        assert await store.get(KEY) == 42

    @pytest.mark.asyncio
    async def test_unreachable_backend_starts_degraded(self, network_backend):
        """Test an unreachable backend starts DEGRADED with a seeded fallback."""
        network_backend.fail = True
        store = FallbackCounterStore(network_backend)

        state = await store.initialize(KEY, seed=42)

        assert state == BackendState.DEGRADED
        assert store.source == FALLBACK_SOURCE
        assert await store.get(KEY) == 42
        assert await store.increment(KEY) == 43

    def test_state_labels(self):
        """Test status reporting labels."""
        assert BackendState.HEALTHY.connection_label == "connected"
        assert BackendState.DEGRADED.connection_label == "disconnected"


class TestFallbackFailover:
    """Tests for degrading on backend failure."""

    @pytest.mark.asyncio
    async def test_failing_increment_served_by_fallback(self, network_backend):
        """Test the failing operation itself is answered by the fallback."""
        store = FallbackCounterStore(network_backend)
        await store.initialize(KEY, seed=10)
        assert await store.increment(KEY) == 11

        network_backend.fail = True
        assert await store.increment(KEY) == 12

        assert store.state == BackendState.DEGRADED
        assert store.source == FALLBACK_SOURCE
        # the backend never saw the failed increment applied
        assert network_backend.values[KEY] == 11

    @pytest.mark.asyncio
    async def test_failing_get_served_by_fallback(self, network_backend):
        """Test a failing read degrades and returns the last known value."""
        store = FallbackCounterStore(network_backend)
        await store.initialize(KEY, seed=5)
        await store.increment(KEY)

        network_backend.fail = True
        assert await store.get(KEY) == 6
        assert not store.is_healthy

    @pytest.mark.asyncio
    async def test_no_automatic_recovery(self, network_backend):
        """Test the controller stays degraded after the backend comes back."""
        store = FallbackCounterStore(network_backend)
        await store.initialize(KEY, seed=0)
        network_backend.fail = True
        await store.increment(KEY)

        network_backend.fail = False
        network_backend.calls.clear()
        await store.increment(KEY)

        assert store.state == BackendState.DEGRADED
        assert network_backend.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("n", [10, 100])
    async def test_fallback_transparency(self, network_backend, n):
        """Test increments keep succeeding and counting while the backend fails."""
        store = FallbackCounterStore(network_backend)
        await store.initialize(KEY, seed=100)
        before = await store.get(KEY)

        network_backend.fail = True
        results = await asyncio.gather(*(store.increment(KEY) for _ in range(n)))

        assert store.source == FALLBACK_SOURCE
        assert sorted(results) == list(range(before + 1, before + n + 1))
        assert await store.get(KEY) == before + n

    @pytest.mark.asyncio
    async def test_state_change_logged_once(self, network_backend, caplog):
        """Test the HEALTHY to DEGRADED transition is logged as a warning once."""
        store = FallbackCounterStore(network_backend)
        await store.initialize(KEY, seed=0)
        network_backend.fail = True

        with caplog.at_level(logging.WARNING, logger="fallback.redis"):
            for _ in range(3):
                await store.increment(KEY)

        transitions = [r for r in caplog.records if "counter_backend_state_change" in r.getMessage()]
        assert len(transitions) == 1

    @pytest.mark.asyncio
    async def test_metrics(self, network_backend):
        """Test metrics track failovers and the fallback value."""
        store = FallbackCounterStore(network_backend)
        await store.initialize(KEY, seed=3)
        network_backend.fail = True
        await store.increment(KEY)

        metrics = store.get_metrics()
        assert isinstance(metrics, FallbackMetrics)
        assert metrics.state == BackendState.DEGRADED
        assert metrics.failover_count == 1
        assert metrics.recovery_count == 0
        assert metrics.fallback_value == 4
        assert "connection refused" in (metrics.last_failure or "")


class TestFallbackReconnect:
    """Tests for explicit recovery."""

    @pytest.mark.asyncio
    async def test_reconnect_seeds_backend(self, network_backend):
        """Test reconnect carries fallback increments over to the backend."""
        store = FallbackCounterStore(network_backend)
        await store.initialize(KEY, seed=20)
        network_backend.fail = True
        for _ in range(5):
            await store.increment(KEY)

        network_backend.fail = False
        assert await store.reconnect() is True

        assert store.state == BackendState.HEALTHY
        assert network_backend.values[KEY] == 25
        assert await store.increment(KEY) == 26
        assert store.get_metrics().recovery_count == 1

    @pytest.mark.asyncio
    async def test_reconnect_never_lowers_backend(self, network_backend):
        """Test a backend already ahead of the fallback keeps its value."""
        store = FallbackCounterStore(network_backend)
        await store.initialize(KEY, seed=20)
        network_backend.fail = True
        await store.increment(KEY)

        network_backend.fail = False
        network_backend.values[KEY] = 500
        assert await store.reconnect() is True
        assert await store.get(KEY) == 500

    @pytest.mark.asyncio
    async def test_reconnect_fails_while_backend_down(self, network_backend):
        """Test reconnect reports failure and stays degraded."""
        network_backend.fail = True
        store = FallbackCounterStore(network_backend)
        await store.initialize(KEY, seed=1)

        assert await store.reconnect() is False
        assert store.state == BackendState.DEGRADED

    @pytest.mark.asyncio
    async def test_reconnect_when_healthy_is_noop(self, network_backend):
        """Test reconnect on a healthy controller does nothing."""
        store = FallbackCounterStore(network_backend)
        await store.initialize(KEY, seed=1)
        network_backend.calls.clear()

        assert await store.reconnect() is True
        assert network_backend.calls == []

    @pytest.mark.asyncio
    async def test_close_closes_backend(self, network_backend):
        """Test close releases the wrapped backend."""
        store = FallbackCounterStore(network_backend)
        await store.close()
        assert network_backend.closed


class TestServingSource:
    """Tests for reporting which store answered."""

    @pytest.mark.asyncio
    async def test_source_reported_per_call(self, network_backend):
        """Test an in-flight backend increment keeps its label across a failover."""
        store = FallbackCounterStore(network_backend)
        await store.initialize(KEY, seed=10)
        release = asyncio.Event()

        async def slow_increment(key):
            await release.wait()
            network_backend.values[key] += 1
            return network_backend.values[key]

        network_backend.increment = slow_increment
        in_flight = asyncio.create_task(store.increment_with_source(KEY))
        await asyncio.sleep(0)

        network_backend.fail = True
        assert await store.get_with_source(KEY) == (10, FALLBACK_SOURCE)
        assert store.state == BackendState.DEGRADED

        release.set()
        assert await in_flight == (11, "redis")
        assert await store.increment_with_source(KEY) == (11, FALLBACK_SOURCE)

    @pytest.mark.asyncio
    async def test_healthy_read_reports_backend(self, network_backend):
        """Test a healthy read is labelled with the backend name."""
        store = FallbackCounterStore(network_backend)
        await store.initialize(KEY, seed=3)
        assert await store.get_with_source(KEY) == (3, "redis")


class TestReconnectUnderLoad:
    """Tests for recovery while the fallback keeps serving traffic."""

    @pytest.mark.asyncio
    async def test_reconnect_gives_up_under_sustained_traffic(self, network_backend):
        """Test reconnect stops after a bounded number of rounds and stays degraded."""
        store = FallbackCounterStore(network_backend)
        await store.initialize(KEY, seed=1)
        network_backend.fail = True
        await store.increment(KEY)
        network_backend.fail = False

        real_get = network_backend.get

        async def busy_get(key):
            # a click lands on the fallback during every backend round trip
            store.fallback.increment_nowait(key)
            return await real_get(key)

        network_backend.get = busy_get
        assert await store.reconnect() is False
        assert store.state == BackendState.DEGRADED
        assert network_backend.values[KEY] < store.fallback.get_nowait(KEY)

        network_backend.get = real_get
        assert await store.reconnect() is True
        assert network_backend.values[KEY] == store.fallback.get_nowait(KEY)
