"""Fallback controller routing counter operations away from a failed backend."""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from shared_counter.store.base import BackendUnavailableError, CounterStore
from shared_counter.store.memory import InMemoryCounterStore

FALLBACK_SOURCE = "fallback"
RECONNECT_ROUNDS = 5


class BackendState(Enum):
    """Health of the wrapped networked backend."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"

    @property
    def connection_label(self) -> str:
        """Label used by status reports ("connected" / "disconnected")."""
        return "connected" if self is BackendState.HEALTHY else "disconnected"


@dataclass
class FallbackMetrics:
    """Counters describing fallback controller activity."""

    state: BackendState
    failover_count: int
    recovery_count: int
    fallback_value: int
    last_failure: str | None
    last_state_change: float = field(default=0.0)


class FallbackCounterStore(CounterStore):
    """Counter store that degrades to an in-process counter on backend failure.

    The controller is a two-state machine:

    - HEALTHY: operations go to the networked backend
    - DEGRADED: operations go to the in-process fallback

    The first failed backend operation moves it to DEGRADED and that same
    operation is answered by the fallback, so each increment is applied to
    exactly one store. There is no automatic way back: ``reconnect()`` must be
    called (the sync scheduler can do so on an interval).

    Args:
        backend: The networked counter store to protect.
        fallback: In-process store used while degraded.

    Example:
        ```python
        store = FallbackCounterStore(RedisCounterStore(host="cache"))
        await store.initialize("lizard:count", seed=42)
        value = await store.increment("lizard:count")
        print(store.source, value)
        ```
    """

    def __init__(
        self,
        backend: CounterStore,
        fallback: InMemoryCounterStore | None = None,
    ) -> None:
        self._backend = backend
        self._fallback = fallback or InMemoryCounterStore(name=FALLBACK_SOURCE)
        self._state = BackendState.HEALTHY
        self._high_water: dict[str, int] = {}
        self._failover_count = 0
        self._recovery_count = 0
        self._last_failure: str | None = None
        self._last_state_change = time.monotonic()
        self._logger = logging.getLogger(f"fallback.{backend.name}")

    @property
    def name(self) -> str:
        """Name of the wrapped backend."""
        return self._backend.name

    @property
    def backend(self) -> CounterStore:
        """The wrapped networked store."""
        return self._backend

    @property
    def fallback(self) -> InMemoryCounterStore:
        """The in-process store used while degraded."""
        return self._fallback

    @property
    def state(self) -> BackendState:
        """Current backend state."""
        return self._state

    @property
    def is_healthy(self) -> bool:
        """Check if operations are routed to the backend."""
        return self._state is BackendState.HEALTHY

    @property
    def source(self) -> str:
        """Identifier of the store currently answering requests."""
        return self._backend.name if self.is_healthy else FALLBACK_SOURCE

    def _observe(self, key: str, value: int) -> int:
        if value > self._high_water.get(key, 0):
            self._high_water[key] = value
        return value

    def _log_state_change(
        self, from_state: BackendState, to_state: BackendState, trigger: str
    ) -> None:
        log_entry = {
            "event": "counter_backend_state_change",
            "backend": self._backend.name,
            "from_state": from_state.value,
            "to_state": to_state.value,
            "trigger": trigger,
            "timestamp": datetime.now(UTC).isoformat(),
            "failover_count": self._failover_count,
        }
        if to_state is BackendState.DEGRADED:
            self._logger.warning(json.dumps(log_entry))
        else:
            self._logger.info(json.dumps(log_entry))

    def _degrade(self, exc: BackendUnavailableError) -> None:
        """Switch to the fallback, seeding it with the highest value seen."""
        self._last_failure = str(exc)
        if self._state is BackendState.DEGRADED:
            return
        for key, value in self._high_water.items():
            if value > self._fallback.get_nowait(key):
                self._fallback.set_nowait(key, value)
        self._state = BackendState.DEGRADED
        self._failover_count += 1
        self._last_state_change = time.monotonic()
        self._log_state_change(BackendState.HEALTHY, BackendState.DEGRADED, exc.operation)

    async def initialize(self, key: str, seed: int) -> BackendState:
        """Ping the backend and seed whichever store ends up active.

        Args:
            key: Counter key.
            seed: Last known durable value.

        Returns:
            The state the controller starts in.
        """
        self._observe(key, seed)
        self._fallback.set_nowait(key, seed)
        try:
            await self._backend.ping()
            await self._backend.set(key, seed)
        except BackendUnavailableError as exc:
            self._degrade(exc)
            self._logger.warning(
                f"Backend {self._backend.name} not available, using fallback counter"
            )
        else:
            self._logger.info(f"Backend {self._backend.name} initialized with count: {seed}")
        return self._state

    async def get(self, key: str) -> int:
        value, _ = await self.get_with_source(key)
        return value

    async def get_with_source(self, key: str) -> tuple[int, str]:
        """Read the counter along with the name of the store that answered."""
        if self.is_healthy:
            try:
                return self._observe(key, await self._backend.get(key)), self._backend.name
            except BackendUnavailableError as exc:
                self._degrade(exc)
        return self._fallback.get_nowait(key), FALLBACK_SOURCE

    async def set(self, key: str, value: int) -> None:
        self._observe(key, value)
        if self.is_healthy:
            try:
                await self._backend.set(key, value)
                return
            except BackendUnavailableError as exc:
                self._degrade(exc)
        self._fallback.set_nowait(key, value)

    async def increment(self, key: str) -> int:
        value, _ = await self.increment_with_source(key)
        return value

    async def increment_with_source(self, key: str) -> tuple[int, str]:
        """Increment and report which store applied it.

        The state may change while the backend call is in flight, so the
        source is taken from the store that actually answered.
        """
        if self.is_healthy:
            try:
                value = await self._backend.increment(key)
                return self._observe(key, value), self._backend.name
            except BackendUnavailableError as exc:
                self._degrade(exc)
        return self._observe(key, self._fallback.increment_nowait(key)), FALLBACK_SOURCE

    async def ping(self) -> None:
        if self.is_healthy:
            await self._backend.ping()

    async def reconnect(self) -> bool:
        """Try to move a degraded controller back to the backend.

        The backend is seeded with the fallback's value unless it already holds
        a larger one, so the counter never goes backwards.

        Returns:
            bool: True when the controller is healthy afterwards.
        """
        if self.is_healthy:
            return True
        try:
            await self._backend.ping()
            for _ in range(RECONNECT_ROUNDS):
                snapshot = {key: self._fallback.get_nowait(key) for key in self._high_water}
                for key, current in snapshot.items():
                    if await self._backend.get(key) < current:
                        await self._backend.set(key, current)
                # increments served by the fallback while seeding must not be lost
                if all(self._fallback.get_nowait(key) == value for key, value in snapshot.items()):
                    break
            else:
                self._logger.debug(
                    f"Reconnect to {self._backend.name} did not settle after "
                    f"{RECONNECT_ROUNDS} rounds of fallback traffic"
                )
                return False
        except BackendUnavailableError as exc:
            self._last_failure = str(exc)
            self._logger.debug(f"Reconnect to {self._backend.name} failed: {exc}")
            return False

        self._state = BackendState.HEALTHY
        self._recovery_count += 1
        self._last_state_change = time.monotonic()
        self._log_state_change(BackendState.DEGRADED, BackendState.HEALTHY, "reconnect")
        return True

    async def close(self) -> None:
        await self._backend.close()
        await self._fallback.close()

    def get_metrics(self) -> FallbackMetrics:
        """Get current controller metrics.

        Returns:
            FallbackMetrics: State and failover counters.
        """
        fallback_value = max(
            (self._fallback.get_nowait(key) for key in self._high_water), default=0
        )
        return FallbackMetrics(
            state=self._state,
            failover_count=self._failover_count,
            recovery_count=self._recovery_count,
            fallback_value=fallback_value,
            last_failure=self._last_failure,
            last_state_change=self._last_state_change,
        )
