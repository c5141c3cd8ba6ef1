"""Mock implementations of the host interfaces for testing.

The mocks record what the engine did so tests can assert on it, and can be
told to fail so that the engine's fail-soft paths are exercised.

The mock implementations include:
    - MockStatePublisher: Records every published value in order
    - MockEventEmitter: Records fired events, optionally failing
    - MockTimeProvider: Controllable clock; sleeps are recorded, not waited

Example:
    ```python
    from chargeamps_sync.mocks import MockEventEmitter, MockStatePublisher

    emitter = MockEventEmitter()
    engine = DeviceSyncEngine(device, client, auth, MockStatePublisher(), emitter)
    await engine.run_short_cycle()
    assert emitter.events_for(1) == ["chargerConnected"]
    ```
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from .interfaces import IEventEmitter, IStatePublisher, ITimeProvider


class MockStatePublisher(IStatePublisher):
    """Mock state store that keeps a history of writes."""

    def __init__(self) -> None:
        self._values: Dict[str, Any] = {}
        self.history: List[Tuple[str, Any]] = []

    def set_value(self, key: str, value: Any) -> None:
        self._values[key] = value
        self.history.append((key, value))

    def get_value(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._values)

    # Test helper methods
    def values_for(self, key: str) -> List[Any]:
        """Every value written to ``key``, oldest first."""
        return [value for k, value in self.history if k == key]


class MockEventEmitter(IEventEmitter):
    """Mock emitter recording (event, device_id, port) triples."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.events: List[Tuple[str, str, Optional[int]]] = []

    async def trigger(
        self, event: str, device_id: str, port: Optional[int] = None
    ) -> None:
        self.events.append((event, device_id, port))
        if self.fail:
            raise RuntimeError(f"trigger '{event}' rejected by host")

    # Test helper methods
    def names(self) -> List[str]:
        return [event for event, _, _ in self.events]

    def events_for(self, port: Optional[int]) -> List[str]:
        return [event for event, _, p in self.events if p == port]

    def clear(self) -> None:
        self.events.clear()


class MockTimeProvider(ITimeProvider):
    """Mock time provider for testing time-dependent functionality.

    Sleeps are recorded. With ``blocking`` set, a sleep then parks the
    calling task until it is cancelled, which freezes a polling loop right
    after it armed its next delay.
    """

    def __init__(self, initial_time: float = 0.0, blocking: bool = False) -> None:
        self._current_time = initial_time
        self._sleep_calls: List[float] = []
        self._auto_advance = True
        self.blocking = blocking

    def now(self) -> float:
        return self._current_time

    async def sleep(self, duration: float) -> None:
        self._sleep_calls.append(duration)
        if self._auto_advance:
            self._current_time += duration
        if self.blocking:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(0)

    # Test helper methods
    def advance(self, seconds: float) -> None:
        """Manually advance the mock time."""
        self._current_time += seconds

    def set_auto_advance(self, enabled: bool) -> None:
        """Enable/disable automatic time advancement on sleep."""
        self._auto_advance = enabled

    def get_sleep_calls(self) -> List[float]:
        """Get list of sleep durations that were called."""
        return self._sleep_calls.copy()
