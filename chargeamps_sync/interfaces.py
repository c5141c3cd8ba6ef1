"""Interfaces between the sync engine and its host platform.

The engine never talks to a host platform directly. It publishes state
through an ``IStatePublisher``, fires automation events through an
``IEventEmitter`` and reads the clock through an ``ITimeProvider``. Hosts
plug in their own implementations; ``implementations`` ships standalone ones
and ``mocks`` ships controllable ones for tests.

Example:
    ```python
    from chargeamps_sync.implementations import InMemoryStatePublisher

    class HostPublisher(IStatePublisher):
        def set_value(self, key: str, value: Any) -> None:
            host.set_capability(key, value)
        ...
    ```
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class IStatePublisher(ABC):
    """Interface for the host's capability/property storage."""

    @abstractmethod
    def set_value(self, key: str, value: Any) -> None:
        """Publish a state value.

        Args:
            key: State key, e.g. ``"1.car_connected"`` or ``"firmware_version"``.
            value: The new value.
        """
        pass

    @abstractmethod
    def get_value(self, key: str, default: Any = None) -> Any:
        """Read back a published value.

        Args:
            key: State key.
            default: Returned when the key was never published.
        """
        pass

    @abstractmethod
    def snapshot(self) -> Dict[str, Any]:
        """Return a copy of every published value."""
        pass


class IEventEmitter(ABC):
    """Interface for the host's automation trigger mechanism.

    Emission is best-effort: the engine logs a failing trigger and moves on.
    """

    @abstractmethod
    async def trigger(
        self, event: str, device_id: str, port: Optional[int] = None
    ) -> None:
        """Fire an automation event.

        Args:
            event: Event name, see ``constants.Events``.
            device_id: Charge point the event belongs to.
            port: Connector index for port-level events.
        """
        pass


class ITimeProvider(ABC):
    """Interface for clock and sleep operations."""

    @abstractmethod
    def now(self) -> float:
        """Return a monotonic timestamp in seconds."""
        pass

    @abstractmethod
    async def sleep(self, duration: float) -> None:
        """Suspend the calling task for ``duration`` seconds."""
        pass
