"""Standalone implementations of the host interfaces.

These let the engine run on its own: published state lives in a dictionary
(served by the web surface) and events are written to the log and handed to
any registered listeners.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .interfaces import IEventEmitter, IStatePublisher, ITimeProvider
from .logging_utils import log_charging_event

EventListener = Callable[[str, str, Optional[int]], Awaitable[None]]


class InMemoryStatePublisher(IStatePublisher):
    """Keeps published state in a dictionary."""

    def __init__(self) -> None:
        self._values: Dict[str, Any] = {}
        self.logger = logging.getLogger("chargeamps_sync.state")

    def set_value(self, key: str, value: Any) -> None:
        if self._values.get(key) != value:
            self.logger.debug(f"{key} = {value!r}")
        self._values[key] = value

    def get_value(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._values)


class LoggingEventEmitter(IEventEmitter):
    """Logs every event and forwards it to registered listeners."""

    def __init__(self) -> None:
        self.logger = logging.getLogger("chargeamps_sync.events")
        self._listeners: List[EventListener] = []

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    async def trigger(
        self, event: str, device_id: str, port: Optional[int] = None
    ) -> None:
        log_charging_event(self.logger, event, port=port, device_id=device_id)
        for listener in self._listeners:
            await listener(event, device_id, port)


class SystemTimeProvider(ITimeProvider):
    """Real monotonic clock and asyncio sleep."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, duration: float) -> None:
        await asyncio.sleep(duration)
