"""Per-port connection state tracking.

The vendor reports a raw connector status on every poll. This module turns
that into the connection state shown to the host and decides which single
event, if any, the change deserves.
"""

import dataclasses
import logging
from typing import Optional

from .constants import ConnectionState, Events, RawStatus

logger = logging.getLogger(__name__)

# Raw status -> (exposed state, event) for a plain change of status
_STATUS_CHANGES = {
    RawStatus.AVAILABLE: (ConnectionState.DISCONNECTED, Events.CHARGER_DISCONNECTED),
    RawStatus.CONNECTED: (ConnectionState.CONNECTED, Events.CHARGER_CONNECTED),
    RawStatus.CHARGING: (ConnectionState.CHARGING, Events.CHARGER_CHARGING),
}

# Raw statuses that end a running charge, with the state they leave behind
_COMPLETION_STATUSES = {
    RawStatus.CONNECTED: ConnectionState.CONNECTED,
    RawStatus.SUSPENDED_EV: ConnectionState.CONNECTED,
    RawStatus.FINISHING: ConnectionState.FINISHING,
}


@dataclasses.dataclass(frozen=True)
class Transition:
    """Outcome of feeding one raw status to the state machine."""

    previous: Optional[str]
    raw_status: str
    state: Optional[str]
    event: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.state != self.previous


def normalize_previous(previous: Optional[str]) -> str:
    """Map the locally held state onto the vendor's vocabulary.

    No-session states compare equal to the vendor's ``Available`` so that
    an idle port does not look like a change on every poll.
    """
    if previous in (None, ConnectionState.DISCONNECTED, ConnectionState.UNKNOWN):
        return RawStatus.AVAILABLE
    return previous


def evaluate(previous: Optional[str], raw_status: str) -> Transition:
    """Compute the next exposed state and event for one port.

    Args:
        previous: The state currently exposed for the port, None on first read.
        raw_status: Connector status from the latest status call.

    Returns:
        The transition. ``state`` equals ``previous`` when nothing changed.
    """
    normalized = normalize_previous(previous)

    if normalized == ConnectionState.CHARGING and raw_status in _COMPLETION_STATUSES:
        return Transition(
            previous,
            raw_status,
            _COMPLETION_STATUSES[raw_status],
            Events.CHARGING_COMPLETED,
        )

    if raw_status == normalized:
        if previous is None:
            # First read of an idle port still has to be exposed
            return Transition(previous, raw_status, ConnectionState.DISCONNECTED)
        return Transition(previous, raw_status, previous)

    state, event = _STATUS_CHANGES.get(raw_status, (raw_status, None))
    return Transition(previous, raw_status, state, event)


class ConnectionStateMachine:
    """Holds the exposed connection state of one port."""

    def __init__(self, port: int, initial: Optional[str] = None) -> None:
        self.port = port
        self.state = initial

    def update(self, raw_status: str) -> Transition:
        transition = evaluate(self.state, raw_status)
        if transition.changed:
            logger.debug(
                f"Port {self.port}: {transition.previous} -> {transition.state} "
                f"(raw {raw_status}, event {transition.event})"
            )
        self.state = transition.state
        return transition
