"""Energy accounting for charging ports.

The status call reports energy for the running session only, resetting to
zero between sessions. ``ConsumptionAccountant`` turns that counter into a
lifetime meter by adding up successive deltas, and works out the values
shown for the last and the current session.
"""

import dataclasses
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .constants import CommandDefaults

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class ConsumptionLedger:
    """Running energy totals of one port."""

    meter_total_kwh: float = 0.0
    previous_consumption_kwh: float = 0.0


@dataclasses.dataclass(frozen=True)
class ConsumptionReading:
    """Values published after one accountant update."""

    port: int
    meter_kwh: float
    measure_kw: float
    last_charged: Optional[str]
    now_charged: str
    delta_kwh: float = 0.0


def format_kwh(value: Any) -> str:
    """Format an energy value with two decimals, ``"0"`` if unusable."""
    try:
        return f"{float(value):.2f}"
    except (TypeError, ValueError):
        return "0"


def _session_total(rows: Sequence[Dict[str, Any]], index: int) -> str:
    if len(rows) <= index or not isinstance(rows[index], dict):
        return "0"
    return format_kwh(rows[index].get("totalConsumptionKwh"))


def estimate_power(measurements: Optional[Iterable[Dict[str, Any]]], previous: float) -> float:
    """Estimate charging power in kW from the live phase measurements.

    Sums ``current * voltage`` over at most three phases. With no
    measurements the previous estimate is kept.
    """
    phases: List[Dict[str, Any]] = list(measurements or [])[
        : CommandDefaults.MAX_MEASUREMENTS
    ]
    if not phases:
        return previous
    total_w = 0.0
    for phase in phases:
        try:
            total_w += float(phase.get("current") or 0) * float(phase.get("voltage") or 0)
        except (TypeError, ValueError, AttributeError):
            logger.debug(f"Ignoring malformed measurement: {phase!r}")
    return total_w / 1000


class ConsumptionAccountant:
    """Maintains one ledger per port and the combined view across ports."""

    def __init__(self, ports: Iterable[int]) -> None:
        self.ledgers: Dict[int, ConsumptionLedger] = {
            port: ConsumptionLedger() for port in ports
        }
        self.readings: Dict[int, ConsumptionReading] = {}

    def ledger(self, port: int) -> ConsumptionLedger:
        return self.ledgers.setdefault(port, ConsumptionLedger())

    def update(
        self,
        port: int,
        now_consumption_kwh: float,
        session_rows: Sequence[Dict[str, Any]],
        power_kw: float = 0.0,
    ) -> ConsumptionReading:
        """Account for the latest session counter of one port.

        Args:
            port: Connector index.
            now_consumption_kwh: Energy of the running session, 0 when idle.
            session_rows: Recent charging sessions, newest first.
            power_kw: Current power estimate for the port.

        Returns:
            The reading to publish.
        """
        ledger = self.ledger(port)
        now = float(now_consumption_kwh or 0)
        delta = 0.0

        if now == 0:
            ledger.previous_consumption_kwh = 0.0
            last_charged = _session_total(session_rows, 0)
            measure = 0.0
        else:
            delta = now - ledger.previous_consumption_kwh
            if delta < 0:
                # Vendor counter went backwards mid-session, applied as reported
                logger.warning(
                    f"Port {port}: session counter decreased by {-delta:.3f} kWh"
                )
            ledger.meter_total_kwh += delta
            ledger.previous_consumption_kwh = now
            # The running session is row 0, so the last finished one is row 1
            last_charged = _session_total(session_rows, 1)
            measure = power_kw

        reading = ConsumptionReading(
            port=port,
            meter_kwh=ledger.meter_total_kwh,
            measure_kw=measure,
            last_charged=last_charged,
            now_charged=format_kwh(now),
            delta_kwh=delta,
        )
        self.readings[port] = reading
        return reading

    def idle_reading(self, port: int, now_kwh: Any = 0) -> ConsumptionReading:
        """Reading for a port whose charging sessions were not fetched.

        The meter is left alone and ``last_charged`` is None, meaning the
        previously published value stays.
        """
        ledger = self.ledger(port)
        reading = ConsumptionReading(
            port=port,
            meter_kwh=ledger.meter_total_kwh,
            measure_kw=0.0,
            last_charged=None,
            now_charged=format_kwh(now_kwh),
        )
        self.readings[port] = reading
        return reading

    def aggregate(self) -> Dict[str, float]:
        """Combined measure and meter across all ports."""
        return {
            "measure": sum(r.measure_kw for r in self.readings.values()),
            "meter": sum(ledger.meter_total_kwh for ledger in self.ledgers.values()),
        }
