"""Device variants and in-memory state for the sync engine.

A single engine serves every ChargeAmps device. The differences between
LUNA, AURA and HALO are captured by a ``PortModel``: how many charging ports
the device has, which auxiliary features it offers and how fast it is polled.
"""

import dataclasses
import itertools
import time
from typing import Any, Dict, List, Optional, Tuple

from .constants import ChargerMode, ConnectionState, PortAccess
from .exceptions import CapabilityError, ConfigurationError


@dataclasses.dataclass(frozen=True)
class PortModel:
    """Capability set and polling bounds of one device variant.

    Attributes:
        name: Vendor type string, as reported by ``/chargepoints/owned``.
        port_count: Number of charging connectors.
        has_cable_lock: Whether connectors support a cable lock.
        has_led_ring: Whether the LED ring dimmer can be controlled.
        has_downlight: Whether the ground light can be controlled.
        has_outlet: Whether a switched outlet sits on connector 2.
        min_poll_seconds: Lower bound of the adaptive poll delay.
        max_poll_seconds: Upper bound of the adaptive poll delay.
        retry_seconds: Fixed delay after an error or a busy skip.
    """

    name: str
    port_count: int
    has_cable_lock: bool
    has_led_ring: bool
    has_downlight: bool
    has_outlet: bool
    min_poll_seconds: int
    max_poll_seconds: int
    retry_seconds: int

    @property
    def has_lighting(self) -> bool:
        return self.has_led_ring or self.has_downlight

    def require(self, capability: str) -> None:
        """Raise CapabilityError unless ``has_<capability>`` is true."""
        if not getattr(self, f"has_{capability}", False):
            raise CapabilityError(capability, self.name)


LUNA = PortModel(
    name="LUNA",
    port_count=1,
    has_cable_lock=True,
    has_led_ring=True,
    has_downlight=False,
    has_outlet=False,
    min_poll_seconds=19,
    max_poll_seconds=60,
    retry_seconds=19,
)

AURA = PortModel(
    name="AURA",
    port_count=2,
    has_cable_lock=True,
    has_led_ring=True,
    has_downlight=False,
    has_outlet=False,
    min_poll_seconds=14,
    max_poll_seconds=60,
    retry_seconds=15,
)

HALO = PortModel(
    name="HALO",
    port_count=1,
    has_cable_lock=False,
    has_led_ring=True,
    has_downlight=True,
    has_outlet=True,
    min_poll_seconds=19,
    max_poll_seconds=90,
    retry_seconds=19,
)

PORT_MODELS: Dict[str, PortModel] = {m.name: m for m in (LUNA, AURA, HALO)}


def get_port_model(name: str) -> PortModel:
    """Look up a device variant by its vendor type name (case-insensitive)."""
    try:
        return PORT_MODELS[name.upper()]
    except (KeyError, AttributeError) as e:
        raise ConfigurationError(
            f"Unknown device model, expected one of {sorted(PORT_MODELS)}",
            config_field="model",
            config_value=name,
        ) from e


def active_ports(model: PortModel, port_access: str = PortAccess.BOTH) -> Tuple[int, ...]:
    """Return the connector indices the engine polls and controls."""
    if model.port_count < 2 or port_access == PortAccess.BOTH:
        return tuple(range(1, model.port_count + 1))
    if port_access == PortAccess.PORT1:
        return (1,)
    return (2,)


@dataclasses.dataclass
class PortState:
    """Locally held state of one charging connector."""

    index: int
    active: bool = True
    current_limit: Optional[float] = None
    mode: Optional[str] = None
    rfid_lock: Optional[bool] = None
    cable_lock: Optional[bool] = None
    connection_state: Optional[str] = None
    now_consumption_kwh: float = 0.0
    charging_power_kw: float = 0.0

    @property
    def is_on(self) -> bool:
        return self.mode == ChargerMode.ON

    def hold_placeholder(self) -> None:
        """Park an inactive port in its fixed Off/Disconnected state."""
        self.active = False
        self.mode = ChargerMode.OFF
        self.connection_state = ConnectionState.DISCONNECTED
        self.now_consumption_kwh = 0.0
        self.charging_power_kw = 0.0


@dataclasses.dataclass
class AuxiliaryState:
    """Device-level features that are not tied to a charging port."""

    led_dimmer: Optional[str] = None
    down_light: Optional[bool] = None
    outlet_mode: Optional[str] = None


@dataclasses.dataclass
class DeviceState:
    """All state owned by one engine instance."""

    device_id: str
    model: PortModel
    port_access: str = PortAccess.BOTH
    ports: Dict[int, PortState] = dataclasses.field(default_factory=dict)
    aux: AuxiliaryState = dataclasses.field(default_factory=AuxiliaryState)
    firmware_version: Optional[str] = None
    protocol: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.ports:
            enabled = active_ports(self.model, self.port_access)
            for index in range(1, self.model.port_count + 1):
                port = PortState(index=index)
                if index not in enabled:
                    port.hold_placeholder()
                self.ports[index] = port

    @property
    def active_port_indices(self) -> List[int]:
        return [i for i, p in self.ports.items() if p.active]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "model": self.model.name,
            "port_access": self.port_access,
            "firmware_version": self.firmware_version,
            "protocol": self.protocol,
            "aux": dataclasses.asdict(self.aux),
            "ports": {str(i): dataclasses.asdict(p) for i, p in self.ports.items()},
        }


_cycle_counter = itertools.count(1)


@dataclasses.dataclass
class PollCycle:
    """Context of one run of the polling pipeline.

    Stages read and write through this object instead of through engine
    attributes, so everything a cycle learned is discarded with it.
    """

    kind: str = "short"
    cycle_id: int = dataclasses.field(default_factory=lambda: next(_cycle_counter))
    started_at: float = dataclasses.field(default_factory=time.monotonic)
    errors: List[str] = dataclasses.field(default_factory=list)
