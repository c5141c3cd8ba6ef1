"""Command dispatch for charging ports and device-level features.

Commands follow an optimistic-write policy: local state is updated and
published first, then the remote call is made. A failed remote call is
logged, never raised, and the next poll overwrites the optimistic value with
whatever the charger really reports.
"""

import logging
from typing import Any, Dict, Optional, Union

from .client import RemoteChargerClient
from .constants import ChargerMode, CommandDefaults, DimmerLevel, Events, PortAccess
from .exceptions import CapabilityError, ChargerSyncError, ValidationError
from .interfaces import IEventEmitter, IStatePublisher, ITimeProvider
from .models import DeviceState, PortModel, PortState

logger = logging.getLogger(__name__)

ModeValue = Union[str, int, bool, None]


def normalize_mode(mode: ModeValue) -> Optional[str]:
    """Map the accepted mode spellings onto the wire values ``On``/``Off``."""
    if mode is None:
        return None
    if isinstance(mode, str):
        if mode.lower() in ("on", "1", "true"):
            return ChargerMode.ON
        if mode.lower() in ("off", "0", "false"):
            return ChargerMode.OFF
        raise ValidationError("mode", mode, "must be On/Off, 1/0 or a boolean")
    return ChargerMode.ON if mode else ChargerMode.OFF


def parse_remote_mode(mode: ModeValue) -> Optional[str]:
    """Map a mode read from the API, keeping values other than On/Off as given.

    Only ``On`` counts as switched on, so a mode such as ``Schedule`` is
    published unchanged and reported as not on.
    """
    try:
        return normalize_mode(mode)
    except ValidationError:
        logger.warning(f"Unrecognised charger mode {mode!r}, treating it as not on")
        return str(mode)


def on_off(flag: Optional[bool]) -> str:
    return ChargerMode.ON if flag else ChargerMode.OFF


async def emit_safely(
    emitter: IEventEmitter, event: str, device_id: str, port: Optional[int] = None
) -> None:
    """Fire an event, logging instead of raising when the host rejects it."""
    try:
        await emitter.trigger(event, device_id, port)
    except Exception as e:
        logger.error(f"Failed to fire event '{event}' for port {port}: {e}")


class PortController:
    """Command surface of one charging port."""

    def __init__(
        self,
        device_id: str,
        state: PortState,
        model: PortModel,
        client: RemoteChargerClient,
        publisher: IStatePublisher,
        emitter: IEventEmitter,
        time_provider: ITimeProvider,
    ) -> None:
        self.device_id = device_id
        self.state = state
        self.model = model
        self.client = client
        self.publisher = publisher
        self.emitter = emitter
        self.time = time_provider

    @property
    def index(self) -> int:
        return self.state.index

    def _key(self, name: str) -> str:
        return f"{self.index}.{name}"

    def _accepts_commands(self, command: str) -> bool:
        if not self.state.active:
            logger.warning(
                f"Port {self.index} is excluded by port access, ignoring {command}"
            )
            return False
        return True

    def _require_known_mode(self, command: str) -> None:
        if self.state.mode is None:
            raise ValidationError(
                "mode",
                None,
                f"port {self.index} settings not read yet, cannot {command}",
            )

    def publish_settings(self) -> None:
        """Publish the current limit, mode and lock states of the port."""
        self.publisher.set_value(self._key("current_limit"), self.state.current_limit)
        self.publisher.set_value(self._key("charger_status"), self.state.mode)
        self.publisher.set_value(self._key("onoff"), self.state.is_on)
        self.publisher.set_value(self._key("rfid_status"), on_off(self.state.rfid_lock))
        if self.model.has_cable_lock:
            self.publisher.set_value(
                self._key("cable_lock_status"), on_off(self.state.cable_lock)
            )

    def apply_remote_settings(self, data: Dict[str, Any]) -> None:
        """Take over settings read from the connector settings endpoint."""
        self.state.current_limit = data.get("maxCurrent", self.state.current_limit)
        self.state.mode = parse_remote_mode(data.get("mode", self.state.mode))
        self.state.rfid_lock = data.get("rfidLock", self.state.rfid_lock)
        if self.model.has_cable_lock:
            self.state.cable_lock = data.get("cableLock", self.state.cable_lock)
        else:
            self.state.cable_lock = False
        self.publish_settings()

    async def set_settings(
        self,
        current: Optional[float],
        rfid_lock: Optional[bool],
        mode: ModeValue,
        cable_lock: Optional[bool],
    ) -> bool:
        """Write the full settings tuple to the connector.

        Turning the port off first asks the charger to stop the running
        session. That stop is best-effort; the settings write is sent
        whether or not it succeeded.

        Returns:
            True if the settings write was accepted by the API.
        """
        # A mode read back from the charger is written back unchanged
        wire_mode = mode if mode == self.state.mode else normalize_mode(mode)
        if wire_mode is None:
            raise ValidationError("mode", mode, "must be known before writing settings")
        if not self.model.has_cable_lock:
            cable_lock = False

        logger.info(
            f"Port {self.index}: writing settings current={current} "
            f"rfid={rfid_lock} mode={wire_mode} cable_lock={cable_lock}"
        )

        if wire_mode == ChargerMode.OFF:
            try:
                await self.client.put_remote_stop(self.device_id, self.index)
            except ChargerSyncError as e:
                logger.warning(f"Port {self.index}: remote stop failed: {e}")
            await self.time.sleep(CommandDefaults.STOP_SETTLE_SECONDS)

        try:
            await self.client.put_connector_settings(
                self.device_id,
                self.index,
                {
                    "maxCurrent": current,
                    "rfidLock": rfid_lock,
                    "mode": wire_mode,
                    "cableLock": cable_lock,
                },
            )
        except ChargerSyncError as e:
            logger.error(f"Port {self.index}: settings write failed: {e}")
            return False
        return True

    async def _write_state(self) -> bool:
        return await self.set_settings(
            self.state.current_limit,
            self.state.rfid_lock,
            self.state.mode,
            self.state.cable_lock,
        )

    async def set_current(self, amps: float) -> bool:
        try:
            amps = float(amps)
        except (TypeError, ValueError) as e:
            raise ValidationError("current", amps, "must be a number") from e
        if amps <= 0:
            raise ValidationError("current", amps, "must be positive")
        if not self._accepts_commands("set_current"):
            return False
        self._require_known_mode("set_current")

        self.state.current_limit = amps
        self.publisher.set_value(self._key("current_limit"), amps)
        return await self._write_state()

    async def set_mode(self, on: ModeValue) -> bool:
        wire_mode = normalize_mode(on)
        if wire_mode is None:
            raise ValidationError("mode", on, "must be On or Off")
        if not self._accepts_commands("set_mode"):
            return False

        await emit_safely(
            self.emitter,
            Events.SWITCHED_ON if wire_mode == ChargerMode.ON else Events.SWITCHED_OFF,
            self.device_id,
            self.index,
        )
        self.state.mode = wire_mode
        self.publisher.set_value(self._key("charger_status"), wire_mode)
        self.publisher.set_value(self._key("onoff"), self.state.is_on)
        return await self._write_state()

    async def set_rfid(self, enabled: bool) -> bool:
        if not self._accepts_commands("set_rfid"):
            return False
        self._require_known_mode("set_rfid")

        enabled = bool(enabled)
        await emit_safely(
            self.emitter,
            Events.RFID_SWITCHED_ON if enabled else Events.RFID_SWITCHED_OFF,
            self.device_id,
            self.index,
        )
        self.state.rfid_lock = enabled
        self.publisher.set_value(self._key("rfid_status"), on_off(enabled))
        return await self._write_state()

    async def set_cable_lock(self, enabled: bool) -> bool:
        try:
            self.model.require("cable_lock")
        except CapabilityError as e:
            logger.warning(f"Ignoring set_cable_lock: {e}")
            return False
        if not self._accepts_commands("set_cable_lock"):
            return False
        self._require_known_mode("set_cable_lock")

        enabled = bool(enabled)
        await emit_safely(
            self.emitter,
            Events.CABLE_LOCK_SWITCHED_ON if enabled else Events.CABLE_LOCK_SWITCHED_OFF,
            self.device_id,
            self.index,
        )
        self.state.cable_lock = enabled
        self.publisher.set_value(self._key("cable_lock_status"), on_off(enabled))
        return await self._write_state()


class AuxiliaryController:
    """Device-level LED ring, downlight and outlet commands."""

    def __init__(
        self,
        device: DeviceState,
        client: RemoteChargerClient,
        publisher: IStatePublisher,
        emitter: IEventEmitter,
    ) -> None:
        self.device = device
        self.client = client
        self.publisher = publisher
        self.emitter = emitter

    @property
    def model(self) -> PortModel:
        return self.device.model

    def publish_lighting(self) -> None:
        aux = self.device.aux
        if self.model.has_led_ring:
            self.publisher.set_value("led_ring_status", aux.led_dimmer)
        if self.model.has_downlight:
            self.publisher.set_value("downlight_status", on_off(aux.down_light))

    def publish_outlet(self) -> None:
        if self.model.has_outlet:
            self.publisher.set_value("outlet_status", self.device.aux.outlet_mode)

    async def set_light_and_dimmer(
        self, light: Optional[bool], dimmer: Optional[str]
    ) -> bool:
        """Set the LED ring dimmer and, where present, the downlight.

        Rejected without a network call when the device has no controllable
        lighting, or when port access restricts a dual-port device to one
        port.
        """
        if dimmer is not None and dimmer not in DimmerLevel.ALL:
            raise ValidationError("dimmer", dimmer, f"must be one of {DimmerLevel.ALL}")

        try:
            self.model.require("lighting")
            if light is not None:
                self.model.require("downlight")
        except CapabilityError as e:
            logger.warning(f"Ignoring lighting command: {e}")
            return False
        if self.device.port_access != PortAccess.BOTH and self.model.port_count > 1:
            logger.warning(
                "LED ring control requires port access 'both', "
                f"current setting is '{self.device.port_access}'"
            )
            return False

        aux = self.device.aux
        if dimmer is not None:
            aux.led_dimmer = dimmer
        if light is not None:
            aux.down_light = bool(light)
        self.publish_lighting()

        settings: Dict[str, Any] = {"dimmer": aux.led_dimmer}
        if self.model.has_downlight:
            settings["downLight"] = aux.down_light

        logger.info(f"Writing device lighting settings {settings}")
        try:
            await self.client.put_device_settings(self.device.device_id, settings)
        except ChargerSyncError as e:
            logger.error(f"Lighting settings write failed: {e}")
            return False
        return True

    async def set_outlet(self, on: bool) -> bool:
        """Switch the auxiliary outlet on connector 2."""
        try:
            self.model.require("outlet")
        except CapabilityError as e:
            logger.warning(f"Ignoring set_outlet: {e}")
            return False

        mode = on_off(on)
        await emit_safely(
            self.emitter,
            Events.OUTLET_SWITCHED_ON if on else Events.OUTLET_SWITCHED_OFF,
            self.device.device_id,
        )
        self.device.aux.outlet_mode = mode
        self.publish_outlet()

        rfid_lock = self.device.ports[1].rfid_lock if 1 in self.device.ports else None
        try:
            await self.client.put_connector_settings(
                self.device.device_id,
                CommandDefaults.OUTLET_CONNECTOR,
                {"rfidLock": rfid_lock, "mode": mode, "cableLock": False},
            )
        except ChargerSyncError as e:
            logger.error(f"Outlet settings write failed: {e}")
            return False
        return True
