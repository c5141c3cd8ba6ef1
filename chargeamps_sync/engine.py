"""Polling pipeline and scheduling for one ChargeAmps device.

``DeviceSyncEngine`` mirrors a charger's remote state into the host and
owns everything needed to do so: the auth session, the per-port state
machines, the consumption accountant and the command controllers.

Two loops drive it:
    - the short poll loop, which runs ``status -> charging info`` and picks
      its next delay from how long the cycle took;
    - the renewal loop, which renews the token 30 minutes after login and
      every 59 minutes after that, each time followed by the hourly refresh
      ``owned devices -> light -> outlet -> charger settings -> charging info``.

Every stage is guarded on its own so one failing call never keeps the
following stages from running.
"""

import asyncio
import dataclasses
import logging
import math
from typing import Any, Dict, List, Optional

import aiohttp

from .auth import AuthSession
from .client import RemoteChargerClient
from .config import AccountConfig, DeviceConfig
from .constants import (
    ChargerMode,
    ConnectionState,
    Events,
    PortAccess,
    Protocol,
    SessionSchedule,
)
from .consumption import ConsumptionAccountant, ConsumptionReading, estimate_power
from .error_recovery import ErrorAggregator, guarded_stage
from .exceptions import ValidationError
from .implementations import SystemTimeProvider
from .interfaces import IEventEmitter, IStatePublisher, ITimeProvider
from .logging_utils import log_charging_event, log_context, log_performance
from .models import DeviceState, PollCycle, get_port_model
from .ports import AuxiliaryController, PortController, emit_safely, parse_remote_mode
from .state_machine import ConnectionStateMachine

logger = logging.getLogger(__name__)


def compute_next_delay(elapsed: float, min_seconds: float, max_seconds: float) -> int:
    """Pick the next poll delay from the duration of the last cycle.

    The delay grows by two thirds of the elapsed time on top of the
    minimum, is clamped to ``[min_seconds, max_seconds]`` and rounded half
    up to whole seconds.
    """
    delay = max(min_seconds, min(max_seconds, min_seconds + elapsed * 2 / 3))
    return int(math.floor(delay + 0.5))


class DeviceSyncEngine:
    """Synchronizes one charger with the host platform."""

    def __init__(
        self,
        device: DeviceState,
        client: RemoteChargerClient,
        auth: AuthSession,
        publisher: IStatePublisher,
        emitter: IEventEmitter,
        time_provider: Optional[ITimeProvider] = None,
    ) -> None:
        self.device = device
        self.model = device.model
        self.client = client
        self.auth = auth
        self.publisher = publisher
        self.emitter = emitter
        self.time = time_provider or SystemTimeProvider()

        self.ports: Dict[int, PortController] = {
            index: PortController(
                device.device_id,
                port,
                self.model,
                client,
                publisher,
                emitter,
                self.time,
            )
            for index, port in device.ports.items()
        }
        self.aux = AuxiliaryController(device, client, publisher, emitter)
        self.state_machines: Dict[int, ConnectionStateMachine] = {
            index: ConnectionStateMachine(index) for index in device.active_port_indices
        }
        self.accountant = ConsumptionAccountant(device.active_port_indices)
        self.errors = ErrorAggregator()

        self.busy = False
        self.next_poll_delay: Optional[int] = None
        self._poll_task: Optional["asyncio.Task[None]"] = None
        self._renew_task: Optional["asyncio.Task[None]"] = None

    @classmethod
    def from_config(
        cls,
        device_config: DeviceConfig,
        account: AccountConfig,
        http: aiohttp.ClientSession,
        publisher: IStatePublisher,
        emitter: IEventEmitter,
        time_provider: Optional[ITimeProvider] = None,
    ) -> "DeviceSyncEngine":
        """Wire an engine, with its own auth session, from configuration."""
        auth = AuthSession(http, account)
        device = DeviceState(
            device_id=device_config.id,
            model=get_port_model(device_config.model),
            port_access=device_config.port_access,
        )
        return cls(
            device,
            RemoteChargerClient(http, auth),
            auth,
            publisher,
            emitter,
            time_provider,
        )

    @property
    def device_id(self) -> str:
        return self.device.device_id

    @property
    def running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Log in, load the hourly data and arm both loops.

        Raises:
            CredentialsMissingError: A credential is empty.
            AuthFailureError: The login was rejected.
            NetworkTimeoutError, RemoteApiError: The login could not complete.

        Nothing is scheduled when the login fails.
        """
        with log_context(device_id=self.device_id, component="engine"):
            logger.info(
                f"Starting {self.model.name} device, port access "
                f"'{self.device.port_access}'"
            )
            try:
                await self.auth.login()
            except Exception as e:
                logger.error(f"Login failed, device will not start: {e}")
                raise

            self._seed_meters()
            self._publish_placeholders()
            await self.run_hourly_refresh()

            self._poll_task = asyncio.create_task(self._poll_loop())
            self._renew_task = asyncio.create_task(self._renewal_loop())

    async def stop(self) -> None:
        """Cancel both loops. A request already in flight is abandoned."""
        tasks = [t for t in (self._poll_task, self._renew_task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._poll_task = None
        self._renew_task = None
        self.errors.log_error_summary()
        logger.info(f"Device {self.device_id} stopped")

    def _seed_meters(self) -> None:
        # Host storage may still hold the lifetime meter from a previous run
        for index in self.device.active_port_indices:
            stored = self.publisher.get_value(f"{index}.meter")
            if isinstance(stored, (int, float)) and not isinstance(stored, bool):
                self.accountant.ledger(index).meter_total_kwh = float(stored)

    def _publish_placeholders(self) -> None:
        for index, port in self.device.ports.items():
            if port.active:
                continue
            self.publisher.set_value(f"{index}.car_connected", port.connection_state)
            self.publisher.set_value(f"{index}.charger_status", port.mode)
            self.publisher.set_value(f"{index}.onoff", False)

    async def _poll_loop(self) -> None:
        while True:
            delay = await self.poll_tick()
            self.next_poll_delay = delay
            logger.debug(f"Next poll of {self.device_id} in {delay} seconds")
            await self.time.sleep(delay)

    async def _renewal_loop(self) -> None:
        await self.time.sleep(SessionSchedule.FIRST_RENEWAL)
        while True:
            with log_context(device_id=self.device_id, component="renewal"):
                try:
                    await self.auth.renew()
                    await self.run_hourly_refresh()
                except Exception as e:
                    logger.exception(f"Renewal cycle failed: {e}")
                    self.errors.record_error(e, self.device_id, "renewal")
            await self.time.sleep(SessionSchedule.RENEWAL_INTERVAL)

    # ------------------------------------------------------------------
    # Short cycle
    # ------------------------------------------------------------------

    async def poll_tick(self) -> int:
        """Run one short cycle unless one is in flight; return the next delay."""
        if self.busy:
            logger.debug(
                f"Cycle still running, retrying in {self.model.retry_seconds} seconds"
            )
            return self.model.retry_seconds

        start = self.time.now()
        try:
            await self.run_short_cycle()
        except Exception as e:
            logger.exception(f"Polling cycle failed: {e}")
            self.errors.record_error(e, self.device_id, "short_cycle")
            return self.model.retry_seconds

        elapsed = self.time.now() - start
        log_performance(logger, "short_cycle", elapsed * 1000, device_id=self.device_id)
        return compute_next_delay(
            elapsed, self.model.min_poll_seconds, self.model.max_poll_seconds
        )

    async def run_short_cycle(self) -> bool:
        """Run ``status -> charging info`` once.

        Returns:
            False if another cycle held the busy flag and nothing ran.
        """
        if self.busy:
            return False

        self.busy = True
        try:
            cycle = PollCycle(kind="short", started_at=self.time.now())
            with log_context(
                device_id=self.device_id, component="engine", cycle_id=cycle.cycle_id
            ):
                async with guarded_stage(
                    "status", logger, self.errors, self.device_id, cycle.errors
                ):
                    await self._stage_status()
                await self._stage_charging_info(cycle)
                if cycle.errors:
                    logger.info(
                        f"Cycle {cycle.cycle_id} finished with {len(cycle.errors)} "
                        "failed stage(s)"
                    )
        finally:
            self.busy = False
        return True

    def _connector_slot(self, index: int) -> int:
        # A port2-only account sees port 2 as the first connector entry
        if self.device.port_access == PortAccess.PORT2 and self.model.port_count > 1:
            return 0
        return index - 1

    async def _stage_status(self) -> None:
        status = await self.client.get_status(self.device_id)
        connectors = status.get("connectorStatuses") or []

        for index in self.device.active_port_indices:
            slot = self._connector_slot(index)
            if slot >= len(connectors) or not isinstance(connectors[slot], dict):
                logger.warning(f"No connector status for port {index}")
                continue
            entry = connectors[slot]

            port = self.device.ports[index]
            try:
                port.now_consumption_kwh = float(entry.get("totalConsumptionKwh") or 0)
            except (TypeError, ValueError):
                logger.warning(
                    f"Port {index}: unusable totalConsumptionKwh "
                    f"{entry.get('totalConsumptionKwh')!r}, using 0"
                )
                port.now_consumption_kwh = 0.0
            port.charging_power_kw = estimate_power(
                entry.get("measurements"), port.charging_power_kw
            )

            raw_status = entry.get("status")
            if raw_status is None:
                logger.warning(f"Port {index}: status missing from response")
                continue
            await self._apply_connection_status(index, str(raw_status))

    async def _apply_connection_status(self, index: int, raw_status: str) -> None:
        transition = self.state_machines[index].update(raw_status)
        port = self.device.ports[index]
        port.connection_state = transition.state
        self.publisher.set_value(f"{index}.car_connected", transition.state)

        if transition.event:
            with log_context(port=index):
                log_charging_event(
                    logger,
                    transition.event,
                    port=index,
                    state=transition.state,
                    energy_kwh=port.now_consumption_kwh,
                )
            await emit_safely(self.emitter, transition.event, self.device_id, index)

    async def _stage_charging_info(self, cycle: PollCycle) -> None:
        for index in self.device.active_port_indices:
            async with guarded_stage(
                f"charging_info[{index}]",
                logger,
                self.errors,
                self.device_id,
                cycle.errors,
            ):
                await self._update_consumption(index)

        if self.model.port_count > 1:
            totals = self.accountant.aggregate()
            self.publisher.set_value("both.measure", totals["measure"])
            self.publisher.set_value("both.meter", totals["meter"])

    async def _update_consumption(self, index: int) -> None:
        port = self.device.ports[index]
        if port.mode == ChargerMode.OFF:
            logger.debug(f"Port {index} is off, skipping charging sessions")
            self._publish_reading(
                self.accountant.idle_reading(index, port.now_consumption_kwh)
            )
            return

        rows = await self.client.get_charging_sessions(self.device_id, index)
        reading = self.accountant.update(
            index, port.now_consumption_kwh, rows, port.charging_power_kw
        )
        self._publish_reading(reading)

    def _publish_reading(self, reading: ConsumptionReading) -> None:
        prefix = reading.port
        self.publisher.set_value(f"{prefix}.measure", reading.measure_kw)
        self.publisher.set_value(f"{prefix}.meter", reading.meter_kwh)
        if reading.last_charged is not None:
            self.publisher.set_value(f"{prefix}.last_charged", reading.last_charged)
        self.publisher.set_value(f"{prefix}.now_charged", reading.now_charged)

    # ------------------------------------------------------------------
    # Hourly refresh
    # ------------------------------------------------------------------

    async def run_hourly_refresh(self) -> None:
        """Reload device info, lighting, outlet and per-port settings."""
        cycle = PollCycle(kind="hourly", started_at=self.time.now())
        with log_context(
            device_id=self.device_id, component="hourly", cycle_id=cycle.cycle_id
        ):
            logger.info("Collecting hourly device information")
            stage_args = (logger, self.errors, self.device_id, cycle.errors)

            async with guarded_stage("owned_devices", *stage_args):
                await self._stage_owned_devices()
            if self.model.has_lighting:
                async with guarded_stage("light", *stage_args):
                    await self._stage_light()
            if self.model.has_outlet:
                async with guarded_stage("outlet", *stage_args):
                    await self._stage_outlet()
            for index in self.device.active_port_indices:
                async with guarded_stage(f"charger_info[{index}]", *stage_args):
                    await self._stage_charger_info(index)
            await self._stage_charging_info(cycle)

            log_performance(
                logger,
                "hourly_refresh",
                (self.time.now() - cycle.started_at) * 1000,
                success=not cycle.errors,
            )

    async def _stage_owned_devices(self) -> None:
        devices = await self.client.get_owned_devices()
        match = next(
            (d for d in devices if isinstance(d, dict) and d.get("id") == self.device_id),
            None,
        )
        if match is None:
            logger.error(f"Device {self.device_id} not found among owned charge points")
            return

        self.device.firmware_version = match.get("firmwareVersion")
        self.device.protocol = (
            Protocol.CAPI if match.get("ocppVersion") is None else Protocol.OCPP
        )
        logger.info(
            f"Firmware {self.device.firmware_version}, protocol {self.device.protocol}"
        )
        self.publisher.set_value("firmware_version", self.device.firmware_version)
        self.publisher.set_value("protocol", self.device.protocol)

    async def _stage_light(self) -> None:
        settings = await self.client.get_device_settings(self.device_id)
        aux = self.device.aux
        aux.led_dimmer = settings.get("dimmer", aux.led_dimmer)
        if self.model.has_downlight:
            aux.down_light = settings.get("downLight", aux.down_light)
        self.aux.publish_lighting()

    async def _stage_outlet(self) -> None:
        data = await self.client.get_connector_settings(self.device_id, 2)
        mode = parse_remote_mode(data.get("mode"))
        previous = self.device.aux.outlet_mode
        self.device.aux.outlet_mode = mode
        self.aux.publish_outlet()

        if previous is not None and mode is not None and mode != previous:
            event = (
                Events.OUTLET_SWITCHED_ON
                if mode == ChargerMode.ON
                else Events.OUTLET_SWITCHED_OFF
            )
            logger.info(f"Outlet switched {mode} remotely")
            await emit_safely(self.emitter, event, self.device_id)

    async def _stage_charger_info(self, index: int) -> None:
        data = await self.client.get_connector_settings(self.device_id, index)
        self.ports[index].apply_remote_settings(data)

    # ------------------------------------------------------------------
    # Commands and queries
    # ------------------------------------------------------------------

    def port(self, index: int) -> PortController:
        if index not in self.ports:
            raise ValidationError("port", index, f"must be one of {sorted(self.ports)}")
        return self.ports[index]

    async def refresh(self) -> bool:
        """Run a short cycle now, unless one is already running."""
        with log_context(device_id=self.device_id, component="engine"):
            return await self.run_short_cycle()

    def is_car_connected(self, index: int) -> bool:
        return self.port(index).state.connection_state == ConnectionState.CONNECTED

    def is_charging(self, index: int) -> bool:
        return self.port(index).state.connection_state == ConnectionState.CHARGING

    def is_rfid_on(self, index: int) -> bool:
        return bool(self.port(index).state.rfid_lock)

    def is_cable_lock_on(self, index: int) -> bool:
        return bool(self.port(index).state.cable_lock)

    def is_outlet_on(self) -> bool:
        return self.device.aux.outlet_mode == ChargerMode.ON

    def snapshot(self) -> Dict[str, Any]:
        """JSON-serializable view of the device for status endpoints."""
        return {
            "device": self.device.to_dict(),
            "ledgers": {
                str(i): dataclasses.asdict(ledger)
                for i, ledger in self.accountant.ledgers.items()
            },
            "published": self.publisher.snapshot(),
            "busy": self.busy,
            "running": self.running,
            "next_poll_delay": self.next_poll_delay,
            "errors": self.errors.get_error_summary(),
        }

    def recent_errors(self, limit: int = 10) -> List[Dict[str, Any]]:
        return self.errors.errors[-limit:]
