"""Centralized constants for the ChargeAmps sync engine."""


class ApiEndpoints:
    """ChargeAmps REST API base URL and path templates."""

    BASE_URL = "https://eapi.charge.space/api/v5"

    LOGIN = "/auth/login"
    REFRESH_TOKEN = "/auth/refreshtoken"
    OWNED_CHARGEPOINTS = "/chargepoints/owned"
    STATUS = "/chargepoints/{device_id}/status"
    DEVICE_SETTINGS = "/chargepoints/{device_id}/settings"
    CONNECTOR_SETTINGS = "/chargepoints/{device_id}/connectors/{connector}/settings"
    REMOTE_STOP = "/chargepoints/{device_id}/connectors/{connector}/remotestop"
    CHARGING_SESSIONS = (
        "/chargepoints/{device_id}/connectors/{connector}/chargingsessions"
    )


class TimeoutDefaults:
    """Request timeouts in seconds."""

    CLIENT = 25.0
    LOGIN = 90.0
    DATA = 90.0
    RENEWAL = 120.0


class SessionSchedule:
    """Token renewal schedule in seconds."""

    FIRST_RENEWAL = 30 * 60
    RENEWAL_INTERVAL = 59 * 60


class CommandDefaults:
    """Command dispatch defaults."""

    STOP_SETTLE_SECONDS = 2.0
    OUTLET_CONNECTOR = 2
    CHARGING_SESSIONS_MAX_COUNT = 2
    MAX_MEASUREMENTS = 3


class ConnectionState:
    """Connection states exposed to the host.

    Raw vendor statuses outside this set are passed through verbatim.
    """

    DISCONNECTED = "Disconnected"
    CONNECTED = "Connected"
    CHARGING = "Charging"
    FINISHING = "Finishing"
    UNKNOWN = "Unknown"


class RawStatus:
    """Connector status strings reported by the vendor API."""

    AVAILABLE = "Available"
    CONNECTED = "Connected"
    CHARGING = "Charging"
    SUSPENDED_EV = "SuspendedEV"
    FINISHING = "Finishing"


class ChargerMode:
    """Connector mode values used on the wire."""

    ON = "On"
    OFF = "Off"


class DimmerLevel:
    """LED ring dimmer levels accepted by the device settings endpoint."""

    OFF = "Off"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    ALL = (OFF, LOW, MEDIUM, HIGH)


class PortAccess:
    """Which ports of a dual-port device are under control."""

    BOTH = "both"
    PORT1 = "port1"
    PORT2 = "port2"

    ALL = (BOTH, PORT1, PORT2)


class Events:
    """Outbound event names fired to the host."""

    CHARGER_CONNECTED = "chargerConnected"
    CHARGER_DISCONNECTED = "chargerDisconnected"
    CHARGER_CHARGING = "chargerCharging"
    CHARGING_COMPLETED = "chargingCompleted"
    RFID_SWITCHED_ON = "rfidSwitchedOn"
    RFID_SWITCHED_OFF = "rfidSwitchedOff"
    CABLE_LOCK_SWITCHED_ON = "cableLockSwitchedOn"
    CABLE_LOCK_SWITCHED_OFF = "cableLockSwitchedOff"
    SWITCHED_ON = "switchedOn"
    SWITCHED_OFF = "switchedOff"
    OUTLET_SWITCHED_ON = "outletSwitchedOn"
    OUTLET_SWITCHED_OFF = "outletSwitchedOff"


class Protocol:
    """Protocol flag published from the owned-device listing."""

    CAPI = "CAPI"
    OCPP = "OCPP"
