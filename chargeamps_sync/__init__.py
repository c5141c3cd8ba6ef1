"""Cloud synchronization engine for ChargeAmps EV chargers."""

__version__ = "1.0.0"

from .config import Config, load_config
from .engine import DeviceSyncEngine
from .exceptions import (
    AuthFailureError,
    CapabilityError,
    ChargerSyncError,
    ConfigurationError,
    CredentialsMissingError,
    NetworkTimeoutError,
    NotAuthenticatedError,
    RemoteApiError,
    UnexpectedShapeError,
    ValidationError,
)
from .models import AURA, HALO, LUNA, PortModel, get_port_model

__all__ = [
    "Config",
    "load_config",
    "DeviceSyncEngine",
    "PortModel",
    "LUNA",
    "AURA",
    "HALO",
    "get_port_model",
    "ChargerSyncError",
    "ConfigurationError",
    "ValidationError",
    "CredentialsMissingError",
    "AuthFailureError",
    "NotAuthenticatedError",
    "NetworkTimeoutError",
    "RemoteApiError",
    "UnexpectedShapeError",
    "CapabilityError",
]
