"""Configuration management for the ChargeAmps sync engine.

The configuration is loaded from a YAML file into dataclasses that validate
themselves on construction. It covers:
    - ChargeAmps account credentials (email, password, API key)
    - The devices to synchronize, with their model and port access
    - Structured logging
    - The optional local HTTP status/command server

Credentials and the web server address may be overridden from the
environment, so secrets do not have to live in the YAML file.

Example:
    ```python
    from chargeamps_sync.config import load_config

    config = load_config("chargeamps_config.yaml")
    for device in config.devices:
        print(f"Syncing {device.model} {device.id}")
    ```
"""

import dataclasses
import logging
import os
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .constants import PortAccess
from .exceptions import ConfigurationError, ValidationError
from .logging_utils import log_config_event
from .models import PORT_MODELS

logger = logging.getLogger(__name__)

ENV_EMAIL = "CHARGEAMPS_EMAIL"
ENV_PASSWORD = "CHARGEAMPS_PASSWORD"
ENV_API_KEY = "CHARGEAMPS_API_KEY"
ENV_WEB_HOST = "CHARGEAMPS_WEB_HOST"
ENV_WEB_PORT = "CHARGEAMPS_WEB_PORT"


@dataclasses.dataclass
class AccountConfig:
    """ChargeAmps cloud account credentials.

    Empty values are allowed here; the login refuses to run without all
    three, which keeps a half-configured account from reaching the network.

    Attributes:
        email: Account e-mail address.
        password: Account password.
        api_key: Personal API key issued by ChargeAmps.
    """

    email: str = ""
    password: str = ""
    api_key: str = ""

    def __repr__(self) -> str:
        return f"AccountConfig(email={self.email!r}, password=***, api_key=***)"


@dataclasses.dataclass
class DeviceConfig:
    """One charger to synchronize.

    Attributes:
        id: ChargeAmps charge point id.
        model: Device type, one of LUNA, AURA or HALO.
        name: Display name used in logs.
        port_access: Which ports are controlled on dual-port devices.
    """

    id: str
    model: str = "LUNA"
    name: str = ""
    port_access: str = PortAccess.BOTH

    def __post_init__(self) -> None:
        """Validate device configuration."""
        if not self.id:
            raise ValidationError("devices.id", self.id, "must not be empty")
        self.model = str(self.model).upper()
        if self.model not in PORT_MODELS:
            raise ValidationError(
                "devices.model", self.model, f"must be one of {sorted(PORT_MODELS)}"
            )
        if self.port_access not in PortAccess.ALL:
            raise ValidationError(
                "devices.port_access",
                self.port_access,
                f"must be one of {list(PortAccess.ALL)}",
            )
        if not self.name:
            self.name = f"{self.model} {self.id}"


@dataclasses.dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Path to log file, empty for console only.
        max_file_size_mb: Maximum log file size before rotation.
        backup_count: Number of rotated log files to keep.
        console_output: Whether to also log to console.
        json_format: Whether to use JSON formatting.
    """

    level: str = "INFO"
    file: str = ""
    max_file_size_mb: int = 10
    backup_count: int = 5
    console_output: bool = True
    json_format: bool = False

    def __post_init__(self) -> None:
        """Validate logging configuration."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level.upper() not in valid_levels:
            raise ValidationError(
                "logging.level", self.level, f"must be one of {sorted(valid_levels)}"
            )

        if self.max_file_size_mb <= 0:
            raise ValidationError(
                "logging.max_file_size_mb", self.max_file_size_mb, "must be positive"
            )

        if self.backup_count < 0:
            raise ValidationError(
                "logging.backup_count", self.backup_count, "must be non-negative"
            )


@dataclasses.dataclass
class WebConfig:
    """Local HTTP server for status and inbound commands.

    Attributes:
        enabled: Whether to start the server.
        host: Interface to bind.
        port: TCP port to bind.
    """

    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 8088

    def __post_init__(self) -> None:
        try:
            self.port = int(self.port)
        except (TypeError, ValueError) as e:
            raise ValidationError("web.port", self.port, "must be an integer") from e
        if not 0 < self.port < 65536:
            raise ValidationError("web.port", self.port, "must be between 1 and 65535")


@dataclasses.dataclass
class Config:
    """Main configuration container.

    Attributes:
        account: ChargeAmps account credentials.
        devices: Chargers to synchronize.
        logging: Logging configuration.
        web: Local HTTP server configuration.
    """

    account: AccountConfig = dataclasses.field(default_factory=AccountConfig)
    devices: List[DeviceConfig] = dataclasses.field(default_factory=list)
    logging: LoggingConfig = dataclasses.field(default_factory=LoggingConfig)
    web: WebConfig = dataclasses.field(default_factory=WebConfig)

    def __post_init__(self) -> None:
        """Perform basic validation."""
        ids = [d.id for d in self.devices]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValidationError("devices", duplicates, "device ids must be unique")

    def get_device(self, device_id: str) -> Optional[DeviceConfig]:
        for device in self.devices:
            if device.id == device_id:
                return device
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary with validation.

        Args:
            data: Configuration dictionary, typically loaded from YAML.

        Returns:
            Config object with validated settings.

        Raises:
            ConfigurationError: If required sections are missing or malformed.
        """
        if "account" not in data:
            raise ConfigurationError(
                "Missing required 'account' section in configuration.\n"
                "Add an 'account' section with 'email', 'password' and 'api_key'."
            )

        devices_data = data.get("devices") or []
        if not isinstance(devices_data, list):
            raise ConfigurationError(
                "The 'devices' section must be a list",
                config_field="devices",
                config_value=type(devices_data).__name__,
            )

        devices = []
        for index, item in enumerate(devices_data):
            if not isinstance(item, dict) or "id" not in item:
                raise ConfigurationError(
                    "Each device needs at least an 'id' field",
                    config_field=f"devices[{index}]",
                    config_value=item,
                )
            try:
                devices.append(DeviceConfig(**item))
            except TypeError as e:
                raise ConfigurationError(
                    f"Unknown device field: {e}", config_field=f"devices[{index}]"
                ) from e

        try:
            return cls(
                account=AccountConfig(**(data.get("account") or {})),
                devices=devices,
                logging=LoggingConfig(**(data.get("logging") or {})),
                web=WebConfig(**(data.get("web") or {})),
            )
        except TypeError as e:
            raise ConfigurationError(f"Unknown configuration field: {e}") from e


def apply_env_overrides(config: Config, environ: Mapping[str, str] = os.environ) -> Config:
    """Overlay credentials and web address from environment variables."""
    overrides = {
        "email": environ.get(ENV_EMAIL),
        "password": environ.get(ENV_PASSWORD),
        "api_key": environ.get(ENV_API_KEY),
    }
    for field_name, value in overrides.items():
        if value:
            setattr(config.account, field_name, value)
            log_config_event(logger, "override", source="environment", field=field_name)

    if environ.get(ENV_WEB_HOST):
        config.web.host = environ[ENV_WEB_HOST]
    if environ.get(ENV_WEB_PORT):
        try:
            # replace() runs the range check again
            config.web = dataclasses.replace(config.web, port=environ[ENV_WEB_PORT])
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid web port in environment: {e.constraint}",
                config_field=ENV_WEB_PORT,
                config_value=environ[ENV_WEB_PORT],
            ) from e
    return config


def load_config(config_file: str = "chargeamps_config.yaml") -> Config:
    """Load and validate configuration from YAML file.

    Args:
        config_file: Path to YAML configuration file.

    Returns:
        Loaded and validated Config object, with environment overrides applied.

    Raises:
        ConfigurationError: If the file cannot be loaded, parsed or validated.
    """
    try:
        if not os.path.exists(config_file):
            raise FileNotFoundError(f"Configuration file not found: {config_file}")

        with open(config_file, encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                "Configuration file must contain a valid YAML dictionary"
            )

        config = apply_env_overrides(Config.from_dict(config_dict))

        log_config_event(
            logger, "loaded", source=config_file, devices=len(config.devices)
        )
        return config

    except FileNotFoundError as e:
        logger.error(f"Configuration file not found: {config_file}")
        raise ConfigurationError(str(e)) from e
    except yaml.YAMLError as e:
        logger.error(f"Error parsing configuration file: {e}")
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e
    except ConfigurationError:
        raise
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        raise ConfigurationError(
            f"Invalid configuration: {e.constraint}",
            config_field=e.field_name,
            config_value=e.value,
        ) from e
