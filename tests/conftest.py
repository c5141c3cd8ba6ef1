"""Pytest configuration and shared fixtures."""

import json
import logging
import os
import tempfile
from typing import Any, Dict, Generator, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from chargeamps_sync.auth import AuthSession
from chargeamps_sync.client import RemoteChargerClient
from chargeamps_sync.config import (
    AccountConfig,
    Config,
    DeviceConfig,
    LoggingConfig,
    WebConfig,
)
from chargeamps_sync.engine import DeviceSyncEngine
from chargeamps_sync.mocks import MockEventEmitter, MockStatePublisher, MockTimeProvider
from chargeamps_sync.models import DeviceState, PortModel, get_port_model

# Disable logging during tests unless explicitly enabled
logging.disable(logging.CRITICAL)


@pytest.fixture
def sample_config() -> Config:
    """Sample configuration for testing."""
    return Config(
        account=AccountConfig(
            email="owner@example.com", password="hunter2", api_key="key-123"
        ),
        devices=[
            DeviceConfig(id="2012000123A", model="LUNA", name="Garage"),
            DeviceConfig(id="2103000456B", model="AURA", port_access="port2"),
        ],
        logging=LoggingConfig(level="DEBUG"),
        web=WebConfig(enabled=True, port=8099),
    )


@pytest.fixture
def sample_config_dict() -> Dict[str, Any]:
    return {
        "account": {
            "email": "owner@example.com",
            "password": "hunter2",
            "api_key": "key-123",
        },
        "devices": [
            {"id": "2012000123A", "model": "luna", "name": "Garage"},
            {"id": "2103000456B", "model": "AURA", "port_access": "port1"},
        ],
        "logging": {"level": "INFO", "json_format": True},
        "web": {"enabled": True, "host": "0.0.0.0", "port": 9000},
    }


@pytest.fixture
def temp_config_file(sample_config_dict: Dict[str, Any]) -> Generator[str, None, None]:
    """Write the sample configuration to a temporary YAML file."""
    with tempfile.NamedTemporaryFile(
        mode="w", suffix=".yaml", delete=False, encoding="utf-8"
    ) as f:
        yaml.safe_dump(sample_config_dict, f)
        path = f.name
    yield path
    os.unlink(path)


@pytest.fixture
def publisher() -> MockStatePublisher:
    return MockStatePublisher()


@pytest.fixture
def emitter() -> MockEventEmitter:
    return MockEventEmitter()


@pytest.fixture
def time_provider() -> MockTimeProvider:
    return MockTimeProvider(initial_time=1000.0)


def make_client() -> MagicMock:
    """Client double whose calls succeed with empty but well-formed payloads."""
    client = MagicMock(spec=RemoteChargerClient)
    client.get_owned_devices = AsyncMock(return_value=[])
    client.get_status = AsyncMock(return_value={"connectorStatuses": []})
    client.get_device_settings = AsyncMock(return_value={})
    client.put_device_settings = AsyncMock(return_value=None)
    client.get_connector_settings = AsyncMock(return_value={})
    client.put_connector_settings = AsyncMock(return_value=None)
    client.put_remote_stop = AsyncMock(return_value=None)
    client.get_charging_sessions = AsyncMock(return_value=[])
    return client


def make_auth() -> MagicMock:
    auth = MagicMock(spec=AuthSession)
    auth.login = AsyncMock(return_value=("token", "refresh"))
    auth.renew = AsyncMock(return_value=True)
    return auth


def connector(
    status: str,
    kwh: float = 0.0,
    measurements: Optional[List[Dict[str, float]]] = None,
) -> Dict[str, Any]:
    return {
        "status": status,
        "totalConsumptionKwh": kwh,
        "measurements": measurements or [],
    }


def status_payload(*connectors: Dict[str, Any]) -> Dict[str, Any]:
    return {"connectorStatuses": list(connectors)}


@pytest.fixture
def client() -> MagicMock:
    return make_client()


@pytest.fixture
def auth() -> MagicMock:
    return make_auth()


@pytest.fixture
def make_engine(
    client: MagicMock,
    auth: MagicMock,
    publisher: MockStatePublisher,
    emitter: MockEventEmitter,
    time_provider: MockTimeProvider,
):
    """Factory building an engine around the shared doubles."""

    def _make(model: str = "LUNA", port_access: str = "both") -> DeviceSyncEngine:
        port_model: PortModel = get_port_model(model)
        device = DeviceState("CP-1", port_model, port_access)
        return DeviceSyncEngine(
            device, client, auth, publisher, emitter, time_provider
        )

    return _make


class FakeResponse:
    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self._body = body

    async def text(self) -> str:
        return self._body

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


class FakeHttp:
    """Stands in for aiohttp.ClientSession.request()."""

    def __init__(
        self,
        status: int = 200,
        body: Any = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.respond(status, body)

    def respond(self, status: int, body: Any) -> None:
        self.status = status
        self.body = body if isinstance(body, str) else json.dumps(body)

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return FakeResponse(self.status, self.body)
