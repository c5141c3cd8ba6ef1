"""Tests for configuration loading."""

import os
import tempfile

import pytest

from chargeamps_sync.config import (
    AccountConfig,
    Config,
    DeviceConfig,
    LoggingConfig,
    WebConfig,
    apply_env_overrides,
    load_config,
)
from chargeamps_sync.exceptions import ConfigurationError, ValidationError


class TestDeviceConfig:
    def test_defaults(self) -> None:
        device = DeviceConfig(id="CP-1")
        assert device.model == "LUNA"
        assert device.port_access == "both"
        assert device.name == "LUNA CP-1"

    def test_model_is_normalized(self) -> None:
        assert DeviceConfig(id="CP-1", model="halo").model == "HALO"

    def test_unknown_model(self) -> None:
        with pytest.raises(ValidationError):
            DeviceConfig(id="CP-1", model="NOVA")

    def test_invalid_port_access(self) -> None:
        with pytest.raises(ValidationError):
            DeviceConfig(id="CP-1", model="AURA", port_access="port3")

    def test_empty_id(self) -> None:
        with pytest.raises(ValidationError):
            DeviceConfig(id="")


class TestSections:
    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            LoggingConfig(level="VERBOSE")

    def test_invalid_web_port(self) -> None:
        with pytest.raises(ValidationError):
            WebConfig(port=70000)

    def test_web_port_must_be_numeric(self) -> None:
        with pytest.raises(ValidationError):
            WebConfig(port="http")
        assert WebConfig(port="8090").port == 8090

    def test_account_repr_hides_secrets(self) -> None:
        text = repr(AccountConfig("a@b.c", "hunter2", "key-123"))
        assert "hunter2" not in text
        assert "key-123" not in text

    def test_duplicate_device_ids(self) -> None:
        with pytest.raises(ValidationError):
            Config(devices=[DeviceConfig(id="CP-1"), DeviceConfig(id="CP-1")])


class TestFromDict:
    def test_full_document(self, sample_config_dict) -> None:
        config = Config.from_dict(sample_config_dict)

        assert config.account.api_key == "key-123"
        assert [d.model for d in config.devices] == ["LUNA", "AURA"]
        assert config.devices[1].port_access == "port1"
        assert config.logging.json_format is True
        assert config.web.port == 9000
        assert config.get_device("2103000456B") is config.devices[1]
        assert config.get_device("missing") is None

    def test_missing_account(self) -> None:
        with pytest.raises(ConfigurationError):
            Config.from_dict({"devices": []})

    def test_devices_must_be_a_list(self) -> None:
        with pytest.raises(ConfigurationError):
            Config.from_dict({"account": {}, "devices": {"id": "CP-1"}})

    def test_device_without_id(self) -> None:
        with pytest.raises(ConfigurationError):
            Config.from_dict({"account": {}, "devices": [{"model": "LUNA"}]})

    def test_unknown_field(self) -> None:
        with pytest.raises(ConfigurationError):
            Config.from_dict({"account": {"username": "x"}, "devices": []})

    def test_unknown_device_field(self) -> None:
        with pytest.raises(ConfigurationError):
            Config.from_dict({"account": {}, "devices": [{"id": "CP-1", "colour": 1}]})


class TestEnvOverrides:
    def test_credentials_from_environment(self, sample_config) -> None:
        config = apply_env_overrides(
            sample_config,
            {
                "CHARGEAMPS_EMAIL": "env@example.com",
                "CHARGEAMPS_API_KEY": "env-key",
                "CHARGEAMPS_WEB_PORT": "8123",
            },
        )
        assert config.account.email == "env@example.com"
        assert config.account.password == "hunter2"
        assert config.account.api_key == "env-key"
        assert config.web.port == 8123

    def test_invalid_web_port(self, sample_config) -> None:
        with pytest.raises(ConfigurationError):
            apply_env_overrides(sample_config, {"CHARGEAMPS_WEB_PORT": "eighty"})

    def test_out_of_range_web_port(self, sample_config) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            apply_env_overrides(sample_config, {"CHARGEAMPS_WEB_PORT": "70000"})
        assert exc_info.value.config_field == "CHARGEAMPS_WEB_PORT"
        assert sample_config.web.port == 8099


class TestLoadConfig:
    def test_load_from_file(self, temp_config_file, monkeypatch) -> None:
        for name in ("CHARGEAMPS_EMAIL", "CHARGEAMPS_PASSWORD", "CHARGEAMPS_API_KEY"):
            monkeypatch.delenv(name, raising=False)

        config = load_config(temp_config_file)

        assert config.account.email == "owner@example.com"
        assert len(config.devices) == 2

    def test_missing_file(self) -> None:
        with pytest.raises(ConfigurationError):
            load_config("/nonexistent/chargeamps_config.yaml")

    def _write(self, content: str) -> str:
        with tempfile.NamedTemporaryFile(
            mode="w", suffix=".yaml", delete=False, encoding="utf-8"
        ) as f:
            f.write(content)
            return f.name

    def test_invalid_yaml(self) -> None:
        path = self._write("account: [unclosed\n")
        try:
            with pytest.raises(ConfigurationError):
                load_config(path)
        finally:
            os.unlink(path)

    def test_not_a_mapping(self) -> None:
        path = self._write("- just\n- a list\n")
        try:
            with pytest.raises(ConfigurationError):
                load_config(path)
        finally:
            os.unlink(path)

    def test_validation_error_becomes_configuration_error(self) -> None:
        path = self._write("account: {}\ndevices:\n  - id: CP-1\n    model: NOVA\n")
        try:
            with pytest.raises(ConfigurationError) as exc_info:
                load_config(path)
            assert exc_info.value.config_field == "devices.model"
        finally:
            os.unlink(path)

    def test_non_numeric_web_port_in_file(self) -> None:
        path = self._write("account: {}\ndevices: []\nweb:\n  port: http\n")
        try:
            with pytest.raises(ConfigurationError) as exc_info:
                load_config(path)
            assert exc_info.value.config_field == "web.port"
        finally:
            os.unlink(path)
