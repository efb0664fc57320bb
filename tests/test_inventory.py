"""Tests for device inventory management."""
import pytest
import tempfile
import os
from netreconcile.config.inventory import DeviceInventory
from netreconcile.devices.base import DeviceConfig


class TestDeviceInventory:
    """Tests for DeviceInventory class."""

    @pytest.fixture
    def temp_config(self):
        """Create a temporary config file for testing."""
        config_content = """
defaults:
  username: automation
  password_env: "TEST_PASSWORD"
  timeout: 30
  retries: 3

devices:
  edge-fw:
    host: 192.0.2.1
    port: 830

  core-sw:
    host: 192.0.2.2
    username: admin
    sleep_short_ms: 0
    netconf_log_path: /tmp/core-sw.log

  legacy:
    host: 192.0.2.3
    protocol: telnet
"""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write(config_content)
            f.flush()
            yield f.name
        os.unlink(f.name)

    def test_load_config(self, temp_config):
        """Inventory loads config file correctly."""
        inv = DeviceInventory(temp_config)
        assert inv.get_device_ids() == ["edge-fw", "core-sw", "legacy"]

    def test_get_device_config(self, temp_config):
        """Device settings are built with defaults merged."""
        inv = DeviceInventory(temp_config)
        config = inv.get_device_config("edge-fw")
        assert isinstance(config, DeviceConfig)
        assert config.name == "edge-fw"
        assert config.host == "192.0.2.1"
        assert config.username == "automation"
        assert config.timeout == 30
        assert config.retries == 3

    def test_device_specific_overrides_defaults(self, temp_config):
        """Device-specific values override defaults."""
        inv = DeviceInventory(temp_config)
        config = inv.get_device_config("core-sw")
        assert config.username == "admin"
        assert config.sleep_short_ms == 0
        assert config.netconf_log_path == "/tmp/core-sw.log"

    def test_get_device_unknown(self, temp_config):
        """Unknown device raises KeyError."""
        inv = DeviceInventory(temp_config)
        with pytest.raises(KeyError) as exc_info:
            inv.get_device_config("nonexistent")
        assert "Unknown device" in str(exc_info.value)

    def test_unknown_settings_ignored(self, temp_config):
        """Settings DeviceConfig does not know are dropped with a warning."""
        inv = DeviceInventory(temp_config)
        config = inv.get_device_config("legacy")
        assert config.host == "192.0.2.3"
        assert inv.get_raw_config("legacy")["protocol"] == "telnet"

    def test_password_from_env(self, temp_config, monkeypatch):
        monkeypatch.setenv("TEST_PASSWORD", "secret")
        inv = DeviceInventory(temp_config)
        assert inv.get_device_config("edge-fw").get_password() == "secret"

    def test_config_from_env_variable(self, temp_config, monkeypatch, tmp_path):
        """NETRECONCILE_CONFIG is searched first."""
        monkeypatch.setenv("NETRECONCILE_CONFIG", temp_config)
        monkeypatch.chdir(tmp_path)
        inv = DeviceInventory()
        assert inv.config_path == temp_config

    def test_missing_config(self, monkeypatch, tmp_path):
        monkeypatch.delenv("NETRECONCILE_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        if os.path.exists("/etc/netreconcile/devices.yaml"):
            pytest.skip("system inventory present")
        with pytest.raises(FileNotFoundError):
            DeviceInventory()

    def test_invalid_settings(self, tmp_path):
        path = tmp_path / "devices.yaml"
        path.write_text("devices:\n  bad:\n    host: 192.0.2.9\n    file_permission: rw-r--r--\n")
        inv = DeviceInventory(str(path))
        with pytest.raises(ValueError):
            inv.get_device_config("bad")
