"""Device inventory loaded from YAML configuration."""
import logging
import os
from dataclasses import fields
from pathlib import Path
from typing import Optional

import yaml

from ..devices.base import DeviceConfig

logger = logging.getLogger(__name__)

CONFIG_ENV = "NETRECONCILE_CONFIG"

DEVICE_CONFIG_FIELDS = {f.name for f in fields(DeviceConfig)}


class DeviceInventory:
    """Device settings keyed by device id.

    ```yaml
    defaults:
      username: netconf
      sleep_short_ms: 100
    devices:
      edge-fw:
        host: 192.0.2.1
        password_env: EDGE_FW_PASSWORD
    ```

    Values under ``defaults`` are merged into every device that does not set
    them itself.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or self._find_config()
        self._config: dict = {}
        self._load_config()

    def _find_config(self) -> str:
        """Find the devices.yaml config file."""
        search_paths = [
            Path.cwd() / "configs" / "devices.yaml",
            Path.cwd() / "devices.yaml",
            Path.home() / ".config" / "netreconcile" / "devices.yaml",
            Path("/etc/netreconcile/devices.yaml"),
        ]
        env_path = os.environ.get(CONFIG_ENV)
        if env_path:
            search_paths.insert(0, Path(env_path).expanduser())

        for path in search_paths:
            if path.exists():
                return str(path)

        raise FileNotFoundError(
            f"Could not find devices.yaml. Set {CONFIG_ENV} or create ./configs/devices.yaml"
        )

    def _load_config(self) -> None:
        """Load the YAML configuration."""
        with open(self.config_path) as f:
            self._config = yaml.safe_load(f) or {}

        defaults = self._config.get("defaults") or {}
        devices = self._config.get("devices") or {}
        for device_id, device_config in devices.items():
            if device_config is None:
                device_config = devices[device_id] = {}
            for key, value in defaults.items():
                if key not in device_config:
                    device_config[key] = value
        self._config["devices"] = devices
        logger.debug(f"Loaded {len(devices)} devices from {self.config_path}")

    def get_device_ids(self) -> list[str]:
        """Get all device IDs."""
        return list(self._config.get("devices", {}).keys())

    def get_raw_config(self, device_id: str) -> dict:
        """Get the merged YAML mapping for a device."""
        devices = self._config.get("devices", {})
        if device_id not in devices:
            raise KeyError(f"Unknown device: {device_id}")
        return devices[device_id]

    def get_device_config(self, device_id: str) -> DeviceConfig:
        """Build the settings for a device.

        Raises:
            KeyError: unknown device id
            ValueError: invalid settings (see DeviceConfig)
        """
        raw = dict(self.get_raw_config(device_id))
        unknown = sorted(set(raw) - DEVICE_CONFIG_FIELDS)
        for key in unknown:
            logger.warning(f"Device '{device_id}': ignoring unknown setting '{key}'")
            raw.pop(key)
        raw.setdefault("name", device_id)
        if "host" not in raw:
            raise ValueError(f"Device '{device_id}' has no host")
        return DeviceConfig(**raw)
