"""Device settings and the records read back from a device."""
import os
import re
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..exceptions import ConnectError

logger = logging.getLogger(__name__)

DEFAULT_NETCONF_PORT = 830

# Cipher preference order offered during the SSH handshake
DEFAULT_SSH_CIPHERS = [
    "aes128-gcm@openssh.com",
    "chacha20-poly1305@openssh.com",
    "aes128-ctr",
    "aes192-ctr",
    "aes256-ctr",
    "aes128-cbc",
]

FILE_PERMISSION_PATTERN = re.compile(r"^[0-7]{3,4}$")

# Environment variables read by DeviceConfig.from_env()
ENV_FIELDS = {
    "JUNOS_HOST": ("host", str),
    "JUNOS_PORT": ("port", int),
    "JUNOS_USERNAME": ("username", str),
    "JUNOS_PASSWORD": ("password", str),
    "JUNOS_KEYPEM": ("ssh_key_pem", str),
    "JUNOS_KEYFILE": ("ssh_key_file", str),
    "JUNOS_KEYPASS": ("key_passphrase", str),
    "JUNOS_SLEEP_SHORT": ("sleep_short_ms", int),
    "JUNOS_SLEEP_LOCK": ("sleep_lock_ms", int),
    "JUNOS_SLEEP_SSH_CLOSED": ("sleep_closed_s", float),
    "JUNOS_FILE_PERMISSION": ("file_permission", str),
    "JUNOS_LOG_PATH": ("netconf_log_path", str),
    "JUNOS_FAKECREATE_SETFILE": ("fake_set_file", str),
    "JUNOS_FAKEUPDATE_ALSO": ("fake_update_also", bool),
    "JUNOS_FAKEDELETE_ALSO": ("fake_delete_also", bool),
    "JUNOS_COMMIT_CONFIRMED": ("commit_confirmed", int),
    "JUNOS_COMMIT_CONFIRMED_WAIT_PERCENT": ("commit_confirmed_wait_percent", int),
}


def env_bool(value: str) -> bool:
    """Parse a boolean environment value (1/true/yes/on)."""
    return value.strip().lower() in ("1", "t", "true", "yes", "on")


@dataclass
class DeviceConfig:
    """Connection and behaviour settings for one device."""
    name: str
    host: str
    port: int = DEFAULT_NETCONF_PORT
    username: str = "netconf"
    password: Optional[str] = None
    password_env: str = "NETRECONCILE_PASSWORD"
    ssh_key_pem: Optional[str] = None
    ssh_key_file: Optional[str] = None
    key_passphrase: Optional[str] = None
    ciphers: list[str] = field(default_factory=lambda: DEFAULT_SSH_CIPHERS.copy())
    timeout: int = 30
    retries: int = 1
    # Delays (empirically tuned on real devices, kept configurable)
    sleep_short_ms: int = 100
    sleep_lock_ms: int = 10
    sleep_closed_s: float = 0
    netconf_log_path: str = ""
    # Offline mode: append deltas to a set file instead of a device
    fake_set_file: str = ""
    fake_update_also: bool = False
    fake_delete_also: bool = False
    file_permission: str = "644"
    # Commit confirmed: minutes before the device rolls back on its own (0 = off)
    commit_confirmed: int = 0
    commit_confirmed_wait_percent: int = 90

    def __post_init__(self):
        if self.retries < 1:
            self.retries = 1
        if self.retries > 10:
            self.retries = 10
        if not FILE_PERMISSION_PATTERN.match(str(self.file_permission)):
            raise ValueError(
                f"Invalid file_permission {self.file_permission!r}: "
                "expected an octal mode like '644'"
            )
        if (self.fake_update_also or self.fake_delete_also) and not self.fake_set_file:
            raise ValueError(
                "fake_set_file needs to be set with fake_update_also and fake_delete_also"
            )
        if self.commit_confirmed and not 1 <= self.commit_confirmed <= 65535:
            raise ValueError(
                f"Invalid commit_confirmed {self.commit_confirmed}: expected 1-65535 minutes"
            )
        if not 0 <= self.commit_confirmed_wait_percent <= 99:
            raise ValueError(
                f"Invalid commit_confirmed_wait_percent {self.commit_confirmed_wait_percent}: "
                "expected 0-99"
            )

    @classmethod
    def from_env(cls, name: str = "default", **overrides) -> "DeviceConfig":
        """Build a config from JUNOS_* environment variables.

        Explicit keyword overrides win over the environment.
        """
        values: dict = {}
        for env_name, (attr, conv) in ENV_FIELDS.items():
            raw = os.environ.get(env_name)
            if raw is None or raw == "":
                continue
            values[attr] = env_bool(raw) if conv is bool else conv(raw)
        values.update(overrides)
        if "host" not in values:
            raise ValueError("Missing device host (set JUNOS_HOST)")
        return cls(name=name, **values)

    def get_password(self) -> str:
        """Get password from config or environment variable."""
        if self.password:
            return self.password
        return os.environ.get(self.password_env, "")

    def auth_method(self) -> str:
        """Pick the single authentication method used for this device.

        A private key given in memory wins over a key file, which wins over a
        password.
        """
        if self.ssh_key_pem:
            return "key_pem"
        if self.ssh_key_file:
            return "key_file"
        if self.get_password():
            return "password"
        raise ConnectError("no credentials/keys available", entity=self.name)

    @property
    def file_mode(self) -> int:
        return int(str(self.file_permission), 8)

    @property
    def commit_confirmed_wait_s(self) -> float:
        """Seconds between a commit confirmed and the commit check confirming it."""
        return self.commit_confirmed * 60 * self.commit_confirmed_wait_percent / 100

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class SystemInformation:
    """Device identity gathered right after the session opens."""
    hardware_model: str = ""
    os_name: str = ""
    os_version: str = ""
    serial_number: str = ""
    host_name: str = ""
    cluster_node: Optional[bool] = None

    @property
    def is_resolved(self) -> bool:
        return bool(self.hardware_model and self.os_name)


@dataclass
class NextHop:
    """One next hop of a route entry."""
    to: str = ""
    via: str = ""
    local_interface: str = ""
    selected: bool = False


@dataclass
class RouteEntry:
    """One protocol entry for a destination."""
    protocol: str = ""
    preference: int = 0
    metric: int = 0
    local_preference: int = 0
    as_path: str = ""
    next_hop_type: str = ""
    current_active: bool = False
    next_hops: list[NextHop] = field(default_factory=list)


@dataclass
class Route:
    """A destination in a routing table."""
    table: str
    destination: str
    entries: list[RouteEntry] = field(default_factory=list)


@dataclass
class InterfaceStatus:
    """Terse interface status (physical or logical)."""
    name: str
    admin_status: str = ""
    oper_status: str = ""
    logical: bool = False
    addresses: dict[str, list[str]] = field(default_factory=dict)
