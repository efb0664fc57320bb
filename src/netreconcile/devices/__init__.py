"""Device settings and the NETCONF session to Junos-style devices."""
from .base import (
    DeviceConfig,
    SystemInformation,
    Route,
    RouteEntry,
    NextHop,
    InterfaceStatus,
)
from .junos import JunosSession, NetconfChannel, CommitResult, RpcReply, RpcError

__all__ = [
    "DeviceConfig",
    "SystemInformation",
    "Route",
    "RouteEntry",
    "NextHop",
    "InterfaceStatus",
    "JunosSession",
    "NetconfChannel",
    "CommitResult",
    "RpcReply",
    "RpcError",
]
