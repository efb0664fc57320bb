"""Device inventory."""
from .inventory import DeviceInventory

__all__ = ["DeviceInventory"]
