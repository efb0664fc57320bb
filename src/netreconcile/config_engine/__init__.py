"""Reconcile engine - declarative configuration entities on one device.

One generic state machine drives create/read/update/delete for every entity
type; each type only contributes a SetLineCodec (its field table) and the
configuration path it lives under:

- Lock:    poll for exclusive ownership of the candidate configuration
- Apply:   submit the delta ("set ..." / "delete ..." lines) in one request
- Commit:  make the candidate active, collecting non-fatal warnings
- Verify:  re-check existence after a create
- Abort:   discard the candidate and unlock, then re-raise the original error

Usage:
    from netreconcile.config_engine import ReconcileContext, reconciler_for, Vlan

    context = ReconcileContext.from_device_config(device_config)
    result = await reconciler_for("vlan", context).create(Vlan(name="users", vlan_id=10))
"""

from .schema import Operation, OperationState, ReconcileResult, CommitResult
from .setline import (
    SetLineCodec,
    Field,
    Block,
    Exclusive,
    STR,
    INT,
    FLAG,
    LIST,
    quote,
    unquote,
    first_element,
    config_lines,
)
from .lock import LockManager
from .commit import CommitCoordinator
from .offline import OfflineSink
from .engine import ReconcileContext, Reconciler
from .resources import (
    Application,
    ApplicationTerm,
    Vlan,
    NtpServer,
    APPLICATION_CODEC,
    VLAN_CODEC,
    NTP_SERVER_CODEC,
    RESOURCES,
    reconciler_for,
)

__all__ = [
    # Engine
    "ReconcileContext",
    "Reconciler",
    "reconciler_for",
    "RESOURCES",
    # Schema
    "Operation",
    "OperationState",
    "ReconcileResult",
    "CommitResult",
    # Codec
    "SetLineCodec",
    "Field",
    "Block",
    "Exclusive",
    "STR",
    "INT",
    "FLAG",
    "LIST",
    "quote",
    "unquote",
    "first_element",
    "config_lines",
    # Components
    "LockManager",
    "CommitCoordinator",
    "OfflineSink",
    # Records
    "Application",
    "ApplicationTerm",
    "Vlan",
    "NtpServer",
    "APPLICATION_CODEC",
    "VLAN_CODEC",
    "NTP_SERVER_CODEC",
]
