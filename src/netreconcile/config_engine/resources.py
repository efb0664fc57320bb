"""Option records managed through the generic engine.

    context = ReconcileContext.from_device_config(cfg)
    await reconciler_for("vlan", context).create(Vlan(name="users", vlan_id=10))
"""
from dataclasses import dataclass, field

from .engine import ReconcileContext, Reconciler
from .setline import FLAG, INT, LIST, STR, Block, Exclusive, Field, SetLineCodec


@dataclass
class ApplicationTerm:
    """One ``term`` of a custom application."""
    name: str
    protocol: str = ""
    alg: str = ""
    destination_port: str = ""
    source_port: str = ""
    inactivity_timeout: int = 0
    inactivity_timeout_never: bool = False


@dataclass
class Application:
    """A custom application under ``applications application``."""
    name: str
    protocol: str = ""
    destination_port: str = ""
    source_port: str = ""
    description: str = ""
    inactivity_timeout: int = 0
    inactivity_timeout_never: bool = False
    application_protocol: str = ""
    terms: list[ApplicationTerm] = field(default_factory=list)


@dataclass
class Vlan:
    """A bridge domain under ``vlans``."""
    name: str
    vlan_id: int = 0
    vlan_id_list: list[str] = field(default_factory=list)
    description: str = ""
    l3_interface: str = ""


@dataclass
class NtpServer:
    """An NTP server under ``system ntp server``."""
    address: str
    key: int = 0
    version: int = 0
    prefer: bool = False
    routing_instance: str = ""


APPLICATION_TERM_CODEC = SetLineCodec(
    ApplicationTerm, "name",
    fields=[
        Field("protocol", "protocol"),
        Field("alg", "alg"),
        Field("destination_port", "destination-port"),
        Field("inactivity_timeout", "inactivity-timeout", INT),
        Field("inactivity_timeout_never", "inactivity-timeout", FLAG, literal="never"),
        Field("source_port", "source-port"),
    ],
    exclusive=[Exclusive("inactivity_timeout", "inactivity_timeout_never")],
    required=["protocol"],
    bare_header=True,
)

APPLICATION_CODEC = SetLineCodec(
    Application, "name",
    fields=[
        Field("application_protocol", "application-protocol"),
        Field("description", "description", STR, quoted=True),
        Field("destination_port", "destination-port"),
        Field("inactivity_timeout", "inactivity-timeout", INT),
        Field("inactivity_timeout_never", "inactivity-timeout", FLAG, literal="never"),
        Field("protocol", "protocol"),
        Field("source_port", "source-port"),
    ],
    blocks=[Block("terms", "term", APPLICATION_TERM_CODEC)],
    exclusive=[Exclusive("inactivity_timeout", "inactivity_timeout_never")],
)

VLAN_CODEC = SetLineCodec(
    Vlan, "name",
    fields=[
        Field("description", "description", STR, quoted=True),
        Field("l3_interface", "l3-interface"),
        Field("vlan_id", "vlan-id", INT),
        Field("vlan_id_list", "vlan-id-list", LIST),
    ],
    exclusive=[Exclusive("vlan_id", "vlan_id_list")],
)

NTP_SERVER_CODEC = SetLineCodec(
    NtpServer, "address",
    fields=[
        Field("key", "key", INT),
        Field("prefer", "prefer", FLAG),
        Field("routing_instance", "routing-instance"),
        Field("version", "version", INT),
    ],
    bare_header=True,
)

# type name -> (codec, base path)
RESOURCES = {
    "application": (APPLICATION_CODEC, "applications application"),
    "vlan": (VLAN_CODEC, "vlans"),
    "ntp_server": (NTP_SERVER_CODEC, "system ntp server"),
}


def reconciler_for(type_name: str, context: ReconcileContext) -> Reconciler:
    """Build the Reconciler of a known entity type."""
    if type_name not in RESOURCES:
        raise ValueError(f"Unknown resource type: {type_name}")
    codec, base_path = RESOURCES[type_name]
    return Reconciler(context, codec, base_path, type_name)
