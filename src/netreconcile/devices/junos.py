"""NETCONF-over-SSH session for Junos-style devices.

The device is driven through a handful of RPCs:
- <command format="text">          : show commands, "| display set" dumps
- <load-configuration action="set"> : submit set/delete lines to the candidate
- <lock>/<unlock> on candidate       : exclusive configuration ownership
- <delete-config> on candidate       : discard uncommitted edits
- <commit-configuration>             : make the candidate active (optionally
                                       "confirmed", then confirmed by <check/>)
- <get-system-information/>          : device identity, gathered on open

Framing is NETCONF 1.0 (``]]>]]>`` end-of-message). Only base:1.0 is
advertised in our hello, so the device never switches to chunked framing.

The protocol cannot carry concurrent outstanding RPCs on one session: every
exchange goes through a per-session asyncio.Lock.
"""
import asyncio
import io
import logging
import re
import socket
import threading
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from xml.sax.saxutils import escape, unescape

import paramiko

from .base import (
    DeviceConfig,
    SystemInformation,
    Route,
    RouteEntry,
    NextHop,
    InterfaceStatus,
)
from ..exceptions import BestEffort, CommandError, CommitError, ConnectError, IdentityError
from ..utils.connection import call_with_retry
from ..utils.logging_config import netconf_logger, timed_section

logger = logging.getLogger(__name__)

EOM = "]]>]]>"
ERROR_SEVERITY = "error"

CLIENT_HELLO = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<hello xmlns="urn:ietf:params:xml:ns:netconf:base:1.0">'
    "<capabilities><capability>urn:ietf:params:netconf:base:1.0</capability></capabilities>"
    "</hello>"
)

RPC_COMMAND = '<command format="text">{}</command>'
RPC_LOAD_SET = (
    '<load-configuration action="set" format="text">'
    "<configuration-set>{}</configuration-set></load-configuration>"
)
RPC_SYSTEM_INFO = "<get-system-information/>"
RPC_COMMIT = "<commit-configuration><log>{}</log></commit-configuration>"
RPC_COMMIT_CONFIRMED = (
    "<commit-configuration><confirmed/><confirm-timeout>{}</confirm-timeout>"
    "<log>{}</log></commit-configuration>"
)
RPC_COMMIT_CHECK = "<commit-configuration><check/></commit-configuration>"
RPC_LOCK = "<lock><target><candidate/></target></lock>"
RPC_UNLOCK = "<unlock><target><candidate/></target></unlock>"
RPC_CLEAR_CANDIDATE = "<delete-config><target><candidate/></target></delete-config>"
RPC_CLOSE = "<close-session/>"
RPC_ROUTES = "<get-route-information><all/></get-route-information>"
RPC_ROUTES_TABLE = "<get-route-information><all/><table>{}</table></get-route-information>"
RPC_INTERFACES_TERSE = "<get-interface-information><terse/></get-interface-information>"
RPC_INTERFACE_TERSE = (
    "<get-interface-information><interface-name>{}</interface-name><terse/>"
    "</get-interface-information>"
)

REPLY_BODY_PATTERN = re.compile(r"<rpc-reply[^>]*>(.*)</rpc-reply>", re.DOTALL)
RPC_ERROR_PATTERN = re.compile(r"<rpc-error>.*?</rpc-error>", re.DOTALL)
REPLY_ID_PATTERN = re.compile(r'<rpc-reply\b[^>]*\bmessage-id="([^"]*)"')

# Failures of the SSH transport itself, as opposed to errors reported by the device
TRANSPORT_ERRORS = (OSError, EOFError, paramiko.SSHException)

# Key types tried, in order, when a private key is given as PEM text
KEY_CLASSES = (paramiko.RSAKey, paramiko.ECDSAKey, paramiko.Ed25519Key)


def local_name(tag: str) -> str:
    """Strip the XML namespace from an element tag."""
    return tag.rsplit("}", 1)[-1]


def child(elem: ET.Element, name: str) -> Optional[ET.Element]:
    """First direct child with the given local name."""
    for sub in elem:
        if local_name(sub.tag) == name:
            return sub
    return None


def children(elem: ET.Element, name: str) -> list[ET.Element]:
    """All direct children with the given local name."""
    return [sub for sub in elem if local_name(sub.tag) == name]


def child_text(elem: ET.Element, name: str) -> str:
    sub = child(elem, name)
    if sub is None or sub.text is None:
        return ""
    return sub.text.strip()


def find_all(elem: ET.Element, name: str) -> list[ET.Element]:
    """All descendants with the given local name."""
    return [sub for sub in elem.iter() if local_name(sub.tag) == name]


def to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


@dataclass
class RpcError:
    """One <rpc-error> of a reply."""
    severity: str
    message: str
    path: str = ""
    bad_element: str = ""

    def __str__(self) -> str:
        text = self.message
        if self.path:
            text += f" (path: {self.path})"
        if self.bad_element:
            text += f" (element: {self.bad_element})"
        return text


@dataclass
class RpcReply:
    """Parsed <rpc-reply>."""
    raw: str
    root: ET.Element
    data: str = ""
    errors: list[RpcError] = field(default_factory=list)

    @classmethod
    def parse(cls, raw: str) -> "RpcReply":
        raw = raw.strip()
        try:
            root = ET.fromstring(raw)
        except ET.ParseError as e:
            raise CommandError(f"Malformed rpc-reply: {e}") from e

        errors = []
        for err in find_all(root, "rpc-error"):
            info = child(err, "error-info")
            errors.append(RpcError(
                severity=child_text(err, "error-severity") or ERROR_SEVERITY,
                message=child_text(err, "error-message"),
                path=child_text(err, "error-path"),
                bad_element=child_text(info, "bad-element") if info is not None else "",
            ))

        data = ""
        match = REPLY_BODY_PATTERN.search(raw)
        if match:
            data = RPC_ERROR_PATTERN.sub("", match.group(1))
        return cls(raw=raw, root=root, data=data, errors=errors)

    @property
    def fatal_errors(self) -> list[RpcError]:
        return [e for e in self.errors if e.severity == ERROR_SEVERITY]

    @property
    def warnings(self) -> list[RpcError]:
        return [e for e in self.errors if e.severity != ERROR_SEVERITY]


@dataclass
class CommitResult:
    """A successful commit and the non-fatal warnings it produced."""
    message: str
    warnings: list[str] = field(default_factory=list)


def load_private_key(pem: str, passphrase: Optional[str] = None) -> paramiko.PKey:
    """Load a private key held in memory, whatever its type."""
    last_error: Optional[Exception] = None
    for key_class in KEY_CLASSES:
        try:
            return key_class.from_private_key(io.StringIO(pem), password=passphrase or None)
        except (paramiko.SSHException, ValueError) as e:
            last_error = e
    raise ConnectError(f"failed to load PEM private key: {last_error}")


def load_private_key_file(path: str, passphrase: Optional[str] = None) -> paramiko.PKey:
    """Load a private key from a file, whatever its type."""
    last_error: Optional[Exception] = None
    for key_class in KEY_CLASSES:
        try:
            return key_class.from_private_key_file(path, password=passphrase or None)
        except (paramiko.SSHException, ValueError) as e:
            last_error = e
        except OSError as e:
            raise ConnectError(f"failed to read private key file {path}: {e}") from e
    raise ConnectError(f"failed to load private key file {path}: {last_error}")


class NetconfChannel:
    """Low-level NETCONF 1.0 channel over a paramiko SSH transport.

    ``timeout`` bounds connection establishment only (TCP connect, SSH
    handshake, authentication and the hello exchange). Once the session is up
    reads block until the device answers: a slow commit is waited for.
    """

    def __init__(self, host: str, port: int, timeout: float = 30, ciphers: Optional[list[str]] = None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.ciphers = ciphers or []
        self._transport: Optional[paramiko.Transport] = None
        self._channel: Optional[paramiko.Channel] = None
        self._buffer = ""
        self._message_id = 0
        # held by the executor thread for a whole send/receive
        self._io_lock = threading.Lock()
        self.server_hello = ""

    async def connect(self, config: DeviceConfig) -> None:
        """TCP connect, SSH handshake, authenticate, start the netconf subsystem."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._connect, config)

    def _connect(self, config: DeviceConfig) -> None:
        sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        try:
            transport = paramiko.Transport(sock)
        except Exception:
            sock.close()
            raise

        try:
            self._apply_ciphers(transport)
            transport.start_client(timeout=self.timeout)
            self._authenticate(transport, config)
            channel = transport.open_session(timeout=self.timeout)
            channel.settimeout(self.timeout)
            channel.invoke_subsystem("netconf")
            self._channel = channel
            self.server_hello = self._read_message()
            self._send_message(CLIENT_HELLO)
            channel.settimeout(None)
        except Exception:
            self._channel = None
            self._buffer = ""
            transport.close()
            raise

        self._transport = transport

    def _apply_ciphers(self, transport: paramiko.Transport) -> None:
        if not self.ciphers:
            return
        options = transport.get_security_options()
        supported = set(options.ciphers)
        preferred = tuple(c for c in self.ciphers if c in supported)
        skipped = [c for c in self.ciphers if c not in supported]
        if skipped:
            logger.debug(f"Ciphers not supported locally, skipped: {', '.join(skipped)}")
        if preferred:
            options.ciphers = preferred
        else:
            logger.warning("None of the configured ciphers are supported, using defaults")

    def _authenticate(self, transport: paramiko.Transport, config: DeviceConfig) -> None:
        method = config.auth_method()
        if method == "key_pem":
            pkey = load_private_key(config.ssh_key_pem or "", config.key_passphrase)
            transport.auth_publickey(config.username, pkey)
        elif method == "key_file":
            pkey = load_private_key_file(config.ssh_key_file or "", config.key_passphrase)
            transport.auth_publickey(config.username, pkey)
        else:
            transport.auth_password(config.username, config.get_password())

    def _send_message(self, message: str) -> None:
        if not self._channel:
            raise ConnectionError("Not connected")
        self._channel.sendall(f"{message}\n{EOM}".encode("utf-8"))

    def _read_message(self) -> str:
        if not self._channel:
            raise ConnectionError("Not connected")
        while EOM not in self._buffer:
            chunk = self._channel.recv(65536)
            if not chunk:
                raise EOFError("NETCONF channel closed by device")
            self._buffer += chunk.decode("utf-8", errors="replace")
        message, _, self._buffer = self._buffer.partition(EOM)
        return message.strip()

    def _read_reply(self, message_id: str) -> str:
        """Read messages until the reply to ``message_id`` arrives.

        Replies to earlier requests whose reader gave up are discarded.
        """
        while True:
            message = self._read_message()
            match = REPLY_ID_PATTERN.search(message)
            if match is None or match.group(1) == message_id:
                return message
            logger.warning(
                f"Discarding late reply with message-id {match.group(1)} "
                f"from {self.host} (waiting for {message_id})"
            )

    async def rpc(self, body: str) -> str:
        """Send one RPC and return the raw <rpc-reply> text carrying its message-id."""
        self._message_id += 1
        message_id = str(self._message_id)
        message = (
            f'<rpc xmlns="urn:ietf:params:xml:ns:netconf:base:1.0" '
            f'message-id="{message_id}">{body}</rpc>'
        )
        loop = asyncio.get_running_loop()

        def _exchange() -> str:
            with self._io_lock:
                self._send_message(message)
                return self._read_reply(message_id)

        return await loop.run_in_executor(None, _exchange)

    async def close(self) -> None:
        if self._transport:
            self._transport.close()
        self._transport = None
        self._channel = None


class JunosSession:
    """One authenticated NETCONF session to one device.

    Created per unit of work and closed on every exit path of its caller:

        async with await JunosSession.open(config) as session:
            text = await session.command("show configuration vlans | display set")
    """

    def __init__(
        self,
        config: DeviceConfig,
        channel: Any,
        netconf_log: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.device_id = config.name
        self._channel = channel
        self._log = netconf_log or netconf_logger(config.netconf_log_path, config.name)
        self._rpc_lock = asyncio.Lock()
        self._closed = False
        self.system_information = SystemInformation()

    @classmethod
    async def open(
        cls,
        config: DeviceConfig,
        channel_factory: Optional[Callable[[DeviceConfig], Any]] = None,
        netconf_log: Optional[logging.Logger] = None,
    ) -> "JunosSession":
        """Connect, authenticate and gather device facts.

        Raises:
            ConnectError: timeout, authentication or transport failure
            IdentityError: the device did not report a model and OS name
        """
        factory = channel_factory or (
            lambda cfg: NetconfChannel(cfg.host, cfg.port, cfg.timeout, cfg.ciphers)
        )
        log = netconf_log or netconf_logger(config.netconf_log_path, config.name)
        logger.info(f"Connecting to {config.name} at {config.address}")

        async def _connect() -> Any:
            channel = factory(config)
            try:
                await channel.connect(config)
            except (Exception, asyncio.CancelledError):
                await channel.close()
                raise
            return channel

        try:
            async with timed_section("connect", device_id=config.name):
                channel = await call_with_retry(_connect, attempts=config.retries)
        except ConnectError as e:
            e.entity = e.entity or config.name
            raise
        except paramiko.AuthenticationException as e:
            log.error(f"[error] authentication to {config.address}: {e}")
            raise ConnectError(f"authentication failed for {config.address}: {e}", entity=config.name) from e
        except TRANSPORT_ERRORS as e:
            log.error(f"[error] connecting to {config.address}: {e}")
            raise ConnectError(f"error connecting to {config.address}: {e}", entity=config.name) from e

        session = cls(config, channel, log)
        try:
            await session.gather_facts()
        except (ConnectError, IdentityError):
            await session.close()
            raise
        logger.info(
            f"Connected to {config.name}: {session.system_information.hardware_model} "
            f"{session.system_information.os_name} {session.system_information.os_version}"
        )
        return session

    async def _exchange(self, body: str, settle: bool = True) -> RpcReply:
        async with self._rpc_lock:
            if self._closed:
                raise CommandError("Session already closed", command=body, entity=self.device_id)
            self._log.info(f"[rpc] {body}")
            try:
                raw = await self._complete(body)
            except TRANSPORT_ERRORS as e:
                self._log.error(f"[error] transport: {e}")
                raise CommandError(f"transport failure: {e}", command=body, entity=self.device_id) from e
            self._log.info(f"[reply] {raw}")
            reply = RpcReply.parse(raw)
            for warning in reply.warnings:
                self._log.warning(f"[warning] {warning}")
            for error in reply.fatal_errors:
                self._log.error(f"[error] {error}")
            if settle and self.config.sleep_short_ms > 0:
                await asyncio.sleep(self.config.sleep_short_ms / 1000)
            return reply

    async def _complete(self, body: str) -> str:
        """Run one RPC to its reply, even when the calling task is cancelled."""
        pending = asyncio.ensure_future(self._channel.rpc(body))
        try:
            return await asyncio.shield(pending)
        except asyncio.CancelledError:
            if not pending.done():
                self._log.warning(f"[warning] cancelled, waiting for the reply to {body}")
                await asyncio.wait([pending])
            if not pending.cancelled() and pending.exception() is not None:
                self._log.error(f"[error] transport: {pending.exception()}")
            raise

    async def gather_facts(self) -> SystemInformation:
        """Populate system_information from <get-system-information/>.

        Raises:
            ConnectError: the transport failed while asking
            IdentityError: the reply carries no usable identity
        """
        try:
            reply = await self._exchange(RPC_SYSTEM_INFO)
        except CommandError as e:
            if isinstance(e.__cause__, TRANSPORT_ERRORS):
                raise ConnectError(
                    f"error reading system information from {self.config.address}: {e.__cause__}",
                    entity=self.device_id,
                ) from e
            raise IdentityError(f"get-system-information failed: {e.message}", entity=self.device_id) from e
        if reply.fatal_errors:
            raise IdentityError(
                "get-system-information failed: " + "\n".join(str(e) for e in reply.fatal_errors),
                entity=self.device_id,
            )

        info_elems = find_all(reply.root, "system-information")
        if not info_elems:
            raise IdentityError("device did not return system-information", entity=self.device_id)
        info = info_elems[0]

        cluster_node = None
        node = child(info, "cluster-node")
        if node is not None:
            cluster_node = (node.text or "").strip().lower() != "false"

        self.system_information = SystemInformation(
            hardware_model=child_text(info, "hardware-model"),
            os_name=child_text(info, "os-name"),
            os_version=child_text(info, "os-version"),
            serial_number=child_text(info, "serial-number"),
            host_name=child_text(info, "host-name"),
            cluster_node=cluster_node,
        )
        if not self.system_information.is_resolved:
            raise IdentityError(
                "could not resolve device identity (hardware model / os name missing)",
                entity=self.device_id,
            )
        return self.system_information

    async def command(self, text: str) -> str:
        """Run a text command and return its raw output.

        An empty reply is returned as "" even when the device attached an
        error: for "show configuration" it means nothing matched.
        """
        reply = await self._exchange(RPC_COMMAND.format(escape(text)))
        if not reply.data.strip():
            if reply.errors:
                logger.debug(f"Command '{text}' returned no output: {reply.errors[0]}")
            return ""
        if reply.fatal_errors:
            raise CommandError(
                "\n".join(str(e) for e in reply.fatal_errors),
                command=text,
                entity=self.device_id,
            )
        return unescape(reply.data, {"&quot;": '"', "&apos;": "'"})

    async def command_xml(self, rpc: str) -> ET.Element:
        """Send a raw RPC and return the parsed reply root."""
        reply = await self._exchange(rpc)
        if reply.fatal_errors:
            raise CommandError(
                "\n".join(str(e) for e in reply.fatal_errors),
                command=rpc,
                entity=self.device_id,
            )
        return reply.root

    async def config_set(self, lines: list[str]) -> None:
        """Load set/delete lines into the candidate configuration in one request."""
        body = RPC_LOAD_SET.format(escape("\n".join(lines)))
        reply = await self._exchange(body)
        if reply.fatal_errors:
            raise CommandError(
                "".join(e.message for e in reply.fatal_errors),
                command="\n".join(lines),
                entity=self.device_id,
            )

    async def lock(self) -> bool:
        """Try once to lock the candidate configuration."""
        reply = await self._exchange(RPC_LOCK, settle=False)
        return not reply.fatal_errors

    async def unlock(self) -> list[str]:
        """Unlock the candidate configuration; return error messages."""
        try:
            reply = await self._exchange(RPC_UNLOCK)
        except CommandError as e:
            return [f"config unlock: {e.message}"]
        return [f"config unlock: {e.message}" for e in reply.fatal_errors]

    async def clear_candidate(self) -> list[str]:
        """Discard uncommitted candidate edits; return error messages."""
        try:
            reply = await self._exchange(RPC_CLEAR_CANDIDATE)
        except CommandError as e:
            return [f"config clear: {e.message}"]
        return [f"config clear: {e.message}" for e in reply.fatal_errors]

    async def commit(self, message: str, confirm_timeout: int = 0) -> CommitResult:
        """Commit the candidate configuration.

        With ``confirm_timeout`` (minutes) the commit is a "commit confirmed":
        the device rolls it back by itself unless commit_check() confirms it
        in time.

        Raises:
            CommitError: the device rejected the commit; non-fatal messages
                received before the rejection are attached as warnings
        """
        if confirm_timeout:
            body = RPC_COMMIT_CONFIRMED.format(confirm_timeout, escape(message))
        else:
            body = RPC_COMMIT.format(escape(message))
        async with timed_section("commit", device_id=self.device_id, log=message):
            reply = await self._exchange(body)
        return self._commit_result(reply, message)

    async def commit_check(self) -> CommitResult:
        """Send "commit check", which also confirms a pending commit confirmed."""
        reply = await self._exchange(RPC_COMMIT_CHECK)
        return self._commit_result(reply, "commit check")

    def _commit_result(self, reply: RpcReply, message: str) -> CommitResult:
        warnings = [str(w) for w in reply.warnings]
        if reply.fatal_errors:
            raise CommitError(
                "\n".join(str(e) for e in reply.fatal_errors),
                entity=self.device_id,
                warnings=warnings,
            )
        return CommitResult(message=message, warnings=warnings)

    async def close(self) -> BestEffort:
        """Close the session; errors are logged and returned, never raised."""
        result = BestEffort(operation="close session")
        if self._closed:
            return result
        try:
            await self._exchange(RPC_CLOSE, settle=False)
        except CommandError as e:
            result.errors.append(e.message)
        self._closed = True
        try:
            await self._channel.close()
        except TRANSPORT_ERRORS as e:
            result.errors.append(str(e))
        if self.config.sleep_closed_s > 0:
            await asyncio.sleep(self.config.sleep_closed_s)
        if not result.ok:
            logger.warning(f"Closing session to {self.device_id}: {result}")
            self._log.warning(f"[warning] {result}")
        return result

    async def __aenter__(self) -> "JunosSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    # === Structured reads ===

    async def get_route_information(self, table: Optional[str] = None) -> list[Route]:
        """Read a routing table (all tables when none is given)."""
        rpc = RPC_ROUTES_TABLE.format(escape(table)) if table else RPC_ROUTES
        root = await self.command_xml(rpc)

        routes = []
        for table_elem in find_all(root, "route-table"):
            table_name = child_text(table_elem, "table-name")
            for rt in children(table_elem, "rt"):
                route = Route(table=table_name, destination=child_text(rt, "rt-destination"))
                for entry_elem in children(rt, "rt-entry"):
                    entry = RouteEntry(
                        protocol=child_text(entry_elem, "protocol-name"),
                        preference=to_int(child_text(entry_elem, "preference")),
                        metric=to_int(child_text(entry_elem, "metric")),
                        local_preference=to_int(child_text(entry_elem, "local-preference")),
                        as_path=child_text(entry_elem, "as-path"),
                        next_hop_type=child_text(entry_elem, "nh-type"),
                        current_active=child(entry_elem, "current-active") is not None,
                    )
                    for nh in children(entry_elem, "nh"):
                        entry.next_hops.append(NextHop(
                            to=child_text(nh, "to"),
                            via=child_text(nh, "via"),
                            local_interface=child_text(nh, "nh-local-interface"),
                            selected=child(nh, "selected-next-hop") is not None,
                        ))
                    route.entries.append(entry)
                routes.append(route)
        return routes

    async def get_interfaces_terse(self, name: Optional[str] = None) -> list[InterfaceStatus]:
        """Read terse interface status; logical units follow their parent."""
        rpc = RPC_INTERFACE_TERSE.format(escape(name)) if name else RPC_INTERFACES_TERSE
        root = await self.command_xml(rpc)

        interfaces = []
        for phy in find_all(root, "physical-interface"):
            interfaces.append(InterfaceStatus(
                name=child_text(phy, "name"),
                admin_status=child_text(phy, "admin-status"),
                oper_status=child_text(phy, "oper-status"),
            ))
            for logical in children(phy, "logical-interface"):
                status = InterfaceStatus(
                    name=child_text(logical, "name"),
                    admin_status=child_text(logical, "admin-status"),
                    oper_status=child_text(logical, "oper-status"),
                    logical=True,
                )
                for family in children(logical, "address-family"):
                    family_name = child_text(family, "address-family-name")
                    status.addresses[family_name] = [
                        child_text(addr, "ifa-local")
                        for addr in children(family, "interface-address")
                    ]
                interfaces.append(status)
        return interfaces
