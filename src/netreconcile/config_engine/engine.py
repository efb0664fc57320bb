"""Reconcile engine - one generic create/read/update/delete state machine.

Every entity type goes through the same sequence, parameterized only by its
SetLineCodec and base path:

    ABSENT -> LOCKING -> DIFFING -> APPLYING -> COMMITTING -> VERIFYING -> PRESENT
                            \\__________\\____________\\______> ABORTING

Aborting always rolls back (discard candidate + unlock) exactly once and then
re-raises the error that caused it, with the rollback outcome attached.

Usage:
    context = ReconcileContext.from_device_config(device_config)
    vlans = Reconciler(context, VLAN_CODEC, "vlans", "vlan")
    result = await vlans.create(Vlan(name="users", vlan_id=10))
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from ..devices.base import DeviceConfig
from ..devices.junos import JunosSession
from ..exceptions import (
    ApplyError,
    CommandError,
    NetReconcileError,
    PostCommitConsistencyError,
    ValidationError,
)
from .commit import CommitCoordinator
from .lock import LockManager
from .offline import OfflineSink
from .schema import Operation, OperationState, ReconcileResult
from .setline import SetLineCodec

SessionFactory = Callable[[], Awaitable[Any]]


@dataclass
class ReconcileContext:
    """Everything the Reconciler shares across calls for one device.

    ``read_lock`` serializes read-back against in-process read-modify-write
    sequences; the device lock only protects the candidate configuration.
    """
    session_factory: SessionFactory
    device_id: str = ""
    read_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    offline: Optional[OfflineSink] = None
    fake_update_also: bool = False
    fake_delete_also: bool = False
    poll_interval_ms: int = 10
    commit_confirmed: int = 0
    commit_confirmed_wait_s: float = 0

    @classmethod
    def from_device_config(
        cls,
        config: DeviceConfig,
        session_factory: Optional[SessionFactory] = None,
    ) -> "ReconcileContext":
        offline = None
        if config.fake_set_file:
            offline = OfflineSink(config.fake_set_file, file_mode=config.file_mode)
        return cls(
            session_factory=session_factory or (lambda: JunosSession.open(config)),
            device_id=config.name,
            logger=logging.getLogger(f"{__name__}.{config.name}"),
            offline=offline,
            fake_update_also=config.fake_update_also,
            fake_delete_also=config.fake_delete_also,
            poll_interval_ms=config.sleep_lock_ms,
            commit_confirmed=config.commit_confirmed,
            commit_confirmed_wait_s=config.commit_confirmed_wait_s,
        )


class Reconciler:
    """Create/read/update/delete of one entity type on one device."""

    def __init__(self, context: ReconcileContext, codec: SetLineCodec, base_path: str, type_name: str):
        self.context = context
        self.codec = codec
        self.base_path = base_path
        self.type_name = type_name

    @property
    def log(self) -> logging.Logger:
        return self.context.logger

    def label(self, key: str) -> str:
        return f"{self.type_name} {key}"

    def show_command(self, key: str, relative: bool = False) -> str:
        command = f"show configuration {self.codec.prefix(key, self.base_path)} | display set"
        return command + " relative" if relative else command

    async def exists(self, session: Any, key: str) -> bool:
        """Empty output means absent, whatever error came with it."""
        output = await session.command(self.show_command(key))
        return bool(output.strip())

    # === Read ===

    async def read(self, key: str) -> Optional[Any]:
        """Decode the entity from the device; None when it does not exist."""
        async with self.context.read_lock:
            session = await self.context.session_factory()
            async with session:
                output = await session.command(self.show_command(key, relative=True))
        return self.codec.decode(output, key)

    async def import_(self, key: str) -> Any:
        """Read an entity that must exist.

        Raises:
            CommandError: nothing is configured under that key
        """
        record = await self.read(key)
        if record is None:
            raise CommandError(
                f"don't find {self.type_name} with id '{key}'",
                command=self.show_command(key, relative=True),
                entity=self.label(key),
            )
        return record

    # === Mutations ===

    async def create(self, record: Any, cancel: Optional[asyncio.Event] = None) -> ReconcileResult:
        """Create an entity that must not exist yet, then verify it does."""
        key = self._key(record)
        result = ReconcileResult(Operation.CREATE, self.type_name, key, [OperationState.ABSENT])
        delta = self._encode(record, key)
        result.delta = delta

        if self.context.offline is not None:
            return await self._offline(result, delta)

        async def precheck(session: Any) -> None:
            if await self.exists(session, key):
                raise ApplyError(f"{self.type_name} {key} already exists", entity=self.label(key))

        return await self._mutate(
            result, [], delta, f"create resource {self.type_name}",
            precheck=precheck, verify=True, cancel=cancel,
        )

    async def update(
        self,
        old: Union[Any, str],
        record: Any,
        cancel: Optional[asyncio.Event] = None,
    ) -> ReconcileResult:
        """Replace an entity: delete its previous statements, then set the new ones."""
        key = self._key(record)
        result = ReconcileResult(Operation.UPDATE, self.type_name, key, [OperationState.ABSENT])
        delete_delta = self.codec.delete(old, self.base_path)
        delta = self._encode(record, key)
        result.delta = delete_delta + delta

        if self.context.offline is not None and self.context.fake_update_also:
            return await self._offline(result, result.delta)

        return await self._mutate(result, delete_delta, delta, f"update resource {self.type_name}", cancel=cancel)

    async def delete(self, record_or_key: Union[Any, str], cancel: Optional[asyncio.Event] = None) -> ReconcileResult:
        """Remove an entity."""
        key = self._key(record_or_key)
        result = ReconcileResult(Operation.DELETE, self.type_name, key, [OperationState.ABSENT])
        delete_delta = self.codec.delete(key, self.base_path)
        result.delta = delete_delta

        if self.context.offline is not None and self.context.fake_delete_also:
            return await self._offline(result, delete_delta)

        return await self._mutate(result, delete_delta, [], f"delete resource {self.type_name}", cancel=cancel)

    # === Internals ===

    def _key(self, record_or_key: Union[Any, str]) -> str:
        try:
            return self.codec.key_of(record_or_key)
        except ValidationError as e:
            e.entity = e.entity or self.type_name
            raise

    def _encode(self, record: Any, key: str) -> list[str]:
        try:
            return self.codec.encode(record, self.base_path)
        except ValidationError as e:
            e.entity = self.label(key)
            raise

    async def _offline(self, result: ReconcileResult, delta: list[str]) -> ReconcileResult:
        result.offline = True
        result.enter(OperationState.APPLYING)
        await self.context.offline.append_async(delta)
        self.log.info(f"{result.operation.value} {self.label(result.key)}: {len(delta)} lines written offline")
        return result

    async def _mutate(
        self,
        result: ReconcileResult,
        delete_delta: list[str],
        delta: list[str],
        message: str,
        precheck: Optional[Callable[[Any], Awaitable[None]]] = None,
        verify: bool = False,
        cancel: Optional[asyncio.Event] = None,
    ) -> ReconcileResult:
        key = result.key
        async with self.context.read_lock:
            session = await self.context.session_factory()
            async with session:
                lock = LockManager(session, self.context.poll_interval_ms)
                coordinator = CommitCoordinator(
                    session, lock,
                    confirm_minutes=self.context.commit_confirmed,
                    confirm_wait_s=self.context.commit_confirmed_wait_s,
                )

                result.enter(OperationState.LOCKING)
                try:
                    await lock.acquire(cancel)
                except NetReconcileError as e:
                    e.entity = self.label(key)
                    raise

                try:
                    result.enter(OperationState.DIFFING)
                    if precheck is not None:
                        await precheck(session)
                    await coordinator.apply(delete_delta)
                    result.enter(OperationState.APPLYING)
                    await coordinator.apply(delta)
                    result.enter(OperationState.COMMITTING)
                    result.commit = await coordinator.commit(message, cancel)
                except (Exception, asyncio.CancelledError) as e:
                    result.enter(OperationState.ABORTING)
                    self.log.error(f"{result.operation.value} {self.label(key)} failed: {e}")
                    cleanup = await coordinator.rollback()
                    result.cleanup = cleanup
                    if isinstance(e, NetReconcileError):
                        e.entity = self.label(key)
                        e.attach_cleanup(cleanup)
                    raise

                result.cleanup = await coordinator.finish()

                if verify:
                    result.enter(OperationState.VERIFYING)
                    if not await self.exists(session, key):
                        raise PostCommitConsistencyError(
                            f"{self.type_name} not exists after commit => check your config",
                            entity=self.label(key),
                            warnings=result.warnings,
                        )

        result.enter(OperationState.ABSENT if result.operation == Operation.DELETE else OperationState.PRESENT)
        self.log.info(f"{result.operation.value} {self.label(key)}: committed")
        return result
