"""Apply/commit/rollback of the candidate configuration.

The coordinator never rolls back on its own: when apply or commit fails the
caller decides, and calls rollback() exactly once.
"""
import asyncio
import logging
from typing import Any, Optional

from ..exceptions import ApplyError, BestEffort, CommandError, CommitError
from ..devices.junos import CommitResult
from .lock import LockManager

logger = logging.getLogger(__name__)


class CommitCoordinator:
    """Drives the candidate configuration of one locked session.

    With ``confirm_minutes`` set every commit is a "commit confirmed": after
    ``confirm_wait_s`` seconds a commit check confirms it, otherwise the
    device rolls it back by itself once the minutes have elapsed.
    """

    def __init__(
        self,
        session: Any,
        lock_manager: LockManager,
        confirm_minutes: int = 0,
        confirm_wait_s: float = 0,
    ):
        self.session = session
        self.lock_manager = lock_manager
        self.confirm_minutes = confirm_minutes
        self.confirm_wait_s = confirm_wait_s

    async def apply(self, delta: list[str]) -> None:
        """Submit a delta as one request.

        Raises:
            ApplyError: the device rejected the delta; the candidate may hold
                partial edits until rollback()
        """
        if not delta:
            return
        logger.debug(f"Applying {len(delta)} lines to {self.session.device_id}")
        try:
            await self.session.config_set(delta)
        except CommandError as e:
            raise ApplyError(
                f"failed to apply delta starting with '{delta[0]}': {e.message}",
                delta=delta,
                entity=e.entity,
            ) from e

    async def commit(self, message: str, cancel: Optional[asyncio.Event] = None) -> CommitResult:
        """Make the candidate active; CommitError propagates with its warnings.

        Raises:
            CommitError: the device rejected the commit or its confirmation,
                or ``cancel`` was set while waiting to confirm
        """
        if not self.confirm_minutes:
            result = await self.session.commit(message)
        else:
            result = await self.session.commit(message, confirm_timeout=self.confirm_minutes)
            await self._wait_before_confirm(result, cancel)
            check = await self.session.commit_check()
            result.warnings.extend(check.warnings)

        for warning in result.warnings:
            logger.warning(f"Commit on {self.session.device_id}: {warning}")
        return result

    async def _wait_before_confirm(self, result: CommitResult, cancel: Optional[asyncio.Event]) -> None:
        logger.info(
            f"Commit confirmed {self.confirm_minutes} min on {self.session.device_id}, "
            f"confirming in {self.confirm_wait_s:g}s"
        )
        if cancel is None:
            await asyncio.sleep(self.confirm_wait_s)
            return
        try:
            await asyncio.wait_for(cancel.wait(), self.confirm_wait_s)
        except asyncio.TimeoutError:
            return
        raise CommitError(
            "confirmation of commit with 'confirmed' option aborted before done",
            entity=self.session.device_id,
            warnings=result.warnings,
        )

    async def rollback(self) -> BestEffort:
        """Discard candidate edits and release the lock; both always run."""
        clear = BestEffort(operation="clear candidate", errors=await self.session.clear_candidate())
        result = clear.merge(await self.lock_manager.release())
        result.operation = "rollback"
        if not result.ok:
            logger.error(f"Rollback on {self.session.device_id}: {result}")
        return result

    async def finish(self) -> BestEffort:
        """Success-path cleanup: clear the (now committed) candidate and unlock."""
        clear = BestEffort(operation="clear candidate", errors=await self.session.clear_candidate())
        result = clear.merge(await self.lock_manager.release())
        result.operation = "finish"
        if not result.ok:
            logger.warning(f"Cleanup on {self.session.device_id}: {result}")
        return result
