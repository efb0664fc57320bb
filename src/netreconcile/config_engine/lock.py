"""Exclusive ownership of the candidate configuration."""
import asyncio
import logging
from typing import Any, Optional

from ..exceptions import BestEffort, LockAbortedError

logger = logging.getLogger(__name__)


class LockManager:
    """Polls the device for the candidate-configuration lock.

    There is no timeout of its own: polling continues until the lock is
    granted or the caller sets the cancel event.
    """

    def __init__(self, session: Any, poll_interval_ms: int = 10):
        self.session = session
        self.poll_interval_ms = poll_interval_ms
        self.held = False
        self.attempts = 0

    async def acquire(self, cancel: Optional[asyncio.Event] = None) -> None:
        """Poll until locked.

        Raises:
            LockAbortedError: ``cancel`` was set before the lock was granted
        """
        device_id = getattr(self.session, "device_id", None)
        while True:
            if cancel is not None and cancel.is_set():
                logger.info(f"Lock polling on {device_id} cancelled after {self.attempts} attempts")
                raise LockAbortedError("lock acquisition aborted", entity=device_id)
            self.attempts += 1
            if await self.session.lock():
                self.held = True
                logger.debug(f"Candidate configuration locked on {device_id} (attempt {self.attempts})")
                return
            await self._wait(cancel)

    async def _wait(self, cancel: Optional[asyncio.Event]) -> None:
        delay = self.poll_interval_ms / 1000
        if cancel is None:
            await asyncio.sleep(delay)
            return
        try:
            await asyncio.wait_for(cancel.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return  # poll interval elapsed

    async def release(self) -> BestEffort:
        """Unlock once per acquire; failures are reported, never raised."""
        result = BestEffort(operation="unlock")
        if not self.held:
            return result
        self.held = False
        result.errors.extend(await self.session.unlock())
        if not result.ok:
            logger.warning(f"Releasing lock on {getattr(self.session, 'device_id', None)}: {result}")
        return result
