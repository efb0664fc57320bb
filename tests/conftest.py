"""Shared fixtures: an in-memory device with a candidate/running configuration."""
from typing import Iterable, Optional

import pytest

from netreconcile.config_engine import ReconcileContext
from netreconcile.devices.junos import CommitResult
from netreconcile.exceptions import BestEffort, CommandError, CommitError

WRAP_START = "<configuration-information><configuration-output>"
WRAP_END = "</configuration-output></configuration-information>"


class FakeDevice:
    """Configuration held as statement lists ("vlans users vlan-id 10").

    Counts every lock/unlock/clear/commit so tests can assert lock discipline.
    """

    def __init__(self, running: Iterable[str] = ()):
        self.running: list[str] = list(running)
        self.candidate: list[str] = list(self.running)
        self.locked = False
        self.lock_results: Optional[list[bool]] = None
        self.lock_calls = 0
        self.unlock_calls = 0
        self.clear_calls = 0
        self.commit_calls = 0
        self.commit_messages: list[str] = []
        self.applied: list[list[str]] = []
        self.effective: list[list[str]] = []
        self.commands: list[str] = []
        self.apply_error: Optional[str] = None
        self.commit_error: Optional[CommitError] = None
        self.commit_warnings: list[str] = []
        self.confirm_timeouts: list[int] = []
        self.check_calls = 0
        self.check_warnings: list[str] = []
        self.unlock_errors: list[str] = []
        self.clear_errors: list[str] = []
        self.lose_commits = False
        self.sessions_opened = 0
        self.sessions_closed = 0

    # --- configuration text ---

    def dump(self, path: str, relative: bool) -> str:
        """display-set output for ``path``.

        A bare statement equal to the path shows up as itself, or as framing
        only in a relative dump.
        """
        found = False
        lines = []
        for stmt in self.running:
            if stmt == path:
                found = True
                if not relative:
                    lines.append("set " + stmt)
            elif stmt.startswith(path + " "):
                found = True
                lines.append("set " + (stmt[len(path) + 1:] if relative else stmt))
        if not found:
            return ""
        return "\n".join([WRAP_START] + lines + [WRAP_END])

    def apply_line(self, line: str) -> bool:
        """Apply one set/delete line to the candidate; True when it changed something."""
        action, _, stmt = line.partition(" ")
        if action == "set":
            if stmt in self.candidate:
                return False
            self.candidate.append(stmt)
            return True
        before = len(self.candidate)
        self.candidate = [
            s for s in self.candidate if s != stmt and not s.startswith(stmt + " ")
        ]
        return len(self.candidate) != before

    # --- session operations ---

    async def command(self, text: str) -> str:
        self.commands.append(text)
        assert text.startswith("show configuration ")
        body = text[len("show configuration "):]
        path, _, pipe = body.partition(" | ")
        return self.dump(path.strip(), relative=pipe.strip() == "display set relative")

    async def config_set(self, lines: list[str]) -> None:
        assert self.locked, "config_set without lock"
        self.applied.append(list(lines))
        if self.apply_error:
            raise CommandError(self.apply_error, command="\n".join(lines), entity="fake")
        self.effective.append([line for line in lines if self.apply_line(line)])

    async def lock(self) -> bool:
        self.lock_calls += 1
        if self.lock_results is not None:
            granted = self.lock_results.pop(0) if self.lock_results else False
        else:
            granted = not self.locked
        if granted:
            self.locked = True
        return granted

    async def unlock(self) -> list[str]:
        self.unlock_calls += 1
        self.locked = False
        return list(self.unlock_errors)

    async def clear_candidate(self) -> list[str]:
        self.clear_calls += 1
        self.candidate = list(self.running)
        return list(self.clear_errors)

    async def commit(self, message: str, confirm_timeout: int = 0) -> CommitResult:
        assert self.locked, "commit without lock"
        self.commit_calls += 1
        self.commit_messages.append(message)
        if confirm_timeout:
            self.confirm_timeouts.append(confirm_timeout)
        if self.commit_error is not None:
            raise self.commit_error
        if not self.lose_commits:
            self.running = list(self.candidate)
        return CommitResult(message=message, warnings=list(self.commit_warnings))

    async def commit_check(self) -> CommitResult:
        assert self.locked, "commit check without lock"
        self.check_calls += 1
        return CommitResult(message="commit check", warnings=list(self.check_warnings))


class FakeSession:
    """Session facade over a FakeDevice."""

    def __init__(self, device: FakeDevice):
        self.device = device
        self.device_id = "fake"
        self.closed = False

    async def command(self, text: str) -> str:
        return await self.device.command(text)

    async def config_set(self, lines: list[str]) -> None:
        await self.device.config_set(lines)

    async def lock(self) -> bool:
        return await self.device.lock()

    async def unlock(self) -> list[str]:
        return await self.device.unlock()

    async def clear_candidate(self) -> list[str]:
        return await self.device.clear_candidate()

    async def commit(self, message: str, confirm_timeout: int = 0) -> CommitResult:
        return await self.device.commit(message, confirm_timeout)

    async def commit_check(self) -> CommitResult:
        return await self.device.commit_check()

    async def close(self) -> BestEffort:
        if not self.closed:
            self.closed = True
            self.device.sessions_closed += 1
        return BestEffort(operation="close session")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False


@pytest.fixture
def device():
    """An empty fake device."""
    return FakeDevice()


@pytest.fixture
def session(device):
    return FakeSession(device)


@pytest.fixture
def context(device):
    """Reconcile context whose sessions talk to the fake device."""

    async def factory():
        device.sessions_opened += 1
        return FakeSession(device)

    return ReconcileContext(session_factory=factory, device_id="fake", poll_interval_ms=1)
