"""Exception hierarchy for netreconcile.

Every layer attaches the context it knows about (offending command, entity
key, cleanup outcome) before re-raising, so that ``str(error)`` reads as the
full causal chain of a failed operation.
"""
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class BestEffort:
    """Outcome of a cleanup step whose failure must not mask another error.

    Close, unlock and candidate-clear report through this type instead of
    raising: the caller decides whether to log it or attach it to an error.
    """
    operation: str
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def merge(self, other: "BestEffort") -> "BestEffort":
        """Aggregate two cleanup outcomes, keeping every error."""
        return BestEffort(
            operation=f"{self.operation} + {other.operation}",
            errors=self.errors + other.errors,
        )

    def __str__(self) -> str:
        if self.ok:
            return f"{self.operation}: ok"
        return f"{self.operation}: failed ({'; '.join(self.errors)})"


class NetReconcileError(Exception):
    """Base exception for all netreconcile errors."""

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        warnings: Optional[list[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.warnings: list[str] = list(warnings or [])
        self.cleanup: Optional[BestEffort] = None

    def attach_cleanup(self, cleanup: BestEffort) -> None:
        """Record what cleanup was attempted after this error."""
        self.cleanup = cleanup if self.cleanup is None else self.cleanup.merge(cleanup)

    def __str__(self) -> str:
        parts = []
        if self.entity:
            parts.append(f"[{self.entity}]")
        parts.append(self.message)
        text = " ".join(parts)
        if self.warnings:
            text += f" (warnings: {'; '.join(self.warnings)})"
        if self.cleanup is not None:
            text += f"; cleanup {self.cleanup}"
        return text


class ConnectError(NetReconcileError):
    """Transport or authentication failure while opening a session."""
    pass


class IdentityError(NetReconcileError):
    """Connected, but the device did not report a usable identity."""
    pass


class CommandError(NetReconcileError):
    """A single command or RPC was rejected by the device."""

    def __init__(self, message: str, command: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.command = command

    def __str__(self) -> str:
        text = super().__str__()
        if self.command:
            text += f" (command: {self.command!r})"
        return text


class LockAbortedError(NetReconcileError):
    """Lock polling was cancelled by the caller; nothing was mutated."""
    pass


class ValidationError(NetReconcileError):
    """A record cannot be encoded into a valid configuration delta."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field_name = field_name


class ApplyError(NetReconcileError):
    """Submitting a delta to the candidate configuration failed."""

    def __init__(self, message: str, delta: Optional[list[str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.delta = list(delta or [])


class CommitError(NetReconcileError):
    """The device rejected the commit of the candidate configuration."""
    pass


class PostCommitConsistencyError(NetReconcileError):
    """Commit succeeded but the entity is not present on the device.

    No rollback is attempted: the commit has already taken effect.
    """
    pass
