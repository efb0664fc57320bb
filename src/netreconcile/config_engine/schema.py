"""Schema definitions for the reconcile engine."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..devices.junos import CommitResult
from ..exceptions import BestEffort


class Operation(str, Enum):
    """Lifecycle operation on one configuration entity."""
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    IMPORT = "import"


class OperationState(str, Enum):
    """States a mutating operation passes through, in order."""
    ABSENT = "absent"
    LOCKING = "locking"
    DIFFING = "diffing"
    APPLYING = "applying"
    COMMITTING = "committing"
    VERIFYING = "verifying"
    PRESENT = "present"
    ABORTING = "aborting"


@dataclass
class ReconcileResult:
    """Outcome of one create/update/delete."""
    operation: Operation
    type_name: str
    key: str
    states: list[OperationState] = field(default_factory=list)
    delta: list[str] = field(default_factory=list)
    commit: Optional[CommitResult] = None
    cleanup: Optional[BestEffort] = None
    offline: bool = False

    @property
    def warnings(self) -> list[str]:
        return list(self.commit.warnings) if self.commit else []

    @property
    def final_state(self) -> Optional[OperationState]:
        return self.states[-1] if self.states else None

    def enter(self, state: OperationState) -> None:
        self.states.append(state)


__all__ = [
    "Operation",
    "OperationState",
    "ReconcileResult",
    "CommitResult",
]
