# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


class PushflowError(Exception):
    """Base class for every error raised by pushflow."""


# ----------------------------------------------------------------------
# Build-time (fatal, the run never starts)
# ----------------------------------------------------------------------

class BuildError(PushflowError):
    """The declared workflow cannot be turned into a valid graph."""


@dataclass
class DuplicateNameError(BuildError):
    names: List[str]

    def __str__(self) -> str:
        return f"Duplicate action names found: {self.names}"


@dataclass
class UnknownReferenceError(BuildError):
    """`missing` is referenced by `referrer` but never declared."""
    missing: str
    referrer: str
    known: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        if self.referrer == "resolves":
            where = "resolves"
        else:
            where = f"Action '{self.referrer}' needs"
        return f"{where} unknown action '{self.missing}'. Known actions: {self.known}"


@dataclass
class CyclicDependencyError(BuildError):
    """`cycle` is ordered: each name needs the next, the last needs the first."""
    cycle: List[str]

    def __str__(self) -> str:
        path = " -> ".join(self.cycle + self.cycle[:1])
        return f"Dependency cycle detected: {path}"


# ----------------------------------------------------------------------
# Runtime
# ----------------------------------------------------------------------

@dataclass
class ActionExecutionFailure(PushflowError):
    """
    Recorded (never raised mid-run) when an action fails.

    Only forecloses the action's dependents; siblings keep running.
    """
    action: str
    message: str
    exit_code: Optional[int] = None
    output: str = ""

    def __str__(self) -> str:
        head = f"[{self.action}] {self.message}"
        if self.exit_code is not None:
            head += f" (exit={self.exit_code})"
        return head


@dataclass
class SchedulerStuckError(PushflowError):
    """Pending actions that can neither run nor be skipped. Indicates a bug."""
    pending: List[str]

    def __str__(self) -> str:
        return f"Scheduler stuck with pending actions: {self.pending}"


@dataclass
class WorkflowLoadError(PushflowError):
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"
