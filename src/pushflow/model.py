# model.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from .report import Report
    from .runner import RunOutcome


class Status(str, Enum):
    """Lifecycle of an action inside one run."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def terminal(self) -> bool:
        return self in (Status.SUCCEEDED, Status.FAILED, Status.SKIPPED)


@dataclass(frozen=True)
class Operation:
    """
    What an action executes. Opaque to the scheduler.

    kind: "shell" (ref is a command) or "docker" (ref is an image)
    """
    kind: str
    ref: str
    args: Tuple[str, ...] = ()
    # sorted (key, value) pairs so operations stay hashable
    env: Tuple[Tuple[str, str], ...] = ()

    def environ(self) -> Dict[str, str]:
        return dict(self.env)

    def describe(self) -> str:
        parts = [self.ref, *self.args]
        return " ".join(parts) if self.kind == "shell" else f"docker://{' '.join(parts)}"


@dataclass
class ActionSpec:
    """A declared action, as produced by a workflow definition."""
    name: str
    operation: Operation
    needs: List[str] = field(default_factory=list)


@dataclass
class Workflow:
    """
    A named set of actions started by one event.

    `resolves` names the actions whose final status decides the outcome.
    """
    name: str
    actions: List[ActionSpec]
    resolves: List[str] = field(default_factory=list)
    on: str = "push"


@dataclass(eq=False)
class Action:
    """A graph node. Only `status` changes once the graph is built."""
    name: str
    operation: Operation
    needs: frozenset = frozenset()
    status: Status = Status.PENDING

    def __hash__(self) -> int:
        return hash(self.name)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Action) and other.name == self.name


@dataclass(frozen=True)
class Graph:
    """
    Validated dependency graph.

    actions:    name -> Action
    resolves:   target names
    dependents: name -> names that need it (reverse of `needs`)
    """
    actions: Mapping[str, Action]
    resolves: frozenset
    dependents: Mapping[str, frozenset]

    def __post_init__(self) -> None:
        object.__setattr__(self, "actions", MappingProxyType(dict(self.actions)))
        object.__setattr__(self, "dependents", MappingProxyType(dict(self.dependents)))

    def __len__(self) -> int:
        return len(self.actions)

    def __getitem__(self, name: str) -> Action:
        return self.actions[name]

    def status_of(self, name: str) -> Status:
        return self.actions[name].status

    def statuses(self) -> Dict[str, Status]:
        return {name: a.status for name, a in self.actions.items()}

    def pending(self) -> List[str]:
        return sorted(n for n, a in self.actions.items() if a.status is Status.PENDING)


@dataclass(frozen=True)
class Event:
    """The inbound trigger (e.g. a push) that starts runs."""
    name: str = "push"
    ref: Optional[str] = None
    sha: Optional[str] = None

    def env(self) -> Dict[str, str]:
        """Environment exposed to actions started by this event."""
        out = {"PUSHFLOW_EVENT": self.name}
        if self.ref:
            out["PUSHFLOW_REF"] = self.ref
        if self.sha:
            out["PUSHFLOW_SHA"] = self.sha
        return out


@dataclass
class Run:
    """One execution of a graph for one event. Not persisted."""
    workflow: str
    event: Event
    graph: Graph
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    wave: int = 0
    outcome: Optional["RunOutcome"] = None
    report: Optional["Report"] = None
