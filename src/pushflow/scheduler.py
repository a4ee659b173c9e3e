# scheduler.py
"""
Pure queries over graph state. Nothing here mutates the graph: the executor
asks which actions can never run (skippable) and which can run now
(next_wave), then applies the answers itself.
"""
from __future__ import annotations

from collections import deque
from typing import FrozenSet, Set

from .model import Action, Graph, Status

_BLOCKING = (Status.FAILED, Status.SKIPPED)


def skippable(graph: Graph) -> FrozenSet[str]:
    """
    Pending actions whose prerequisite chain contains a failure.

    Computed to a fixed point: an action two levels below a failed one is
    included even though its direct prerequisite is still PENDING.
    """
    doomed: Set[str] = set()
    q = deque(
        name
        for name, action in graph.actions.items()
        if action.status in _BLOCKING
    )

    while q:
        name = q.popleft()
        for child in graph.dependents.get(name, ()):
            if child in doomed or graph.status_of(child) is not Status.PENDING:
                continue
            doomed.add(child)
            q.append(child)

    return frozenset(doomed)


def is_eligible(graph: Graph, action: Action) -> bool:
    return action.status is Status.PENDING and all(
        graph.status_of(dep) is Status.SUCCEEDED for dep in action.needs
    )


def next_wave(graph: Graph) -> FrozenSet[Action]:
    """
    Actions that may run now: PENDING with every prerequisite SUCCEEDED.

    Unordered; safe to call repeatedly. Empty wave and empty skippable()
    together mean the run is over.
    """
    return frozenset(a for a in graph.actions.values() if is_eligible(graph, a))
