# dag.py
from __future__ import annotations

from collections import deque
from typing import Dict, Iterable, List, Optional, Set

from .errors import CyclicDependencyError, DuplicateNameError, UnknownReferenceError
from .model import Action, ActionSpec, Graph

# DFS colours
_WHITE, _GREY, _BLACK = 0, 1, 2


def build_graph(actions: Iterable[ActionSpec], resolves: Iterable[str] = ()) -> Graph:
    """
    Build a validated Graph from declared actions.

    Requires:
      - action.name: str (unique)
      - action.needs: names of actions that must succeed BEFORE this one
      - every name in `resolves` is declared

    Raises DuplicateNameError, UnknownReferenceError or CyclicDependencyError.
    All actions of the returned graph are PENDING.
    """
    actions = list(actions)
    resolves = list(resolves)

    names = [a.name for a in actions]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise DuplicateNameError(dupes)

    name_set = set(names)
    needs: Dict[str, Set[str]] = {}
    dependents: Dict[str, Set[str]] = {n: set() for n in names}

    for spec in actions:
        needs[spec.name] = set()
        for dep in spec.needs or []:
            if dep not in name_set:
                raise UnknownReferenceError(missing=dep, referrer=spec.name, known=sorted(name_set))
            # Edge dependent -> prerequisite
            needs[spec.name].add(dep)
            dependents[dep].add(spec.name)

    for target in resolves:
        if target not in name_set:
            raise UnknownReferenceError(missing=target, referrer="resolves", known=sorted(name_set))

    cycle = find_cycle(needs)
    if cycle is not None:
        raise CyclicDependencyError(cycle)

    nodes = {
        spec.name: Action(name=spec.name, operation=spec.operation, needs=frozenset(needs[spec.name]))
        for spec in actions
    }
    return Graph(
        actions=nodes,
        resolves=frozenset(resolves),
        dependents={n: frozenset(d) for n, d in dependents.items()},
    )


def find_cycle(needs: Dict[str, Set[str]]) -> Optional[List[str]]:
    """
    Return one cycle of the `needs` relation as an ordered list of names
    (each needs the next, the last needs the first), or None if acyclic.

    Iterative three-colour DFS so deep chains don't hit the recursion limit.
    """
    color = {n: _WHITE for n in needs}

    for root in sorted(needs):
        if color[root] != _WHITE:
            continue

        path: List[str] = [root]
        stack = [iter(sorted(needs[root]))]
        color[root] = _GREY

        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                color[path.pop()] = _BLACK
                continue

            if color[child] == _GREY:
                return path[path.index(child):]
            if color[child] == _WHITE:
                color[child] = _GREY
                path.append(child)
                stack.append(iter(sorted(needs[child])))

    return None


def plan_waves(graph: Graph) -> List[List[str]]:
    """
    Static topological "waves" assuming every action succeeds.
    Each wave can run in parallel. Names are sorted inside a wave.
    """
    indeg = {name: len(a.needs) for name, a in graph.actions.items()}
    q = deque(sorted(n for n, d in indeg.items() if d == 0))

    waves: List[List[str]] = []
    while q:
        wave: List[str] = []
        for _ in range(len(q)):
            node = q.popleft()
            wave.append(node)

        nxt: List[str] = []
        for node in wave:
            for child in graph.dependents.get(node, ()):
                indeg[child] -= 1
                if indeg[child] == 0:
                    nxt.append(child)
        q.extend(sorted(nxt))
        waves.append(wave)

    return waves
