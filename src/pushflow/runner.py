# runner.py
from __future__ import annotations

import os
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .errors import ActionExecutionFailure, SchedulerStuckError
from .model import Action, Event, Graph, Run, Status
from .runners import ActionRunner, Outcome
from .scheduler import next_wave, skippable
from .ui.console import get_console

# How often the wave barrier checks for cancellation
CANCEL_POLL_SECONDS = 0.1


@dataclass
class RunOutcome:
    """
    Result of driving a graph to completion.

    statuses: final status per action
    waves:    action names per dispatched wave, in dispatch order
    failures: recorded failure per FAILED action
    """
    statuses: Dict[str, Status] = field(default_factory=dict)
    waves: List[List[str]] = field(default_factory=list)
    failures: Dict[str, ActionExecutionFailure] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return all(s is Status.SUCCEEDED for s in self.statuses.values())


def default_workers() -> int:
    c = os.cpu_count() or 2
    return max(1, c - 1)


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _execute_action(runner: ActionRunner, action: Action) -> Tuple[Outcome, Optional[ActionExecutionFailure]]:
    """
    Runs on a worker thread. The runner's failure record is read on the same
    thread, right after the execution it describes.
    """
    get_console().print_action_start(action.name, action.operation.describe())
    result = runner.execute(action.operation)
    lookup = getattr(runner, "last_failure", None)
    recorded = lookup() if lookup is not None and result is not Outcome.SUCCEEDED else None
    return result, recorded


def _failure_from(
    action: Action,
    outcome: Outcome,
    recorded: Optional[ActionExecutionFailure],
) -> ActionExecutionFailure:
    if outcome is Outcome.CANCELLED:
        return ActionExecutionFailure(action=action.name, message="cancelled")
    if recorded is not None:
        return ActionExecutionFailure(
            action=action.name,
            message=recorded.message,
            exit_code=recorded.exit_code,
            output=recorded.output,
        )
    return ActionExecutionFailure(action=action.name, message="action reported failure")


def _apply_skips(graph: Graph) -> List[str]:
    doomed = sorted(skippable(graph))
    console = get_console()
    for name in doomed:
        graph[name].status = Status.SKIPPED
    for name in doomed:
        failed_deps = sorted(
            d for d in graph[name].needs if graph.status_of(d) in (Status.FAILED, Status.SKIPPED)
        )
        console.print_action_skipped(name, f"blocked by {failed_deps}")
    return doomed


def _await_wave(
    futures: Dict[Future, Action],
    runner: ActionRunner,
    cancel: Optional[threading.Event],
) -> bool:
    """
    Block until every future of the wave is done (the wave barrier).
    Returns True if the run was cancelled while waiting.
    """
    pending = set(futures)
    signalled = False

    while pending:
        done, pending = wait(pending, timeout=CANCEL_POLL_SECONDS, return_when=FIRST_COMPLETED)
        if cancel is not None and cancel.is_set() and not signalled:
            signalled = True
            stop = getattr(runner, "cancel", None)
            if stop is not None:
                stop()

    return signalled


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def execute(
    run: Run,
    runner: ActionRunner,
    *,
    max_workers: int | None = None,
    cancel: Optional[threading.Event] = None,
) -> RunOutcome:
    """
    Drive `run.graph` to completion.

    - Each wave is every action whose prerequisites all SUCCEEDED.
    - A wave runs concurrently; all of its results are applied before the
      next wave is computed.
    - A failure only forecloses the failed action's dependents (SKIPPED).
    - Per-action failures are recorded in the outcome, never raised.
    """
    graph = run.graph
    console = get_console()
    outcome = RunOutcome()

    if max_workers is None:
        max_workers = default_workers()

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        while True:
            _apply_skips(graph)

            if cancel is not None and cancel.is_set():
                outcome.cancelled = True
                for name in graph.pending():
                    graph[name].status = Status.SKIPPED
                    console.print_action_skipped(name, "run cancelled")
                break

            wave = sorted(next_wave(graph), key=lambda a: a.name)
            if not wave:
                pending = graph.pending()
                if pending:
                    raise SchedulerStuckError(pending)
                break

            run.wave += 1
            names = [a.name for a in wave]
            outcome.waves.append(names)
            console.print_wave(run.wave, names)

            for action in wave:
                action.status = Status.RUNNING
            futures = {pool.submit(_execute_action, runner, a): a for a in wave}

            try:
                if _await_wave(futures, runner, cancel):
                    outcome.cancelled = True
            except KeyboardInterrupt:
                # Stop in-flight actions before the pool waits on them
                stop = getattr(runner, "cancel", None)
                if stop is not None:
                    stop()
                raise

            # Single writer: only this thread updates statuses
            for fut, action in futures.items():
                try:
                    result, recorded = fut.result()
                except Exception as e:
                    result = Outcome.FAILED
                    outcome.failures[action.name] = ActionExecutionFailure(
                        action=action.name,
                        message=f"{type(e).__name__}: {e}",
                    )
                else:
                    if result is not Outcome.SUCCEEDED:
                        outcome.failures[action.name] = _failure_from(action, result, recorded)

                action.status = Status.SUCCEEDED if result is Outcome.SUCCEEDED else Status.FAILED
                console.print_action_result(action.name, action.status.value)
                failure = outcome.failures.get(action.name)
                if failure is not None:
                    console.print_failure(action.name, failure.message, failure.exit_code, failure.output)

    outcome.statuses = graph.statuses()
    run.outcome = outcome
    return outcome


def run_graph(
    graph: Graph,
    runner: ActionRunner,
    *,
    max_workers: int | None = None,
    cancel: Optional[threading.Event] = None,
    workflow: str = "workflow",
    event: Optional[Event] = None,
) -> RunOutcome:
    """Run a graph outside of a trigger, in a fresh Run context."""
    run = Run(workflow=workflow, event=event or Event(), graph=graph)
    return execute(run, runner, max_workers=max_workers, cancel=cancel)
