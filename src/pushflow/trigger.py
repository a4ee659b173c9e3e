# trigger.py
from __future__ import annotations

import threading
from typing import Iterable, List, Optional

from .dag import build_graph
from .model import Event, Run, Workflow
from .report import summarize
from .runner import execute
from .runners import ActionRunner
from .ui.console import get_console


def matching(workflows: Iterable[Workflow], event: Event) -> List[Workflow]:
    return [w for w in workflows if w.on == event.name]


def prepare_runs(workflows: Iterable[Workflow], event: Event) -> List[Run]:
    """
    Build one Run per workflow listening for `event`.

    Every graph is validated before any run is returned, so a BuildError in
    one workflow means no run starts at all.
    """
    return [
        Run(workflow=w.name, event=event, graph=build_graph(w.actions, w.resolves))
        for w in matching(workflows, event)
    ]


def trigger(
    workflows: Iterable[Workflow],
    event: Event,
    runner: ActionRunner,
    *,
    max_workers: int | None = None,
    cancel: Optional[threading.Event] = None,
) -> List[Run]:
    """Start, execute and report every run for `event`. Runs are sequential."""
    console = get_console()
    runs = prepare_runs(workflows, event)
    if not runs:
        console.print_info(f"No workflow listens for '{event.name}'")

    for run in runs:
        console.print_run_started(
            workflow=run.workflow,
            event=event.name,
            action_count=len(run.graph),
            run_id=run.id,
        )
        execute(run, runner, max_workers=max_workers, cancel=cancel)
        run.report = summarize(run.graph)
        console.print_report(run.workflow, run.report)

    return runs


def exit_code(runs: Iterable[Run]) -> int:
    """0 when every run's report succeeded (or there were none), else 1."""
    return 0 if all(r.report is not None and r.report.success for r in runs) else 1
