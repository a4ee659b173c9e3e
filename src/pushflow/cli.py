# cli.py
from __future__ import annotations

import signal
import sys
import threading
from pathlib import Path
from typing import List

import click

from pushflow.dag import build_graph, plan_waves
from pushflow.errors import BuildError, WorkflowLoadError
from pushflow.git_facts import push_event
from pushflow.loader import load_workflows
from pushflow.model import Event, Workflow
from pushflow.runners import LocalRunner, RetryRunner
from pushflow.settings import Settings
from pushflow.trigger import exit_code, trigger
from pushflow.ui.console import Console, get_console, set_console


def find_workflow_files(default: str) -> list[Path]:
    """
    Find workflow files in the current directory: `default` if present,
    plus any other *_workflow.py file.
    """
    current_dir = Path(".")
    workflow_files = []

    default_workflow = current_dir / default
    if default_workflow.exists():
        workflow_files.append(default_workflow)

    for path in current_dir.glob("*_workflow.py"):
        if path.name != default_workflow.name:
            workflow_files.append(path)

    return sorted(workflow_files)


def discover_workflow(workflow_arg: str | None, default: str) -> Path:
    """
    Resolve the workflow file from the CLI argument or by discovery.

    Raises:
        SystemExit: If no workflow (or more than one candidate) is found
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and workflow_path.suffix != ".py":
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  pushflow run --workflow my_workflow.py",
            )
            sys.exit(1)
        return workflow_path

    workflow_files = find_workflow_files(default)

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=["Looked for:", f"  {default}", "  *_workflow.py"],
            suggestion=f"Create {default} or pass --workflow.",
        )
        sys.exit(1)

    # The default file wins over other candidates
    for path in workflow_files:
        if path.name == default:
            return path

    if len(workflow_files) > 1:
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[str(f) for f in workflow_files],
            suggestion="Specify a workflow explicitly:\n  pushflow run --workflow ci_workflow.py",
        )
        sys.exit(1)

    return workflow_files[0]


def _load(ctx: click.Context, workflow: str | None) -> List[Workflow]:
    settings: Settings = ctx.obj["settings"]
    workflow_path = discover_workflow(workflow, settings.workflow)
    try:
        return load_workflows(workflow_path)
    except WorkflowLoadError as e:
        get_console().print_error("Failed to load workflow", str(e))
        sys.exit(1)


def _on_sigint(cancel: threading.Event):
    """
    Turn Ctrl-C into a cancellation request so running actions are
    terminated through the runner. Returns the previous handler, or None
    when not on the main thread (handlers can only be installed there).
    """
    if threading.current_thread() is not threading.main_thread():
        return None

    def _handler(signum, frame):
        cancel.set()

    return signal.signal(signal.SIGINT, _handler)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """pushflow: dependency-graph CI workflow executor."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    try:
        ctx.obj["settings"] = Settings.from_env()
    except ValueError as e:
        console.print_error("Invalid configuration", str(e))
        sys.exit(1)


@cli.command()
@click.option("--workflow", default=None, help="Workflow file path (defaults to pushflow_workflow.py if present)")
@click.option("--event", "event_name", default="push", show_default=True, help="Event to trigger")
@click.option("--ref", default=None, help="Git ref of the event (defaults to the checked-out branch)")
@click.option("--sha", default=None, help="Commit SHA of the event (defaults to HEAD)")
@click.option("--workers", default=None, type=int, help="Number of parallel workers")
@click.option("--timeout", default=None, type=float, help="Per-action timeout in seconds")
@click.option("--retries", default=None, type=int, help="Extra attempts for a failed action")
@click.pass_context
def run(ctx, workflow, event_name, ref, sha, workers, timeout, retries):
    """Trigger an event and run every workflow listening for it."""
    console = get_console()
    settings: Settings = ctx.obj["settings"]
    workflows = _load(ctx, workflow)

    if event_name == "push":
        event = push_event(ref=ref, sha=sha)
    else:
        event = Event(name=event_name, ref=ref, sha=sha)
    console.print_debug(f"event={event}")

    runner = LocalRunner(
        ".",
        env=event.env(),
        timeout=timeout if timeout is not None else settings.action_timeout,
    )
    retries = retries if retries is not None else settings.retries
    if retries:
        runner = RetryRunner(runner, retries)

    cancel = threading.Event()
    previous = _on_sigint(cancel)
    try:
        runs = trigger(
            workflows,
            event,
            runner,
            max_workers=workers if workers is not None else settings.max_workers,
            cancel=cancel,
        )
    except BuildError as e:
        console.print_error("Invalid workflow", str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        runner.cancel()
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)

    if cancel.is_set():
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    sys.exit(exit_code(runs))


@cli.command()
@click.option("--workflow", default=None, help="Workflow file path (defaults to pushflow_workflow.py if present)")
@click.pass_context
def plan(ctx, workflow):
    """Validate workflows and print their waves without running anything."""
    console = get_console()
    failed = False
    for w in _load(ctx, workflow):
        try:
            graph = build_graph(w.actions, w.resolves)
        except BuildError as e:
            console.print_error(f"Invalid workflow: {w.name}", str(e))
            failed = True
            continue
        console.print_plan(w.name, plan_waves(graph), graph.resolves)
    if failed:
        sys.exit(1)


@cli.command()
@click.option("--workflow", default=None, help="Workflow file path (defaults to pushflow_workflow.py if present)")
@click.option("--host", default=None, help="Bind address")
@click.option("--port", default=None, type=int, help="Bind port")
@click.option("--workers", default=None, type=int, help="Number of parallel workers per run")
@click.pass_context
def serve(ctx, workflow, host, port, workers):
    """Serve the HTTP trigger API."""
    import uvicorn

    from pushflow.server import create_app

    settings: Settings = ctx.obj["settings"]
    workflows = _load(ctx, workflow)

    def runner_factory(event: Event):
        runner = LocalRunner(".", env=event.env(), timeout=settings.action_timeout)
        return RetryRunner(runner, settings.retries) if settings.retries else runner

    app = create_app(
        workflows,
        runner_factory,
        max_workers=workers if workers is not None else settings.max_workers,
    )
    uvicorn.run(app, host=host or settings.host, port=port or settings.port)


if __name__ == "__main__":
    cli()
