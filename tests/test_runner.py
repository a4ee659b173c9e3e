import shlex
import sys
import threading

import pytest

from conftest import FakeRunner
from pushflow.dag import build_graph
from pushflow.dsl import action, sh
from pushflow.errors import SchedulerStuckError
from pushflow.model import Action, Event, Graph, Operation, Run, Status
from pushflow.report import summarize
from pushflow.runner import execute, run_graph
from pushflow.runners import Outcome, ShellRunner


def ci_graph():
    return build_graph([
        action("Build", sh("build")),
        action("Test", sh("test"), needs=["Build", "Deps"]),
        action("Deps", sh("deps")),
    ], ["Test"])


def test_all_succeed_test_runs_in_second_wave():
    graph = ci_graph()
    runner = FakeRunner()

    outcome = run_graph(graph, runner)

    assert outcome.waves == [["Build", "Deps"], ["Test"]]
    assert outcome.statuses == {
        "Build": Status.SUCCEEDED,
        "Deps": Status.SUCCEEDED,
        "Test": Status.SUCCEEDED,
    }
    assert summarize(graph).success


def test_failed_prerequisite_skips_target():
    graph = ci_graph()
    runner = FakeRunner({"deps": Outcome.FAILED})

    outcome = run_graph(graph, runner)

    assert outcome.statuses["Build"] is Status.SUCCEEDED
    assert outcome.statuses["Deps"] is Status.FAILED
    assert outcome.statuses["Test"] is Status.SKIPPED
    assert "test" not in runner.calls
    assert "Deps" in outcome.failures
    assert not summarize(graph).success


def test_failure_skips_transitively_but_siblings_continue():
    graph = build_graph([
        action("a", sh("a")),
        action("b", sh("b"), needs=["a"]),
        action("c", sh("c"), needs=["b"]),
        action("x", sh("x")),
        action("y", sh("y"), needs=["x"]),
    ], ["c", "y"])
    runner = FakeRunner({"a": Outcome.FAILED})

    outcome = run_graph(graph, runner)

    assert outcome.statuses == {
        "a": Status.FAILED,
        "b": Status.SKIPPED,
        "c": Status.SKIPPED,
        "x": Status.SUCCEEDED,
        "y": Status.SUCCEEDED,
    }
    assert sorted(runner.calls) == ["a", "x", "y"]
    report = summarize(graph)
    assert report.targets == {"c": Status.SKIPPED, "y": Status.SUCCEEDED}
    assert not report.success


def test_every_action_runs_exactly_once():
    graph = build_graph([
        action("base", sh("base")),
        action("left", sh("left"), needs=["base"]),
        action("right", sh("right"), needs=["base"]),
        action("top", sh("top"), needs=["left", "right"]),
    ], ["top"])
    runner = FakeRunner()

    outcome = run_graph(graph, runner)

    assert sorted(runner.calls) == ["base", "left", "right", "top"]
    assert outcome.waves == [["base"], ["left", "right"], ["top"]]
    assert graph.pending() == []


def test_empty_graph_is_vacuous_success():
    graph = build_graph([], [])
    runner = FakeRunner()

    outcome = run_graph(graph, runner)

    assert outcome.statuses == {}
    assert outcome.waves == []
    assert outcome.succeeded
    assert summarize(graph).success
    assert runner.calls == []


def test_runner_exception_is_recorded_not_raised():
    graph = ci_graph()
    runner = FakeRunner({"build": RuntimeError("docker daemon gone")})

    outcome = run_graph(graph, runner)

    assert outcome.statuses["Build"] is Status.FAILED
    assert outcome.statuses["Test"] is Status.SKIPPED
    assert "docker daemon gone" in outcome.failures["Build"].message


def test_cancelled_outcome_counts_as_failed():
    graph = ci_graph()
    runner = FakeRunner({"build": Outcome.CANCELLED})

    outcome = run_graph(graph, runner)

    assert outcome.statuses["Build"] is Status.FAILED
    assert outcome.failures["Build"].message == "cancelled"
    assert outcome.statuses["Test"] is Status.SKIPPED


def test_concurrency_is_bounded_by_max_workers():
    graph = build_graph([action(f"a{i}", sh(f"a{i}")) for i in range(6)], [])
    runner = FakeRunner(delay=0.05)

    outcome = run_graph(graph, runner, max_workers=2)

    assert runner.peak <= 2
    assert len(outcome.waves) == 1
    assert all(s is Status.SUCCEEDED for s in outcome.statuses.values())


def test_wave_actions_run_concurrently():
    graph = build_graph([action(f"a{i}", sh(f"a{i}")) for i in range(3)], [])
    runner = FakeRunner(delay=0.2)

    run_graph(graph, runner, max_workers=3)

    assert runner.peak == 3


class BlockingRunner:
    """First execution trips the cancel event and waits to be cancelled."""

    def __init__(self, cancel_event):
        self.cancel_event = cancel_event
        self.stopped = threading.Event()
        self.calls = []

    def execute(self, operation):
        self.calls.append(operation.ref)
        self.cancel_event.set()
        if self.stopped.wait(timeout=5):
            return Outcome.CANCELLED
        return Outcome.SUCCEEDED

    def cancel(self):
        self.stopped.set()


def test_cancel_stops_in_flight_and_forecloses_rest():
    graph = build_graph([
        action("slow", sh("slow")),
        action("after", sh("after"), needs=["slow"]),
    ], ["after"])
    cancel = threading.Event()
    runner = BlockingRunner(cancel)

    outcome = run_graph(graph, runner, cancel=cancel)

    assert outcome.cancelled
    assert runner.stopped.is_set()
    assert runner.calls == ["slow"]
    assert outcome.statuses == {"slow": Status.FAILED, "after": Status.SKIPPED}


def test_cancel_before_start_runs_nothing():
    graph = ci_graph()
    cancel = threading.Event()
    cancel.set()
    runner = FakeRunner()

    outcome = run_graph(graph, runner, cancel=cancel)

    assert runner.calls == []
    assert outcome.cancelled
    assert set(outcome.statuses.values()) == {Status.SKIPPED}


def test_wave_counter_advances_on_run():
    run = Run(workflow="ci", event=Event(), graph=ci_graph())

    outcome = execute(run, FakeRunner())

    assert run.wave == 2
    assert run.outcome is outcome


def test_stuck_scheduler_is_detected():
    # Bypasses build_graph so the cycle is never validated
    op = Operation(kind="shell", ref="x")
    graph = Graph(
        actions={
            "a": Action("a", op, frozenset({"b"})),
            "b": Action("b", op, frozenset({"a"})),
        },
        resolves=frozenset({"a"}),
        dependents={"a": frozenset({"b"}), "b": frozenset({"a"})},
    )

    with pytest.raises(SchedulerStuckError) as exc:
        run_graph(graph, FakeRunner())
    assert exc.value.pending == ["a", "b"]


def test_actions_sharing_an_operation_keep_their_own_failure(tmp_path):
    op = sh(shlex.quote(sys.executable), "-c", "import os, sys; print(os.getpid()); sys.exit(1)")
    graph = build_graph([action("left", op), action("right", op)], [])

    outcome = run_graph(graph, ShellRunner(tmp_path), max_workers=2)

    left, right = outcome.failures["left"], outcome.failures["right"]
    assert left.exit_code == right.exit_code == 1
    assert left.output.strip() != right.output.strip()
