
from .dsl import action, docker, sh, workflow, wf
from .dag import build_graph, plan_waves
from .model import Action, ActionSpec, Event, Graph, Operation, Run, Status, Workflow
from .report import Report, summarize
from .runner import RunOutcome, execute, run_graph
from .runners import ActionRunner, LocalRunner, Outcome, RetryRunner
from .trigger import trigger

__all__ = [
    "action", "docker", "sh", "workflow", "wf",
    "build_graph", "plan_waves",
    "Action", "ActionSpec", "Event", "Graph", "Operation", "Run", "Status", "Workflow",
    "Report", "summarize",
    "RunOutcome", "execute", "run_graph",
    "ActionRunner", "LocalRunner", "Outcome", "RetryRunner",
    "trigger",
]
