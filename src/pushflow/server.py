from __future__ import annotations

from typing import Callable, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .dag import build_graph, plan_waves
from .errors import BuildError
from .model import Event, Workflow
from .runners import ActionRunner
from .trigger import trigger

RunnerFactory = Callable[[Event], ActionRunner]

# -------------------- Schemas --------------------

class EventRequest(BaseModel):
    event: str = "push"
    ref: Optional[str] = None
    sha: Optional[str] = None


class RunReport(BaseModel):
    run_id: str
    workflow: str
    outcome: str
    targets: dict[str, str]
    statuses: dict[str, str]
    waves: list[list[str]]
    failures: dict[str, str] = Field(default_factory=dict)


class EventResponse(BaseModel):
    event: str
    outcome: str
    runs: list[RunReport]


class WorkflowInfo(BaseModel):
    name: str
    on: str
    resolves: list[str]
    waves: list[list[str]]

# -------------------- App --------------------

def create_app(
    workflows: List[Workflow],
    runner_factory: RunnerFactory,
    *,
    max_workers: int | None = None,
) -> FastAPI:
    """
    HTTP trigger surface: POST an event, get back one report per run.

    Runs execute synchronously inside the request (FastAPI runs plain `def`
    endpoints in its threadpool).
    """
    app = FastAPI(title="pushflow trigger API")

    @app.get("/health")
    def health() -> dict:
        return {"ok": True}

    @app.get("/workflows", response_model=list[WorkflowInfo])
    def list_workflows():
        out = []
        for w in workflows:
            try:
                waves = plan_waves(build_graph(w.actions, w.resolves))
            except BuildError as e:
                raise HTTPException(status_code=422, detail=f"{w.name}: {e}")
            out.append(WorkflowInfo(name=w.name, on=w.on, resolves=sorted(w.resolves), waves=waves))
        return out

    @app.post("/events", response_model=EventResponse)
    def receive_event(req: EventRequest):
        event = Event(name=req.event, ref=req.ref, sha=req.sha)
        try:
            runs = trigger(workflows, event, runner_factory(event), max_workers=max_workers)
        except BuildError as e:
            raise HTTPException(status_code=422, detail=str(e))

        reports = []
        for run in runs:
            report = run.report.to_dict()
            reports.append(
                RunReport(
                    run_id=run.id,
                    workflow=run.workflow,
                    outcome=report["outcome"],
                    targets=report["targets"],
                    statuses={n: s.value for n, s in sorted(run.outcome.statuses.items())},
                    waves=run.outcome.waves,
                    failures={n: str(f) for n, f in sorted(run.outcome.failures.items())},
                )
            )

        overall = "success" if all(r.outcome == "success" for r in reports) else "failure"
        return EventResponse(event=event.name, outcome=overall, runs=reports)

    return app
