from fastapi.testclient import TestClient

from conftest import FakeRunner
from pushflow.dsl import action, sh, workflow
from pushflow.runners import Outcome
from pushflow.server import create_app


def ci():
    return workflow(
        "ci",
        action("Build", sh("build")),
        action("Test", sh("test"), needs=["Build", "Deps"]),
        action("Deps", sh("deps")),
        resolves=["Test"],
    )


def client_for(workflows, runner):
    seen = []

    def factory(event):
        seen.append(event)
        return runner

    return TestClient(create_app(workflows, factory)), seen


def test_health():
    client, _ = client_for([], FakeRunner())
    assert client.get("/health").json() == {"ok": True}


def test_list_workflows_shows_planned_waves():
    client, _ = client_for([ci()], FakeRunner())

    body = client.get("/workflows").json()

    assert body == [{
        "name": "ci",
        "on": "push",
        "resolves": ["Test"],
        "waves": [["Build", "Deps"], ["Test"]],
    }]


def test_push_event_runs_and_reports():
    client, seen = client_for([ci()], FakeRunner())

    resp = client.post("/events", json={"event": "push", "ref": "refs/heads/main", "sha": "abc"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["outcome"] == "success"
    run = body["runs"][0]
    assert run["workflow"] == "ci"
    assert run["targets"] == {"Test": "succeeded"}
    assert run["waves"] == [["Build", "Deps"], ["Test"]]
    assert seen[0].sha == "abc"


def test_failure_is_reported_not_raised():
    client, _ = client_for([ci()], FakeRunner({"deps": Outcome.FAILED}))

    body = client.post("/events", json={"event": "push"}).json()

    assert body["outcome"] == "failure"
    run = body["runs"][0]
    assert run["statuses"] == {"Build": "succeeded", "Deps": "failed", "Test": "skipped"}
    assert "Deps" in run["failures"]


def test_unknown_event_runs_nothing():
    client, _ = client_for([ci()], FakeRunner())

    body = client.post("/events", json={"event": "release"}).json()

    assert body == {"event": "release", "outcome": "success", "runs": []}


def test_invalid_workflow_is_422():
    broken = workflow("broken", action("a", sh("a"), needs=["missing"]))
    client, _ = client_for([broken], FakeRunner())

    assert client.post("/events", json={"event": "push"}).status_code == 422
    assert client.get("/workflows").status_code == 422
