from pushflow.dag import build_graph
from pushflow.dsl import action, sh
from pushflow.model import Status
from pushflow.report import Report, summarize


def test_success_only_when_every_target_succeeded():
    graph = build_graph([action("a", sh("a")), action("b", sh("b"))], ["a", "b"])
    graph["a"].status = Status.SUCCEEDED
    graph["b"].status = Status.SUCCEEDED

    report = summarize(graph)

    assert report.success
    assert report.exit_code == 0
    assert report.to_dict() == {
        "outcome": "success",
        "targets": {"a": "succeeded", "b": "succeeded"},
    }


def test_non_target_failures_do_not_matter():
    graph = build_graph([action("a", sh("a")), action("lint", sh("lint"))], ["a"])
    graph["a"].status = Status.SUCCEEDED
    graph["lint"].status = Status.FAILED

    report = summarize(graph)

    assert report.targets == {"a": Status.SUCCEEDED}
    assert report.success


def test_skipped_target_is_failure():
    report = Report(targets={"deploy": Status.SKIPPED, "test": Status.SUCCEEDED})

    assert not report.success
    assert report.exit_code == 1
    assert report.to_dict()["outcome"] == "failure"


def test_no_targets_is_vacuous_success():
    report = summarize(build_graph([], []))

    assert report.targets == {}
    assert report.success
    assert report.exit_code == 0
