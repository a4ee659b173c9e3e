# pushflow_workflow.py
# Workflow for pushflow itself: runs on every push.
from __future__ import annotations

from pushflow.dsl import action, sh, workflow


def workflows():
    return [
        workflow(
            "ci",
            # Install the package and its test extra
            action("deps", sh("python -m pip install -e '.[test]'")),

            # Byte-compile everything as a cheap syntax check
            action("build", sh("python -m compileall -q src")),

            action("test", sh("python -m pytest -q"), needs=["build", "deps"]),
            resolves=["test"],
        ),
    ]
