# src/pushflow/dsl.py
from __future__ import annotations

from typing import Dict, List, Optional, Union

from .model import ActionSpec, Operation, Workflow


# ---------------------------------------------------------------------
# Operation helpers
# ---------------------------------------------------------------------

def _env(env: Optional[Dict[str, str]]) -> tuple:
    # force values to str for env compatibility
    return tuple(sorted((k, str(v)) for k, v in (env or {}).items()))


def sh(cmd: str, *args: str, env: Optional[Dict[str, str]] = None) -> Operation:
    """A shell command; extra args are shell-quoted and appended."""
    return Operation(kind="shell", ref=cmd, args=tuple(args), env=_env(env))


def docker(image: str, *args: str, env: Optional[Dict[str, str]] = None) -> Operation:
    """A container image run with `args` as its command."""
    if image.startswith("docker://"):
        image = image[len("docker://"):]
    return Operation(kind="docker", ref=image, args=tuple(args), env=_env(env))


# ---------------------------------------------------------------------
# Action / workflow helpers
# ---------------------------------------------------------------------

def action(
    name: str,
    uses: Union[Operation, str],
    *,
    needs: Optional[List[str]] = None,
) -> ActionSpec:
    """
    Declare an action.

        action("test", sh("pytest -q"), needs=["build"])

    A plain string is a shell command; "docker://image" is an image.
    """
    if isinstance(uses, str):
        uses = docker(uses) if uses.startswith("docker://") else sh(uses)
    return ActionSpec(name=name, operation=uses, needs=list(needs or []))


def workflow(
    name: str,
    *actions: ActionSpec,
    resolves: Optional[List[str]] = None,
    on: str = "push",
) -> Workflow:
    """
    Workflow definition helper.

        from pushflow import workflow, action, sh

        WORKFLOWS = [
            workflow(
                "ci",
                action("build", sh("make")),
                action("test", sh("make test"), needs=["build"]),
                resolves=["test"],
            )
        ]

    Without `resolves`, every action that nothing else needs is a target.
    """
    actions_list = list(actions)
    if resolves is None:
        needed = {dep for a in actions_list for dep in a.needs}
        resolves = [a.name for a in actions_list if a.name not in needed]
    return Workflow(name=name, actions=actions_list, resolves=list(resolves), on=on)


wf = workflow
