# loader.py
from __future__ import annotations

import runpy
from pathlib import Path
from typing import Any, Dict, List

from .errors import WorkflowLoadError
from .model import Workflow

_MISSING_HINT = "define workflows() -> List[Workflow], WORKFLOWS = [...] or WORKFLOW = workflow(...)"


def _collect(globals_dict: Dict[str, Any]) -> Any:
    if callable(globals_dict.get("workflows")):
        return globals_dict["workflows"]()
    if "WORKFLOWS" in globals_dict:
        return globals_dict["WORKFLOWS"]
    return globals_dict.get("WORKFLOW")


def load_workflows(path: str | Path) -> List[Workflow]:
    """
    Load workflows from a python file path.

    The file must define one of:
      - workflows() -> Workflow | List[Workflow]
      - WORKFLOWS = [Workflow, ...]
      - WORKFLOW = Workflow

    Returns:
      List[Workflow]

    Raises:
      WorkflowLoadError: for any problem with the file, including errors
        raised while it executes
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise WorkflowLoadError(str(wf_path), "workflow file not found")
    if wf_path.suffix != ".py":
        raise WorkflowLoadError(str(wf_path), f"workflow must be a .py file, got: {wf_path.name}")

    module_name = f"pushflow_workflow_{wf_path.stem}"
    try:
        globals_dict = runpy.run_path(str(wf_path), run_name=module_name)
        found = _collect(globals_dict)
    except Exception as e:
        # SyntaxError, ImportError, or anything raised inside workflows()
        raise WorkflowLoadError(str(wf_path), f"{type(e).__name__}: {e}") from e

    if found is None:
        raise WorkflowLoadError(str(wf_path), _MISSING_HINT)

    if isinstance(found, Workflow):
        found = [found]
    if not isinstance(found, (list, tuple)) or not all(isinstance(w, Workflow) for w in found):
        raise WorkflowLoadError(str(wf_path), "expected a Workflow or a list of Workflow objects")

    names = [w.name for w in found]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise WorkflowLoadError(str(wf_path), f"duplicate workflow names: {dupes}")

    return list(found)
