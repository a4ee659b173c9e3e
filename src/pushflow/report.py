# report.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from .model import Graph, Status


@dataclass(frozen=True)
class Report:
    """Final status of every resolve target."""
    targets: Dict[str, Status] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        # no targets -> vacuously successful
        return all(s is Status.SUCCEEDED for s in self.targets.values())

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": "success" if self.success else "failure",
            "targets": {name: status.value for name, status in sorted(self.targets.items())},
        }


def summarize(graph: Graph) -> Report:
    return Report(targets={name: graph.status_of(name) for name in graph.resolves})
