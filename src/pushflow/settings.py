from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_WORKFLOW = "pushflow_workflow.py"


def _int(env: Mapping[str, str], key: str) -> Optional[int]:
    raw = env.get(key)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def _float(env: Mapping[str, str], key: str) -> Optional[float]:
    raw = env.get(key)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    workflow: str = DEFAULT_WORKFLOW
    max_workers: Optional[int] = None
    action_timeout: Optional[float] = None
    retries: int = 0
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            workflow=env.get("PUSHFLOW_WORKFLOW", DEFAULT_WORKFLOW),
            max_workers=_int(env, "PUSHFLOW_MAX_WORKERS"),
            action_timeout=_float(env, "PUSHFLOW_ACTION_TIMEOUT"),
            retries=_int(env, "PUSHFLOW_RETRIES") or 0,
            host=env.get("PUSHFLOW_HOST", "127.0.0.1"),
            port=_int(env, "PUSHFLOW_PORT") or 8000,
        )
