# runners.py
from __future__ import annotations

import os
import shlex
import signal
import subprocess
import threading
from enum import Enum
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol, Set, runtime_checkable

from .errors import ActionExecutionFailure
from .model import Operation
from .ui.console import get_console

# Keep failure output bounded so huge logs don't flood the report
OUTPUT_TAIL = 4000


class Outcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@runtime_checkable
class ActionRunner(Protocol):
    """
    Executes one operation and reports pass/fail.

    Runners may also define `cancel()`; the executor calls it when the
    run is cancelled and expects in-flight executions to return CANCELLED.
    `last_failure()`, if defined, describes the calling thread's last
    failed execution.
    """

    def execute(self, operation: Operation) -> Outcome: ...


# ----------------------------------------------------------------------
# Process-backed runners
# ----------------------------------------------------------------------

def _signal(proc: subprocess.Popen, sig: int) -> None:
    """Signal the whole process group so shell children die too."""
    if os.name == "posix":
        try:
            os.killpg(proc.pid, sig)
        except ProcessLookupError:
            pass
    else:
        proc.kill()


class _ProcessRunner:
    """Shared subprocess handling: env, timeout, cancellation, output tail."""

    def __init__(
        self,
        workdir: str | Path = ".",
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ):
        self.workdir = Path(workdir).resolve()
        self.env: Dict[str, str] = dict(env or {})
        self.timeout = timeout
        self._procs: Set[subprocess.Popen] = set()
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        # failure of the execution last run on the calling thread
        self._local = threading.local()

    def _command(self, operation: Operation) -> list[str] | str:
        raise NotImplementedError

    def _environ(self, operation: Operation) -> Dict[str, str]:
        env = os.environ.copy()
        env.update(self.env)
        env.update(operation.environ())
        return env

    def execute(self, operation: Operation) -> Outcome:
        self._local.failure = None
        if self._cancelled.is_set():
            return Outcome.CANCELLED
        if not self.workdir.exists():
            raise FileNotFoundError(f"workdir not found: {self.workdir}")

        cmd = self._command(operation)
        proc = subprocess.Popen(
            cmd,
            shell=isinstance(cmd, str),
            cwd=str(self.workdir),
            env=self._environ(operation),
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            start_new_session=os.name == "posix",
        )
        with self._lock:
            self._procs.add(proc)
            # cancel() may have run between the check above and Popen
            if self._cancelled.is_set():
                _signal(proc, signal.SIGTERM)

        try:
            out, _ = proc.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            _signal(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
            out, _ = proc.communicate()
            self._record(operation, f"timed out after {self.timeout}s", None, out)
            return Outcome.FAILED
        finally:
            with self._lock:
                self._procs.discard(proc)

        if self._cancelled.is_set() and proc.returncode != 0:
            return Outcome.CANCELLED
        if proc.returncode != 0:
            self._record(operation, "command failed", proc.returncode, out)
            return Outcome.FAILED
        return Outcome.SUCCEEDED

    def _record(self, operation: Operation, message: str, exit_code: Optional[int], out: str) -> None:
        self._local.failure = ActionExecutionFailure(
            action=operation.describe(),
            message=message,
            exit_code=exit_code,
            output=(out or "")[-OUTPUT_TAIL:],
        )
        get_console().print_debug(f"{operation.describe()}: {message}")

    def last_failure(self) -> Optional[ActionExecutionFailure]:
        """Failure of the last execution made by the calling thread, if it failed."""
        return getattr(self._local, "failure", None)

    def cancel(self) -> None:
        """Terminate every in-flight process; later executions return CANCELLED."""
        self._cancelled.set()
        with self._lock:
            procs = list(self._procs)
        for proc in procs:
            if proc.poll() is None:
                _signal(proc, signal.SIGTERM)


class ShellRunner(_ProcessRunner):
    """Runs `ref` (plus quoted args) through the shell in `workdir`."""

    def _command(self, operation: Operation) -> str:
        return " ".join([operation.ref, *(shlex.quote(a) for a in operation.args)])


class DockerRunner(_ProcessRunner):
    """Runs an image with the workdir mounted at /workspace."""

    container_workdir = "/workspace"

    def _command(self, operation: Operation) -> list[str]:
        cmd = ["docker", "run", "--rm"]
        cmd.extend(["-v", f"{self.workdir}:{self.container_workdir}"])
        cmd.extend(["-w", self.container_workdir])

        # Only the explicit env crosses into the container, not os.environ
        env = dict(self.env)
        env.update(operation.environ())
        for key, value in sorted(env.items()):
            cmd.extend(["-e", f"{key}={value}"])

        cmd.append(operation.ref)
        cmd.extend(operation.args)
        return cmd


# ----------------------------------------------------------------------
# Composition
# ----------------------------------------------------------------------

class LocalRunner:
    """Dispatches an operation to the runner registered for its kind."""

    def __init__(
        self,
        workdir: str | Path = ".",
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ):
        self.runners: Dict[str, _ProcessRunner] = {
            "shell": ShellRunner(workdir, env, timeout),
            "docker": DockerRunner(workdir, env, timeout),
        }
        self._local = threading.local()

    def execute(self, operation: Operation) -> Outcome:
        self._local.last = None
        runner = self.runners.get(operation.kind)
        if runner is None:
            raise ValueError(f"Unknown operation kind: {operation.kind!r}")
        self._local.last = runner
        return runner.execute(operation)

    def last_failure(self) -> Optional[ActionExecutionFailure]:
        runner = getattr(self._local, "last", None)
        return runner.last_failure() if runner else None

    def cancel(self) -> None:
        for runner in self.runners.values():
            runner.cancel()


class RetryRunner:
    """Re-executes FAILED operations up to `retries` extra times."""

    def __init__(self, inner: ActionRunner, retries: int = 0):
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self.inner = inner
        self.retries = retries

    def execute(self, operation: Operation) -> Outcome:
        outcome = self.inner.execute(operation)
        attempt = 0
        while outcome is Outcome.FAILED and attempt < self.retries:
            attempt += 1
            get_console().print_debug(f"retry {attempt}/{self.retries}: {operation.describe()}")
            outcome = self.inner.execute(operation)
        return outcome

    def last_failure(self) -> Optional[ActionExecutionFailure]:
        lookup = getattr(self.inner, "last_failure", None)
        return lookup() if lookup else None

    def cancel(self) -> None:
        cancel = getattr(self.inner, "cancel", None)
        if cancel is not None:
            cancel()
