"""Console output formatting utilities for pushflow."""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, Iterable, List, Optional

if TYPE_CHECKING:
    from ..report import Report


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, quiet: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            quiet: If True, suppress progress lines (errors still print)
        """
        self.debug = debug
        self.quiet = quiet
        # runner threads print concurrently
        self._lock = threading.Lock()

    def _out(self, *lines: str) -> None:
        if self.quiet:
            return
        with self._lock:
            for line in lines:
                print(line)

    def print_run_started(
        self,
        workflow: str,
        event: str,
        action_count: int,
        run_id: Optional[str] = None,
    ) -> None:
        """Print run start information."""
        lines = ["\nRUN STARTED", f"Workflow: {workflow}", f"Event: {event}"]
        if run_id:
            lines.append(f"Run ID: {run_id}")
        lines.extend([f"Actions: {action_count}", ""])
        self._out(*lines)

    def print_wave(self, index: int, names: Iterable[str]) -> None:
        self._out(f"=== Wave {index}: {sorted(names)} ===")

    def print_action_start(self, name: str, operation: str) -> None:
        """Print action start message."""
        self._out(f"ACTION STARTED: {name}", f"  $ {operation}")

    def print_action_result(self, name: str, status: str) -> None:
        mark = "✓" if status == "succeeded" else "✗"
        self._out(f"{mark} {name}: {status}")

    def print_action_skipped(self, name: str, reason: str) -> None:
        """Print action skipped message."""
        self._out(f"⏭ {name}: skipped ({reason})")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        output: str = "",
    ) -> None:
        """
        Print failure message.

        Args:
            name: Action name
            reason: Failure reason/error message
            exit_code: Optional exit code
            output: Captured output tail, shown only in debug mode
        """
        lines = [f"ACTION FAILED: {name}"]
        if exit_code is not None:
            lines.append(f"Exit code: {exit_code}")
        if self.debug:
            lines.append(f"Error details: {reason}")
            if output:
                lines.append(output.rstrip())
        else:
            # First line only outside debug mode
            lines.append(f"Error: {reason.splitlines()[0] if reason else 'Unknown error'}")
        self._out(*lines)

    def print_plan(self, workflow: str, waves: List[List[str]], resolves: Iterable[str]) -> None:
        self._out(f"\nPLAN: {workflow}", f"Resolves: {sorted(resolves)}")
        for i, wave in enumerate(waves, start=1):
            self._out(f"  Wave {i}: {wave}")

    def print_report(self, workflow: str, report: "Report") -> None:
        """Print final results summary."""
        lines = ["\n" + "=" * 40, f"RESULTS: {workflow}", "=" * 40]
        for name, status in sorted(report.targets.items()):
            lines.append(f"  {name}: {status.value.upper()}")
        lines.append(f"OUTCOME: {'SUCCESS' if report.success else 'FAILURE'}")
        self._out(*lines)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        with self._lock:
            print(f"\nERROR: {title}", file=sys.stderr)
            print(f"{message}", file=sys.stderr)
            if details:
                for detail in details:
                    print(f"  {detail}", file=sys.stderr)
            if suggestion:
                print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._out(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
