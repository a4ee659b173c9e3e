from __future__ import annotations

import threading
import time
from typing import Dict, List, Optional

import pytest

from pushflow.model import Operation
from pushflow.runners import Outcome
from pushflow.ui.console import Console, set_console


class FakeRunner:
    """
    Scripted Action Runner keyed by operation ref.

    outcomes: ref -> Outcome (default SUCCEEDED) or an exception to raise
    delay:    seconds every execution sleeps, to make waves overlap
    """

    def __init__(self, outcomes: Optional[Dict[str, object]] = None, delay: float = 0.0):
        self.outcomes = dict(outcomes or {})
        self.delay = delay
        self.calls: List[str] = []
        self.active = 0
        self.peak = 0
        self.cancelled = False
        self._lock = threading.Lock()

    def execute(self, operation: Operation) -> Outcome:
        with self._lock:
            self.calls.append(operation.ref)
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            result = self.outcomes.get(operation.ref, Outcome.SUCCEEDED)
            if isinstance(result, BaseException):
                raise result
            return result
        finally:
            with self._lock:
                self.active -= 1

    def cancel(self) -> None:
        self.cancelled = True


@pytest.fixture(autouse=True)
def quiet_console():
    set_console(Console(quiet=True))
    yield


@pytest.fixture
def fake_runner():
    return FakeRunner()
