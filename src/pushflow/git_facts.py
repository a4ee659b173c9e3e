# git_facts.py
# Small wrapper around the Git CLI. Used to describe a local "push":
# which ref is checked out and which commit it points at.

from __future__ import annotations

import subprocess
from typing import Optional

from .model import Event


def _git(args: list[str], cwd: Optional[str] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Args:
        args: List of git arguments (e.g. ["rev-parse", "HEAD"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        subprocess.CalledProcessError: git exited non-zero
        FileNotFoundError: git is not installed
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=cwd,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def head_sha(cwd: Optional[str] = None) -> str:
    """Full SHA of the current HEAD commit."""
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def current_ref(cwd: Optional[str] = None) -> str:
    """
    Current branch as a full ref (refs/heads/<branch>).

    A detached HEAD has no branch, so the commit SHA is returned instead.
    """
    branch = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)
    if branch == "HEAD":
        return head_sha(cwd)
    return f"refs/heads/{branch}"


def push_event(
    ref: Optional[str] = None,
    sha: Optional[str] = None,
    cwd: Optional[str] = None,
) -> Event:
    """
    Describe a push of the local checkout.

    Explicit `ref`/`sha` win. Anything missing is read from git; outside a
    repository (or without git) the field is left empty.
    """
    try:
        ref = ref or current_ref(cwd)
        sha = sha or head_sha(cwd)
    except (subprocess.CalledProcessError, FileNotFoundError):
        pass
    return Event(name="push", ref=ref, sha=sha)
