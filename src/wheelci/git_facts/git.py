# git.py
# Small, focused wrapper around the Git CLI.
# This module centralizes all Git interactions so the rest of the codebase
# never needs to call subprocess("git ...") directly.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional


def _git(args: list[str], cwd: Optional[str | Path] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    This is the single low-level entry point for all Git operations in this file.

    Args:
        args: List of git arguments (e.g. ["status", "--porcelain"])
        cwd: Working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        subprocess.CalledProcessError: git exited non-zero.
        FileNotFoundError: git is not installed.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=str(cwd) if cwd is not None else None,
        text=True,
        stderr=subprocess.STDOUT,
    )
    return out.strip()


def is_repo(path: str | Path) -> bool:
    """True if `path` is the top level of a git working tree."""
    return (Path(path) / ".git").exists()


def init(path: str | Path) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)
    _git(["init", "--quiet"], cwd=path)


def add_remote(path: str | Path, url: str, name: str = "origin") -> None:
    _git(["remote", "add", name, url], cwd=path)


def fetch(path: str | Path, ref: str, remote: str = "origin") -> None:
    """Fetch a single ref (branch, tag or full commit sha) from `remote`."""
    _git(["fetch", "--no-tags", remote, ref], cwd=path)


def tracked_changes(path: str | Path) -> list[str]:
    """Porcelain status lines for modified tracked files (untracked files ignored)."""
    out = _git(["status", "--porcelain", "--untracked-files=no"], cwd=path)
    return [line for line in out.splitlines() if line.strip()]


def checkout(path: str | Path, ref: str) -> None:
    """Force a detached checkout of `ref`, discarding local modifications."""
    _git(["checkout", "--force", "--detach", ref], cwd=path)


def head_sha(path: str | Path) -> str:
    """Return the full SHA of HEAD in the repository at `path`."""
    return _git(["rev-parse", "HEAD"], cwd=path)
