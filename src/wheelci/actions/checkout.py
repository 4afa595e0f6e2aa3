# actions/checkout.py
from __future__ import annotations

import os
import subprocess
from typing import Any, Dict

from ..context import InvocationContext
from ..errors import CIError, tool_hint
from ..git_facts import git
from ..ui.console import get_console


def _git_error(action: str, exc: subprocess.CalledProcessError, ref: str) -> CIError:
    return CIError(
        kind="checkout_failed",
        step=None,
        message=f"git {action} failed",
        details={"ref": ref, "exit_code": exc.returncode, "output": (exc.output or "").strip()[-2000:]},
    )


def _forced(ctx: InvocationContext, params: Dict[str, Any]) -> bool:
    if str(params.get("force", "")).strip().lower() in ("1", "true", "yes"):
        return True
    # throwaway runner checkouts may be overwritten
    return ctx.force_checkout or os.environ.get("GITHUB_ACTIONS") == "true"


def _refuse_dirty_tree(ctx: InvocationContext, params: Dict[str, Any]) -> None:
    if _forced(ctx, params):
        return
    changes = git.tracked_changes(ctx.workspace)
    if changes:
        raise CIError(
            kind="checkout_failed",
            step=None,
            message=f"{ctx.workspace} has uncommitted changes to tracked files",
            details={
                "changes": "; ".join(changes[:10]),
                "hint": "Commit or stash them, or pass --force-checkout to discard them.",
            },
        )


def run(ctx: InvocationContext, params: Dict[str, Any]) -> None:
    """
    Materialize the source tree at `ref` in the workspace.

    An existing repository is fetched (best effort, the commit may already be
    local) and checked out; uncommitted changes to tracked files stop the
    checkout unless forced. Otherwise `repository` (param or invocation
    setting) is initialised in place and fetched.
    """
    console = get_console()
    ref = str(params.get("ref") or ctx.inputs.sha)
    repository = params.get("repository") or ctx.repository
    workspace = ctx.workspace

    try:
        if git.is_repo(workspace):
            if repository:
                console.print_debug(f"checkout: existing repository, ignoring repository={repository}")
            _refuse_dirty_tree(ctx, params)
            try:
                git.fetch(workspace, ref)
            except subprocess.CalledProcessError as e:
                console.print_warning(f"git fetch {ref} failed, trying local objects: {(e.output or '').strip()}")
        else:
            if not repository:
                raise CIError(
                    kind="checkout_failed",
                    step=None,
                    message=f"{workspace} is not a git repository and no repository URL was given",
                    details={"hint": "Pass --repository or run inside a clone."},
                )
            console.print_info(f"Initializing {workspace} from {repository}")
            git.init(workspace)
            git.add_remote(workspace, repository)
            try:
                git.fetch(workspace, ref)
            except subprocess.CalledProcessError as e:
                raise _git_error("fetch", e, ref) from e

        try:
            git.checkout(workspace, ref)
        except subprocess.CalledProcessError as e:
            raise _git_error("checkout", e, ref) from e

        console.print_info(f"HEAD is now at {git.head_sha(workspace)}")
    except FileNotFoundError as e:
        raise CIError(
            kind="tool_unavailable",
            step=None,
            message="git is not available",
            details={"hint": tool_hint("git"), "tool": "git"},
        ) from e
