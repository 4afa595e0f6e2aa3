# runner.py
from __future__ import annotations

import os
import runpy
import signal
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from . import settings
from .actions import BUILTIN_ACTIONS, Action
from .artifacts import ArtifactStore
from .context import InvocationContext
from .errors import CIError, InvocationTimeout, StepFailure, tool_hint
from .expressions import interpolate, interpolate_params
from .model import (
    FAILURE,
    SKIPPED,
    SUCCESS,
    EnvBindings,
    InvocationInputs,
    InvocationResult,
    Step,
    StepOutcome,
    Workflow,
    binary_artifact_name,
    logs_artifact_name,
)
from .ui.console import get_console


# ----------------------------------------------------------------------
# Workflow loading (local file)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path) -> Workflow:
    """
    Load a workflow from a python file path.

    The file must define either:
      - workflow() -> Workflow
      - WORKFLOW = Workflow(...)
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")
    if wf_path.suffix != ".py":
        raise ValueError(f"Workflow must be a .py file, got: {wf_path.name}")

    module_name = f"wheelci_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    loaded = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        loaded = globals_dict["workflow"]()
    elif "WORKFLOW" in globals_dict:
        loaded = globals_dict["WORKFLOW"]

    if not isinstance(loaded, Workflow):
        raise TypeError(
            "Workflow file must return/define a Workflow. "
            "Define workflow() -> Workflow or WORKFLOW = wf(...)."
        )
    return loaded


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

@dataclass
class ShellResult:
    returncode: int
    output: str


ShellFn = Callable[..., ShellResult]


def default_shell(platform: str | None = None) -> str:
    """The shell a step gets when it names none: pwsh on Windows, bash elsewhere."""
    platform = sys.platform if platform is None else platform
    return "pwsh" if platform.startswith("win") else "bash"


def shell_argv(command: str, shell: str | None, platform: str | None = None) -> List[str]:
    """argv running `command` under `shell` (or the platform's default shell)."""
    shell = shell or default_shell(platform)
    if shell == "bash":
        return ["bash", "--noprofile", "--norc", "-eo", "pipefail", "-c", command]
    if shell == "pwsh":
        return [
            "pwsh", "-NoLogo", "-NoProfile", "-NonInteractive", "-Command",
            "$ErrorActionPreference = 'Stop'\n" + command,
        ]
    raise ValueError(f"Unsupported shell: {shell!r}")


def _kill_process_tree(proc: subprocess.Popen) -> None:
    """Kill `proc` together with every process it started."""
    if os.name == "nt":
        subprocess.run(
            ["taskkill", "/F", "/T", "/PID", str(proc.pid)],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    else:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    proc.kill()


def run_shell(
    command: str,
    *,
    shell: str | None,
    cwd: Path,
    env: Mapping[str, str],
    timeout: float | None = None,
) -> ShellResult:
    """
    Run `command` and capture combined stdout/stderr.

    The shell gets its own process group so a timeout kills everything it
    started, not just the shell itself.

    Raises:
        FileNotFoundError: the shell executable is missing.
        subprocess.TimeoutExpired: the command outlived `timeout`.
    """
    group = (
        {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
        if os.name == "nt"
        else {"start_new_session": True}
    )
    proc = subprocess.Popen(
        shell_argv(command, shell),
        cwd=str(cwd),
        env=dict(env),
        text=True,
        encoding="utf-8",
        errors="replace",
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        **group,
    )
    try:
        output, _ = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill_process_tree(proc)
        proc.communicate()
        raise
    except BaseException:
        _kill_process_tree(proc)
        raise
    return ShellResult(returncode=proc.returncode, output=output or "")


def _command_tool(command: str) -> str:
    first = command.strip().split(maxsplit=1)[0] if command.strip() else ""
    return os.path.basename(first.replace("\\", "/"))


def _run_command_step(
    step: Step,
    ctx: InvocationContext,
    shell_fn: ShellFn,
    timeout: float | None,
) -> int:
    command = interpolate(step.run or "", ctx.values())
    try:
        res = shell_fn(command, shell=step.shell, cwd=ctx.workspace, env=ctx.step_env(), timeout=timeout)
    except FileNotFoundError as e:
        tool = step.shell or default_shell()
        raise CIError(
            kind="tool_unavailable",
            step=step.name,
            message=f"{tool} is not available",
            details={"hint": tool_hint(tool), "tool": tool},
        ) from e
    except subprocess.TimeoutExpired as e:
        raise InvocationTimeout(step=step.name, timeout_s=timeout or 0) from e

    get_console().print_output(res.output)
    if res.returncode != 0:
        raise StepFailure(step=step.name, cmd=command, exit_code=res.returncode, output=res.output[-4000:])
    return res.returncode


def _run_action_step(step: Step, ctx: InvocationContext, actions: Mapping[str, Action]) -> None:
    action = actions.get(step.uses or "")
    if action is None:
        raise CIError(
            kind="unknown_action",
            step=step.name,
            message=f"no action registered as {step.uses!r}",
            details={"known": ", ".join(sorted(actions))},
        )
    action(ctx, interpolate_params(step.params, ctx.values()))


def _summary_sink(explicit: str | Path | None, state_dir: Path) -> Path:
    """
    Where summaries are appended: explicit path, the CI engine's
    GITHUB_STEP_SUMMARY, or a fresh file under the state dir.
    """
    if explicit is not None:
        path = Path(explicit)
    elif os.environ.get("GITHUB_STEP_SUMMARY"):
        path = Path(os.environ["GITHUB_STEP_SUMMARY"])
    else:
        path = state_dir / "step_summary.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("", encoding="utf-8")
        return path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(exist_ok=True)
    return path


def build_context(
    inputs: InvocationInputs,
    *,
    workspace: str | Path = ".",
    store: ArtifactStore | None = None,
    repository: str | None = None,
    force_checkout: bool = False,
    summary_path: str | Path | None = None,
    binary_prefix: str = settings.BINARY_ARTIFACT_PREFIX,
    logs_prefix: str = settings.LOGS_ARTIFACT_PREFIX,
    prepare: bool = True,
) -> InvocationContext:
    """
    Derive bindings and artifact names for one invocation.
    With prepare=False nothing is created on disk (used for plans).
    """
    bindings = EnvBindings.from_workspace(workspace)
    state_dir = bindings.workspace / settings.STATE_DIR
    env_file = state_dir / "github_env"

    if prepare:
        bindings.workspace.mkdir(parents=True, exist_ok=True)
        state_dir.mkdir(parents=True, exist_ok=True)
        env_file.write_text("", encoding="utf-8")
        sink = _summary_sink(summary_path, state_dir)
    else:
        sink = Path(summary_path or os.environ.get("GITHUB_STEP_SUMMARY") or state_dir / "step_summary.md")

    return InvocationContext(
        inputs=inputs,
        bindings=bindings,
        store=store or ArtifactStore(settings.ARTIFACT_STORE),
        summary_path=sink,
        env_file=env_file,
        binary_artifact=binary_artifact_name(binary_prefix, inputs.arch, inputs.sha),
        logs_artifact=logs_artifact_name(logs_prefix, inputs.arch),
        repository=repository,
        force_checkout=force_checkout,
    )


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

@dataclass
class PlannedStep:
    step: Step
    runs: bool
    detail: str


def plan_invocation(workflow: Workflow, ctx: InvocationContext) -> List[PlannedStep]:
    """Which steps a fully successful run would execute, with interpolated commands."""
    values = ctx.values()
    planned: List[PlannedStep] = []
    for step in workflow.steps:
        runs = step.guard.allows(ctx.inputs, run_failed=False)
        if step.run is not None:
            detail = interpolate(step.run, values)
        else:
            params = interpolate_params(step.params, values)
            rendered = ", ".join(f"{k}={v}" for k, v in params.items())
            detail = f"uses {step.uses}" + (f" ({rendered})" if rendered else "")
        planned.append(PlannedStep(step=step, runs=runs, detail=detail))
    return planned


def run_invocation(
    workflow: Workflow,
    ctx: InvocationContext,
    *,
    shell_fn: ShellFn = run_shell,
    actions: Optional[Mapping[str, Action]] = None,
    timeout_minutes: float | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> InvocationResult:
    """
    Execute the workflow's steps strictly in order.

    - A step runs when its guard allows it: its predicate holds and either no
      required step has failed yet or the guard carries always().
    - The result starts at pass and is downgraded only by required steps.
    - always() steps are reported but never change the result.
    - The run ceiling bounds required steps; always() steps still run after it.
    """
    console = get_console()
    registry: Dict[str, Action] = dict(BUILTIN_ACTIONS)
    registry.update(actions or {})

    limit = workflow.timeout_minutes if timeout_minutes is None else timeout_minutes
    if limit is not None and limit <= 0:
        raise ValueError(f"timeout_minutes must be positive, got {limit}")
    deadline = clock() + limit * 60 if limit is not None else None

    console.print_run_started(workflow.name, ctx.inputs, str(ctx.workspace))

    outcomes: List[StepOutcome] = []
    run_failed = False
    failure_kind: Optional[str] = None

    for step in workflow.steps:
        if not step.guard.allows(ctx.inputs, run_failed):
            if run_failed and step.guard.predicate(ctx.inputs):
                reason = "an earlier step failed"
            else:
                reason = f"if: {step.guard.expr}"
            console.print_step_skipped(step.name, reason)
            outcomes.append(StepOutcome(step.name, SKIPPED, required=step.required, reason=reason))
            continue

        budget = None
        if deadline is not None and step.required:
            budget = deadline - clock()

        console.print_step(step.name)
        outcome = StepOutcome(step.name, SUCCESS, required=step.required)
        timed_out = False
        started = clock()
        try:
            if budget is not None and budget <= 0:
                raise InvocationTimeout(step=step.name, timeout_s=0)
            if step.run is not None:
                outcome.exit_code = _run_command_step(step, ctx, shell_fn, budget)
            else:
                _run_action_step(step, ctx, registry)
            console.print_success(step.name)
        except InvocationTimeout as e:
            timed_out = True
            outcome.status, outcome.error = FAILURE, str(e)
            console.print_failure(step.name, str(e), best_effort=not step.required)
        except StepFailure as e:
            outcome.status, outcome.exit_code, outcome.error = FAILURE, e.exit_code, str(e)
            hint = tool_hint(_command_tool(e.cmd)) if e.exit_code == 127 else None
            console.print_failure(step.name, str(e), exit_code=e.exit_code, hint=hint, best_effort=not step.required)
        except CIError as e:
            outcome.status, outcome.error = FAILURE, str(e)
            console.print_failure(step.name, str(e), hint=e.details.get("hint"), best_effort=not step.required)
        except Exception as e:
            outcome.status, outcome.error = FAILURE, f"{type(e).__name__}: {e}"
            console.print_failure(step.name, outcome.error, best_effort=not step.required)
            if console.debug:
                console.print_exception(e)
        finally:
            outcome.duration = clock() - started

        try:
            exported = ctx.absorb_env_file()
        except ValueError as e:
            console.print_warning(f"ignoring step env file written by '{step.name}': {e}")
        else:
            for key in exported:
                console.print_debug(f"{step.name} exported {key}")

        outcomes.append(outcome)

        if outcome.status == FAILURE and step.required and not run_failed:
            run_failed = True
            if timed_out:
                failure_kind = "timeout"
            elif step.verdict:
                failure_kind = "test"
            else:
                failure_kind = "setup"

    return InvocationResult(
        inputs=ctx.inputs,
        passed=not run_failed,
        outcomes=outcomes,
        failure_kind=failure_kind,
        summary_path=ctx.summary_path,
        logs_artifact=ctx.logs_artifact,
    )
