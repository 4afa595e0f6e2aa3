# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional


@dataclass(frozen=True)
class InvocationInputs:
    """The three caller-supplied inputs of one invocation."""
    sha: str
    arch: str
    runs_on: str

    def __post_init__(self) -> None:
        for field_name in ("sha", "arch", "runs_on"):
            value = getattr(self, field_name)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"invocation input {field_name!r} is required")


@dataclass(frozen=True)
class EnvBindings:
    """
    Paths and flags derived once from the workspace root.

    Exported to every step as environment variables (see `as_env`).
    """
    workspace: Path
    target_release: Path
    logs_dir: Path
    summary_file: Path
    python_io_encoding: str = "utf-8"
    pytest_addopts: str = "--color=yes"

    @classmethod
    def from_workspace(cls, workspace: str | Path) -> "EnvBindings":
        root = Path(workspace).expanduser().resolve()
        wheel_tests = root / "tests" / "wheel_tests"
        return cls(
            workspace=root,
            target_release=root / "target" / "release",
            logs_dir=wheel_tests / ".logs",
            summary_file=wheel_tests / ".summary.md",
        )

    def as_env(self) -> Dict[str, str]:
        return {
            "TARGET_RELEASE": str(self.target_release),
            "LOGS_DIR": str(self.logs_dir),
            "SUMMARY_FILE": str(self.summary_file),
            "PYTHONIOENCODING": self.python_io_encoding,
            "PYTEST_ADDOPTS": self.pytest_addopts,
        }


def _always_true(_inputs: InvocationInputs) -> bool:
    return True


@dataclass(frozen=True)
class Guard:
    """
    Step guard: a pure predicate over the inputs plus the `always()` override.

    Without `always`, a step also requires that no earlier required step failed.
    Guards compose with `&`; `expr` is kept for plans and logs.
    """
    expr: str = "success()"
    predicate: Callable[[InvocationInputs], bool] = _always_true
    always: bool = False

    def allows(self, inputs: InvocationInputs, run_failed: bool) -> bool:
        if run_failed and not self.always:
            return False
        return bool(self.predicate(inputs))

    def __and__(self, other: "Guard") -> "Guard":
        left, right = self.predicate, other.predicate
        exprs = [g.expr for g in (self, other) if g.expr != "success()"]
        return Guard(
            expr=" && ".join(exprs) or "success()",
            predicate=lambda inputs: left(inputs) and right(inputs),
            always=self.always or other.always,
        )


@dataclass(frozen=True)
class Step:
    """
    A single unit of work: an inline command (`run`) or an action (`uses`).

    `verdict` marks the step whose exit status decides the invocation result.
    """
    name: str
    run: Optional[str] = None
    uses: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    shell: Optional[str] = None
    guard: Guard = field(default_factory=Guard)
    verdict: bool = False

    def __post_init__(self) -> None:
        if (self.run is None) == (self.uses is None):
            raise ValueError(f"step {self.name!r} needs exactly one of `run` or `uses`")

    @property
    def required(self) -> bool:
        # always() steps report; they never decide the result
        return not self.guard.always


@dataclass
class Workflow:
    """An ordered, linear list of steps plus the run ceiling."""
    name: str
    steps: List[Step]
    timeout_minutes: Optional[float] = 15

    def __post_init__(self) -> None:
        if not self.steps:
            raise ValueError(f"workflow {self.name!r} has no steps")
        names = [s.name for s in self.steps]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate step names found: {dupes}")
        if self.timeout_minutes is not None and self.timeout_minutes <= 0:
            raise ValueError(f"workflow {self.name!r} timeout_minutes must be positive")


def binary_artifact_name(prefix: str, arch: str, sha: str) -> str:
    return f"{prefix}-{arch}-{sha}"


def logs_artifact_name(prefix: str, arch: str) -> str:
    return f"{prefix}-{arch}"


SUCCESS = "success"
FAILURE = "failure"
SKIPPED = "skipped"


@dataclass
class StepOutcome:
    name: str
    status: str
    required: bool = True
    exit_code: Optional[int] = None
    error: Optional[str] = None
    duration: float = 0.0
    reason: Optional[str] = None  # why a step was skipped


@dataclass
class InvocationResult:
    """Pass/fail of one invocation plus per-step outcomes."""
    inputs: InvocationInputs
    passed: bool
    outcomes: List[StepOutcome]
    failure_kind: Optional[str] = None  # "setup" | "test" | "timeout"
    summary_path: Optional[Path] = None
    logs_artifact: Optional[str] = None

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1

    def outcome(self, step_name: str) -> StepOutcome:
        for o in self.outcomes:
            if o.name == step_name:
                return o
        raise KeyError(step_name)

    def executed(self) -> List[str]:
        return [o.name for o in self.outcomes if o.status != SKIPPED]
