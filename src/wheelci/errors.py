# errors.py
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class CIError(Exception):
    """
    Structured CI error with enough context for:
      - clean CLI output
      - debugging without full tracebacks
    """
    kind: str
    step: str | None
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


@dataclass
class StepFailure(Exception):
    step: str
    cmd: str
    exit_code: int
    output: str = ""

    def __str__(self) -> str:
        return f"step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"


@dataclass
class InvocationTimeout(Exception):
    step: str
    timeout_s: float

    def __str__(self) -> str:
        return f"step '{self.step}' hit the run timeout ({self.timeout_s:.0f}s budget left)"


class ArtifactNotFound(LookupError):
    def __init__(self, name: str, store_root: str):
        super().__init__(name)
        self.name = name
        self.store_root = store_root

    def __str__(self) -> str:
        return f"Artifact not found: {self.name} (store: {self.store_root})"


TOOL_HINTS = {
    "git": "Install Git or fix PATH.",
    "bash": "Install bash or run on a POSIX runner.",
    "pwsh": "Install PowerShell 7 (pwsh) or fix PATH.",
    "pixi": "Download the pixi binary artifact into the release directory first.",
}


def tool_hint(tool: str) -> str:
    return TOOL_HINTS.get(tool, f"Install {tool} or fix PATH.")
