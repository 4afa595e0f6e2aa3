# context.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from .artifacts import ArtifactStore
from .model import EnvBindings, InvocationInputs


def parse_env_file(text: str) -> Dict[str, str]:
    """
    Parse a step-env file.

    Supports:
      KEY=value
      KEY<<DELIM
      multi-line value
      DELIM
    """
    out: Dict[str, str] = {}
    lines = text.splitlines()
    i = 0
    while i < len(lines):
        line = lines[i]
        i += 1
        if not line.strip():
            continue
        if "<<" in line and ("=" not in line or line.index("<<") < line.index("=")):
            key, delim = line.split("<<", 1)
            key, delim = key.strip(), delim.strip()
            body = []
            while i < len(lines) and lines[i] != delim:
                body.append(lines[i])
                i += 1
            if i >= len(lines):
                raise ValueError(f"Unterminated heredoc for {key!r} (delimiter {delim!r})")
            i += 1  # skip delimiter
            out[key] = "\n".join(body)
            continue
        if "=" not in line:
            raise ValueError(f"Invalid env file line: {line!r}")
        key, value = line.split("=", 1)
        out[key.strip()] = value
    return out


@dataclass
class InvocationContext:
    """Everything a step can see while one invocation runs."""
    inputs: InvocationInputs
    bindings: EnvBindings
    store: ArtifactStore
    summary_path: Path
    env_file: Path
    binary_artifact: str
    logs_artifact: str
    repository: Optional[str] = None
    force_checkout: bool = False
    exported: Dict[str, str] = field(default_factory=dict)

    @property
    def workspace(self) -> Path:
        return self.bindings.workspace

    def values(self) -> Dict[str, str]:
        """Names available to ${NAME} interpolation."""
        vals: Dict[str, str] = dict(self.exported)
        vals.update(self._runner_env())
        vals.update(
            {
                "sha": self.inputs.sha,
                "arch": self.inputs.arch,
                "runs_on": self.inputs.runs_on,
                "workspace": str(self.workspace),
                "binary_artifact": self.binary_artifact,
                "logs_artifact": self.logs_artifact,
            }
        )
        return vals

    def step_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env.update(self.exported)
        env.update(self._runner_env())
        return env

    def _runner_env(self) -> Dict[str, str]:
        env = self.bindings.as_env()
        env.update(
            {
                "GITHUB_WORKSPACE": str(self.workspace),
                "GITHUB_STEP_SUMMARY": str(self.summary_path),
                "GITHUB_ENV": str(self.env_file),
            }
        )
        return env

    def absorb_env_file(self) -> Dict[str, str]:
        """
        Move variables a step wrote to the env file into `exported`.
        The file is emptied afterwards. Runner-owned keys are never overwritten.
        """
        if not self.env_file.exists():
            return {}
        text = self.env_file.read_text(encoding="utf-8")
        self.env_file.write_text("", encoding="utf-8")
        protected = set(self._runner_env())
        new = {k: v for k, v in parse_env_file(text).items() if k not in protected}
        self.exported.update(new)
        return new
