"""Pytest configuration and fixtures."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from wheelci.artifacts import ArtifactStore
from wheelci.runner import ShellResult
from wheelci.ui.console import Console, set_console


@dataclass
class ShellCall:
    command: str
    shell: Optional[str]
    cwd: Path
    env: Dict[str, str]
    timeout: Optional[float]


class FakeShell:
    """
    Stand-in for runner.run_shell.

    exit_codes: substring of the command -> exit code
    effects:    substring of the command -> callable(env) run before returning
    """

    def __init__(
        self,
        exit_codes: Optional[Dict[str, int]] = None,
        effects: Optional[Dict[str, Callable[[Dict[str, str]], None]]] = None,
        raises: Optional[Dict[str, BaseException]] = None,
    ):
        self.calls: List[ShellCall] = []
        self.exit_codes = exit_codes or {}
        self.effects = effects or {}
        self.raises = raises or {}

    def __call__(self, command, *, shell, cwd, env, timeout=None) -> ShellResult:
        self.calls.append(ShellCall(command, shell, Path(cwd), dict(env), timeout))
        for needle, exc in self.raises.items():
            if needle in command:
                raise exc
        for needle, effect in self.effects.items():
            if needle in command:
                effect(env)
        for needle, code in self.exit_codes.items():
            if needle in command:
                return ShellResult(returncode=code, output=f"fake output for {needle}\n")
        return ShellResult(returncode=0, output="")

    def commands(self) -> List[str]:
        return [c.command for c in self.calls]

    def call_for(self, needle: str) -> ShellCall:
        for c in self.calls:
            if needle in c.command:
                return c
        raise AssertionError(f"no shell call containing {needle!r}: {self.commands()}")


class RecordingCheckout:
    def __init__(self, error: Optional[Exception] = None):
        self.refs: List[str] = []
        self.error = error

    def __call__(self, ctx, params):
        self.refs.append(params.get("ref"))
        if self.error is not None:
            raise self.error


@pytest.fixture(autouse=True)
def fresh_console(monkeypatch):
    """Every test starts with a non-debug console and no CI engine env."""
    monkeypatch.delenv("GITHUB_STEP_SUMMARY", raising=False)
    monkeypatch.delenv("GITHUB_ENV", raising=False)
    set_console(Console())
    yield


@pytest.fixture
def workspace(tmp_path) -> Path:
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def store(tmp_path) -> ArtifactStore:
    return ArtifactStore(tmp_path / "store")


@pytest.fixture
def seed_binary(tmp_path, store):
    """Publish a fake pixi build as pixi-<arch>-<sha>."""

    def _seed(arch: str, sha: str, filename: str = "pixi") -> str:
        build = tmp_path / f"build-{arch}"
        build.mkdir(exist_ok=True)
        binary = build / filename
        binary.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
        binary.chmod(0o644)
        name = f"pixi-{arch}-{sha}"
        store.publish(name, build)
        return name

    return _seed


@pytest.fixture
def fake_shell() -> FakeShell:
    return FakeShell()
