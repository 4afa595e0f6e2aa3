# src/wheelci/dsl.py
from __future__ import annotations

from typing import Any, Dict, Optional

from .model import Guard, InvocationInputs, Step, Workflow


# ---------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------

_INPUT_FIELDS = {"sha": "sha", "arch": "arch", "runs-on": "runs_on", "runs_on": "runs_on"}


def contains(input_name: str, needle: str) -> Guard:
    """Substring test on one invocation input, e.g. contains("arch", "windows")."""
    attr = _INPUT_FIELDS.get(input_name)
    if attr is None:
        raise ValueError(f"Unknown invocation input: {input_name!r}")

    def predicate(inputs: InvocationInputs) -> bool:
        return needle in getattr(inputs, attr)

    return Guard(expr=f"contains({input_name}, '{needle}')", predicate=predicate)


def not_(guard: Guard) -> Guard:
    if guard.always:
        raise ValueError("always() cannot be negated")
    inner = guard.predicate
    return Guard(expr=f"!{guard.expr}", predicate=lambda inputs: not inner(inputs))


def always() -> Guard:
    """Run regardless of earlier failures."""
    return Guard(expr="always()", always=True)


def success() -> Guard:
    return Guard()


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(
    name: str,
    cmd: str,
    *,
    shell: str | None = None,
    when: Guard | None = None,
    verdict: bool = False,
) -> Step:
    """Create an inline command step."""
    return Step(name=name, run=cmd, shell=shell, guard=when or Guard(), verdict=verdict)


def uses(
    name: str,
    action: str,
    with_: Optional[Dict[str, Any]] = None,
    *,
    when: Guard | None = None,
) -> Step:
    """Create a step that calls a registered action."""
    return Step(name=name, uses=action, params=dict(with_ or {}), guard=when or Guard())


# ---------------------------------------------------------------------
# Workflow helper
# ---------------------------------------------------------------------

def wf(name: str, *steps: Step, timeout_minutes: float | None = 15) -> Workflow:
    """
    Workflow definition helper.

    Users can write:
        from wheelci.dsl import wf, sh, uses, always

        def workflow():
            return wf(
                "my workflow",
                uses("Checkout repo", "checkout", {"ref": "${sha}"}),
                sh("Test", "pytest -q", verdict=True),
            )
    """
    return Workflow(name=name, steps=list(steps), timeout_minutes=timeout_minutes)
