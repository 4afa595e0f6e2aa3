"""Console output formatting utilities for wheelci."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from wheelci.model import InvocationInputs, InvocationResult


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_run_started(
        self,
        workflow: str,
        inputs: "InvocationInputs",
        workspace: str,
    ) -> None:
        """Print run start information."""
        print("\nRUN STARTED")
        print(f"Workflow: {workflow}")
        print(f"Commit: {inputs.sha}")
        print(f"Arch: {inputs.arch}")
        print(f"Runs on: {inputs.runs_on}")
        print(f"Workspace: {workspace}")
        print()

    def print_step(self, name: str) -> None:
        """Print step start message."""
        print(f"\nSTEP: {name}")

    def print_step_skipped(self, name: str, reason: str) -> None:
        print(f"\nSTEP: {name}")
        print(f"STATUS: skipped ({reason})")

    def print_output(self, text: str) -> None:
        """Echo captured process output."""
        if text:
            print(text.rstrip("\n"))

    def print_success(self, name: str) -> None:
        """Print success message."""
        print("STATUS: success")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
        best_effort: bool = False,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Step name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
            best_effort: Step failure does not change the run result
        """
        suffix = " (best effort, result unchanged)" if best_effort else ""
        print(f"STEP FAILED: {name}{suffix}")
        if exit_code is not None:
            print(f"Exit code: {exit_code}")
        if hint:
            print(f"Hint: {hint}")
        if self.debug:
            print(f"Error details: {reason}")
        else:
            # Show first line of error for non-debug mode
            error_line = reason.split("\n")[0] if reason else "Unknown error"
            print(f"Error: {error_line}")

    def print_warning(self, message: str) -> None:
        print(f"WARNING: {message}")

    def print_plan_step(self, name: str, runs: bool, guard: str, detail: str = "") -> None:
        """Print one line of an invocation plan."""
        mark = "run " if runs else "skip"
        line = f"  [{mark}] {name} (if: {guard})"
        print(line)
        if detail and runs:
            print(f"         {detail}")

    def print_results(self, result: "InvocationResult") -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for o in result.outcomes:
            status_display = o.status.upper()
            if o.exit_code is not None and o.status == "failure":
                status_display += f" (exit {o.exit_code})"
            print(f"  {o.name}: {status_display}")
        verdict = "PASS" if result.passed else f"FAIL ({result.failure_kind})"
        print(f"\nInvocation: {verdict}")
        if result.summary_path is not None:
            print(f"Summary: {result.summary_path}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
