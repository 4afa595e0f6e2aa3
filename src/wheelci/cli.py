# cli.py
from __future__ import annotations

import os
import sys
from pathlib import Path

import click

from wheelci import settings
from wheelci.artifacts import ArtifactStore
from wheelci.errors import ArtifactNotFound
from wheelci.model import InvocationInputs, Workflow
from wheelci.runner import build_context, load_workflow, plan_invocation, run_invocation
from wheelci.ui.console import Console, get_console, set_console
from wheelci.workflows import common_wheels


def resolve_workflow(workflow_arg: str | None) -> Workflow:
    """
    Load the workflow named on the command line, or the built-in one.

    Raises:
        SystemExit: If the workflow file cannot be loaded
    """
    if not workflow_arg:
        return common_wheels.workflow()

    console = get_console()
    workflow_path = Path(workflow_arg)
    if not workflow_path.exists() and workflow_path.suffix != ".py":
        workflow_path = Path(str(workflow_path) + ".py")
    if not workflow_path.exists():
        console.print_error(
            "Workflow file not found",
            f"Could not find workflow file: {workflow_arg}",
            suggestion="Omit --workflow to use the built-in common wheels workflow.",
        )
        sys.exit(1)
    try:
        return load_workflow(workflow_path)
    except Exception as e:
        console.print_error(
            "Failed to load workflow",
            f"Could not load workflow from {workflow_path}",
            details=[str(e)],
        )
        if console.debug:
            console.print_exception(e)
        sys.exit(1)


def _inputs(sha: str, arch: str, runs_on: str) -> InvocationInputs:
    try:
        return InvocationInputs(sha=sha, arch=arch, runs_on=runs_on)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def invocation_options(fn):
    options = [
        click.option("--sha", required=True, help="The commit sha"),
        click.option("--arch", required=True, help="The architecture of the file to test"),
        click.option("--runs-on", "runs_on", required=True, help="The operating system to run the tests on"),
        click.option(
            "--workspace",
            default=lambda: os.environ.get("GITHUB_WORKSPACE", "."),
            show_default="$GITHUB_WORKSPACE or .",
            help="Workspace root the environment paths are derived from",
        ),
        click.option("--artifact-store", default=settings.ARTIFACT_STORE, show_default=True, help="Artifact store directory"),
        click.option("--workflow", default=None, help="Workflow file (defaults to the built-in common wheels workflow)"),
        click.option("--repository", default=None, help="Repository URL to initialise a non-git workspace from"),
        click.option("--summary-file", default=None, help="Run-summary sink (defaults to $GITHUB_STEP_SUMMARY)"),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """wheelci — run the common wheels installation test for one pixi build."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@invocation_options
@click.option(
    "--timeout-minutes",
    envvar=settings.TIMEOUT_MINUTES_ENV,
    default=None,
    type=click.FloatRange(min=0, min_open=True),
    help=f"Run ceiling in minutes (defaults to ${settings.TIMEOUT_MINUTES_ENV}, then the workflow's own)",
)
@click.option(
    "--force-checkout",
    is_flag=True,
    default=False,
    help="Let checkout discard uncommitted changes to tracked files (implied under GitHub Actions)",
)
@click.pass_context
def run(ctx, sha, arch, runs_on, workspace, artifact_store, workflow, repository, summary_file, timeout_minutes, force_checkout):
    """Run one invocation: checkout, install the binary, test, report."""
    console = get_console()
    inputs = _inputs(sha, arch, runs_on)
    wf = resolve_workflow(workflow)

    try:
        inv = build_context(
            inputs,
            workspace=workspace,
            store=ArtifactStore(artifact_store),
            repository=repository,
            force_checkout=force_checkout,
            summary_path=summary_file,
        )
        result = run_invocation(wf, inv, timeout_minutes=timeout_minutes)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    console.print_results(result)
    sys.exit(result.exit_code)


@cli.command()
@invocation_options
def plan(sha, arch, runs_on, workspace, artifact_store, workflow, repository, summary_file):
    """Show which steps a successful run would execute, without running them."""
    console = get_console()
    inputs = _inputs(sha, arch, runs_on)
    wf = resolve_workflow(workflow)
    inv = build_context(
        inputs,
        workspace=workspace,
        store=ArtifactStore(artifact_store),
        repository=repository,
        summary_path=summary_file,
        prepare=False,
    )

    console.print_header(f"PLAN: {wf.name}")
    for planned in plan_invocation(wf, inv):
        console.print_plan_step(planned.step.name, planned.runs, planned.step.guard.expr, planned.detail)


@cli.group()
def artifacts():
    """Inspect and seed the local artifact store."""


@artifacts.command("put")
@click.argument("name")
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option("--include-hidden", is_flag=True, default=False, help="Include files whose names begin with a dot")
@click.option("--artifact-store", default=settings.ARTIFACT_STORE, show_default=True, help="Artifact store directory")
def artifacts_put(name, path, include_hidden, artifact_store):
    """Publish PATH as artifact NAME (e.g. pixi-<arch>-<sha>)."""
    console = get_console()
    store = ArtifactStore(artifact_store)
    try:
        manifest = store.publish(name, path, include_hidden=include_hidden)
    except ValueError as e:
        console.print_error("Invalid artifact", str(e))
        sys.exit(1)
    console.print_info(f"Published {name}: {len(manifest['files'])} file(s), {manifest['size']} bytes")


@artifacts.command("list")
@click.option("--artifact-store", default=settings.ARTIFACT_STORE, show_default=True, help="Artifact store directory")
def artifacts_list(artifact_store):
    """List the artifacts in the store."""
    console = get_console()
    store = ArtifactStore(artifact_store)
    names = store.names()
    if not names:
        console.print_info(f"No artifacts in {store.root}")
        return
    for name in names:
        try:
            manifest = store.manifest(name)
            console.print_info(f"{name}  {len(manifest.get('files', []))} file(s)  {manifest.get('size', 0)} bytes")
        except ArtifactNotFound:
            console.print_info(f"{name}  (no manifest)")


if __name__ == "__main__":
    cli()
