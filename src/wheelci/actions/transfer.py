# actions/transfer.py
# download-artifact / upload-artifact against the invocation's ArtifactStore.
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from ..context import InvocationContext
from ..errors import ArtifactNotFound, CIError
from ..ui.console import get_console


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _required(params: Dict[str, Any], key: str) -> str:
    value = params.get(key)
    if not value:
        raise CIError(kind="invalid_params", step=None, message=f"missing required param {key!r}", details={})
    return str(value)


def download(ctx: InvocationContext, params: Dict[str, Any]) -> None:
    name = _required(params, "name")
    dest = Path(_required(params, "path"))
    try:
        files = ctx.store.retrieve(name, dest)
    except ArtifactNotFound as e:
        raise CIError(
            kind="artifact_not_found",
            step=None,
            message=str(e),
            details={"name": name, "available": ", ".join(ctx.store.names()) or "<none>"},
        ) from e
    get_console().print_info(f"Downloaded {len(files)} file(s) from artifact {name} to {dest}")


def upload(ctx: InvocationContext, params: Dict[str, Any]) -> None:
    """
    Publish `path` as artifact `name`.
    No files found is a warning, not a failure.
    """
    console = get_console()
    name = _required(params, "name")
    path = Path(_required(params, "path"))
    include_hidden = _flag(params.get("include_hidden_files", False))

    if not ctx.store.collect(path, include_hidden=include_hidden):
        console.print_warning(f"No files were found with the provided path: {path}. No artifacts will be uploaded.")
        return

    manifest = ctx.store.publish(name, path, include_hidden=include_hidden)
    console.print_info(
        f"Uploaded {len(manifest['files'])} file(s) ({manifest['size']} bytes) as artifact {name}"
    )
