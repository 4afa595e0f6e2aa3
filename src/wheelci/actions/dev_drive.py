# actions/dev_drive.py
from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any, Dict

from ..context import InvocationContext
from ..errors import CIError
from ..expressions import unresolved
from ..ui.console import get_console


def copy_tree(ctx: InvocationContext, params: Dict[str, Any]) -> None:
    """
    Recursively copy `source` to `destination` (the dev drive workspace).

    `destination` normally comes from PIXI_WORKSPACE, exported by the
    dev drive provisioning script.
    """
    source = Path(str(params.get("source") or ctx.workspace)).expanduser().resolve()
    raw_dest = str(params.get("destination") or "")

    missing = unresolved(raw_dest)
    if not raw_dest.strip() or missing:
        raise CIError(
            kind="missing_env",
            step=None,
            message="copy destination is not set",
            details={"destination": raw_dest, "unresolved": ",".join(missing)},
        )

    destination = Path(raw_dest).expanduser().resolve()
    if not source.is_dir():
        raise CIError(kind="copy_failed", step=None, message=f"source is not a directory: {source}", details={})
    if destination == source or source in destination.parents:
        raise CIError(
            kind="copy_failed",
            step=None,
            message="destination is inside the source tree",
            details={"source": str(source), "destination": str(destination)},
        )

    get_console().print_info(f"Copying {source} -> {destination}")
    try:
        shutil.copytree(source, destination, dirs_exist_ok=True, symlinks=True)
    except (OSError, shutil.Error) as e:
        raise CIError(
            kind="copy_failed",
            step=None,
            message=str(e),
            details={"source": str(source), "destination": str(destination)},
        ) from e
