# actions/permissions.py
from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import Any, Dict

from ..context import InvocationContext
from ..errors import CIError
from ..ui.console import get_console

_EXEC_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def make_executable(ctx: InvocationContext, params: Dict[str, Any]) -> None:
    """`chmod +x <path>/*`: add the execute bits to every entry directly under path."""
    path = Path(str(params.get("path") or ctx.bindings.target_release))
    entries = sorted(path.iterdir()) if path.is_dir() else []
    if not entries:
        raise CIError(
            kind="chmod_failed",
            step=None,
            message=f"nothing to mark executable in {path}",
            details={"path": str(path)},
        )

    for entry in entries:
        try:
            mode = entry.stat().st_mode
            os.chmod(entry, mode | _EXEC_BITS)
        except OSError as e:
            raise CIError(kind="chmod_failed", step=None, message=str(e), details={"path": str(entry)}) from e
    get_console().print_info(f"Marked {len(entries)} file(s) executable in {path}")
