from typing import Any, Callable, Dict

from . import checkout, dev_drive, permissions, transfer

Action = Callable[[Any, Dict[str, Any]], None]

BUILTIN_ACTIONS: Dict[str, Action] = {
    "checkout": checkout.run,
    "copy-tree": dev_drive.copy_tree,
    "download-artifact": transfer.download,
    "upload-artifact": transfer.upload,
    "chmod": permissions.make_executable,
}

__all__ = ["Action", "BUILTIN_ACTIONS"]
