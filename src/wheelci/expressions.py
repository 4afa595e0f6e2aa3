# expressions.py
# ${NAME} interpolation for step commands and action params.
# Only the braced form is expanded, so "$VAR" and "$env:VAR" reach the shell untouched.

from __future__ import annotations

import re
from typing import Any, Dict, Mapping

_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def interpolate(text: str, values: Mapping[str, str]) -> str:
    """Replace ${NAME} with values[NAME]; unknown names are left as-is."""

    def _sub(m: re.Match) -> str:
        key = m.group(1)
        if key in values:
            return str(values[key])
        return m.group(0)

    return _PLACEHOLDER.sub(_sub, text)


def interpolate_params(params: Mapping[str, Any], values: Mapping[str, str]) -> Dict[str, Any]:
    return {
        k: interpolate(v, values) if isinstance(v, str) else v
        for k, v in params.items()
    }


def unresolved(text: str) -> list[str]:
    """Names of placeholders still present in text."""
    return _PLACEHOLDER.findall(text)
