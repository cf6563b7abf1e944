from __future__ import annotations

from enum import Enum
from typing import Any, List, Tuple

Params = List[Tuple[str, str]]


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def build_params(*pairs: Tuple[str, Any]) -> Params:
    """Keep the pairs whose value is not ``None``, stringified, in the given order."""
    return [(name, _to_text(value)) for name, value in pairs if value is not None]
