"""Metadata filter evaluation."""
from typing import Any, Optional


def matches_filter(metadata: dict[str, Any], filter: Optional[dict[str, Any]]) -> bool:
    """Equality per key; a list, tuple or set value matches any member."""
    if not filter:
        return True
    for key, expected in filter.items():
        value = metadata.get(key)
        if isinstance(expected, (list, tuple, set)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True
