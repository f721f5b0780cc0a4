from __future__ import annotations
import json
from typing import Any


def canonical_json(obj: Any) -> str:
    # Stable key order, compact, non-ASCII kept as-is
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def is_identifier(v: Any) -> bool:
    """
    `_id` must be a JSON number. bool is an int subclass in Python but not a number in JSON.
    """
    return is_number(v)
