from __future__ import annotations
from typing import Any, Collection, Dict, List

from .errors import IncomparableTypesError
from .query import And, Eq, FieldMap, Gt, In, Lt, Or, Text
from .utils import is_number

# Kinds with a total order among their own values; objects have none
ORDERED_KINDS = {"null", "bool", "number", "string", "array"}


def value_kind(v: Any) -> str:
    if v is None:
        return "null"
    if isinstance(v, bool):
        return "bool"
    if is_number(v):
        return "number"
    if isinstance(v, str):
        return "string"
    if isinstance(v, (list, tuple)):
        return "array"
    if isinstance(v, dict):
        return "object"
    return type(v).__name__


def values_equal(a: Any, b: Any) -> bool:
    ka, kb = value_kind(a), value_kind(b)
    if ka != kb:
        return False
    if ka == "array":
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    return a == b


def compare(a: Any, b: Any) -> int:
    """
    Three-way compare within one ordered kind. Arrays compare element-wise, then by length.
    null equals null, false < true. Raises IncomparableTypesError for mixed kinds and objects.
    """
    ka, kb = value_kind(a), value_kind(b)
    if ka != kb or ka not in ORDERED_KINDS:
        raise IncomparableTypesError(ka, kb)
    if ka == "array":
        for x, y in zip(a, b):
            c = compare(x, y)
            if c:
                return c
        return (len(a) > len(b)) - (len(a) < len(b))
    if ka == "null":
        return 0
    return (a > b) - (a < b)


def matches(query: Any, record: Dict[str, Any], text_fields: Collection[str] = ()) -> bool:
    """
    Evaluate a Query AST against one record. Pure; unknown node or operator shapes give False.
    """
    if isinstance(query, And):
        return all(matches(q, record, text_fields) for q in query.queries)
    if isinstance(query, Or):
        return any(matches(q, record, text_fields) for q in query.queries)
    if isinstance(query, Text):
        return _match_text(query.token, record, text_fields)
    if isinstance(query, FieldMap):
        return all(
            k in record and check_operator(op, record[k])
            for k, op in query.fields.items()
        )
    return False


def check_operator(op: Any, value: Any) -> bool:
    if isinstance(op, Eq):
        return values_equal(value, op.value)
    if isinstance(op, Gt):
        return compare(value, op.value) > 0
    if isinstance(op, Lt):
        return compare(value, op.value) < 0
    if isinstance(op, In):
        return any(values_equal(value, candidate) for candidate in op.values)
    return False


def _match_text(token: str, record: Dict[str, Any], text_fields: Collection[str]) -> bool:
    needle = token.casefold()
    for name in text_fields:
        if name not in record:
            continue
        if any(t.casefold() == needle for t in _tokens(record[name])):
            return True
    return False


def _tokens(v: Any) -> List[str]:
    if isinstance(v, str):
        return v.split()
    if isinstance(v, bool):
        return ["true" if v else "false"]
    if is_number(v):
        # 30.0 renders as "30", like its JSON text
        if isinstance(v, float) and v.is_integer():
            return [str(int(v))]
        return [str(v)]
    if isinstance(v, (list, tuple)):
        out: List[str] = []
        for item in v:
            out.extend(_tokens(item))
        return out
    return []
