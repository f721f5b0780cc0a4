from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple, Union

from .errors import ValidationError

LOGICAL_OPS = {"$and", "$or"}
TEXT_OP = "$text"


@dataclass(frozen=True)
class Eq:
    value: Any


@dataclass(frozen=True)
class Gt:
    value: Any


@dataclass(frozen=True)
class Lt:
    value: Any


@dataclass(frozen=True)
class In:
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class UnknownOp:
    """Operator shape the evaluator does not support. Never matches."""
    name: str
    argument: Any = None


Operator = Union[Eq, Gt, Lt, In, UnknownOp]

FIELD_OPS = {"$eq": Eq, "$gt": Gt, "$lt": Lt, "$in": In}


@dataclass(frozen=True)
class And:
    queries: Tuple["Query", ...] = ()


@dataclass(frozen=True)
class Or:
    queries: Tuple["Query", ...] = ()


@dataclass(frozen=True)
class Text:
    token: str


@dataclass(frozen=True)
class FieldMap:
    fields: Mapping[str, Operator] = field(default_factory=dict)


Query = Union[And, Or, Text, FieldMap]

_AST_TYPES = (And, Or, Text, FieldMap)


def parse_query(q: Any) -> Query:
    """
    Build a Query AST from the dict form:
      {"$and": [...]}, {"$or": [...]}, {"$text": "word"},
      {"age": {"$gt": 25}}, {"name": "Ann"} (bare value means $eq).
    AST nodes are returned as-is. Several keys in one dict are AND-ed together.
    Structural mistakes ($and not a list, $text not a string, query not a dict)
    raise ValidationError; unsupported field operators parse to UnknownOp.
    """
    if isinstance(q, _AST_TYPES):
        return q
    if not isinstance(q, dict):
        raise ValidationError(f"query must be a dict or Query node, got {type(q).__name__}")

    parts: List[Query] = []
    fields: Dict[str, Operator] = {}
    for k, v in q.items():
        if k in LOGICAL_OPS:
            if not isinstance(v, (list, tuple)):
                raise ValidationError(f"{k} expects a list of queries")
            subs = tuple(parse_query(sub) for sub in v)
            parts.append(And(subs) if k == "$and" else Or(subs))
        elif k == TEXT_OP:
            if not isinstance(v, str):
                raise ValidationError("$text expects a string token")
            parts.append(Text(v))
        elif k.startswith("$"):
            # unsupported top-level operator: empty Or never matches
            parts.append(Or(()))
        else:
            ops = _parse_field(v)
            if len(ops) == 1:
                fields[k] = ops[0]
            else:
                parts.extend(FieldMap({k: op}) for op in ops)

    if fields or not parts:
        parts.insert(0, FieldMap(fields))
    if len(parts) == 1:
        return parts[0]
    return And(tuple(parts))


def _parse_field(v: Any) -> List[Operator]:
    if not isinstance(v, dict):
        return [Eq(v)]
    if not v or not all(isinstance(k, str) and k.startswith("$") for k in v):
        return [UnknownOp("", v)]
    ops: List[Operator] = []
    for op, arg in v.items():
        cls = FIELD_OPS.get(op)
        if cls is None:
            ops.append(UnknownOp(op, arg))
        elif cls is In:
            ops.append(In(tuple(arg)) if isinstance(arg, (list, tuple)) else UnknownOp(op, arg))
        else:
            ops.append(cls(arg))
    return ops
