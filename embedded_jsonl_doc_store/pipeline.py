from __future__ import annotations
import enum
import functools
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import IncomparableTypesError, ValidationError
from .matcher import ORDERED_KINDS, compare, value_kind


class SortOrder(enum.IntEnum):
    ASC = 1
    DESC = -1


SortSpec = List[Tuple[str, SortOrder]]

_ORDER_NAMES = {"asc": SortOrder.ASC, "desc": SortOrder.DESC}


def parse_projection(spec: Any) -> Optional[List[str]]:
    """
    Accepts None, an iterable of field names, or {"name": 1, ...}.
    Exclusion ({"name": 0}) is not supported.
    """
    if spec is None:
        return None
    if isinstance(spec, str):
        raise ValidationError("projection must be a list of field names, not a string")
    if isinstance(spec, dict):
        excluded = [k for k, v in spec.items() if not v]
        if excluded:
            raise ValidationError(f"exclusion projections are not supported: {excluded}")
        spec = list(spec)
    fields = list(spec)
    for f in fields:
        if not isinstance(f, str):
            raise ValidationError(f"projection field must be a string, got {f!r}")
    return fields


def parse_sort(spec: Any) -> Optional[SortSpec]:
    """
    Accepts None, [("age", -1), ("name", "asc")] or {"age": -1, "name": 1}.
    Pair order is priority order.
    """
    if spec is None:
        return None
    pairs = list(spec.items()) if isinstance(spec, dict) else list(spec)
    out: SortSpec = []
    for pair in pairs:
        try:
            field, direction = pair
        except (TypeError, ValueError):
            raise ValidationError(f"sort entry must be a (field, direction) pair, got {pair!r}") from None
        if not isinstance(field, str):
            raise ValidationError(f"sort field must be a string, got {field!r}")
        out.append((field, _parse_direction(direction)))
    return out


def _parse_direction(d: Any) -> SortOrder:
    if isinstance(d, str):
        try:
            return _ORDER_NAMES[d.lower()]
        except KeyError:
            raise ValidationError(f"unknown sort direction {d!r}") from None
    if isinstance(d, bool):
        raise ValidationError(f"unknown sort direction {d!r}")
    try:
        return SortOrder(d)
    except ValueError:
        raise ValidationError(f"unknown sort direction {d!r}") from None


def project(record: Dict[str, Any], fields: Optional[Sequence[str]]) -> Dict[str, Any]:
    if fields is None:
        return record
    return {f: record[f] for f in fields if f in record}


def sort_records(records: Iterable[Dict[str, Any]], spec: Optional[SortSpec]) -> List[Dict[str, Any]]:
    """
    Stable multi-key sort. Applied as one stable pass per key from the last key to the first,
    so the first key ends up primary. Records lacking a key order first ascending, last descending.
    """
    recs = list(records)
    if not spec:
        return recs
    key_cls = functools.cmp_to_key(compare)
    for field, direction in reversed(spec):
        _check_kinds(recs, field)

        def key(r: Dict[str, Any], field: str = field) -> Tuple[int, Any]:
            if field not in r:
                return (0, None)
            return (1, key_cls(r[field]))

        recs.sort(key=key, reverse=(direction == SortOrder.DESC))
    return recs


def _check_kinds(recs: List[Dict[str, Any]], field: str) -> None:
    kinds = {value_kind(r[field]) for r in recs if field in r}
    if not kinds:
        return
    first = sorted(kinds)[0]
    if len(kinds) > 1:
        raise IncomparableTypesError(first, sorted(kinds)[1])
    if first not in ORDERED_KINDS:
        raise IncomparableTypesError(first, first)
