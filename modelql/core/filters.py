from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .fields import FieldMeta

__all__ = [
    'FILTER_OPERATORS',
    'OPERATOR_REGISTRY',
    'register_operator',
    'filter_to_selector',
    'sort_to_options',
    'get_path',
    'like_to_regex',
    'matches',
    'coerce_value',
]

# GraphQL filter operator -> selector operator
FILTER_OPERATORS: Dict[str, str] = {
    '_eq': '$eq',
    '_neq': '$ne',
    '_gt': '$gt',
    '_gte': '$gte',
    '_lt': '$lt',
    '_lte': '$lte',
    '_in': '$in',
    '_nin': '$nin',
    '_like': '$like',
    '_is_null': '$exists',
}

_MISSING = object()


def like_to_regex(pattern: str) -> 're.Pattern[str]':
    """Translate an SQL LIKE pattern (``%``/``_`` wildcards) into a regex."""
    out = []
    for ch in str(pattern):
        if ch == '%':
            out.append('.*')
        elif ch == '_':
            out.append('.')
        else:
            out.append(re.escape(ch))
    return re.compile('^' + ''.join(out) + '$', re.DOTALL)


def _cmp(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def _inner(value, arg):
        if value is _MISSING or value is None or arg is None:
            return False
        try:
            return op(value, arg)
        except TypeError:
            return False
    return _inner


# Selector operator -> python predicate(document_value, operand)
OPERATOR_REGISTRY: Dict[str, Callable[[Any, Any], bool]] = {
    '$eq': lambda v, a: (None if v is _MISSING else v) == a,
    '$ne': lambda v, a: (None if v is _MISSING else v) != a,
    '$gt': _cmp(lambda v, a: v > a),
    '$gte': _cmp(lambda v, a: v >= a),
    '$lt': _cmp(lambda v, a: v < a),
    '$lte': _cmp(lambda v, a: v <= a),
    '$in': lambda v, a: (None if v is _MISSING else v) in (a or ()),
    '$nin': lambda v, a: (None if v is _MISSING else v) not in (a or ()),
    '$like': lambda v, a: isinstance(v, str) and bool(like_to_regex(a).match(v)),
    '$exists': lambda v, a: (v is not _MISSING and v is not None) == bool(a),
}


def register_operator(name: str, fn: Callable[[Any, Any], bool]) -> None:  # pragma: no cover - simple
    OPERATOR_REGISTRY[name] = fn


def coerce_value(meta: Optional[FieldMeta], value: Any) -> Any:
    """Best-effort coercion of filter operands to the field's semantic type."""
    if meta is None or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [coerce_value(meta, v) for v in value]
    tag = meta.scalar_type
    if tag == 'Date' and isinstance(value, str):
        s = value.replace('Z', '+00:00') if value.endswith('Z') else value
        try:
            return datetime.fromisoformat(s)
        except ValueError:
            return value
    if tag == 'Int' and isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return value
    if tag == 'Float' and isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return value
    return value


def _field_selector(meta: Optional[FieldMeta], ops: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for op_name, operand in ops.items():
        sel_op = FILTER_OPERATORS.get(op_name)
        if sel_op is None:
            raise ValueError(f"Unknown filter operator: {op_name}")
        if sel_op == '$exists':
            # _is_null: true means "does not exist"
            out[sel_op] = not operand
        else:
            out[sel_op] = coerce_value(meta, operand)
    return out


def filter_to_selector(filter_input: Optional[Mapping[str, Any]], schema: Mapping[str, FieldMeta], prefix: str = '') -> Dict[str, Any]:
    """Convert a ``<Type>FilterInput`` value into a Mongo-like selector.

    ``{"_or": [{"title": {"_eq": "a"}}], "address": {"city": {"_like": "P%"}}}``
    becomes ``{"$or": [{"title": {"$eq": "a"}}], "address.city": {"$like": "P%"}}``.
    """
    selector: Dict[str, Any] = {}
    for key, value in (filter_input or {}).items():
        if value is None:
            continue
        if key in ('_and', '_or'):
            selector['$' + key[1:]] = [filter_to_selector(v, schema, prefix) for v in value]
            continue
        if key == '_not':
            selector['$not'] = filter_to_selector(value, schema, prefix)
            continue
        meta = schema.get(key)
        if meta is None:
            raise ValueError(f"Unknown filter field: {prefix + key}")
        nested = meta.nested_schema
        if nested is not None and not meta.is_array:
            for sub_key, sub_value in filter_to_selector(value, nested, prefix=f"{prefix}{key}.").items():
                selector[sub_key] = sub_value
            continue
        selector[prefix + key] = _field_selector(meta, value)
    return selector


def sort_to_options(sort_input: Optional[Mapping[str, Any]], prefix: str = '') -> List[Tuple[str, str]]:
    """``{"title": "desc", "address": {"city": "asc"}}`` -> ``[("title", "desc"), ("address.city", "asc")]``."""
    out: List[Tuple[str, str]] = []
    for key, direction in (sort_input or {}).items():
        if direction is None:
            continue
        if isinstance(direction, Mapping):
            out.extend(sort_to_options(direction, prefix=f"{prefix}{key}."))
            continue
        d = str(getattr(direction, 'value', direction)).lower()
        out.append((prefix + key, 'desc' if d == 'desc' else 'asc'))
    return out


def get_path(document: Mapping[str, Any], path: str, default: Any = _MISSING) -> Any:
    """Value at a dotted ``path``; ``default`` when any segment is missing."""
    current: Any = document
    for part in path.split('.'):
        if not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return current


def matches(document: Mapping[str, Any], selector: Optional[Mapping[str, Any]]) -> bool:
    """Evaluate a selector against a plain document (used by in-memory storage)."""
    for key, cond in (selector or {}).items():
        if key == '$and':
            if not all(matches(document, sub) for sub in cond):
                return False
            continue
        if key == '$or':
            if not any(matches(document, sub) for sub in cond):
                return False
            continue
        if key == '$not':
            if matches(document, cond):
                return False
            continue
        value = get_path(document, key)
        if isinstance(cond, Mapping) and cond and all(str(k).startswith('$') for k in cond):
            for op_name, operand in cond.items():
                op = OPERATOR_REGISTRY.get(op_name)
                if op is None:
                    raise ValueError(f"Unknown selector operator: {op_name}")
                if not op(value, operand):
                    return False
        elif (None if value is _MISSING else value) != cond:
            return False
    return True
