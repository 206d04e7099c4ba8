"""SDL string templates.

Every function is pure: same arguments, same string. Field order is the
order of the bucket passed in. Tests assert on the parsed documents
(``graphql.parse``) rather than on exact whitespace.
"""
from __future__ import annotations

import json
from typing import Iterable, Optional, Sequence, Tuple

from .classifier import FILTERABLE_SCALARS, UNIQUE_SELECTOR_BUILTINS, GraphQLField

__all__ = [
    'base_sdl',
    'main_type_template',
    'create_input_template',
    'create_data_input_template',
    'update_input_template',
    'upsert_input_template',
    'update_data_input_template',
    'delete_input_template',
    'single_input_template',
    'multi_input_template',
    'single_output_template',
    'multi_output_template',
    'mutation_output_template',
    'field_filter_input_template',
    'field_sort_input_template',
    'selector_input_template',
    'selector_unique_input_template',
    'single_query_template',
    'multi_query_template',
    'create_mutation_template',
    'update_mutation_template',
    'upsert_mutation_template',
    'delete_mutation_template',
    'root_type_template',
]


def _description(text: Optional[str], indent: str = '') -> str:
    if not text:
        return ''
    return f"{indent}{json.dumps(text)}\n"


def _fields(fields: Iterable[GraphQLField], indent: str = '  ') -> str:
    return ''.join(f"{_description(f.description, indent)}{indent}{f.name}: {f.type}\n" for f in fields)


def _block(keyword: str, name: str, body: str, description: Optional[str] = None) -> str:
    return f"{_description(description)}{keyword} {name} {{\n{body}}}"


# --- shared definitions ---------------------------------------------------

_SELECTOR_OPS = {
    'String': ('_eq', '_gt', '_gte', '_in', '_is_null', '_like', '_lt', '_lte', '_neq', '_nin'),
    'Int': ('_eq', '_gt', '_gte', '_in', '_is_null', '_lt', '_lte', '_neq', '_nin'),
    'Float': ('_eq', '_gt', '_gte', '_in', '_is_null', '_lt', '_lte', '_neq', '_nin'),
    'Date': ('_eq', '_gt', '_gte', '_in', '_is_null', '_lt', '_lte', '_neq', '_nin'),
    'Boolean': ('_eq', '_is_null', '_neq'),
}


def _scalar_selector(scalar: str) -> str:
    lines = []
    for op in _SELECTOR_OPS[scalar]:
        if op == '_is_null':
            t = 'Boolean'
        elif op in ('_in', '_nin'):
            t = f"[{scalar}]"
        else:
            t = scalar
        lines.append(f"  {op}: {t}\n")
    return _block('input', f"{scalar}_Selector", ''.join(lines))


def base_sdl() -> str:
    """Scalars, sort enum and per-scalar filter selectors shared by all models."""
    parts = [
        'scalar JSON',
        'scalar Date',
        'enum SortOptions {\n  asc\n  desc\n}',
    ]
    parts.extend(_scalar_selector(s) for s in FILTERABLE_SCALARS)
    return '\n\n'.join(parts)


# --- object types ---------------------------------------------------------

def main_type_template(type_name: str, fields: Sequence[GraphQLField], description: Optional[str] = None, interfaces: Sequence[str] = ()) -> str:
    name = f"{type_name} implements {' & '.join(interfaces)}" if interfaces else type_name
    return _block('type', name, _fields(fields), description)


def single_output_template(type_name: str) -> str:
    return _block('type', f"Single{type_name}Output", f"  result: {type_name}\n")


def multi_output_template(type_name: str) -> str:
    return _block('type', f"Multi{type_name}Output", f"  results: [{type_name}]\n  totalCount: Int\n")


def mutation_output_template(type_name: str) -> str:
    return _block('type', f"{type_name}MutationOutput", f"  data: {type_name}\n")


# --- inputs ---------------------------------------------------------------

def _filter_line(type_name: str, has_filter: bool) -> str:
    return f"  filter: {type_name}FilterInput\n" if has_filter else ''


def _sort_line(type_name: str, has_filter: bool) -> str:
    return f"  sort: {type_name}SortInput\n" if has_filter else ''


def create_input_template(type_name: str) -> str:
    return _block('input', f"Create{type_name}Input", f"  data: Create{type_name}DataInput!\n")


def create_data_input_template(type_name: str, fields: Sequence[GraphQLField]) -> str:
    return _block('input', f"Create{type_name}DataInput", _fields(fields))


def update_input_template(type_name: str, has_filter: bool = True) -> str:
    body = _filter_line(type_name, has_filter) + "  id: String\n" + f"  data: Update{type_name}DataInput!\n"
    return _block('input', f"Update{type_name}Input", body)


def upsert_input_template(type_name: str, has_filter: bool = True) -> str:
    body = _filter_line(type_name, has_filter) + "  id: String\n" + f"  data: Update{type_name}DataInput!\n"
    return _block('input', f"Upsert{type_name}Input", body)


def update_data_input_template(type_name: str, fields: Sequence[GraphQLField]) -> str:
    return _block('input', f"Update{type_name}DataInput", _fields(fields))


def delete_input_template(type_name: str, has_filter: bool = True) -> str:
    return _block('input', f"Delete{type_name}Input", _filter_line(type_name, has_filter) + "  id: String\n")


def single_input_template(type_name: str, has_filter: bool = True) -> str:
    body = (
        _filter_line(type_name, has_filter)
        + _sort_line(type_name, has_filter)
        + "  id: String\n"
        + "  allowNull: Boolean\n"
        + "  contextName: String\n"
    )
    return _block('input', f"Single{type_name}Input", body)


def multi_input_template(type_name: str, has_filter: bool = True) -> str:
    body = (
        _filter_line(type_name, has_filter)
        + _sort_line(type_name, has_filter)
        + "  offset: Int\n"
        + "  limit: Int\n"
        + "  enableTotal: Boolean\n"
        + "  contextName: String\n"
    )
    return _block('input', f"Multi{type_name}Input", body)


def field_filter_input_template(type_name: str, fields: Sequence[GraphQLField]) -> str:
    body = (
        f"  _and: [{type_name}FilterInput]\n"
        f"  _not: {type_name}FilterInput\n"
        f"  _or: [{type_name}FilterInput]\n"
    ) + _fields(fields)
    return _block('input', f"{type_name}FilterInput", body)


def field_sort_input_template(type_name: str, fields: Sequence[GraphQLField]) -> str:
    body = _fields(GraphQLField(f.name, f.sort_type or 'SortOptions', f.description) for f in fields)
    return _block('input', f"{type_name}SortInput", body)


def selector_input_template(type_name: str, fields: Sequence[GraphQLField]) -> str:
    body = (
        f"  AND: [{type_name}SelectorInput]\n"
        f"  OR: [{type_name}SelectorInput]\n"
    ) + _fields(fields)
    return _block('input', f"{type_name}SelectorInput", body)


def selector_unique_input_template(type_name: str, fields: Sequence[GraphQLField]) -> str:
    body = ''.join(f"  {name}: String\n" for name in UNIQUE_SELECTOR_BUILTINS) + _fields(fields)
    return _block('input', f"{type_name}SelectorUniqueInput", body)


# --- root fields ----------------------------------------------------------

def single_query_template(type_name: str, query_name: str) -> str:
    return f"{query_name}(input: Single{type_name}Input): Single{type_name}Output"


def multi_query_template(type_name: str, query_name: str) -> str:
    return f"{query_name}(input: Multi{type_name}Input): Multi{type_name}Output"


def create_mutation_template(type_name: str) -> str:
    return f"create{type_name}(input: Create{type_name}Input, data: Create{type_name}DataInput): {type_name}MutationOutput"


def update_mutation_template(type_name: str) -> str:
    return (
        f"update{type_name}(input: Update{type_name}Input, selector: {type_name}SelectorUniqueInput, "
        f"data: Update{type_name}DataInput): {type_name}MutationOutput"
    )


def upsert_mutation_template(type_name: str) -> str:
    return (
        f"upsert{type_name}(input: Upsert{type_name}Input, selector: {type_name}SelectorUniqueInput, "
        f"data: Update{type_name}DataInput): {type_name}MutationOutput"
    )


def delete_mutation_template(type_name: str) -> str:
    return f"delete{type_name}(input: Delete{type_name}Input, selector: {type_name}SelectorUniqueInput): {type_name}MutationOutput"


def root_type_template(name: str, entries: Sequence[Tuple[str, Optional[str]]]) -> str:
    """``type Query { ... }`` from ``(signature, description)`` pairs."""
    body = ''.join(f"{_description(desc, '  ')}  {sig}\n" for sig, desc in entries)
    return _block('type', name, body)
