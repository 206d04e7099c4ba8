"""Compile a :class:`~modelql.core.fields.Model` into SDL and resolver tables."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field as dc_field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from . import templates as T
from .classifier import Buckets, ComputedField, SchemaFields, classify
from .core.errors import SchemaError
from .core.fields import Model
from .core.naming import camel_case

_logger = logging.getLogger("modelql")

__all__ = [
    'DISABLED',
    'Operation',
    'CompiledModel',
    'generate_schema_fragments',
    'create_resolvers',
    'create_mutations',
    'model_to_graphql',
    'QUERY_KEYS',
    'MUTATION_KEYS',
]

QUERY_KEYS = ('single', 'multi')
MUTATION_KEYS = ('create', 'update', 'upsert', 'delete')


class _Disabled:
    """Explicit marker to omit a query/mutation (or all of them)."""

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return 'DISABLED'


DISABLED: Any = _Disabled()


@dataclass(frozen=True)
class Operation:
    """A resolver plus the description shown on the root field."""

    fn: Callable[..., Any]
    description: Optional[str] = None


@dataclass
class CompiledModel:
    model: Model
    sdl: str
    queries: List[Tuple[str, Optional[str]]] = dc_field(default_factory=list)
    mutations: List[Tuple[str, Optional[str]]] = dc_field(default_factory=list)
    resolvers: Dict[str, Dict[str, Callable[..., Any]]] = dc_field(default_factory=lambda: {'Query': {}, 'Mutation': {}})
    field_resolvers: Dict[str, Dict[str, Callable[..., Any]]] = dc_field(default_factory=dict)
    computed: Tuple[ComputedField, ...] = ()
    schema_fields: Optional[SchemaFields] = None


def generate_schema_fragments(
    *,
    type_name: str,
    fields: Buckets,
    description: Optional[str] = None,
    interfaces: Sequence[str] = (),
    is_nested: bool = False,
) -> List[str]:
    """Generate the SDL fragments of one (possibly nested) type, in emission order."""
    if not fields.main_type:
        raise SchemaError(f"GraphQL type {type_name} has no fields. Please add readable fields or remove the type.")

    has_filter = bool(fields.filterable)
    fragments = [T.main_type_template(type_name, fields.main_type, description, interfaces)]

    if not is_nested:
        fragments.append(T.delete_input_template(type_name, has_filter))
        fragments.append(T.single_input_template(type_name, has_filter))
        fragments.append(T.multi_input_template(type_name, has_filter))
        fragments.append(T.single_output_template(type_name))
        fragments.append(T.multi_output_template(type_name))
        fragments.append(T.mutation_output_template(type_name))

    if fields.create:
        fragments.append(T.create_input_template(type_name))
        fragments.append(T.create_data_input_template(type_name, fields.create))

    if fields.update:
        fragments.append(T.update_input_template(type_name, has_filter))
        fragments.append(T.upsert_input_template(type_name, has_filter))
        fragments.append(T.update_data_input_template(type_name, fields.update))

    if has_filter:
        fragments.append(T.field_filter_input_template(type_name, fields.filterable))
        fragments.append(T.field_sort_input_template(type_name, fields.filterable))

    if is_nested:
        # nested objects have no standalone identity: no selectors
        return fragments

    fragments.append(T.selector_input_template(type_name, fields.selector))
    fragments.append(T.selector_unique_input_template(type_name, fields.selector_unique))
    return fragments


def _as_operation(value: Any, kind: str, key: str, model_name: str) -> Optional[Operation]:
    if value is DISABLED:
        return None
    if value is None:
        raise SchemaError(
            f"Model {model_name} has no {kind} resolver for {key!r}; inject one or pass DISABLED to omit it"
        )
    if isinstance(value, Operation):
        return value
    if callable(value):
        return Operation(fn=value)
    raise SchemaError(f"Invalid {kind} resolver for {model_name}.{key}: {value!r}")


def create_resolvers(
    resolvers: Any,
    *,
    type_name: str,
    multi_type_name: str,
    model_name: str,
) -> Tuple[List[Tuple[str, Optional[str]]], Dict[str, Callable[..., Any]]]:
    """Query signatures and resolver map for the single/multi queries."""
    queries: List[Tuple[str, Optional[str]]] = []
    query_resolvers: Dict[str, Callable[..., Any]] = {}
    if resolvers is DISABLED:
        return queries, query_resolvers
    if not isinstance(resolvers, Mapping):
        raise SchemaError(
            f"Model {model_name} has no query resolvers; inject 'single'/'multi' resolvers or pass DISABLED"
        )
    single = _as_operation(resolvers.get('single'), 'query', 'single', model_name)
    if single is not None:
        name = camel_case(type_name)
        queries.append((T.single_query_template(type_name, name), single.description))
        query_resolvers[name] = single.fn
    multi = _as_operation(resolvers.get('multi'), 'query', 'multi', model_name)
    if multi is not None:
        name = camel_case(multi_type_name)
        queries.append((T.multi_query_template(type_name, name), multi.description))
        query_resolvers[name] = multi.fn
    return queries, query_resolvers


_EMPTY_BUCKET_WARNING = (
    'Warning: you defined a "%s" mutation for model %s, but it doesn\'t have any mutable fields, '
    'so no corresponding mutation types can be generated. Remove the "%s" mutation or define a '
    '"%s" property on a field to disable this warning'
)


def create_mutations(
    mutations: Any,
    *,
    type_name: str,
    model_name: str,
    fields: Buckets,
) -> Tuple[List[Tuple[str, Optional[str]]], Dict[str, Callable[..., Any]]]:
    """Mutation signatures and resolver map; skips mutations whose input bucket is empty."""
    out: List[Tuple[str, Optional[str]]] = []
    mutation_resolvers: Dict[str, Callable[..., Any]] = {}
    if mutations is DISABLED:
        return out, mutation_resolvers
    if not isinstance(mutations, Mapping):
        raise SchemaError(
            f"Model {model_name} has no mutation resolvers; inject create/update/upsert/delete or pass DISABLED"
        )

    plan = (
        ('create', fields.create, 'can_create', T.create_mutation_template),
        ('update', fields.update, 'can_update', T.update_mutation_template),
        ('upsert', fields.update, 'can_update', T.upsert_mutation_template),
        ('delete', None, None, T.delete_mutation_template),
    )
    for key, bucket, flag, template in plan:
        op = _as_operation(mutations.get(key), 'mutation', key, model_name)
        if op is None:
            continue
        if bucket is not None and not bucket:
            _logger.warning(_EMPTY_BUCKET_WARNING, key, model_name, key, flag)
            continue
        out.append((template(type_name), op.description))
        mutation_resolvers[f"{key}{type_name}"] = op.fn
    return out, mutation_resolvers


def model_to_graphql(model: Model, *, resolvers: Any = None, mutations: Any = None) -> CompiledModel:
    """Compile ``model`` into SDL plus query/mutation registration tables.

    No default resolvers are supplied here: pass ``resolvers={'single': ..., 'multi': ...}``
    and ``mutations={'create': ..., 'update': ..., 'upsert': ..., 'delete': ...}`` (callables or
    :class:`Operation`), using :data:`DISABLED` for entries (or whole tables) to omit.
    See :mod:`modelql.resolvers` for opt-in connector-backed defaults.
    """
    type_name = model.type_name
    schema_fields = classify(model.schema, type_name)
    fields = schema_fields.fields

    if not fields.main_type:
        raise SchemaError(
            f"Model {model.name} doesn't have any readable fields, so no GraphQL type {type_name} can be generated"
        )

    fragments = generate_schema_fragments(
        type_name=type_name,
        fields=fields,
        description=model.graphql.description,
        is_nested=False,
    )
    seen = {type_name}
    for nested in schema_fields.nested_fields_list:
        if nested.type_name in seen:
            # explicitly reused nested type: emitted once
            continue
        seen.add(nested.type_name)
        fragments.extend(generate_schema_fragments(type_name=nested.type_name, fields=nested.fields, is_nested=True))

    queries, query_resolvers = create_resolvers(
        resolvers,
        type_name=type_name,
        multi_type_name=model.multi_type_name,
        model_name=model.name,
    )
    mutation_entries, mutation_resolvers = create_mutations(
        mutations,
        type_name=type_name,
        model_name=model.name,
        fields=fields,
    )

    field_resolvers: Dict[str, Dict[str, Callable[..., Any]]] = {}
    for c in schema_fields.computed:
        if c.resolve_as.resolver is not None:
            field_resolvers.setdefault(c.type_name, {})[c.field_name] = c.resolve_as.resolver

    _logger.debug("modelql: compiled %s (%d fragments)", type_name, len(fragments))
    return CompiledModel(
        model=model,
        sdl='\n\n'.join(fragments) + '\n',
        queries=queries,
        mutations=mutation_entries,
        resolvers={'Query': query_resolvers, 'Mutation': mutation_resolvers},
        field_resolvers=field_resolvers,
        computed=schema_fields.computed,
        schema_fields=schema_fields,
    )
