"""Schema field classification.

Walks a schema in declaration order and sorts each field into the buckets
needed by the SDL templates. Only static capability information is used
here; predicates count as "may be allowed" and are decided per request by
:mod:`modelql.permissions`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field as dc_field
from typing import List, Mapping, Optional, Tuple

from .core.capability import is_statically_allowed
from .core.fields import FieldMeta, ResolveAs
from .core.naming import nested_type_name

_logger = logging.getLogger("modelql")

__all__ = [
    'GraphQLField',
    'ComputedField',
    'Buckets',
    'NestedFields',
    'SchemaFields',
    'classify',
    'FILTERABLE_SCALARS',
]

# Scalars that get a ``<Scalar>_Selector`` filter input and a sort entry.
FILTERABLE_SCALARS = ('String', 'Int', 'Float', 'Boolean', 'Date')

# Field names always present on the unique selector template.
UNIQUE_SELECTOR_BUILTINS = ('_id', 'documentId')


@dataclass(frozen=True)
class GraphQLField:
    """One line of a generated type or input: ``name: type``.

    ``sort_type`` is only set on filterable entries.
    """

    name: str
    type: str
    description: Optional[str] = None
    sort_type: Optional[str] = None


@dataclass(frozen=True)
class ComputedField:
    """A ``resolve_as`` field that needs a resolver on ``type_name``."""

    type_name: str
    field_name: str
    source_field: str
    resolve_as: ResolveAs


@dataclass(frozen=True)
class Buckets:
    main_type: Tuple[GraphQLField, ...] = ()
    readable: Tuple[GraphQLField, ...] = ()
    create: Tuple[GraphQLField, ...] = ()
    update: Tuple[GraphQLField, ...] = ()
    selector: Tuple[GraphQLField, ...] = ()
    selector_unique: Tuple[GraphQLField, ...] = ()
    filterable: Tuple[GraphQLField, ...] = ()


@dataclass(frozen=True)
class NestedFields:
    type_name: str
    fields: Buckets


@dataclass(frozen=True)
class SchemaFields:
    fields: Buckets
    nested_fields_list: Tuple[NestedFields, ...] = ()
    computed: Tuple[ComputedField, ...] = ()


@dataclass
class _Collector:
    main_type: List[GraphQLField] = dc_field(default_factory=list)
    readable: List[GraphQLField] = dc_field(default_factory=list)
    create: List[GraphQLField] = dc_field(default_factory=list)
    update: List[GraphQLField] = dc_field(default_factory=list)
    selector: List[GraphQLField] = dc_field(default_factory=list)
    selector_unique: List[GraphQLField] = dc_field(default_factory=list)
    filterable: List[GraphQLField] = dc_field(default_factory=list)

    def freeze(self) -> Buckets:
        return Buckets(
            main_type=tuple(self.main_type),
            readable=tuple(self.readable),
            create=tuple(self.create),
            update=tuple(self.update),
            selector=tuple(self.selector),
            selector_unique=tuple(self.selector_unique),
            filterable=tuple(self.filterable),
        )


def _wrap(meta: FieldMeta, inner: str) -> str:
    return f"[{inner}]" if meta.is_array else inner


def _output_type(meta: FieldMeta, nested_name: Optional[str]) -> str:
    if nested_name is not None:
        return _wrap(meta, nested_name)
    return _wrap(meta, meta.scalar_type or 'JSON')


def _is_required_on_create(meta: FieldMeta) -> bool:
    return not meta.optional and meta.on_create is None


def classify(schema: Mapping[str, FieldMeta], type_name: str) -> SchemaFields:
    """Partition ``schema`` into the buckets used to generate ``type_name``.

    Returns the buckets, the flattened list of nested sub-schemas (pre-order,
    declaration order) and the computed fields needing resolvers. Pure and
    deterministic: identical input gives identical output.
    """
    out = _Collector()
    nested_list: List[NestedFields] = []
    computed: List[ComputedField] = []

    for key, meta in schema.items():
        readable = is_statically_allowed(meta.can_read)
        creatable = is_statically_allowed(meta.can_create) and not meta.is_computed
        updatable = is_statically_allowed(meta.can_update) and not meta.is_computed

        # --- nested sub-schema -------------------------------------------
        nested_name: Optional[str] = None
        nested_buckets: Optional[Buckets] = None
        sub_schema = meta.nested_schema
        if sub_schema is not None and (readable or creatable or updatable):
            nested_name = meta.type_name or nested_type_name(type_name, key)
            sub = classify(sub_schema, nested_name)
            nested_buckets = sub.fields
            nested_list.append(NestedFields(type_name=nested_name, fields=sub.fields))
            nested_list.extend(sub.nested_fields_list)
            computed.extend(sub.computed)

        # --- output ------------------------------------------------------
        if readable:
            ra = meta.resolve_as
            if ra is not None:
                exposed = ra.field_name or key
                out.main_type.append(GraphQLField(exposed, ra.type, ra.description or meta.description))
                computed.append(ComputedField(type_name=type_name, field_name=exposed, source_field=key, resolve_as=ra))
                if ra.add_original_field and exposed != key:
                    out.main_type.append(GraphQLField(key, _output_type(meta, nested_name), meta.description))
            else:
                out.main_type.append(GraphQLField(key, _output_type(meta, nested_name), meta.description))
            if not meta.is_computed:
                out.readable.append(GraphQLField(key, _output_type(meta, nested_name), meta.description))

        # --- inputs ------------------------------------------------------
        if creatable:
            if nested_buckets is not None:
                if nested_buckets.create:
                    t = _wrap(meta, f"Create{nested_name}DataInput")
                    out.create.append(GraphQLField(key, t + ('!' if _is_required_on_create(meta) else ''), meta.description))
                else:
                    _logger.debug("modelql: %s.%s has no creatable sub-fields, left out of create input", type_name, key)
            else:
                t = _output_type(meta, None)
                out.create.append(GraphQLField(key, t + ('!' if _is_required_on_create(meta) else ''), meta.description))
        if updatable:
            if nested_buckets is not None:
                if nested_buckets.update:
                    out.update.append(GraphQLField(key, _wrap(meta, f"Update{nested_name}DataInput"), meta.description))
                else:
                    _logger.debug("modelql: %s.%s has no updatable sub-fields, left out of update input", type_name, key)
            else:
                out.update.append(GraphQLField(key, _output_type(meta, None), meta.description))

        # --- filters / sort ----------------------------------------------
        if readable and meta.filterable is not False and not meta.is_array and not meta.blackbox and not meta.is_computed:
            if nested_buckets is not None:
                if nested_buckets.filterable:
                    out.filterable.append(GraphQLField(
                        key, f"{nested_name}FilterInput", meta.description, sort_type=f"{nested_name}SortInput",
                    ))
            elif meta.scalar_type in FILTERABLE_SCALARS:
                out.filterable.append(GraphQLField(
                    key, f"{meta.scalar_type}_Selector", meta.description, sort_type='SortOptions',
                ))

        # --- selectors ---------------------------------------------------
        if meta.scalar_type in FILTERABLE_SCALARS and not meta.is_array and not meta.is_computed:
            if key == '_id' or meta.selectable or meta.unique:
                out.selector.append(GraphQLField(key, meta.scalar_type))
            if meta.unique and key not in UNIQUE_SELECTOR_BUILTINS:
                out.selector_unique.append(GraphQLField(key, meta.scalar_type))

    return SchemaFields(fields=out.freeze(), nested_fields_list=tuple(nested_list), computed=tuple(computed))
