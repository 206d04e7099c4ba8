from __future__ import annotations

import inspect
from dataclasses import dataclass, field as dc_field, replace
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from .callbacks import CallbackRegistry
from .capability import Capability, DENIED, Predicate, capability
from .naming import pluralize

__all__ = [
    'SCALAR_TYPES',
    'ArrayType',
    'ResolveAs',
    'FieldMeta',
    'GraphQLOptions',
    'Permissions',
    'Model',
    'field',
    'array',
    'resolve_as',
    'normalize_type',
    'build_schema',
    'create_model',
]

# Semantic type tags understood by the classifier and the validator.
SCALAR_TYPES = ('String', 'Int', 'Float', 'Boolean', 'Date', 'JSON')

_TYPE_ALIASES: Dict[Any, str] = {
    str: 'String',
    int: 'Int',
    float: 'Float',
    bool: 'Boolean',
    datetime: 'Date',
    date: 'Date',
    dict: 'JSON',
    object: 'JSON',
    'Number': 'Float',
    'Integer': 'Int',
    'Object': 'JSON',
}

@dataclass(frozen=True)
class ArrayType:
    """Array of a primitive tag or of a nested schema."""

    of: Any


@dataclass(frozen=True)
class ResolveAs:
    """Marks a field as computed by a resolver instead of stored.

    Attributes:
        type: GraphQL type of the computed value (e.g. ``"User"``, ``"[Post]"``).
        resolver: ``fn(root, info, **args)`` used as the field resolver.
        relation: ``"hasOne"`` or ``"hasMany"`` to use the built-in relation
            resolvers instead of ``resolver``.
        model: Related model name for relations.
        field_name: GraphQL name of the computed field; defaults to the field key.
        add_original_field: Also expose (and accept as input) the stored field
            under its own name; requires a different ``field_name``.
        description: GraphQL description of the computed field.
    """

    type: str
    resolver: Optional[Callable[..., Any]] = None
    relation: Optional[str] = None
    model: Optional[str] = None
    field_name: Optional[str] = None
    add_original_field: bool = False
    description: Optional[str] = None


@dataclass(frozen=True)
class FieldMeta:
    """Normalized per-field metadata.

    ``name`` is the dotted path of the field (``address.city`` for nested
    fields); ``key`` is the local name inside its schema.
    """

    key: str
    name: str
    type: Any
    can_read: Capability = DENIED
    can_create: Capability = DENIED
    can_update: Capability = DENIED
    optional: bool = False
    on_create: Optional[Callable[..., Any]] = None
    on_update: Optional[Callable[..., Any]] = None
    on_delete: Optional[Callable[..., Any]] = None
    resolve_as: Optional[ResolveAs] = None
    unique: bool = False
    selectable: bool = False
    filterable: Optional[bool] = None
    blackbox: bool = False
    description: Optional[str] = None
    type_name: Optional[str] = None
    allowed_values: Optional[Tuple[Any, ...]] = None
    min: Optional[float] = None
    max: Optional[float] = None
    regex: Optional[str] = None

    @property
    def nested_schema(self) -> Optional[Mapping[str, 'FieldMeta']]:
        """The sub-schema of a nested object or array-of-object field."""
        if self.blackbox:
            return None
        t = self.type
        if isinstance(t, ArrayType):
            t = t.of
        if isinstance(t, Mapping):
            return t
        return None

    @property
    def is_nested(self) -> bool:
        return self.nested_schema is not None

    @property
    def is_array(self) -> bool:
        return isinstance(self.type, ArrayType)

    @property
    def scalar_type(self) -> Optional[str]:
        """Primitive tag of the field (or of its array items), None for nested."""
        if self.blackbox:
            return 'JSON'
        t = self.type.of if isinstance(self.type, ArrayType) else self.type
        return t if isinstance(t, str) else None

    @property
    def is_computed(self) -> bool:
        """Computed fields are never stored nor accepted as input."""
        return self.resolve_as is not None and not self.resolve_as.add_original_field


def normalize_type(value: Any) -> Any:
    """Normalize python types / aliases into semantic tags, recursing into arrays."""
    if isinstance(value, ArrayType):
        return ArrayType(normalize_type(value.of))
    if value is list:
        return ArrayType('JSON')
    if isinstance(value, Mapping):
        return value
    tag = _TYPE_ALIASES.get(value, value)
    if tag not in SCALAR_TYPES:
        raise TypeError(f"Unsupported field type: {value!r}")
    return tag


def _field_capability(value: Any, flag: str) -> Capability:
    cap = capability(value)
    if isinstance(cap, Predicate) and (
        inspect.iscoroutinefunction(cap.fn) or inspect.iscoroutinefunction(getattr(cap.fn, '__call__', None))
    ):
        raise TypeError(f"{flag} predicates must be synchronous, got coroutine function {cap.fn!r}")
    return cap


def field(
    type: Any = 'String',
    *,
    can_read: Any = None,
    can_create: Any = None,
    can_update: Any = None,
    optional: bool = False,
    on_create: Optional[Callable[..., Any]] = None,
    on_update: Optional[Callable[..., Any]] = None,
    on_delete: Optional[Callable[..., Any]] = None,
    resolve_as: Optional[ResolveAs] = None,
    **meta: Any,
) -> FieldMeta:
    """Declare a field.

    The returned :class:`FieldMeta` is unbound (empty ``key``/``name``) until
    a schema containing it is built with :func:`build_schema`, which happens
    in :func:`create_model` and in the ``ModelSchema.model`` decorator.

    Examples:
        foo2 = field(str, can_read=['guests'], can_create=['guests'])
        address = field({'city': field(str, can_read=True)}, can_read=True)
        tags = field(array(str), can_read=True, optional=True)
        user_id = field(str, can_read=True, resolve_as=resolve_as('User', relation='hasOne', model='Users', field_name='user', add_original_field=True))

    Capability predicates are called while validating and filtering output,
    so they must be plain functions; coroutine functions raise ``TypeError``.

    Supported extra metadata: ``unique``, ``selectable``, ``filterable``,
    ``blackbox``, ``description``, ``type_name``, ``allowed_values``, ``min``,
    ``max``, ``regex``.
    """
    if 'allowed_values' in meta and meta['allowed_values'] is not None:
        meta['allowed_values'] = tuple(meta['allowed_values'])
    return FieldMeta(
        key='',
        name='',
        type=normalize_type(type),
        can_read=_field_capability(can_read, 'can_read'),
        can_create=_field_capability(can_create, 'can_create'),
        can_update=_field_capability(can_update, 'can_update'),
        optional=optional,
        on_create=on_create,
        on_update=on_update,
        on_delete=on_delete,
        resolve_as=resolve_as,
        **meta,
    )


def array(of: Any) -> ArrayType:
    return ArrayType(normalize_type(of))


def resolve_as(type: str, resolver: Optional[Callable[..., Any]] = None, **meta: Any) -> ResolveAs:
    return ResolveAs(type=type, resolver=resolver, **meta)


def _bind(meta: FieldMeta, key: str, prefix: str) -> FieldMeta:
    path = f"{prefix}.{key}" if prefix else key
    t = meta.type
    if not meta.blackbox:
        if isinstance(t, ArrayType) and isinstance(t.of, Mapping):
            t = ArrayType(build_schema(t.of, prefix=path))
        elif isinstance(t, Mapping):
            t = build_schema(t, prefix=path)
    return replace(meta, key=key, name=path, type=t)


def build_schema(raw: Mapping[str, Any], prefix: str = '') -> Mapping[str, FieldMeta]:
    """Bind field names (dotted paths for nested schemas) and freeze the mapping.

    Declaration order is preserved; it drives bucket and SDL order.
    """
    out: Dict[str, FieldMeta] = {}
    for key, meta in raw.items():
        if not isinstance(meta, FieldMeta):
            raise TypeError(f"Field {key!r} must be declared with field(), got {meta!r}")
        out[key] = _bind(meta, key, prefix)
    return MappingProxyType(out)


@dataclass(frozen=True)
class GraphQLOptions:
    type_name: str
    multi_type_name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class Permissions:
    """Document-level operation rules (same shapes as field capabilities)."""

    can_create: Optional[Capability] = None
    can_update: Optional[Capability] = None
    can_delete: Optional[Capability] = None

    @classmethod
    def of(cls, can_create: Any = None, can_update: Any = None, can_delete: Any = None) -> 'Permissions':
        def _norm(v):
            return None if v is None else capability(v)
        return cls(can_create=_norm(can_create), can_update=_norm(can_update), can_delete=_norm(can_delete))

    def for_operation(self, operation_name: str) -> Optional[Capability]:
        return getattr(self, f"can_{operation_name}", None)


@dataclass(frozen=True, eq=False)
class Model:
    """Immutable description of a resource.

    The storage connector is deliberately not part of the model; pass it to
    the mutators, default resolvers or :class:`modelql.registry.ModelSchema`.
    """

    name: str
    schema: Mapping[str, FieldMeta]
    graphql: GraphQLOptions
    permissions: Permissions = dc_field(default_factory=Permissions)
    callbacks: CallbackRegistry = dc_field(default_factory=CallbackRegistry, compare=False)

    @property
    def type_name(self) -> str:
        return self.graphql.type_name

    @property
    def multi_type_name(self) -> str:
        return self.graphql.multi_type_name


def create_model(
    name: str,
    schema: Mapping[str, Any],
    *,
    type_name: Optional[str] = None,
    multi_type_name: Optional[str] = None,
    description: Optional[str] = None,
    permissions: Union[Permissions, Mapping[str, Any], None] = None,
    callbacks: Optional[Mapping[str, Any]] = None,
) -> Model:
    """Build a :class:`Model` from a mapping of ``field()`` declarations.

    ``callbacks`` maps mutator names to hook lists, e.g.
    ``{'create': {'validate': [fn], 'before': [fn]}}``; they are registered
    under ``"<TypeName>.<mutator>.<hook>"`` keys.
    """
    tname = type_name or name
    if permissions is None:
        perms = Permissions()
    elif isinstance(permissions, Permissions):
        perms = permissions
    else:
        perms = Permissions.of(**dict(permissions))
    registry = CallbackRegistry()
    for mutator_name, hooks in (callbacks or {}).items():
        for hook, fns in (hooks or {}).items():
            if callable(fns):
                fns = [fns]
            registry.add(f"{tname}.{mutator_name}.{hook}", *fns)
    return Model(
        name=name,
        schema=build_schema(schema),
        graphql=GraphQLOptions(
            type_name=tname,
            multi_type_name=multi_type_name or pluralize(tname),
            description=description,
        ),
        permissions=perms,
        callbacks=registry,
    )
