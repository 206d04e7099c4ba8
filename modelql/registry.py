from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from graphql import (
    ExecutionResult,
    GraphQLError,
    GraphQLSchema,
    StringValueNode,
    build_schema as build_graphql_schema,
    graphql,
    value_from_ast_untyped,
)

from . import templates as T
from .compiler import CompiledModel, model_to_graphql
from .core.errors import SchemaError
from .core.fields import FieldMeta, Model, create_model
from .relations import relation_resolver
from .resolvers import default_mutation_resolvers, default_query_resolvers

_logger = logging.getLogger("modelql")

__all__ = ['ModelSchema', 'hook']


def hook(mutator_name: str, hook_name: str = 'validate') -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Tag a function declared on a ``@schema.model()`` class as a mutation callback.

    Example:
        @schema.model(permissions={'can_create': ['members']})
        class Post:
            title = field(str, can_read=True, can_create=['members'])

            @hook('create', 'validate')
            def title_not_empty(errors, properties):
                ...

    Tagged functions are called without ``self``.
    """
    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        tags = list(getattr(fn, '__modelql_hooks__', ()))
        tags.append((mutator_name, hook_name))
        fn.__modelql_hooks__ = tuple(tags)  # type: ignore[attr-defined]
        return fn
    return deco


@dataclass
class _Entry:
    model: Model
    connector: Any = None
    resolvers: Any = None
    mutations: Any = None


def _serialize_date(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, str):
        return value
    raise GraphQLError(f"Date cannot represent value: {value!r}")


def _parse_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise GraphQLError(f"Date cannot represent non-string value: {value!r}")
    s = value.replace('Z', '+00:00') if value.endswith('Z') else value
    try:
        return datetime.fromisoformat(s)
    except ValueError as e:
        raise GraphQLError(f"Date cannot represent value: {value!r}") from e


def _parse_date_literal(value_node: Any, _variables: Any = None) -> datetime:
    if not isinstance(value_node, StringValueNode):
        raise GraphQLError("Date literals must be strings")
    return _parse_date(value_node.value)


class ModelSchema:
    """Registry of models and builder of the merged, executable schema.

    Models are compiled once per model identity; the SDL is the shared base
    definitions followed by every model in registration order and the
    ``Query``/``Mutation`` root types.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, _Entry] = {}
        self._compiled: Dict[Model, CompiledModel] = {}
        self._graphql_schema: Optional[GraphQLSchema] = None

    # ---------- registration ----------
    def register(
        self,
        model: Model,
        *,
        connector: Any = None,
        resolvers: Any = None,
        mutations: Any = None,
    ) -> Model:
        """Add ``model``; with a ``connector`` the default resolvers fill whatever is not given.

        Connectors receive their model when they are built, so a connector
        bound to a different model is rejected.
        """
        if model.name in self._entries and self._entries[model.name].model is not model:
            raise SchemaError(f"A different model named {model.name} is already registered")
        if connector is not None:
            if resolvers is None:
                resolvers = default_query_resolvers(model, connector)
            if mutations is None:
                mutations = default_mutation_resolvers(model, connector)
            bound = getattr(connector, 'model', model)
            if bound is not model:
                raise SchemaError(f"Connector for {model.name} is bound to another model ({getattr(bound, 'name', bound)!r})")
        self._entries[model.name] = _Entry(model=model, connector=connector, resolvers=resolvers, mutations=mutations)
        self._compiled.pop(model, None)
        self._graphql_schema = None
        return model

    def model(
        self,
        *,
        name: Optional[str] = None,
        type_name: Optional[str] = None,
        multi_type_name: Optional[str] = None,
        description: Optional[str] = None,
        permissions: Any = None,
        connector: Any = None,
        resolvers: Any = None,
        mutations: Any = None,
    ) -> Callable[[type], Model]:
        """Class decorator: fields are the ``field()`` attributes, in declaration order.

        Returns the registered :class:`Model` (not the class). The class
        docstring becomes the GraphQL description unless one is given.
        ``connector`` is a factory called with the built model, for instance
        ``MemoryConnector`` or ``lambda model: SQLAlchemyConnector(table, sessions, model)``.
        """
        def deco(cls: type) -> Model:
            raw = {k: v for k, v in vars(cls).items() if isinstance(v, FieldMeta)}
            callbacks: Dict[str, Dict[str, List[Callable[..., Any]]]] = {}
            for v in vars(cls).values():
                fn = v.__func__ if isinstance(v, staticmethod) else v
                for mutator_name, hook_name in getattr(fn, '__modelql_hooks__', ()):
                    callbacks.setdefault(mutator_name, {}).setdefault(hook_name, []).append(fn)
            model = create_model(
                name or cls.__name__,
                raw,
                type_name=type_name or cls.__name__,
                multi_type_name=multi_type_name,
                description=description if description is not None else inspect.getdoc(cls),
                permissions=permissions if permissions is not None else getattr(cls, 'permissions', None),
                callbacks=callbacks,
            )
            return self.register(
                model,
                connector=connector(model) if connector is not None else None,
                resolvers=resolvers,
                mutations=mutations,
            )
        return deco

    def get_model(self, name: str) -> Model:
        try:
            return self._entries[name].model
        except KeyError:
            raise SchemaError(f"Unknown model: {name}") from None

    def get_connector(self, name: str) -> Any:
        return self._entries[name].connector if name in self._entries else None

    @property
    def models(self) -> Tuple[Model, ...]:
        return tuple(e.model for e in self._entries.values())

    # ---------- compilation ----------
    def compile(self, model: Model) -> CompiledModel:
        compiled = self._compiled.get(model)
        if compiled is None:
            entry = self._entries.get(model.name)
            if entry is None or entry.model is not model:
                raise SchemaError(f"Model {model.name} is not registered")
            compiled = model_to_graphql(model, resolvers=entry.resolvers, mutations=entry.mutations)
            self._compiled[model] = compiled
        return compiled

    def to_sdl(self) -> str:
        compiled = [self.compile(e.model) for e in self._entries.values()]
        queries = [q for c in compiled for q in c.queries]
        mutations = [m for c in compiled for m in c.mutations]
        if not queries:
            raise SchemaError("No queries registered; the Query type needs at least one field")
        parts = [T.base_sdl()]
        parts.extend(c.sdl.rstrip('\n') for c in compiled)
        parts.append(T.root_type_template('Query', queries))
        if mutations:
            parts.append(T.root_type_template('Mutation', mutations))
        return '\n\n'.join(parts) + '\n'

    def _field_resolver(self, compiled: CompiledModel, type_name: str, field_name: str, source_field: str, ra: Any) -> Optional[Callable[..., Any]]:
        explicit = compiled.field_resolvers.get(type_name, {}).get(field_name)
        if explicit is not None:
            return explicit
        if ra.relation is None:
            _logger.warning("modelql: computed field %s.%s has no resolver", type_name, field_name)
            return None
        if not ra.model:
            raise SchemaError(f"Relation {type_name}.{field_name} needs the related model name")
        related = self.get_model(ra.model)
        connector = self.get_connector(ra.model)
        if connector is None:
            raise SchemaError(f"Relation {type_name}.{field_name}: model {ra.model} has no connector")
        return relation_resolver(ra.relation, source_field, related, connector)

    def to_graphql_schema(self) -> GraphQLSchema:
        """Build (once) a graphql-core schema with resolvers and scalars attached."""
        if self._graphql_schema is not None:
            return self._graphql_schema
        schema = build_graphql_schema(self.to_sdl())

        json_type = schema.type_map['JSON']
        json_type.serialize = lambda value: value  # type: ignore[assignment]
        json_type.parse_value = lambda value: value  # type: ignore[assignment]
        json_type.parse_literal = value_from_ast_untyped  # type: ignore[assignment]
        date_type = schema.type_map['Date']
        date_type.serialize = _serialize_date  # type: ignore[assignment]
        date_type.parse_value = _parse_date  # type: ignore[assignment]
        date_type.parse_literal = _parse_date_literal  # type: ignore[assignment]

        for entry in self._entries.values():
            compiled = self.compile(entry.model)
            for root_name, root_type in (('Query', schema.query_type), ('Mutation', schema.mutation_type)):
                for name, fn in compiled.resolvers[root_name].items():
                    root_type.fields[name].resolve = fn  # type: ignore[union-attr]
            for c in compiled.computed:
                resolve = self._field_resolver(compiled, c.type_name, c.field_name, c.source_field, c.resolve_as)
                if resolve is not None:
                    schema.type_map[c.type_name].fields[c.field_name].resolve = resolve  # type: ignore[union-attr]

        self._graphql_schema = schema
        _logger.debug("modelql: built schema with %d models", len(self._entries))
        return schema

    async def execute(
        self,
        query: str,
        variable_values: Optional[Mapping[str, Any]] = None,
        context_value: Any = None,
        operation_name: Optional[str] = None,
    ) -> ExecutionResult:
        return await graphql(
            self.to_graphql_schema(),
            query,
            variable_values=dict(variable_values) if variable_values is not None else None,
            context_value=context_value,
            operation_name=operation_name,
        )
