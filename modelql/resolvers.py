"""Opt-in, connector-backed default resolvers.

The compiler never supplies resolvers by itself; pass these explicitly:

    compiled = model_to_graphql(
        Foo,
        resolvers=default_query_resolvers(Foo, connector),
        mutations=default_mutation_resolvers(Foo, connector),
    )

All resolvers follow the graphql-core signature ``(root, info, **args)``
and read the acting user from ``info.context`` (see
:func:`modelql.core.utils.get_current_user`).
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from .compiler import Operation
from .config import get_settings
from .core.errors import MISSING_DOCUMENT, throw_error
from .core.fields import Model
from .core.utils import get_context, get_current_user, maybe_await
from .mutators import create_mutator, delete_mutator, get_selector, update_mutator
from .permissions import restrict_viewable_fields

_logger = logging.getLogger("modelql")

__all__ = ['default_query_resolvers', 'default_mutation_resolvers', 'clamp_limit']


def clamp_limit(limit: Optional[int]) -> int:
    settings = get_settings()
    if limit is None or limit < 0:
        return settings.default_limit
    return min(limit, settings.max_limit)


def default_query_resolvers(model: Model, connector: Any) -> Dict[str, Operation]:
    """``single``/``multi`` resolvers returning ``{"result"}`` and ``{"results", "totalCount"}``."""
    type_name = model.type_name
    id_field = get_settings().id_field

    async def single(root: Any, info: Any, input: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        input = input or {}
        context = get_context(info)
        if input.get('id') is not None:
            selector: Dict[str, Any] = {id_field: input['id']}
            options: Dict[str, Any] = {}
        else:
            filtered = await maybe_await(connector.filter(input, context))
            selector, options = filtered['selector'], filtered['options']
        if options.get('sort'):
            found = await connector.find(selector, {**options, 'limit': 1})
            document = found[0] if found else None
        else:
            document = await connector.find_one(selector)
        if document is None:
            if input.get('allowNull'):
                return {'result': None}
            throw_error(MISSING_DOCUMENT, {'documentId': input.get('id'), 'operationName': f"{type_name}:single"})
        return {'result': restrict_viewable_fields(get_current_user(info), model, document, context)}

    async def multi(root: Any, info: Any, input: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        input = dict(input or {})
        context = get_context(info)
        input['limit'] = clamp_limit(input.get('limit'))
        filtered = await maybe_await(connector.filter(input, context))
        selector, options = filtered['selector'], filtered['options']
        documents = await connector.find(selector, options)
        result: Dict[str, Any] = {
            'results': restrict_viewable_fields(get_current_user(info), model, documents, context),
            'totalCount': None,
        }
        if input.get('enableTotal') is not False:
            result['totalCount'] = await connector.count(selector)
        _logger.debug("modelql: %s multi returned %d documents", type_name, len(documents))
        return result

    return {
        'single': Operation(single, f"A single {type_name} document fetched by ID or filter"),
        'multi': Operation(multi, f"A list of {type_name} documents matching a set of query terms"),
    }


def default_mutation_resolvers(model: Model, connector: Any) -> Dict[str, Operation]:
    """``create``/``update``/``upsert``/``delete`` resolvers backed by the mutators."""
    type_name = model.type_name

    async def create(root: Any, info: Any, input: Optional[Mapping[str, Any]] = None, data: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        if data is None:
            data = (input or {}).get('data') or {}
        return await create_mutator(
            model=model,
            data=data,
            connector=connector,
            context=get_context(info),
            current_user=get_current_user(info),
        )

    async def update(root: Any, info: Any, input: Optional[Mapping[str, Any]] = None, selector: Optional[Mapping[str, Any]] = None, data: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        return await update_mutator(
            model=model,
            connector=connector,
            selector=selector,
            input=input,
            data=data,
            context=get_context(info),
            current_user=get_current_user(info),
        )

    async def upsert(root: Any, info: Any, input: Optional[Mapping[str, Any]] = None, selector: Optional[Mapping[str, Any]] = None, data: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        context = get_context(info)
        current_user = get_current_user(info)
        if data is None:
            data = (input or {}).get('data') or {}
        addressed = selector is not None or bool(input and (input.get('id') is not None or input.get('filter')))
        if addressed:
            target = await get_selector(model=model, connector=connector, selector=selector, input=input, context=context)
            if await connector.find_one(target) is not None:
                return await update_mutator(
                    model=model,
                    connector=connector,
                    selector=target,
                    data=data,
                    context=context,
                    current_user=current_user,
                    warn=False,
                )
        return await create_mutator(
            model=model,
            data=data,
            connector=connector,
            context=context,
            current_user=current_user,
        )

    async def delete(root: Any, info: Any, input: Optional[Mapping[str, Any]] = None, selector: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        return await delete_mutator(
            model=model,
            connector=connector,
            selector=selector,
            input=input,
            context=get_context(info),
            current_user=get_current_user(info),
        )

    return {
        'create': Operation(create, f"Create a new {type_name} document"),
        'update': Operation(update, f"Update an existing {type_name} document"),
        'upsert': Operation(upsert, f"Update an existing {type_name} document, or create it if it doesn't exist"),
        'delete': Operation(delete, f"Delete a {type_name} document"),
    }
