"""Create / update / delete pipelines.

Each mutator runs the same stages: resolve the target, run field
lifecycle callbacks and ``before`` hooks, validate, check permissions,
call the connector, run ``after`` hooks, schedule ``async`` hooks and
filter the returned document down to what the user may read.

Usage:

    result = await create_mutator(model=Foo, data={'foo2': 'bar'}, connector=conn, current_user=user)
    result['data']  # the created document, readable fields only
"""
from __future__ import annotations

import copy
import logging
import warnings
from typing import Any, Dict, Mapping, Optional

from .config import get_settings
from .core.errors import DOCUMENT_NOT_FOUND, EMPTY_SELECTOR, throw_error
from .core.fields import Model
from .core.utils import call_with_options, get_current_user, maybe_await
from .permissions import perform_mutation_check, restrict_viewable_fields
from .validation import validate_mutation_data

_logger = logging.getLogger("modelql")

__all__ = [
    'create_mutator',
    'update_mutator',
    'delete_mutator',
    'get_selector',
    'data_to_modifier',
    'modifier_to_data',
]


def data_to_modifier(data: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """``{"a": 1, "b": None}`` -> ``{"$set": {"a": 1}, "$unset": {"b": True}}``."""
    modifier: Dict[str, Dict[str, Any]] = {}
    to_set = {k: v for k, v in data.items() if v is not None}
    to_unset = {k: True for k, v in data.items() if v is None}
    if to_set:
        modifier['$set'] = to_set
    if to_unset:
        modifier['$unset'] = to_unset
    return modifier


def modifier_to_data(modifier: Mapping[str, Any]) -> Dict[str, Any]:
    data: Dict[str, Any] = dict(modifier.get('$set') or {})
    for key in modifier.get('$unset') or {}:
        data[key] = None
    return data


async def get_selector(
    *,
    model: Model,
    connector: Any,
    data_id: Any = None,
    selector: Optional[Mapping[str, Any]] = None,
    input: Optional[Mapping[str, Any]] = None,
    context: Any = None,
    warn: bool = True,
) -> Dict[str, Any]:
    """Resolve the target of an update/delete.

    Precedence is ``data_id`` > ``selector`` > ``input`` (``input.id`` then
    ``input.filter``). A ``documentId`` key is read as the primary key.
    Raises ``app.empty_selector`` when nothing usable is given. ``warn=False``
    is for callers passing a selector they already resolved.
    """
    id_field = get_settings().id_field
    result: Dict[str, Any] = {}
    if data_id is not None:
        result = {id_field: data_id}
    elif selector is not None:
        if warn and get_settings().warn_deprecated_selector:
            warnings.warn(
                "Addressing mutators with 'selector' is deprecated, use 'input' ({'id': ...} or {'filter': ...})",
                DeprecationWarning,
                stacklevel=3,
            )
        result = dict(selector)
        if 'documentId' in result:
            result[id_field] = result.pop('documentId')
    elif input:
        if input.get('id') is not None:
            result = {id_field: input['id']}
        elif input.get('filter'):
            filtered = await maybe_await(connector.filter(input, context))
            result = dict(filtered.get('selector') or {})
    if not result:
        throw_error(EMPTY_SELECTOR, {'operationName': f"{model.type_name}:selector"})
    return result


def _properties(model: Model, **values: Any) -> Dict[str, Any]:
    props = {'model': model, 'schema': model.schema}
    props.update(values)
    return props


def _user(current_user: Any, context: Any) -> Any:
    return current_user if current_user is not None else get_current_user(context)


def _not_found(model: Model, operation_name: str, selector: Mapping[str, Any]) -> None:
    throw_error(DOCUMENT_NOT_FOUND, {
        'documentId': selector.get(get_settings().id_field),
        'operationName': f"{model.type_name}:{operation_name}",
    })


async def create_mutator(
    *,
    model: Model,
    data: Mapping[str, Any],
    connector: Any,
    context: Any = None,
    current_user: Any = None,
    validate: bool = True,
    as_admin: bool = False,
) -> Dict[str, Any]:
    settings = get_settings()
    current_user = _user(current_user, context)
    type_name = model.type_name
    original_data = copy.deepcopy(dict(data or {}))
    document = copy.deepcopy(original_data)

    owner_field = settings.owner_field
    if owner_field in model.schema and document.get(owner_field) is None:
        user_id = current_user.get(settings.id_field) if isinstance(current_user, Mapping) else None
        if user_id is not None:
            document[owner_field] = user_id

    for key, meta in model.schema.items():
        if meta.on_create is None:
            continue
        value = await maybe_await(call_with_options(
            meta.on_create,
            document=document,
            data=document,
            original_data=original_data,
            current_user=current_user,
            context=context,
            model=model,
            field_name=key,
        ))
        if value is not None:
            document[key] = value

    properties = _properties(
        model,
        data=document,
        document=document,
        original_data=original_data,
        original_document=original_data,
        current_user=current_user,
        context=context,
    )
    document = await model.callbacks.run(f"{type_name}.create.before", document, properties)
    properties.update(data=document, document=document)

    if validate:
        await validate_mutation_data(
            model=model,
            mutator_name='create',
            document=document,
            original_data=original_data,
            properties=properties,
            current_user=current_user,
            context=context,
        )
    await perform_mutation_check(
        model=model,
        operation_name='create',
        user=current_user,
        document=document,
        context=context,
        as_admin=as_admin,
    )

    _logger.debug("modelql: %s.create inserting", type_name)
    created = await connector.create(document)
    if isinstance(created, Mapping):
        new_document = dict(created)
    else:
        new_document = await connector.find_one_by_id(created) if created is not None else None
        if new_document is None:
            new_document = {**document, settings.id_field: created}

    new_document = await model.callbacks.run(f"{type_name}.create.after", new_document, properties)
    model.callbacks.run_async(f"{type_name}.create.async", {**properties, 'document': new_document})

    if not as_admin:
        new_document = restrict_viewable_fields(current_user, model, new_document, context)
    return {'data': new_document}


async def update_mutator(
    *,
    model: Model,
    connector: Any,
    data_id: Any = None,
    selector: Optional[Mapping[str, Any]] = None,
    input: Optional[Mapping[str, Any]] = None,
    data: Optional[Mapping[str, Any]] = None,
    context: Any = None,
    current_user: Any = None,
    validate: bool = True,
    as_admin: bool = False,
    warn: bool = True,
) -> Dict[str, Any]:
    current_user = _user(current_user, context)
    type_name = model.type_name
    selector = await get_selector(
        model=model, connector=connector, data_id=data_id, selector=selector, input=input, context=context, warn=warn,
    )
    if data is None and input:
        data = input.get('data')
    original_data = copy.deepcopy(dict(data or {}))
    new_data = copy.deepcopy(original_data)

    document = await connector.find_one(selector)
    if document is None:
        _not_found(model, 'update', selector)

    for key, meta in model.schema.items():
        if meta.on_update is None:
            continue
        value = await maybe_await(call_with_options(
            meta.on_update,
            document=document,
            data=new_data,
            original_data=original_data,
            current_user=current_user,
            context=context,
            model=model,
            field_name=key,
        ))
        if value is not None:
            new_data[key] = value

    properties = _properties(
        model,
        data=new_data,
        document=document,
        original_data=original_data,
        original_document=document,
        current_user=current_user,
        context=context,
    )
    new_data = await model.callbacks.run(f"{type_name}.update.before", new_data, properties)
    properties['data'] = new_data

    if validate:
        await validate_mutation_data(
            model=model,
            mutator_name='update',
            document={**document, **new_data},
            original_data=original_data,
            properties=properties,
            current_user=current_user,
            context=context,
            existing_document=document,
        )
    await perform_mutation_check(
        model=model,
        operation_name='update',
        user=current_user,
        document=document,
        context=context,
        as_admin=as_admin,
    )

    _logger.debug("modelql: %s.update %r", type_name, selector)
    modifier = data_to_modifier(new_data)
    updated = await connector.update(selector, modifier)
    if not isinstance(updated, Mapping):
        updated = {**document, **modifier_to_data(modifier)}
        updated = {k: v for k, v in updated.items() if v is not None}
    updated = dict(updated)

    updated = await model.callbacks.run(f"{type_name}.update.after", updated, properties)
    model.callbacks.run_async(f"{type_name}.update.async", {**properties, 'document': updated})

    if not as_admin:
        updated = restrict_viewable_fields(current_user, model, updated, context)
    return {'data': updated}


async def delete_mutator(
    *,
    model: Model,
    connector: Any,
    data_id: Any = None,
    selector: Optional[Mapping[str, Any]] = None,
    input: Optional[Mapping[str, Any]] = None,
    context: Any = None,
    current_user: Any = None,
    validate: bool = True,
    as_admin: bool = False,
) -> Dict[str, Any]:
    """Delete one document and return it as it was before deletion.

    Permissions are checked before ``on_delete`` and ``before`` callbacks run,
    so a rejected delete triggers none of them.
    """
    current_user = _user(current_user, context)
    type_name = model.type_name
    selector = await get_selector(
        model=model, connector=connector, data_id=data_id, selector=selector, input=input, context=context,
    )

    document = await connector.find_one(selector)
    if document is None:
        _not_found(model, 'delete', selector)

    properties = _properties(
        model,
        document=document,
        original_document=document,
        current_user=current_user,
        context=context,
    )
    if validate:
        await validate_mutation_data(
            model=model,
            mutator_name='delete',
            document=document,
            original_data={},
            properties=properties,
            current_user=current_user,
            context=context,
        )

    await perform_mutation_check(
        model=model,
        operation_name='delete',
        user=current_user,
        document=document,
        context=context,
        as_admin=as_admin,
    )

    # return values are ignored on delete
    for key, meta in model.schema.items():
        if meta.on_delete is None:
            continue
        await maybe_await(call_with_options(
            meta.on_delete,
            document=document,
            current_user=current_user,
            context=context,
            model=model,
            field_name=key,
        ))

    document = await model.callbacks.run(f"{type_name}.delete.before", document, properties)

    _logger.debug("modelql: %s.delete %r", type_name, selector)
    await connector.delete(selector)

    document = await model.callbacks.run(f"{type_name}.delete.after", document, properties)
    model.callbacks.run_async(f"{type_name}.delete.async", {**properties, 'document': document})

    if not as_admin:
        document = restrict_viewable_fields(current_user, model, document, context)
    return {'data': document}
