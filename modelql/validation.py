from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from .core.errors import VALIDATION_ERROR, throw_error
from .core.fields import FieldMeta, Model
from .permissions import can_create_field, can_update_field

_logger = logging.getLogger("modelql")

__all__ = ['validate_data', 'validate_mutation_data', 'check_type']

ValidationErrorEntry = Dict[str, Any]


def _error(error_id: str, path: str, **properties: Any) -> ValidationErrorEntry:
    props = {'name': path}
    props.update(properties)
    return {'id': error_id, 'path': path, 'properties': props}


def check_type(tag: Optional[str], value: Any) -> bool:
    """Does ``value`` match the semantic scalar ``tag``? (``None`` handled by callers)."""
    if tag is None or tag == 'JSON':
        return True
    if tag == 'String':
        return isinstance(value, str)
    if tag == 'Boolean':
        return isinstance(value, bool)
    if tag == 'Int':
        return isinstance(value, int) and not isinstance(value, bool)
    if tag == 'Float':
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if tag == 'Date':
        if isinstance(value, (datetime, date)):
            return True
        if isinstance(value, str):
            try:
                datetime.fromisoformat(value.replace('Z', '+00:00') if value.endswith('Z') else value)
                return True
            except ValueError:
                return False
        return False
    return True


def _check_bounds(meta: FieldMeta, path: str, value: Any, errors: List[ValidationErrorEntry]) -> None:
    if meta.allowed_values is not None and value not in meta.allowed_values:
        errors.append(_error('errors.allowed_values', path, value=value, allowed=list(meta.allowed_values)))
    measured: Any = None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        measured = value
    elif isinstance(value, (str, list)):
        measured = len(value)
    if measured is not None:
        if meta.min is not None and measured < meta.min:
            errors.append(_error('errors.min', path, min=meta.min, value=value))
        if meta.max is not None and measured > meta.max:
            errors.append(_error('errors.max', path, max=meta.max, value=value))
    if meta.regex is not None and isinstance(value, str) and not re.search(meta.regex, value):
        errors.append(_error('errors.regex', path, regex=meta.regex))


def _validate_value(meta: FieldMeta, path: str, value: Any, errors: List[ValidationErrorEntry], check_required: bool) -> None:
    if value is None:
        return
    nested = meta.nested_schema
    if meta.is_array:
        if not isinstance(value, list):
            errors.append(_error('errors.expected_type', path, dataType='Array'))
            return
        _check_bounds(meta, path, value, errors)
        for i, item in enumerate(value):
            item_path = f"{path}.{i}"
            if nested is not None:
                if not isinstance(item, Mapping):
                    errors.append(_error('errors.expected_type', item_path, dataType='Object'))
                    continue
                _validate_schema(nested, item, item_path, errors, check_required)
            elif item is not None and not check_type(meta.scalar_type, item):
                errors.append(_error('errors.expected_type', item_path, dataType=meta.scalar_type))
        return
    if nested is not None:
        if not isinstance(value, Mapping):
            errors.append(_error('errors.expected_type', path, dataType='Object'))
            return
        _validate_schema(nested, value, path, errors, check_required)
        return
    if not check_type(meta.scalar_type, value):
        errors.append(_error('errors.expected_type', path, dataType=meta.scalar_type))
        return
    _check_bounds(meta, path, value, errors)


def _validate_schema(schema: Mapping[str, FieldMeta], document: Mapping[str, Any], prefix: str, errors: List[ValidationErrorEntry], check_required: bool) -> None:
    for key, meta in schema.items():
        if meta.is_computed:
            continue
        path = f"{prefix}.{key}" if prefix else key
        value = document.get(key)
        if value is None:
            if check_required and not meta.optional:
                errors.append(_error('errors.required', path))
            continue
        _validate_value(meta, path, value, errors, check_required)


def validate_data(
    *,
    model: Model,
    document: Mapping[str, Any],
    original_data: Mapping[str, Any],
    mutator_name: str,
    current_user: Any = None,
    context: Any = None,
    existing_document: Optional[Mapping[str, Any]] = None,
) -> List[ValidationErrorEntry]:
    """Structural validation; returns every error found.

    Field-level permissions are checked on ``original_data`` only (the keys
    the caller sent); values computed by ``on_create``/``on_update`` callbacks
    are trusted. Types, bounds and required-ness are checked on ``document``,
    the candidate document on create or the merged document on update.
    On update, field permissions are evaluated against ``existing_document``,
    the stored document before the change.
    """
    errors: List[ValidationErrorEntry] = []
    if mutator_name == 'delete':
        return errors
    if mutator_name == 'create':
        allowed, subject = can_create_field, document
    else:
        allowed = can_update_field
        subject = existing_document if existing_document is not None else document
    for key in original_data.keys():
        meta = model.schema.get(key)
        if meta is None or not allowed(current_user, meta, subject, context):
            errors.append(_error('errors.disallowed_property_detected', key))

    if mutator_name == 'create':
        _validate_schema(model.schema, document, '', errors, check_required=True)
    else:
        # on update, required fields may not be unset and sent values must type-check
        for key, meta in model.schema.items():
            if key in original_data and original_data[key] is None and not meta.optional and not meta.is_computed:
                errors.append(_error('errors.required', key))
        for key, value in document.items():
            meta = model.schema.get(key)
            if meta is None or meta.is_computed:
                continue
            _validate_value(meta, key, value, errors, check_required=key in original_data)
    return errors


async def validate_mutation_data(
    *,
    model: Model,
    mutator_name: str,
    document: Mapping[str, Any],
    original_data: Mapping[str, Any],
    properties: Mapping[str, Any],
    current_user: Any = None,
    context: Any = None,
    existing_document: Optional[Mapping[str, Any]] = None,
) -> None:
    """Run structural then custom validation; raise one aggregated ``app.validation_error``.

    Custom validators are registered under ``"<TypeName>.<mutator>.validate"``
    and called as ``fn(errors, properties)``; they return the (extended) error
    list.
    """
    errors = validate_data(
        model=model,
        document=document,
        original_data=original_data,
        mutator_name=mutator_name,
        current_user=current_user,
        context=context,
        existing_document=existing_document,
    )
    hook_name = f"{model.type_name}.{mutator_name}.validate"
    custom = await model.callbacks.run(hook_name, [], properties)
    validation_errors = list(errors) + list(custom or [])
    if validation_errors:
        _logger.debug("modelql: %s rejected with %d validation errors", hook_name, len(validation_errors))
        throw_error(VALIDATION_ERROR, {'break': True, 'errors': validation_errors})
