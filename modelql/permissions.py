from __future__ import annotations

import inspect
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from .config import get_settings
from .core.capability import Capability, evaluate
from .core.errors import (
    DOCUMENT_NOT_FOUND,
    NO_PERMISSIONS_DEFINED,
    OPERATION_NOT_ALLOWED,
    throw_error,
)
from .core.fields import FieldMeta, Model
from .core.utils import maybe_await

_logger = logging.getLogger("modelql")

__all__ = [
    'OPERATION_NAMES',
    'perform_mutation_check',
    'can_read_field',
    'can_create_field',
    'can_update_field',
    'restrict_viewable_fields',
]

OPERATION_NAMES = ('create', 'update', 'delete')


async def perform_mutation_check(
    *,
    model: Model,
    operation_name: str,
    user: Optional[Mapping[str, Any]] = None,
    document: Optional[Mapping[str, Any]] = None,
    context: Any = None,
    as_admin: bool = False,
) -> None:
    """Raise unless ``user`` may run ``operation_name`` on ``document``.

    Order of checks:
      1. the model declares no rule for the operation -> ``app.no_permissions_defined``
      2. no document -> ``app.document_not_found``
      3. unless ``as_admin``, the rule evaluates false -> ``app.operation_not_allowed``

    Predicate rules receive the whole options bag (``model``, ``operation_name``,
    ``user``, ``document``, ``context``, ``as_admin``) filtered by their signature
    and may be coroutines. Role-set rules check membership of the user in the
    groups, ``owners`` being resolved against ``document``.
    """
    if operation_name not in OPERATION_NAMES:
        raise ValueError(f"Unknown operation: {operation_name}")
    rule: Optional[Capability] = model.permissions.for_operation(operation_name)
    document_id = document.get(get_settings().id_field) if isinstance(document, Mapping) else None
    data = {'documentId': document_id, 'operationName': f"{model.type_name}:{operation_name}"}

    if rule is None:
        throw_error(NO_PERMISSIONS_DEFINED, data)
    if document is None:
        throw_error(DOCUMENT_NOT_FOUND, data)
    if as_admin:
        _logger.debug("modelql: %s bypassed as admin", data['operationName'])
        return

    allowed = await maybe_await(evaluate(
        rule,
        user=user,
        document=document,
        context=context,
        model=model,
        operation_name=operation_name,
        as_admin=as_admin,
    ))
    if not allowed:
        throw_error(OPERATION_NOT_ALLOWED, data)


def _check_sync(cap: Capability, user: Any, document: Any, context: Any, field: FieldMeta) -> bool:
    result = evaluate(cap, user=user, document=document, context=context, field_name=field.name)
    if inspect.isawaitable(result):
        # coroutine predicates are only supported for document-level rules
        close = getattr(result, 'close', None)
        if callable(close):
            close()
        raise TypeError(f"Field capability predicates must be synchronous ({field.name})")
    return bool(result)


def can_read_field(user: Any, field: FieldMeta, document: Any = None, context: Any = None) -> bool:
    return _check_sync(field.can_read, user, document, context, field)


def can_create_field(user: Any, field: FieldMeta, document: Any = None, context: Any = None) -> bool:
    if field.is_computed:
        return False
    return _check_sync(field.can_create, user, document, context, field)


def can_update_field(user: Any, field: FieldMeta, document: Any = None, context: Any = None) -> bool:
    if field.is_computed:
        return False
    return _check_sync(field.can_update, user, document, context, field)


def _restrict(user: Any, schema: Mapping[str, FieldMeta], document: Mapping[str, Any], root: Mapping[str, Any], context: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in document.items():
        meta = schema.get(key)
        if meta is None:
            continue
        # read rules are evaluated against the top-level document
        if not can_read_field(user, meta, root, context):
            continue
        nested = meta.nested_schema
        if nested is not None and value is not None:
            if meta.is_array and isinstance(value, list):
                value = [_restrict(user, nested, v, root, context) if isinstance(v, Mapping) else v for v in value]
            elif isinstance(value, Mapping):
                value = _restrict(user, nested, value, root, context)
        out[key] = value
    return out


def restrict_viewable_fields(
    user: Any,
    model: Model,
    document: Union[Mapping[str, Any], List[Mapping[str, Any]], None],
    context: Any = None,
) -> Any:
    """Keep only the fields ``user`` may read, evaluated against the document itself.

    Accepts a single document or a list of documents; ``None`` passes through.
    Unknown keys (not declared in the schema) are dropped.
    """
    if document is None:
        return None
    if isinstance(document, list):
        return [restrict_viewable_fields(user, model, d, context) for d in document]
    return _restrict(user, model.schema, document, document, context)
