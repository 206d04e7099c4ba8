from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from .config import get_settings
from .core.fields import Model
from .core.utils import get_context, get_current_user
from .permissions import restrict_viewable_fields

_logger = logging.getLogger("modelql")

__all__ = ['has_one', 'has_many', 'RELATIONS', 'relation_resolver']


async def has_one(
    *,
    document: Mapping[str, Any],
    field_name: str,
    related_model: Model,
    connector: Any,
    context: Any = None,
    current_user: Any = None,
) -> Optional[Dict[str, Any]]:
    """Follow ``document[field_name]`` as a foreign key to one related document."""
    document_id = document.get(field_name)
    if not document_id:
        return None
    related = await connector.find_one_by_id(document_id)
    return restrict_viewable_fields(current_user, related_model, related, context)


async def has_many(
    *,
    document: Mapping[str, Any],
    field_name: str,
    related_model: Model,
    connector: Any,
    context: Any = None,
    current_user: Any = None,
) -> Optional[List[Dict[str, Any]]]:
    """Follow a list of foreign keys in ``document[field_name]``.

    Related documents are returned in the order of the stored ids; ids with
    no match are skipped.
    """
    ids = document.get(field_name)
    if not ids:
        return None
    if not isinstance(ids, (list, tuple)):
        ids = [ids]
    id_field = get_settings().id_field
    found = await connector.find({id_field: {'$in': list(ids)}}, {})
    by_id = {d.get(id_field): d for d in found}
    related = [by_id[i] for i in ids if i in by_id]
    return restrict_viewable_fields(current_user, related_model, related, context)


RELATIONS: Dict[str, Callable[..., Any]] = {
    'hasOne': has_one,
    'hasMany': has_many,
}


def relation_resolver(kind: str, source_field: str, related_model: Model, connector: Any) -> Callable[..., Any]:
    """Build a graphql-core field resolver for a ``hasOne``/``hasMany`` relation."""
    try:
        fn = RELATIONS[kind]
    except KeyError:
        raise ValueError(f"Unknown relation kind: {kind!r} (expected one of {sorted(RELATIONS)})") from None

    async def resolve(root: Any, info: Any, **_args: Any) -> Any:
        if not isinstance(root, Mapping):
            return None
        return await fn(
            document=root,
            field_name=source_field,
            related_model=related_model,
            connector=connector,
            context=get_context(info),
            current_user=get_current_user(info),
        )

    resolve.__name__ = f"resolve_{kind}_{source_field}"
    return resolve
