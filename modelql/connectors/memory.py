from __future__ import annotations

import copy
import logging
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..config import get_settings
from ..core.fields import Model
from ..core.filters import get_path, matches
from .base import Connector

_logger = logging.getLogger("modelql")

__all__ = ['MemoryConnector']


class _SortKey:
    """Orders missing/None values first and never compares across types."""

    __slots__ = ('value',)

    def __init__(self, value: Any):
        self.value = value

    def __lt__(self, other: '_SortKey') -> bool:
        a, b = self.value, other.value
        if a is None:
            return b is not None
        if b is None:
            return False
        try:
            return a < b
        except TypeError:
            return str(a) < str(b)


class MemoryConnector(Connector):
    """Dict-backed connector for tests and prototypes.

    Documents are deep-copied on the way in and out, so callers never share
    state with the store.
    """

    def __init__(self, model: Model, documents: Optional[Iterable[Mapping[str, Any]]] = None):
        super().__init__(model)
        self._documents: List[Dict[str, Any]] = []
        for doc in documents or ():
            self._documents.append(self._with_id(doc))

    @property
    def documents(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._documents)

    def _with_id(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        id_field = get_settings().id_field
        doc = {k: v for k, v in copy.deepcopy(dict(data)).items() if v is not None}
        if doc.get(id_field) is None:
            doc[id_field] = uuid.uuid4().hex
        return doc

    def _first(self, selector: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        for doc in self._documents:
            if matches(doc, selector):
                return doc
        return None

    async def create(self, data: Mapping[str, Any]) -> Any:
        doc = self._with_id(data)
        self._documents.append(doc)
        return doc[get_settings().id_field]

    async def find_one(self, selector: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        doc = self._first(selector)
        return copy.deepcopy(doc) if doc is not None else None

    async def find_one_by_id(self, id: Any) -> Optional[Dict[str, Any]]:
        return await self.find_one({get_settings().id_field: id})

    async def find(self, selector: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        options = options or {}
        docs = [d for d in self._documents if matches(d, selector)]
        # stable sorts applied last key first
        for path, direction in reversed(list(options.get('sort') or ())):
            docs.sort(key=lambda d, p=path: _SortKey(get_path(d, p, None)), reverse=direction == 'desc')
        offset = options.get('offset') or 0
        limit = options.get('limit')
        docs = docs[offset:] if limit is None else docs[offset:offset + limit]
        return copy.deepcopy(docs)

    async def count(self, selector: Mapping[str, Any]) -> int:
        return sum(1 for d in self._documents if matches(d, selector))

    async def update(self, selector: Mapping[str, Any], modifier: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        doc = self._first(selector)
        if doc is None:
            return None
        for key, value in (modifier.get('$set') or {}).items():
            doc[key] = copy.deepcopy(value)
        for key in modifier.get('$unset') or {}:
            doc.pop(key, None)
        _logger.debug("modelql: memory update %r", selector)
        return copy.deepcopy(doc)

    async def delete(self, selector: Mapping[str, Any]) -> bool:
        doc = self._first(selector)
        if doc is None:
            return False
        self._documents = [d for d in self._documents if d is not doc]
        return True
