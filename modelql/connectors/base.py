from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from ..core.fields import Model
from ..core.filters import filter_to_selector, sort_to_options

__all__ = ['Connector', 'FilterResult']

# {"selector": {...}, "options": {"sort": [(path, "asc"|"desc")], "limit": n, "offset": n}}
FilterResult = Dict[str, Dict[str, Any]]


class Connector(ABC):
    """Storage abstraction called by the mutators and the default resolvers.

    Selectors use a Mongo-like dialect: ``{"field": value}``,
    ``{"field": {"$gt": v}}``, ``{"$and": [...]}``, ``{"$or": [...]}``,
    ``{"$not": {...}}``; dotted keys address nested fields. Updates receive a
    ``{"$set": {...}, "$unset": {...}}`` modifier.
    """

    def __init__(self, model: Model):
        self.model = model

    @abstractmethod
    async def create(self, data: Mapping[str, Any]) -> Any:
        """Insert ``data``; return the new id or the stored document."""

    @abstractmethod
    async def find_one(self, selector: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def find_one_by_id(self, id: Any) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def find(self, selector: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def count(self, selector: Mapping[str, Any]) -> int:
        ...

    @abstractmethod
    async def update(self, selector: Mapping[str, Any], modifier: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply ``modifier`` to the first matching document and return it."""

    @abstractmethod
    async def delete(self, selector: Mapping[str, Any]) -> bool:
        ...

    def filter(self, input: Optional[Mapping[str, Any]], context: Any = None) -> FilterResult:
        """Translate a single/multi query ``input`` into a selector and find options."""
        input = input or {}
        schema = self.model.schema
        options: Dict[str, Any] = {}
        sort = sort_to_options(input.get('sort'))
        if sort:
            options['sort'] = sort
        if input.get('limit') is not None:
            options['limit'] = input['limit']
        if input.get('offset') is not None:
            options['offset'] = input['offset']
        return {'selector': filter_to_selector(input.get('filter'), schema), 'options': options}
