"""Async SQLAlchemy connector.

Stores one model per table: scalar fields map to typed columns, nested
objects, arrays and ``JSON`` fields to JSON columns. Selectors are
translated into SQLAlchemy expressions; dotted paths read into JSON
columns.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    and_,
    delete,
    func,
    insert,
    not_,
    or_,
    select,
    true,
    update,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import get_settings
from ..core.fields import FieldMeta, Model
from .base import Connector

_logger = logging.getLogger("modelql")

__all__ = ['SQLAlchemyConnector', 'table_for_model', 'OPERATOR_REGISTRY', 'expr_from_selector']

_COLUMN_TYPES: Dict[str, Callable[[], Any]] = {
    'String': lambda: String(),
    'Int': Integer,
    'Float': Float,
    'Boolean': Boolean,
    'Date': lambda: DateTime(timezone=True),
    'JSON': JSON,
}

# Selector operator -> SQLAlchemy expression builder(column, operand)
OPERATOR_REGISTRY: Dict[str, Callable[[Any, Any], Any]] = {
    '$eq': lambda col, v: col.is_(None) if v is None else col == v,
    '$ne': lambda col, v: col.is_not(None) if v is None else or_(col != v, col.is_(None)),
    '$gt': lambda col, v: col > v,
    '$gte': lambda col, v: col >= v,
    '$lt': lambda col, v: col < v,
    '$lte': lambda col, v: col <= v,
    '$in': lambda col, v: col.in_(v if isinstance(v, (list, tuple, set)) else [v]),
    '$nin': lambda col, v: or_(~col.in_(v if isinstance(v, (list, tuple, set)) else [v]), col.is_(None)),
    '$like': lambda col, v: col.like(v),
    '$exists': lambda col, v: col.is_not(None) if v else col.is_(None),
}


def _column_type(meta: FieldMeta) -> Any:
    if meta.is_array or meta.is_nested:
        return JSON()
    factory = _COLUMN_TYPES.get(meta.scalar_type or 'JSON', JSON)
    return factory()


def table_for_model(model: Model, metadata: MetaData, table_name: Optional[str] = None) -> Table:
    """Declare a table for ``model``: one column per stored field, string primary key."""
    id_field = get_settings().id_field
    columns: List[Column] = []
    if id_field not in model.schema:
        columns.append(Column(id_field, String(64), primary_key=True))
    for key, meta in model.schema.items():
        if meta.is_computed:
            continue
        if key == id_field:
            columns.append(Column(key, String(64), primary_key=True))
            continue
        columns.append(Column(key, _column_type(meta), nullable=True, unique=meta.unique or None))
    return Table(table_name or model.multi_type_name.lower(), metadata, *columns)


def _coerce(meta: Optional[FieldMeta], value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_coerce(meta, v) for v in value]
    if meta is not None and meta.scalar_type == 'Date' and isinstance(value, str):
        s = value.replace('Z', '+00:00') if value.endswith('Z') else value
        try:
            return datetime.fromisoformat(s)
        except ValueError:
            return value
    return value


def _meta_at(schema: Mapping[str, FieldMeta], parts: List[str]) -> Optional[FieldMeta]:
    meta = None
    current: Optional[Mapping[str, FieldMeta]] = schema
    for part in parts:
        if current is None:
            return None
        meta = current.get(part)
        if meta is None:
            return None
        current = meta.nested_schema
    return meta


def _json_element(col: Any, path: List[str], meta: Optional[FieldMeta]) -> Any:
    element = col[tuple(path)]
    tag = meta.scalar_type if meta is not None else None
    if tag == 'Int':
        return element.as_integer()
    if tag == 'Float':
        return element.as_float()
    if tag == 'Boolean':
        return element.as_boolean()
    return element.as_string()


def expr_from_selector(table: Table, selector: Optional[Mapping[str, Any]], schema: Mapping[str, FieldMeta]) -> Any:
    """Build a SQLAlchemy conjunction from a Mongo-like selector."""
    exprs: List[Any] = []
    for key, cond in (selector or {}).items():
        if key in ('$and', '$or'):
            parts = [expr_from_selector(table, sub, schema) for sub in cond]
            exprs.append(and_(*parts) if key == '$and' else or_(*parts))
            continue
        if key == '$not':
            exprs.append(not_(expr_from_selector(table, cond, schema)))
            continue
        root, *rest = key.split('.')
        col = table.c.get(root)
        if col is None:
            raise ValueError(f"Unknown selector field: {key}")
        meta = _meta_at(schema, key.split('.'))
        target = _json_element(col, rest, meta) if rest else col
        if isinstance(cond, Mapping) and cond and all(str(k).startswith('$') for k in cond):
            for op_name, operand in cond.items():
                op_fn = OPERATOR_REGISTRY.get(op_name)
                if op_fn is None:
                    raise ValueError(f"Unknown selector operator: {op_name}")
                operand = operand if op_name == '$exists' else _coerce(meta, operand)
                exprs.append(op_fn(target, operand))
        else:
            exprs.append(OPERATOR_REGISTRY['$eq'](target, _coerce(meta, cond)))
    if not exprs:
        return true()
    return and_(*exprs)


class SQLAlchemyConnector(Connector):
    """Connector over a :class:`~sqlalchemy.Table` using an ``async_sessionmaker``.

    Each call runs in its own session and transaction. ``None`` columns are
    left out of returned documents so unset fields read as absent.
    """

    def __init__(
        self,
        table: Table,
        session_factory: 'async_sessionmaker[AsyncSession]',
        model: Model,
    ):
        super().__init__(model)
        self.table = table
        self.session_factory = session_factory

    @property
    def _schema(self) -> Mapping[str, FieldMeta]:
        return self.model.schema

    @property
    def _pk(self) -> Any:
        return self.table.c[get_settings().id_field]

    def _where(self, selector: Optional[Mapping[str, Any]]) -> Any:
        return expr_from_selector(self.table, selector, self._schema)

    def _row_to_document(self, row: Any) -> Dict[str, Any]:
        return {k: v for k, v in row._mapping.items() if v is not None}

    def _values(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        out = {}
        for key, value in data.items():
            if key not in self.table.c:
                _logger.debug("modelql: %s has no column %s, value dropped", self.table.name, key)
                continue
            out[key] = _coerce(self._schema.get(key), value)
        return out

    async def create(self, data: Mapping[str, Any]) -> Any:
        values = self._values(data)
        id_field = get_settings().id_field
        if values.get(id_field) is None:
            values[id_field] = uuid.uuid4().hex
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(insert(self.table).values(**values))
        return values[id_field]

    async def find_one(self, selector: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        async with self.session_factory() as session:
            result = await session.execute(select(self.table).where(self._where(selector)).limit(1))
            row = result.first()
        return self._row_to_document(row) if row is not None else None

    async def find_one_by_id(self, id: Any) -> Optional[Dict[str, Any]]:
        return await self.find_one({get_settings().id_field: id})

    async def find(self, selector: Mapping[str, Any], options: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        options = options or {}
        stmt = select(self.table).where(self._where(selector))
        for path, direction in options.get('sort') or ():
            root, *rest = path.split('.')
            col = self.table.c.get(root)
            if col is None:
                raise ValueError(f"Unknown sort field: {path}")
            expr = _json_element(col, rest, _meta_at(self._schema, path.split('.'))) if rest else col
            stmt = stmt.order_by(expr.desc() if direction == 'desc' else expr.asc())
        if options.get('offset'):
            stmt = stmt.offset(options['offset'])
        if options.get('limit') is not None:
            stmt = stmt.limit(options['limit'])
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()
        return [self._row_to_document(r) for r in rows]

    async def count(self, selector: Mapping[str, Any]) -> int:
        stmt = select(func.count()).select_from(self.table).where(self._where(selector))
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def _first_id(self, session: AsyncSession, selector: Mapping[str, Any]) -> Any:
        result = await session.execute(select(self._pk).where(self._where(selector)).limit(1))
        return result.scalar_one_or_none()

    async def update(self, selector: Mapping[str, Any], modifier: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        values = self._values(modifier.get('$set') or {})
        for key in modifier.get('$unset') or {}:
            if key in self.table.c:
                values[key] = None
        async with self.session_factory() as session:
            async with session.begin():
                pk_value = await self._first_id(session, selector)
                if pk_value is None:
                    return None
                if values:
                    await session.execute(update(self.table).where(self._pk == pk_value).values(**values))
        return await self.find_one_by_id(pk_value)

    async def delete(self, selector: Mapping[str, Any]) -> bool:
        async with self.session_factory() as session:
            async with session.begin():
                pk_value = await self._first_id(session, selector)
                if pk_value is None:
                    return False
                await session.execute(delete(self.table).where(self._pk == pk_value))
        return True
