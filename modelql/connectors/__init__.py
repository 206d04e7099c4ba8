from .base import Connector, FilterResult
from .memory import MemoryConnector
from .sql import SQLAlchemyConnector, expr_from_selector, table_for_model

__all__ = [
    'Connector',
    'FilterResult',
    'MemoryConnector',
    'SQLAlchemyConnector',
    'expr_from_selector',
    'table_for_model',
]
