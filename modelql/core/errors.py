from __future__ import annotations

import json
import logging
from typing import Any, Dict, NoReturn, Optional

_logger = logging.getLogger("modelql")

__all__ = [
    'ModelQLError',
    'SchemaError',
    'MutationError',
    'throw_error',
    'VALIDATION_ERROR',
    'NO_PERMISSIONS_DEFINED',
    'DOCUMENT_NOT_FOUND',
    'OPERATION_NOT_ALLOWED',
    'EMPTY_SELECTOR',
    'MISSING_DOCUMENT',
]

VALIDATION_ERROR = 'app.validation_error'
NO_PERMISSIONS_DEFINED = 'app.no_permissions_defined'
DOCUMENT_NOT_FOUND = 'app.document_not_found'
OPERATION_NOT_ALLOWED = 'app.operation_not_allowed'
EMPTY_SELECTOR = 'app.empty_selector'
MISSING_DOCUMENT = 'app.missing_document'


class ModelQLError(Exception):
    """Base class for all errors raised by modelql."""


class SchemaError(ModelQLError):
    """Raised while compiling a model into GraphQL (fatal for the schema build)."""


class MutationError(ModelQLError):
    """Structured request-time error.

    Attributes:
        id: Stable error code, e.g. ``app.operation_not_allowed``.
        data: Diagnostic payload (operation name, document id, validation errors).

    ``str(err)`` renders the JSON list ``[{"id": ..., "data": ...}]`` and
    ``extensions`` exposes the same payload so graphql-core copies it into
    the error response.
    """

    def __init__(self, id: str, data: Optional[Dict[str, Any]] = None):
        self.id = id
        self.data = {k: v for k, v in (data or {}).items() if v is not None}
        super().__init__(json.dumps([self.payload], default=str))

    @property
    def payload(self) -> Dict[str, Any]:
        return {'id': self.id, 'data': self.data}

    @property
    def extensions(self) -> Dict[str, Any]:
        return self.payload


def throw_error(id: str, data: Optional[Dict[str, Any]] = None) -> NoReturn:
    """Log and raise a :class:`MutationError`."""
    err = MutationError(id, data)
    _logger.error("modelql: %s", err)
    raise err
