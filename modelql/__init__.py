"""modelql public API and lazy exports.

Models are declared once, per field, with read/write capabilities; modelql
derives the GraphQL SDL, the resolver maps and a permission-aware
create/update/delete pipeline from the same metadata.

Submodules are imported on first attribute access so that foundational
modules (``modelql.config``, ``modelql.core``) stay cheap to import.
"""
from __future__ import annotations

import importlib as _importlib

_EXPORTS = {
    # declaration
    'field': 'core.fields',
    'array': 'core.fields',
    'resolve_as': 'core.fields',
    'create_model': 'core.fields',
    'Model': 'core.fields',
    'FieldMeta': 'core.fields',
    'Permissions': 'core.fields',
    'capability': 'core.capability',
    'CallbackRegistry': 'core.callbacks',
    # errors
    'ModelQLError': 'core.errors',
    'SchemaError': 'core.errors',
    'MutationError': 'core.errors',
    # compile
    'ModelSchema': 'registry',
    'hook': 'registry',
    'model_to_graphql': 'compiler',
    'DISABLED': 'compiler',
    'Operation': 'compiler',
    'default_query_resolvers': 'resolvers',
    'default_mutation_resolvers': 'resolvers',
    # runtime
    'create_mutator': 'mutators',
    'update_mutator': 'mutators',
    'delete_mutator': 'mutators',
    'perform_mutation_check': 'permissions',
    'restrict_viewable_fields': 'permissions',
    'validate_mutation_data': 'validation',
    'Connector': 'connectors',
    'MemoryConnector': 'connectors',
    'SQLAlchemyConnector': 'connectors',
    'table_for_model': 'connectors',
    # settings
    'Settings': 'config',
    'get_settings': 'config',
    'configure': 'config',
}


def __getattr__(name: str):  # PEP 562 lazy exports
    module = _EXPORTS.get(name)
    if module is None:
        raise AttributeError(name)
    return getattr(_importlib.import_module(f"{__name__}.{module}"), name)


__all__ = list(_EXPORTS)
