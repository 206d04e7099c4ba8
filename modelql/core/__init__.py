from .capability import ADMINS, ALWAYS_ALLOWED, DENIED, GUESTS, MEMBERS, OWNERS, Capability, capability
from .callbacks import CallbackRegistry, run_callbacks
from .errors import MutationError, ModelQLError, SchemaError, throw_error
from .fields import ArrayType, FieldMeta, Model, Permissions, ResolveAs, array, create_model, field, resolve_as

__all__ = [
    'ADMINS',
    'ALWAYS_ALLOWED',
    'DENIED',
    'GUESTS',
    'MEMBERS',
    'OWNERS',
    'Capability',
    'capability',
    'CallbackRegistry',
    'run_callbacks',
    'MutationError',
    'ModelQLError',
    'SchemaError',
    'throw_error',
    'ArrayType',
    'FieldMeta',
    'Model',
    'Permissions',
    'ResolveAs',
    'array',
    'create_model',
    'field',
    'resolve_as',
]
