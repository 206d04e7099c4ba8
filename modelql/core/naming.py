from __future__ import annotations

import re

__all__ = [
    'camel_case',
    'pascal_case',
    'pluralize',
    'nested_type_name',
]


def camel_case(name: str) -> str:
    """Lower the first character and drop separators: ``SingleFoo`` -> ``singleFoo``.

    Used for generated query names (``camel_case(type_name)``).
    Idempotent for already camelCase input.
    """
    if not name:
        return name
    parts = [p for p in re.split(r'[-_\s]+', str(name)) if p]
    if not parts:
        return ''
    head = parts[0][0].lower() + parts[0][1:]
    return head + ''.join(p[0].upper() + p[1:] for p in parts[1:])


def pascal_case(name: str) -> str:
    """Convert ``post_comments`` / ``postComments`` to ``PostComments``."""
    if not name:
        return name
    parts = [p for p in re.split(r'[-_.\s]+', str(name)) if p]
    return ''.join(p[0].upper() + p[1:] for p in parts)


def pluralize(name: str) -> str:
    if not name:
        return name
    if name.endswith('y') and len(name) > 1 and name[-2].lower() not in 'aeiou':
        return name[:-1] + 'ies'
    if name.endswith(('s', 'x', 'z', 'ch', 'sh')):
        return name + 'es'
    return name + 's'


def nested_type_name(parent_type_name: str, field_name: str) -> str:
    """Deterministic GraphQL type name for a nested sub-schema."""
    return f"{parent_type_name}{pascal_case(field_name)}"
