"""Capability flags (``can_read``, ``can_create``, ``can_update``, model permissions).

A capability is one of four shapes:

- :data:`ALWAYS_ALLOWED` (``True``)
- :data:`DENIED` (``False`` / ``None``)
- :class:`RoleSet` (a list of group names, e.g. ``['guests']``)
- :class:`Predicate` (a callable deciding per request)

The same dispatch serves two evaluation moments. At schema-build time
:func:`is_statically_allowed` decides whether a field exists in an input or
output type at all; at request time :func:`evaluate` decides what a given
user may do with a given document.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple

from ..config import get_settings
from .utils import call_with_options

__all__ = [
    'Capability',
    'AlwaysAllowed',
    'Denied',
    'RoleSet',
    'Predicate',
    'ALWAYS_ALLOWED',
    'DENIED',
    'GUESTS',
    'MEMBERS',
    'ADMINS',
    'OWNERS',
    'capability',
    'is_statically_allowed',
    'evaluate',
    'get_groups',
    'is_admin',
    'is_member_of',
    'owns',
]

GUESTS = 'guests'
MEMBERS = 'members'
ADMINS = 'admins'
OWNERS = 'owners'


class Capability:
    """Marker base for the capability variants."""


@dataclass(frozen=True)
class AlwaysAllowed(Capability):
    pass


@dataclass(frozen=True)
class Denied(Capability):
    pass


@dataclass(frozen=True)
class RoleSet(Capability):
    roles: Tuple[str, ...]


@dataclass(frozen=True)
class Predicate(Capability):
    fn: Callable[..., Any]


ALWAYS_ALLOWED = AlwaysAllowed()
DENIED = Denied()


def capability(value: Any) -> Capability:
    """Normalize a user-facing flag into a :class:`Capability`.

    Accepts booleans, ``None``, a group name, an iterable of group names,
    a callable, or an existing capability.
    """
    if isinstance(value, Capability):
        return value
    if value is None or value is False:
        return DENIED
    if value is True:
        return ALWAYS_ALLOWED
    if isinstance(value, str):
        return RoleSet((value,))
    if callable(value):
        return Predicate(value)
    if isinstance(value, Iterable):
        return RoleSet(tuple(str(r) for r in value))
    raise TypeError(f"Unsupported capability: {value!r}")


def is_statically_allowed(cap: Capability) -> bool:
    """Schema-build time eligibility; predicates are deferred to request time."""
    if isinstance(cap, AlwaysAllowed):
        return True
    if isinstance(cap, RoleSet):
        return bool(cap.roles)
    if isinstance(cap, Predicate):
        return True
    return False


# --- users and groups ------------------------------------------------------

def _user_id(user: Optional[Mapping[str, Any]]) -> Any:
    if not user:
        return None
    return user.get(get_settings().id_field)


def is_admin(user: Optional[Mapping[str, Any]]) -> bool:
    if not user:
        return False
    return bool(user.get('isAdmin') or user.get('is_admin'))


def owns(user: Optional[Mapping[str, Any]], document: Optional[Mapping[str, Any]], owner_field: Optional[str] = None) -> bool:
    """A user owns a document when the document's owner field points at them."""
    uid = _user_id(user)
    if uid is None or not document:
        return False
    field_name = owner_field or get_settings().owner_field
    return document.get(field_name) is not None and document.get(field_name) == uid


def get_groups(user: Optional[Mapping[str, Any]], document: Optional[Mapping[str, Any]] = None) -> List[str]:
    """Groups the user belongs to, optionally restricted by ``document``.

    Everybody is a guest; a logged-in user is also a member plus any groups
    listed on the user; admins get ``admins``; document owners get ``owners``.
    """
    groups = [GUESTS]
    if not user:
        return groups
    groups.append(MEMBERS)
    for g in user.get('groups') or ():
        if g not in groups:
            groups.append(g)
    if is_admin(user) and ADMINS not in groups:
        groups.append(ADMINS)
    if document is not None and owns(user, document):
        groups.append(OWNERS)
    return groups


def is_member_of(user: Optional[Mapping[str, Any]], groups: Iterable[str], document: Optional[Mapping[str, Any]] = None) -> bool:
    wanted = set(groups or ())
    if not wanted:
        return False
    return bool(wanted.intersection(get_groups(user, document)))


def evaluate(cap: Capability, *, user: Any = None, document: Any = None, context: Any = None, **options: Any) -> Any:
    """Request-time evaluation of a capability.

    Predicates are called with the keyword options their signature accepts
    (``user``, ``document``, ``context`` and any extra ``options``). The result
    may be awaitable when a predicate is a coroutine function; synchronous
    callers use :func:`modelql.permissions.can_read_field` which requires a
    plain boolean.
    """
    if isinstance(cap, AlwaysAllowed):
        return True
    if isinstance(cap, Denied):
        return False
    if isinstance(cap, RoleSet):
        return is_member_of(user, cap.roles, document)
    if isinstance(cap, Predicate):
        return call_with_options(cap.fn, user=user, document=document, context=context, **options)
    raise TypeError(f"Unsupported capability: {cap!r}")
