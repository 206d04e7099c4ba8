from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, Mapping, Optional

__all__ = [
    'call_with_options',
    'maybe_await',
    'get_current_user',
    'get_context',
]


def _accepted(fn: Callable[..., Any]) -> Optional[set]:
    """Return the keyword names ``fn`` accepts, or None when it takes ``**kwargs``."""
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return None
    names = set()
    for p in sig.parameters.values():
        if p.kind is inspect.Parameter.VAR_KEYWORD:
            return None
        if p.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY):
            names.add(p.name)
    return names


def call_with_options(fn: Callable[..., Any], **options: Any) -> Any:
    """Call ``fn`` passing only the keyword options its signature declares.

    Lets user callbacks pick what they need, e.g. ``lambda: "CREATED"``,
    ``lambda user, document: ...`` or ``def check(**options)``.
    """
    accepted = _accepted(fn)
    if accepted is None:
        return fn(**options)
    return fn(**{k: v for k, v in options.items() if k in accepted})


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def get_context(info_or_ctx: Any) -> Any:
    """Accept either a graphql-core ``GraphQLResolveInfo`` or a plain context."""
    if info_or_ctx is None:
        return None
    if hasattr(info_or_ctx, 'context') and hasattr(info_or_ctx, 'field_name'):
        return info_or_ctx.context
    return info_or_ctx


def get_current_user(info_or_ctx: Any) -> Optional[Dict[str, Any]]:
    """Extract the acting user from a context mapping or object.

    Tries ``current_user``, ``currentUser`` and ``user`` in order.
    """
    ctx = get_context(info_or_ctx)
    if ctx is None:
        return None
    candidates = ('current_user', 'currentUser', 'user')
    if isinstance(ctx, Mapping):
        for k in candidates:
            if ctx.get(k) is not None:
                return ctx[k]
        return None
    for k in candidates:
        v = getattr(ctx, k, None)
        if v is not None:
            return v
    return None
