from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .utils import maybe_await

_logger = logging.getLogger("modelql")

__all__ = ['CallbackRegistry', 'run_callbacks', 'run_callbacks_async']

# Strong references to scheduled background callbacks until they finish.
_BACKGROUND_TASKS: Set['asyncio.Task[Any]'] = set()


def _collect(callbacks: Any) -> List[Callable[..., Any]]:
    if callbacks is None:
        return []
    if callable(callbacks):
        return [callbacks]
    return [cb for cb in callbacks if callable(cb)]


async def run_callbacks(hook_name: str, callbacks: Any, iterator: Any, args: Sequence[Any] = ()) -> Any:
    """Run ``callbacks`` in order, threading ``iterator`` through them.

    Each callback is called as ``cb(iterator, *args)`` and may be sync or
    async. A non-``None`` return value replaces the iterator for the next
    callback; ``None`` keeps it unchanged. Returns the final iterator.

    For ``validate`` hooks the iterator is the list of validation errors.
    """
    current = iterator
    for cb in _collect(callbacks):
        _logger.debug("modelql: running %s callback %s", hook_name, getattr(cb, '__name__', cb))
        result = await maybe_await(cb(current, *args))
        if result is not None:
            current = result
    return current


def _log_task_failure(hook_name: str):
    def _done(task: 'asyncio.Task[Any]') -> None:
        _BACKGROUND_TASKS.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("modelql: async callback for %s failed", hook_name, exc_info=exc)
    return _done


def run_callbacks_async(hook_name: str, callbacks: Any, args: Sequence[Any] = ()) -> List['asyncio.Task[Any]']:
    """Schedule callbacks as background tasks on the running loop.

    Used for fire-and-forget side effects after a mutation has completed.
    Failures are logged and never reach the caller.
    """
    tasks = []
    for cb in _collect(callbacks):
        async def _run(cb=cb):
            return await maybe_await(cb(*args))
        task = asyncio.ensure_future(_run())
        _BACKGROUND_TASKS.add(task)
        task.add_done_callback(_log_task_failure(hook_name))
        tasks.append(task)
    return tasks


class CallbackRegistry:
    """Ordered, additive registry of callbacks keyed by hook name.

    Hook names follow ``"<TypeName>.<mutator>.<hook>"``, e.g.
    ``"Foo.create.validate"``, ``"Foo.update.before"``, ``"Foo.delete.after"``
    or ``"Foo.create.async"``.
    """

    def __init__(self, callbacks: Optional[Mapping[str, Iterable[Callable[..., Any]]]] = None):
        self._hooks: Dict[str, List[Callable[..., Any]]] = {}
        for name, fns in (callbacks or {}).items():
            self.add(name, *_collect(fns))

    def add(self, hook_name: str, *callbacks: Callable[..., Any]) -> None:
        bucket = self._hooks.setdefault(hook_name, [])
        for cb in callbacks:
            if not callable(cb):
                raise TypeError(f"Callback for {hook_name} must be callable, got {cb!r}")
            if cb not in bucket:
                bucket.append(cb)

    def get(self, hook_name: str) -> Tuple[Callable[..., Any], ...]:
        return tuple(self._hooks.get(hook_name, ()))

    def hook_names(self) -> List[str]:
        return list(self._hooks.keys())

    def __contains__(self, hook_name: object) -> bool:
        return bool(self._hooks.get(hook_name))  # type: ignore[arg-type]

    async def run(self, hook_name: str, iterator: Any, *args: Any) -> Any:
        return await run_callbacks(hook_name, self.get(hook_name), iterator, args)

    def run_async(self, hook_name: str, *args: Any) -> List['asyncio.Task[Any]']:
        return run_callbacks_async(hook_name, self.get(hook_name), args)
