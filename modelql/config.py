"""Process-wide settings.

Settings are read once from ``MODELQL_*`` environment variables (see
:meth:`Settings.from_env`) and can be replaced with :func:`configure`, e.g.
in tests. Models and compiled schemas never capture settings, so changing
them only affects subsequent requests.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

__all__ = ['Settings', 'get_settings', 'configure', 'reset_settings']

_TRUE = ('1', 'true', 't', 'yes', 'y', 'on')


@dataclass(frozen=True)
class Settings:
    """Runtime knobs shared by the mutation pipeline and default resolvers.

    Attributes:
        id_field: Primary key field used for ``data_id`` / ``input.id`` addressing.
        owner_field: Field filled with the current user's id on create and used
            for the ``owners`` group.
        default_limit: Page size of multi queries without an explicit limit.
        max_limit: Upper bound applied to requested limits.
        warn_deprecated_selector: Emit a DeprecationWarning when mutators are
            addressed with the legacy bare ``selector`` argument.
    """

    id_field: str = '_id'
    owner_field: str = 'userId'
    default_limit: int = 1000
    max_limit: int = 1000
    warn_deprecated_selector: bool = True

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, prefix: str = 'MODELQL_') -> 'Settings':
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(prefix + f.name.upper())
            if raw is None or raw == '':
                continue
            if f.type in ('bool', bool):
                values[f.name] = raw.strip().lower() in _TRUE
            elif f.type in ('int', int):
                values[f.name] = int(raw)
            else:
                values[f.name] = raw
        return cls(**values)


_SETTINGS: Optional[Settings] = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS


def configure(settings: Optional[Settings] = None, **overrides: Any) -> Settings:
    """Install ``settings`` (or the current settings with ``overrides``) and return them."""
    global _SETTINGS
    base = settings or get_settings()
    _SETTINGS = replace(base, **overrides) if overrides else base
    return _SETTINGS


def reset_settings() -> None:
    global _SETTINGS
    _SETTINGS = None
