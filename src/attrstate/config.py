"""
Process-wide defaults for attribute registries.

A registry created without an explicit base mode, lazy flag or changes-only
preference reads these values at construction time. Changing a default does
not affect registries that already exist.
"""

from typing import Any

from attrstate.modes import Mode


_DEFAULT_BASE_MODE = Mode.READ_WRITE
_DEFAULT_LAZY = False
_DEFAULT_CHANGES_ONLY = False

_defaults = {
    'base_mode': _DEFAULT_BASE_MODE,
    'lazy': _DEFAULT_LAZY,
    'changes_only': _DEFAULT_CHANGES_ONLY,
}


def set_default_base_mode(mode: Any) -> None:
    """Set the base mode used by registries created without one.

    Args:
        mode: A Mode or its short string form ('r', 'r+', 'rw', 'w', 'w-', 'w--')
    """
    _defaults['base_mode'] = Mode.coerce(mode)


def get_default_base_mode() -> Mode:
    return _defaults['base_mode']


def set_default_lazy(lazy: bool) -> None:
    """Set whether new registries build descriptors on first access."""
    _defaults['lazy'] = bool(lazy)


def get_default_lazy() -> bool:
    return _defaults['lazy']


def set_changes_only_default(changes_only: bool) -> None:
    """Set whether updaters receive only changed attributes by default."""
    _defaults['changes_only'] = bool(changes_only)


def get_changes_only_default() -> bool:
    return _defaults['changes_only']


def reset_defaults() -> None:
    """Restore built-in defaults. For testing only."""
    _defaults['base_mode'] = _DEFAULT_BASE_MODE
    _defaults['lazy'] = _DEFAULT_LAZY
    _defaults['changes_only'] = _DEFAULT_CHANGES_ONLY
