"""
AccessGuard: mode, read-only lock and persistence-phase checks.

Checks return the error class a denied access maps to (or None when access
is allowed) instead of raising, so batch operations can gather every
offending name before failing.
"""
from typing import Optional, Type, TYPE_CHECKING

from attrstate.descriptor import AttributeDescriptor
from attrstate.exceptions import (
    AttributeStateError,
    Inaccessible,
    Unreadable,
    Ununsettable,
    Unwriteable,
)

if TYPE_CHECKING:
    from attrstate.registry import AttributeRegistry

Denial = Optional[Type[AttributeStateError]]

UNPERSISTED_SCOPE = "unpersisted"


class AccessGuard:
    """Access rules of one registry."""

    def __init__(self, registry: 'AttributeRegistry'):
        self._registry = registry

    def check_get(self, descriptor: AttributeDescriptor) -> Denial:
        if not descriptor.is_readable():
            return Unreadable
        if descriptor.is_automatic() and not self._registry.is_persisted() and not descriptor.is_gettable():
            return Inaccessible
        return None

    def check_initialize(self, descriptor: AttributeDescriptor, persisted: bool) -> Denial:
        """Whether ``descriptor`` may receive a value from initialize()."""
        if not descriptor.mode.is_initializable or descriptor.is_auto_immutable():
            return Unwriteable
        if descriptor.is_automatic() and not persisted:
            return Unwriteable
        return None

    def _check_write(self, descriptor: AttributeDescriptor, error: Type[Unwriteable]) -> Denial:
        registry = self._registry
        if registry.is_readonly():
            return error
        if not descriptor.mode.is_writable:
            return error
        if descriptor.is_auto_immutable():
            return error
        persisted = registry.is_persisted()
        if descriptor.is_automatic() and not persisted:
            return error
        if descriptor.is_immutable() and persisted:
            return error
        return None

    def check_set(self, descriptor: AttributeDescriptor) -> Denial:
        return self._check_write(descriptor, Unwriteable)

    def check_unset(self, descriptor: AttributeDescriptor) -> Denial:
        denial = self._check_write(descriptor, Ununsettable)
        if denial is not None:
            return denial
        # A required attribute may fall back to its persisted value, never to nothing
        if descriptor.is_required() and not self.restores_snapshot(descriptor):
            return Ununsettable
        return None

    def restores_snapshot(self, descriptor: AttributeDescriptor) -> bool:
        registry = self._registry
        return registry.is_persisted() and registry.tracker.has_value(descriptor.name)
