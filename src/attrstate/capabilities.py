"""
Structural capabilities the registry recognizes on values and collaborators.

All checks are runtime ``isinstance`` checks against these protocols; nothing
needs to inherit from them.
"""
from typing import Any, Hashable, Iterable, Mapping, Protocol, runtime_checkable


@runtime_checkable
class Identified(Protocol):
    """A value with a stable identifier, substituted for it in storage and diffs."""

    def get_uid(self) -> Hashable: ...


@runtime_checkable
class Persistable(Protocol):
    """A value that can persist itself (nested entities)."""

    def persist(self, recursive: bool = False) -> Any: ...

    def unpersist(self, recursive: bool = False) -> Any: ...

    def is_persisted(self, recursive: bool = False) -> bool: ...


@runtime_checkable
class FallbackStore(Protocol):
    """Store consulted when a name is not defined locally."""

    def has(self, name: str) -> bool: ...

    def get(self, name: str, lazy: bool = False) -> Any: ...

    def set(self, name: str, value: Any, force: bool = False) -> Any: ...

    def unset(self, name: str) -> Any: ...


def get_uid_or_none(value: Any) -> Any:
    """Return the uid of an identified value, or None when it has none yet."""
    if isinstance(value, Identified):
        return value.get_uid()
    return None


def nested_persistables(values: Iterable[Any]) -> list:
    return [v for v in values if isinstance(v, Persistable)]


def storable_values(values: Mapping[str, Any]) -> dict:
    """Replace identified values by their uid (when they have one)."""
    result = {}
    for name, value in values.items():
        uid = get_uid_or_none(value)
        result[name] = uid if uid is not None else value
    return result
